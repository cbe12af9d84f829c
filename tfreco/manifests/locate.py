"""
Locate declarations and attributes inside Terraform manifest text.

This is not an HCL parser. It knows just enough structure to skip string
literals, heredocs and comments, and to count braces, so that a
`resource "type" "name" { ... }` block is bounded by its own closing brace
instead of by a greedy pattern that runs into the next block.
"""

from __future__ import annotations

import bisect
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple


HEREDOC_START = re.compile(r"<<-?([A-Za-z_][\w-]*)[ \t]*\r?\n")
NAME_PATTERN = r"[\w-]+"


@dataclass(frozen=True)
class Span:
    start: int
    end: int  # exclusive
    groups: Tuple[str, ...] = ()

    @property
    def value_start(self) -> int:
        """Offset of groups[0] when the span ends with it (attribute spans)."""
        return self.end - len(self.groups[0]) if self.groups else self.start


# -- lexical helpers --------------------------------------------------------

def _skip_template(text: str, i: int) -> int:
    depth = 1
    n = len(text)
    while i < n:
        c = text[i]
        if c == '"':
            i = _skip_string(text, i)
            continue
        if c == "{":
            depth += 1
        elif c == "}":
            depth -= 1
            if depth == 0:
                return i + 1
        i += 1
    return n


def _skip_string(text: str, i: int) -> int:
    """Return the offset just past the string literal opening at i."""
    n = len(text)
    j = i + 1
    while j < n:
        c = text[j]
        if c == "\\":
            j += 2
            continue
        if c == '"':
            return j + 1
        if c == "\n":
            # quoted strings cannot span lines
            return j
        if c in "$%" and text.startswith("{", j + 1):
            j = _skip_template(text, j + 2)
            continue
        j += 1
    return n


def _opaque_at(text: str, i: int) -> Optional[Tuple[str, int]]:
    """
    If a string, heredoc or comment starts at i, return (kind, end).
    """
    c = text[i]
    if c == '"':
        return "string", _skip_string(text, i)
    if c == "#" or text.startswith("//", i):
        j = text.find("\n", i)
        return "comment", len(text) if j == -1 else j
    if text.startswith("/*", i):
        j = text.find("*/", i + 2)
        return "comment", len(text) if j == -1 else j + 2
    if text.startswith("<<", i):
        m = HEREDOC_START.match(text, i)
        if m:
            terminator = re.compile(r"^[ \t]*" + re.escape(m.group(1)) + r"[ \t]*\r?$", re.MULTILINE)
            t = terminator.search(text, m.end())
            return "heredoc", len(text) if t is None else t.end()
    return None


def opaque_spans(text: str, start: int = 0, end: Optional[int] = None) -> List[Tuple[int, int, str]]:
    """All string, heredoc and comment ranges in text[start:end], in order."""
    stop = len(text) if end is None else end
    spans: List[Tuple[int, int, str]] = []
    i = start
    while i < stop:
        tok = _opaque_at(text, i)
        if tok:
            kind, tok_end = tok
            spans.append((i, tok_end, kind))
            i = max(tok_end, i + 1)
        else:
            i += 1
    return spans


def _inside(spans: List[Tuple[int, int, str]], offset: int) -> bool:
    starts = [s[0] for s in spans]
    idx = bisect.bisect_right(starts, offset) - 1
    return idx >= 0 and spans[idx][0] <= offset < spans[idx][1]


def _matching_close(text: str, open_at: int, opener: str, closer: str) -> Optional[int]:
    depth = 0
    i = open_at
    n = len(text)
    while i < n:
        tok = _opaque_at(text, i)
        if tok:
            i = max(tok[1], i + 1)
            continue
        c = text[i]
        if c == opener:
            depth += 1
        elif c == closer:
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return None


def _depth_between(text: str, start: int, pos: int) -> int:
    depth = 0
    i = start
    while i < pos:
        tok = _opaque_at(text, i)
        if tok:
            i = max(tok[1], i + 1)
            continue
        c = text[i]
        if c in "{[(":
            depth += 1
        elif c in "}])":
            depth -= 1
        i += 1
    return depth


# -- declarations and attributes -------------------------------------------

def _header(resource_type: str, name: Optional[str]) -> re.Pattern:
    name_expr = re.escape(name) if name else NAME_PATTERN
    return re.compile(r'resource\s+"(' + re.escape(resource_type) + r')"\s+"(' + name_expr + r')"\s*\{')


def find_declarations(text: str, resource_type: str, name: Optional[str] = None) -> List[Span]:
    """
    All live (not commented out) declarations of resource_type, optionally
    restricted to one name. groups == (type, name).
    """
    spans = opaque_spans(text)
    found: List[Span] = []
    for m in _header(resource_type, name).finditer(text):
        if _inside(spans, m.start()):
            continue
        close = _matching_close(text, m.end() - 1, "{", "}")
        if close is None:
            continue
        found.append(Span(m.start(), close + 1, m.groups()))
    return found


def find_declaration(text: str, resource_type: str, name: str) -> Optional[Span]:
    """First live declaration `resource "resource_type" "name" { ... }`, or None."""
    found = find_declarations(text, resource_type, name)
    return found[0] if found else None


def _value_end(text: str, vs: int, spans: List[Tuple[int, int, str]], limit: int) -> int:
    if vs >= len(text):
        return vs
    c = text[vs]
    if c in "[{":
        close = _matching_close(text, vs, c, "]" if c == "[" else "}")
        if close is not None:
            return close + 1
    if c == '"':
        return _skip_string(text, vs)
    eol = text.find("\n", vs)
    eol = min(len(text) if eol == -1 else eol, limit)
    for s, _, kind in spans:
        if vs <= s < eol and kind == "comment":
            eol = s
            break
    while eol > vs and text[eol - 1] in " \t\r":
        eol -= 1
    return eol


def find_attribute(text: str, block: Span, key: str) -> Optional[Span]:
    """
    First top-level `key = value` assignment inside block.

    Nested blocks and comments are skipped. groups == (raw_value,), where a
    list value spans the whole bracketed literal.
    """
    body_start = text.index("{", block.start) + 1
    body_end = block.end - 1
    spans = opaque_spans(text, body_start, body_end)
    # an assignment starts a line or directly follows the opening brace of a one-line block
    pattern = re.compile(r"(?:^|(?<=\{))[ \t]*(" + re.escape(key) + r")[ \t]*=[ \t]*", re.MULTILINE)
    for m in pattern.finditer(text, body_start, body_end):
        if _inside(spans, m.start(1)):
            continue
        if _depth_between(text, body_start, m.start(1)) != 0:
            continue
        end = _value_end(text, m.end(), spans, body_end)
        return Span(m.start(1), end, (text[m.end():end],))
    return None


def unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == '"' and value[-1] == '"':
        return value[1:-1].replace('\\"', '"').replace("\\\\", "\\")
    return value


def list_items(text: str, start: int, end: int) -> List[Tuple[str, int, int]]:
    """
    Items of the list literal text[start:end] as (raw, start, end) offsets.

    Commented-out items are not items. A trailing comma is allowed.
    """
    items: List[Tuple[str, int, int]] = []
    depth = 0
    item_start: Optional[int] = None
    item_end = 0

    def flush():
        if item_start is not None:
            items.append((text[item_start:item_end], item_start, item_end))

    i = start + 1
    stop = end - 1
    while i < stop:
        tok = _opaque_at(text, i)
        if tok:
            kind, tok_end = tok
            if kind != "comment":
                if item_start is None:
                    item_start = i
                item_end = tok_end
            i = max(tok_end, i + 1)
            continue
        c = text[i]
        if c == "," and depth == 0:
            flush()
            item_start = None
        else:
            if c in "[{(":
                depth += 1
            elif c in "]})":
                depth -= 1
            if not c.isspace():
                if item_start is None:
                    item_start = i
                item_end = i + 1
        i += 1
    flush()
    return items


def parse_list_literal(text: str) -> List[str]:
    """Tolerant parse of an HCL list literal into its (unquoted) items."""
    text = text.strip()
    if not (text.startswith("[") and text.endswith("]")):
        raise ValueError(f"Not a list literal: {text[:40]!r}")
    return [unquote(raw) for raw, _, _ in list_items(text, 0, len(text))]


# -- positions ---------------------------------------------------------------

def offset_to_line(text: str, offset: int) -> int:
    """1-based line number: newlines in text[0..offset] inclusive, plus one."""
    return text.count("\n", 0, offset + 1) + 1


def line_to_offset(text: str, line: int) -> int:
    """Offset of the first character of a 1-based line."""
    pos = 0
    for _ in range(line - 1):
        pos = text.index("\n", pos) + 1
    return pos
