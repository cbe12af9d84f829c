from __future__ import annotations

import re
from typing import List, Optional, Tuple

COMMENT_OPEN = "/* "
COMMENT_CLOSE = " */"
LINE_COMMENT = "# "

ROLE_ASSIGN = re.compile(r'(?:^|(?<=\{))([ \t]*role[ \t]*=[ \t]*)("[^"\n]*"|[^\s"#/}]+)', re.MULTILINE)


def _lines(content: str, *line_nums: int) -> List[str]:
    lines = content.split("\n")
    for n in line_nums:
        if not 1 <= n <= len(lines):
            raise IndexError(f"line {n} out of range (1..{len(lines)})")
    return lines


def _split_eol(raw: str) -> Tuple[str, str]:
    if raw.endswith("\r"):
        return raw[:-1], "\r"
    return raw, ""


def replace_line(content: str, line: int, new_text: str) -> str:
    lines = _lines(content, line)
    _, eol = _split_eol(lines[line - 1])
    lines[line - 1] = new_text + eol
    return "\n".join(lines)


def comment_line(content: str, line: int) -> str:
    return comment_block(content, line, line)


def comment_span(content: str, line: int, start_col: int, end_col: int) -> str:
    """Wrap columns [start_col, end_col) of one line in a block comment."""
    lines = _lines(content, line)
    body, eol = _split_eol(lines[line - 1])
    if not 0 <= start_col <= end_col <= len(body):
        raise IndexError(f"columns {start_col}..{end_col} out of range for line {line}")
    lines[line - 1] = body[:start_col] + COMMENT_OPEN + body[start_col:end_col] + COMMENT_CLOSE + body[end_col:] + eol
    return "\n".join(lines)


def comment_block(content: str, start_line: int, end_line: int) -> str:
    """
    Open a block comment at the start of start_line and close it at the end
    of end_line. Lines in between are not touched.

    Block comments do not nest, so a range that already holds a `*/` is
    commented line by line with `#` instead.
    """
    if end_line < start_line:
        raise ValueError(f"end line {end_line} before start line {start_line}")
    lines = _lines(content, start_line, end_line)
    if any(COMMENT_CLOSE.strip() in line for line in lines[start_line - 1:end_line]):
        for i in range(start_line - 1, end_line):
            lines[i] = (LINE_COMMENT + lines[i]) if lines[i].strip() else LINE_COMMENT.strip() + lines[i]
        return "\n".join(lines)
    lines[start_line - 1] = COMMENT_OPEN + lines[start_line - 1]
    body, eol = _split_eol(lines[end_line - 1])
    lines[end_line - 1] = body + COMMENT_CLOSE + eol
    return "\n".join(lines)


def copy_lines(content: str, start_line: int, end_line: int) -> str:
    lines = _lines(content, start_line, end_line)
    return "\n".join(lines[start_line - 1:end_line])


def substitute_role(block_text: str, role: str) -> Optional[str]:
    """Rewrite the first role assignment to role = "<role>", or None if there is none."""
    m = ROLE_ASSIGN.search(block_text)
    if m is None:
        return None
    return block_text[:m.start(2)] + f'"{role}"' + block_text[m.end(2):]


def append_transformed_copy(content: str, start_line: int, end_line: int, role: str) -> str:
    """
    Insert a blank line and a copy of lines start_line..end_line, with the
    role rewritten, directly after end_line. Without a role assignment in
    the range the content is returned unchanged.
    """
    copied = substitute_role(copy_lines(content, start_line, end_line), role)
    if copied is None:
        return content
    lines = content.split("\n")
    _, eol = _split_eol(lines[end_line - 1])
    lines[end_line:end_line] = [eol] + copied.split("\n")
    return "\n".join(lines)
