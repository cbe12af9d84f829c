from .walk import load_manifest_files, load_variables, write_manifest_files
from .resolve import ValueResolver, resolve_view
from .locate import (
    Span,
    find_attribute,
    find_declaration,
    line_to_offset,
    offset_to_line,
    parse_list_literal,
)

__all__ = [
    "load_manifest_files",
    "load_variables",
    "write_manifest_files",
    "ValueResolver",
    "resolve_view",
    "Span",
    "find_attribute",
    "find_declaration",
    "line_to_offset",
    "offset_to_line",
    "parse_list_literal",
]
