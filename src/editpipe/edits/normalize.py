"""Whitespace and token helpers shared by the matcher and the patch applier."""

from __future__ import annotations

import os
import re
from typing import List, NamedTuple, Optional, Sequence

TOKEN_RE = re.compile(r"\w+|[^\w\s]")
LINE_RE = re.compile(r"[^\n]*\n|[^\n]+")
TAB_WIDTH = 4


class Token(NamedTuple):
    text: str
    start: int
    end: int


def detect_line_ending(text: str) -> str:
    # CRLF only when every newline in the text is part of a CRLF pair
    crlf = text.count("\r\n")
    if crlf and crlf == text.count("\n"):
        return "\r\n"
    return "\n"


def to_lf(text: str) -> str:
    return text.replace("\r\n", "\n")


def split_lines_keepends(text: str) -> List[str]:
    return LINE_RE.findall(text)


def indent_of(line: str) -> str:
    return line[: len(line) - len(line.lstrip(" \t"))]


def indent_width(indent: str) -> int:
    return len(indent.expandtabs(TAB_WIDTH))


def is_blank(line: str) -> bool:
    return line.strip() == ""


def collapse_ws(line: str) -> str:
    return " ".join(line.split())


def common_indent(lines: Sequence[str]) -> str:
    indents = [indent_of(l) for l in lines if not is_blank(l)]
    if not indents:
        return ""
    return os.path.commonprefix(indents)


def trim_blank_edges(lines: List[str]) -> tuple[List[str], int, int]:
    """Drop blank lines at both ends; returns (lines, leading, trailing) counts."""
    start = 0
    end = len(lines)
    while start < end and is_blank(lines[start]):
        start += 1
    while end > start and is_blank(lines[end - 1]):
        end -= 1
    return lines[start:end], start, len(lines) - end


def reindent(lines: Sequence[str], from_prefix: str, to_prefix: str) -> List[str]:
    """
    Move lines from one base indentation to another. Lines indented less
    than from_prefix keep their relative offset by width.
    """
    out: List[str] = []
    for line in lines:
        if is_blank(line):
            out.append(line)
        elif line.startswith(from_prefix):
            out.append(to_prefix + line[len(from_prefix) :])
        else:
            shortfall = indent_width(from_prefix) - indent_width(indent_of(line))
            width = max(0, indent_width(to_prefix) - shortfall)
            out.append(to_prefix.expandtabs(TAB_WIDTH)[:width] + line.lstrip(" \t"))
    return out


def tokenize(text: str) -> List[Token]:
    return [Token(m.group(0), m.start(), m.end()) for m in TOKEN_RE.finditer(text)]


def find_token_run(
    hay: Sequence[Token], needle: Sequence[str], start: int = 0
) -> Optional[int]:
    m = len(needle)
    if m == 0:
        return None
    first = needle[0]
    for i in range(start, len(hay) - m + 1):
        if hay[i].text != first:
            continue
        if all(hay[i + k].text == needle[k] for k in range(1, m)):
            return i
    return None
