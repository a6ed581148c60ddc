from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from editpipe.logger import logger
from editpipe.settings import MatcherSettings

from . import normalize
from .models import (
    Hunk,
    Matched,
    MatchResult,
    SearchReplacePair,
    Unmatched,
    UnmatchedReason,
)


@dataclass
class ResolveResult:
    matched: List[Hunk] = field(default_factory=list)
    unmatched: List[Unmatched] = field(default_factory=list)
    # Content after applying every matched hunk in order
    content: str = ""

    @property
    def ok(self) -> bool:
        return not self.unmatched


@dataclass
class _Span:
    start: int
    end: int
    replacement: str
    tier: str


class SearchReplaceMatcher:
    """
    Locates SEARCH text in real file content and turns it into an exact Hunk.

    Location tries, in order: an exact substring; a line window equal up to a
    uniform indentation offset and collapsed intra-line whitespace; a token
    stream that ignores whitespace entirely. The first occurrence in
    document order wins. Normalized forms are only used for locating: the
    hunk's original_text is always sliced from the content itself.
    """

    def __init__(self, settings: Optional[MatcherSettings] = None):
        self.settings = settings or MatcherSettings()

    def match(self, content: str, pair: SearchReplacePair) -> MatchResult:
        if normalize.is_blank(pair.search_text):
            return Unmatched(
                pair=pair,
                reason=UnmatchedReason.EMPTY_SEARCH,
                hint="The SEARCH section was empty, which does not match any content.",
            )

        eol = normalize.detect_line_ending(content)
        work = normalize.to_lf(content) if eol == "\r\n" else content
        search = normalize.to_lf(pair.search_text)
        replace = normalize.to_lf(pair.replace_text)

        span = self._locate(work, search, replace)
        if span is None:
            logger.debug("matcher.not_found", line=pair.line)
            return Unmatched(
                pair=pair,
                reason=UnmatchedReason.NOT_FOUND,
                hint=(
                    "SEARCH content was not found in the file. Block not found:\n"
                    f"---\n{pair.search_text}\n---"
                ),
            )

        if self.settings.detect_applied and self._inside_replacement(
            work, search, replace, span
        ):
            logger.debug("matcher.already_applied", line=pair.line, tier=span.tier)
            return Unmatched(
                pair=pair,
                reason=UnmatchedReason.ALREADY_APPLIED,
                hint="The replacement is already present in the file.",
            )

        start, end, replacement = span.start, span.end, span.replacement
        if eol == "\r\n":
            start += work.count("\n", 0, start)
            end += work.count("\n", 0, end)
            replacement = replacement.replace("\n", "\r\n")

        logger.debug("matcher.matched", line=pair.line, tier=span.tier, start=start)
        return Matched(
            hunk=Hunk(
                start=start,
                end=end,
                original_text=content[start:end],
                replacement_text=replacement,
            )
        )

    def resolve(self, content: str, pairs: Iterable[SearchReplacePair]) -> ResolveResult:
        """
        Resolve pairs in order, each against the content produced by the
        previously matched ones. Unmatched pairs are reported and skipped.
        """
        result = ResolveResult(content=content)
        current = content
        for pair in pairs:
            res = self.match(current, pair)
            if isinstance(res, Unmatched):
                result.unmatched.append(res)
                continue
            h = res.hunk
            current = current[: h.start] + h.replacement_text + current[h.end :]
            result.matched.append(h)
        result.content = current
        return result

    def _locate(self, content: str, search: str, replace: str) -> Optional[_Span]:
        idx = content.find(search)
        if idx != -1:
            return _Span(idx, idx + len(search), replace, "exact")
        if self.settings.indent_tolerance:
            span = self._locate_lines(content, search, replace)
            if span is not None:
                return span
        if self.settings.token_tolerance:
            return self._locate_tokens(content, search, replace)
        return None

    def _locate_lines(self, content: str, search: str, replace: str) -> Optional[_Span]:
        search_lines, lead, trail = normalize.trim_blank_edges(search.split("\n"))
        if not search_lines:
            return None
        replace_lines = _trim_matching_edges(replace.split("\n"), lead, trail)

        lines = content.split("\n")
        starts: List[int] = []
        pos = 0
        for line in lines:
            starts.append(pos)
            pos += len(line) + 1

        m = len(search_lines)
        wanted = [normalize.collapse_ws(l) for l in search_lines]
        s_widths = [
            None if normalize.is_blank(l) else normalize.indent_width(normalize.indent_of(l))
            for l in search_lines
        ]

        for i in range(0, len(lines) - m + 1):
            window = lines[i : i + m]
            if not _window_matches(window, wanted, s_widths):
                continue
            s_prefix = normalize.common_indent(search_lines)
            f_prefix = normalize.common_indent(window)
            end_line = i + m - 1
            end = starts[end_line] + len(lines[end_line])
            # The last line's CR belongs to the line break after the span
            if lines[end_line].endswith("\r"):
                end -= 1
            crlf = m > 1 and all(l.endswith("\r") for l in window[:-1])
            sep = "\r\n" if crlf else "\n"
            replacement = sep.join(normalize.reindent(replace_lines, s_prefix, f_prefix))
            return _Span(starts[i], end, replacement, "indent")
        return None

    def _locate_tokens(self, content: str, search: str, replace: str) -> Optional[_Span]:
        needle = [t.text for t in normalize.tokenize(search)]
        hay = normalize.tokenize(content)
        at = normalize.find_token_run(hay, needle)
        if at is None:
            return None
        start = hay[at].start
        end = hay[at + len(needle) - 1].end

        line_start = content.rfind("\n", 0, start) + 1
        f_indent = normalize.indent_of(content[line_start:start])
        search_lines, lead, trail = normalize.trim_blank_edges(search.split("\n"))
        s_indent = normalize.indent_of(search_lines[0]) if search_lines else ""

        replace_lines = _trim_matching_edges(replace.split("\n"), lead, trail)
        replace_lines, _, _ = normalize.trim_blank_edges(replace_lines)
        if replace_lines:
            first = replace_lines[0].lstrip(" \t")
            rest = normalize.reindent(replace_lines[1:], s_indent, f_indent)
            replacement = "\n".join([first, *rest]).rstrip()
        else:
            replacement = ""
        return _Span(start, end, replacement, "tokens")

    def _inside_replacement(
        self, content: str, search: str, replace: str, span: _Span
    ) -> bool:
        search_tokens = [t.text for t in normalize.tokenize(search)]
        replace_tokens = [t.text for t in normalize.tokenize(replace)]
        # Only a replacement that still contains the search text can rematch
        if not replace_tokens or normalize.find_token_run(
            [normalize.Token(t, 0, 0) for t in replace_tokens], search_tokens
        ) is None:
            return False

        hay = normalize.tokenize(content)
        at = normalize.find_token_run(hay, replace_tokens)
        while at is not None:
            r_start = hay[at].start
            r_end = hay[at + len(replace_tokens) - 1].end
            if r_start <= _first_token_start(content, span) and _last_token_end(
                content, span
            ) <= r_end:
                return True
            at = normalize.find_token_run(hay, replace_tokens, at + 1)
        return False


def _window_matches(window: List[str], wanted: List[str], s_widths: List[Optional[int]]) -> bool:
    delta: Optional[int] = None
    for line, want, s_width in zip(window, wanted, s_widths):
        if s_width is None:
            if not normalize.is_blank(line):
                return False
            continue
        if normalize.collapse_ws(line) != want:
            return False
        d = normalize.indent_width(normalize.indent_of(line)) - s_width
        if delta is None:
            delta = d
        elif d != delta:
            return False
    return True


def _trim_matching_edges(lines: List[str], lead: int, trail: int) -> List[str]:
    start = 0
    while start < lead and start < len(lines) and normalize.is_blank(lines[start]):
        start += 1
    end = len(lines)
    dropped = 0
    while dropped < trail and end > start and normalize.is_blank(lines[end - 1]):
        end -= 1
        dropped += 1
    return lines[start:end]


def _first_token_start(content: str, span: _Span) -> int:
    toks = normalize.tokenize(content[span.start : span.end])
    return span.start + toks[0].start if toks else span.start


def _last_token_end(content: str, span: _Span) -> int:
    toks = normalize.tokenize(content[span.start : span.end])
    return span.start + toks[-1].end if toks else span.end

