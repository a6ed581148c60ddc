"""
Patch applier: anchors unified-diff hunks (or pre-resolved Hunks) in real
content without trusting header line numbers, and fails closed when a hunk
cannot be located.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Union

from editpipe.edits import normalize
from editpipe.edits.models import Hunk
from editpipe.logger import logger
from editpipe.settings import PatchSettings

from .unified import (
    LineKind,
    PatchHunk,
    UnifiedPatchDocument,
    parse_unified_patch,
    render_unified_patch,
)


class PatchApplyError(ValueError):
    """Any problem detected while applying hunks."""


class UnanchorableHunkError(PatchApplyError):
    def __init__(self, index: int, hunk: Union[PatchHunk, Hunk], hint: str = ""):
        self.index = index
        self.hunk = hunk
        self.hint = hint
        msg = f"Failed to anchor hunk #{index + 1}"
        if hint:
            msg = f"{msg}. {hint}"
        super().__init__(msg)


@dataclass
class _Applied:
    # Position in the lines being edited; moves as later hunks land before it
    current: int
    # Position of the replaced region in the unpatched file
    old: int
    old_len: int
    new_len: int


@dataclass
class Anchor:
    index: int
    # "exact" | "trimmed" | "fuzzy" | "header"
    mode: str
    mismatches: int = 0


def _format_excerpt(text: str, max_lines: int = 8) -> str:
    segment = text.split("\n")
    if len(segment) > max_lines:
        segment = [*segment[: max_lines // 2], "...", *segment[-(max_lines // 2) :]]
    return "\n".join(f"  | {ln}" for ln in segment)


def _join_lines(lines: List[str]) -> str:
    out: List[str] = []
    last = len(lines) - 1
    for i, line in enumerate(lines):
        if i < last and not line.endswith("\n"):
            line += "\n"
        out.append(line)
    return "".join(out)


class PatchApplier:
    def __init__(self, settings: Optional[PatchSettings] = None):
        self.settings = settings or PatchSettings()

    def apply(
        self,
        content: str,
        patch: Union[str, UnifiedPatchDocument, Sequence[Hunk]],
    ) -> str:
        if isinstance(patch, str):
            patch = parse_unified_patch(patch)
        if isinstance(patch, UnifiedPatchDocument):
            return self.apply_document(content, patch)
        return self.apply_hunks(content, patch)

    def apply_document(self, content: str, doc: UnifiedPatchDocument) -> str:
        eol = normalize.detect_line_ending(content)
        work = normalize.to_lf(content) if eol == "\r\n" else content
        lines = normalize.split_lines_keepends(work)
        trailing_newline = work == "" or work.endswith("\n")
        explicit_eol = False
        applied: List[_Applied] = []

        for idx, hunk in enumerate(doc.hunks):
            expected = self._expected_index(hunk, applied, len(lines))
            anchor = self.anchor(lines, hunk, expected)
            if anchor is None:
                hint = (
                    "Context not found. Here is the hunk you provided:\n"
                    + _format_excerpt(
                        render_unified_patch(UnifiedPatchDocument([hunk])).rstrip("\n")
                    )
                )
                logger.warning(
                    "patch.unanchorable_hunk",
                    hunk=idx + 1,
                    header=hunk.header(),
                    expected=expected,
                )
                raise UnanchorableHunkError(idx, hunk, hint)

            if anchor.mode != "exact":
                logger.debug(
                    "patch.anchored",
                    hunk=idx + 1,
                    mode=anchor.mode,
                    index=anchor.index,
                    expected=expected,
                    mismatches=anchor.mismatches,
                )

            segment = self._build_segment(lines, hunk, anchor.index)
            explicit_eol = explicit_eol or any(l.no_eol for l in hunk.lines)
            old_len = len(hunk.old_lines)
            lines[anchor.index : anchor.index + old_len] = segment
            self._track(applied, anchor.index, old_len, len(segment))

        result = _join_lines(lines)
        # Keep the file's end-of-file newline state unless the patch says otherwise
        if not explicit_eol and not trailing_newline and result.endswith("\n"):
            result = result[:-1]
        if eol == "\r\n":
            result = result.replace("\n", "\r\n")
        return result

    def apply_hunks(self, content: str, hunks: Sequence[Hunk]) -> str:
        """
        Apply pre-resolved hunks in order. Each hunk's offsets refer to the
        content produced by the hunks before it.
        """
        current = content
        for idx, h in enumerate(hunks):
            start = h.start
            if current[start : h.end] != h.original_text:
                start = self._nearest_occurrence(current, h.original_text, h.start)
                if start is None:
                    logger.warning("patch.stale_hunk", hunk=idx + 1, start=h.start)
                    raise UnanchorableHunkError(
                        idx,
                        h,
                        "Original text is no longer present:\n"
                        + _format_excerpt(h.original_text),
                    )
            end = start + len(h.original_text)
            current = current[:start] + h.replacement_text + current[end:]
        return current

    def anchor(
        self, lines: List[str], hunk: PatchHunk, expected: Optional[int]
    ) -> Optional[Anchor]:
        old = hunk.old_lines
        if not old:
            # Pure insertion: only the header can place it
            if expected is None:
                return None
            return Anchor(index=min(expected, len(lines)), mode="header")

        if len(old) > len(lines):
            return None
        texts = [l.text for l in old]

        def exact(file_line: str, text: str) -> bool:
            return file_line.rstrip("\n") == text

        def trimmed(file_line: str, text: str) -> bool:
            return file_line.strip() == text.strip()

        for mode, cmp in (("exact", exact), ("trimmed", trimmed)):
            for start in self._candidate_starts(len(lines), len(old), expected):
                if all(cmp(lines[start + k], t) for k, t in enumerate(texts)):
                    return Anchor(index=start, mode=mode)

        return self._fuzzy_anchor(lines, hunk, expected)

    def _fuzzy_anchor(
        self, lines: List[str], hunk: PatchHunk, expected: Optional[int]
    ) -> Optional[Anchor]:
        budget = self.settings.fuzz
        if budget <= 0:
            return None
        old = hunk.old_lines
        best: Optional[Anchor] = None
        for start in self._candidate_starts(len(lines), len(old), expected):
            mismatches = 0
            matched = 0
            for k, pl in enumerate(old):
                same = lines[start + k].strip() == pl.text.strip()
                if same:
                    matched += 1
                    continue
                # Removed lines must anchor exactly where they are deleted
                if pl.kind == LineKind.REMOVE:
                    mismatches = budget + 1
                    break
                mismatches += 1
                if mismatches > budget:
                    break
            if mismatches > budget or matched <= mismatches:
                continue
            if best is None or mismatches < best.mismatches:
                best = Anchor(index=start, mode="fuzzy", mismatches=mismatches)
                if mismatches == 1:
                    break
        return best

    def _candidate_starts(
        self, n_lines: int, pat_len: int, expected: Optional[int]
    ) -> Iterator[int]:
        last = n_lines - pat_len
        if last < 0:
            return
        if expected is None:
            yield from range(0, last + 1)
            return
        expected = max(0, min(expected, last))
        window = self.settings.search_window
        yield expected
        for off in range(1, window + 1):
            lo, hi = expected - off, expected + off
            if lo < 0 and hi > last:
                return
            if lo >= 0:
                yield lo
            if hi <= last:
                yield hi
        lo_edge = max(0, expected - window)
        hi_edge = min(last, expected + window)
        yield from range(0, lo_edge)
        yield from range(hi_edge + 1, last + 1)

    @staticmethod
    def _expected_index(
        hunk: PatchHunk, applied: List[_Applied], n_lines: int
    ) -> Optional[int]:
        if hunk.old_start is None:
            return None
        old_count = hunk.old_count if hunk.old_count is not None else len(hunk.old_lines)
        base = hunk.old_start - 1 if old_count > 0 else hunk.old_start
        base = max(0, base)
        shifted = base + sum(
            a.new_len - a.old_len for a in applied if a.old + a.old_len <= base
        )
        return max(0, min(shifted, n_lines))

    @staticmethod
    def _track(applied: List[_Applied], at: int, old_len: int, new_len: int) -> None:
        # Header numbers refer to the unpatched file, so each applied hunk is
        # mapped back to its old position before later hunks are placed.
        old = at - sum(
            a.new_len - a.old_len for a in applied if a.current + a.new_len <= at
        )
        for a in applied:
            if a.current >= at + old_len:
                a.current += new_len - old_len
        applied.append(_Applied(current=at, old=old, old_len=old_len, new_len=new_len))

    @staticmethod
    def _build_segment(lines: List[str], hunk: PatchHunk, at: int) -> List[str]:
        out: List[str] = []
        k = at
        for pl in hunk.lines:
            if pl.kind == LineKind.CONTEXT:
                # Context is kept exactly as found in the file
                out.append(lines[k])
                k += 1
            elif pl.kind == LineKind.REMOVE:
                k += 1
            else:
                out.append(pl.text if pl.no_eol else pl.text + "\n")
        return out

    @staticmethod
    def _nearest_occurrence(content: str, text: str, near: int) -> Optional[int]:
        if not text:
            return None
        best: Optional[int] = None
        pos = content.find(text)
        while pos != -1:
            if best is None or abs(pos - near) < abs(best - near):
                best = pos
            pos = content.find(text, pos + 1)
        return best


def apply_patch(
    content: str,
    patch: Union[str, UnifiedPatchDocument, Sequence[Hunk]],
    settings: Optional[PatchSettings] = None,
) -> str:
    return PatchApplier(settings).apply(content, patch)
