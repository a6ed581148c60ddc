"""
Edit stream pipeline: scans model output for edit tags, resolves each tag
body against the current file content and writes the result through
PatchFileOps.

    <file path="src/app.py">
    <<<<<<< SEARCH
    ...
    =======
    ...
    >>>>>>> REPLACE
    </file>

A body without SEARCH markers replaces the whole file. A tag with
format="unified" carries unified diff hunks for its file.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import (
    AsyncIterable,
    AsyncIterator,
    Dict,
    Iterable,
    Iterator,
    List,
    Optional,
    Tuple,
)

from .edits import (
    EditBlock,
    FileApplyStatus,
    FullContent,
    Hunk,
    PatchError,
    SearchReplaceMatcher,
    SearchReplacePair,
    Unmatched,
    UnmatchedReason,
    parse_edit_block,
)
from .fileops import PatchFileOps
from .logger import apply_logging_settings, logger
from .patch import (
    PatchApplier,
    PatchParseError,
    UnanchorableHunkError,
    diff_contents,
    render_unified_patch,
)
from .settings import Settings
from .stream import IncompleteTag, TagDescriptor, TagStreamScanner


FORMAT_ATTRIBUTE = "format"
UNIFIED_FORMAT = "unified"

_UNMATCHED_MESSAGES: Dict[UnmatchedReason, str] = {
    UnmatchedReason.NOT_FOUND: "SEARCH block did not match the file",
    UnmatchedReason.ALREADY_APPLIED: "SEARCH block is already applied",
    UnmatchedReason.EMPTY_SEARCH: "SEARCH block is empty",
    UnmatchedReason.MISSING_FILE: "File does not exist",
}


@dataclass
class BlockResult:
    path: str
    status: FileApplyStatus
    matched: List[Hunk] = field(default_factory=list)
    unmatched: List[Unmatched] = field(default_factory=list)
    # Unified diff of the committed change, if anything was written
    patch: Optional[str] = None
    errors: List[PatchError] = field(default_factory=list)

    @property
    def error(self) -> Optional[PatchError]:
        return self.errors[0] if self.errors else None


def _unmatched_error(path: str, u: Unmatched) -> PatchError:
    return PatchError(
        msg=_UNMATCHED_MESSAGES[u.reason],
        line=u.pair.line,
        hint=u.hint,
        filename=path,
    )


class EditStreamProcessor:
    def __init__(self, ops: PatchFileOps, settings: Optional[Settings] = None):
        self.ops = ops
        self.settings = settings or Settings()
        if self.settings.logging is not None:
            apply_logging_settings(self.settings.logging)
        self.matcher = SearchReplaceMatcher(self.settings.matcher)
        self.applier = PatchApplier(self.settings.patch)
        self.results: List[BlockResult] = []

    def tags(self) -> Dict[str, TagDescriptor]:
        sc = self.settings.scanner
        return {
            sc.edit_tag: TagDescriptor(
                attribute_names=[sc.path_attribute, FORMAT_ATTRIBUTE],
                on_end=self._on_end,
            )
        }

    def process(self, chunks: Iterable[str]) -> Iterator[str]:
        """Pass non-edit text through while applying every edit tag."""
        scanner = TagStreamScanner(self.tags())
        yield from scanner.scan(chunks)
        self._record_incomplete(scanner.incomplete)

    async def aprocess(self, chunks: AsyncIterable[str]) -> AsyncIterator[str]:
        scanner = TagStreamScanner(self.tags())
        async for fragment in scanner.ascan(chunks):
            yield fragment
        self._record_incomplete(scanner.incomplete)

    def _on_end(self, content: str, attributes: Dict[str, str]) -> bool:
        sc = self.settings.scanner
        path = attributes.get(sc.path_attribute, "").strip()
        if not path:
            self._record(
                BlockResult(
                    path="",
                    status=FileApplyStatus.Failed,
                    errors=[
                        PatchError(
                            msg=f"Missing {sc.path_attribute} attribute on <{sc.edit_tag}> tag",
                            hint=f'Use <{sc.edit_tag} {sc.path_attribute}="relative/path">',
                        )
                    ],
                )
            )
        elif attributes.get(FORMAT_ATTRIBUTE, "").lower() == UNIFIED_FORMAT:
            self.apply_unified(path, content)
        else:
            block, parse_errors = parse_edit_block(path, content)
            if parse_errors:
                # A block with a broken pair is never committed partially
                self._record(
                    BlockResult(path=path, status=FileApplyStatus.Failed, errors=parse_errors)
                )
            else:
                self.process_block(block)
        return False

    def _record_incomplete(self, incomplete: Optional[IncompleteTag]) -> None:
        if incomplete is None:
            return
        path = incomplete.attributes.get(self.settings.scanner.path_attribute, "")
        self._record(
            BlockResult(
                path=path,
                status=FileApplyStatus.Incomplete,
                errors=[
                    PatchError(
                        msg="Edit block was cut off before its closing tag",
                        hint="Emit the complete block again",
                        filename=path or None,
                    )
                ],
            )
        )

    def _record(self, result: BlockResult) -> BlockResult:
        logger.info(
            "pipeline.block",
            path=result.path,
            status=result.status.value,
            matched=len(result.matched),
            unmatched=len(result.unmatched),
        )
        self.results.append(result)
        return result

    def process_block(self, block: EditBlock) -> BlockResult:
        """Apply one EditBlock. File errors end up in the result, never raised."""
        return self._record(self._apply_block(block))

    def apply_unified(self, path: str, text: str) -> BlockResult:
        return self._record(self._apply_unified(path, text))

    def _apply_block(self, block: EditBlock) -> BlockResult:
        old, read_error = self._read(block.path)
        if read_error is not None:
            return BlockResult(
                path=block.path, status=FileApplyStatus.Failed, errors=[read_error]
            )

        if isinstance(block.payload, FullContent):
            return self._commit(block.path, old, block.payload.content)

        pairs = block.payload.pairs
        if old is None:
            return self._apply_to_missing(block.path, pairs)

        res = self.matcher.resolve(old, pairs)
        if res.unmatched:
            if not res.matched and all(
                u.reason == UnmatchedReason.ALREADY_APPLIED for u in res.unmatched
            ):
                return BlockResult(
                    path=block.path,
                    status=FileApplyStatus.Unchanged,
                    unmatched=res.unmatched,
                )
            logger.warning(
                "pipeline.unmatched",
                path=block.path,
                reasons=[u.reason.name for u in res.unmatched],
            )
            return BlockResult(
                path=block.path,
                status=FileApplyStatus.Unmatched,
                matched=res.matched,
                unmatched=res.unmatched,
                errors=[_unmatched_error(block.path, u) for u in res.unmatched],
            )

        try:
            new = self.applier.apply_hunks(old, res.matched)
        except UnanchorableHunkError as e:
            return BlockResult(
                path=block.path,
                status=FileApplyStatus.Failed,
                matched=res.matched,
                errors=[
                    PatchError(
                        msg=f"Failed to anchor hunk #{e.index + 1}",
                        hint=e.hint,
                        filename=block.path,
                    )
                ],
            )
        result = self._commit(block.path, old, new)
        result.matched = res.matched
        return result

    def _apply_unified(self, path: str, text: str) -> BlockResult:
        old, read_error = self._read(path)
        if read_error is not None:
            return BlockResult(path=path, status=FileApplyStatus.Failed, errors=[read_error])
        try:
            new = self.applier.apply(old or "", text)
        except PatchParseError as e:
            return BlockResult(
                path=path,
                status=FileApplyStatus.Failed,
                errors=[PatchError(msg=str(e), filename=path)],
            )
        except UnanchorableHunkError as e:
            hunk_line = getattr(e.hunk, "header_line", None)
            return BlockResult(
                path=path,
                status=FileApplyStatus.Failed,
                errors=[
                    PatchError(
                        msg=f"Failed to anchor hunk #{e.index + 1}",
                        line=hunk_line,
                        hint=e.hint,
                        filename=path,
                    )
                ],
            )
        return self._commit(path, old, new)

    def _apply_to_missing(self, path: str, pairs: List[SearchReplacePair]) -> BlockResult:
        if len(pairs) == 1 and not pairs[0].search_text.strip():
            return self._commit(path, None, pairs[0].replace_text)
        unmatched = [
            Unmatched(
                pair=p,
                reason=UnmatchedReason.MISSING_FILE,
                hint=f"{path} does not exist. Use an empty SEARCH section to create it.",
            )
            for p in pairs
        ]
        return BlockResult(
            path=path,
            status=FileApplyStatus.Unmatched,
            unmatched=unmatched,
            errors=[_unmatched_error(path, u) for u in unmatched],
        )

    def _read(self, path: str) -> Tuple[Optional[str], Optional[PatchError]]:
        try:
            return self.ops.open(path), None
        except FileNotFoundError:
            return None, None
        except Exception as e:
            return None, PatchError(
                msg=f"Failed to read file: {path}",
                hint=f"{type(e).__name__}: {e}",
                filename=path,
            )

    def _commit(self, path: str, old: Optional[str], new: str) -> BlockResult:
        if old is not None and old == new:
            return BlockResult(path=path, status=FileApplyStatus.Unchanged)
        try:
            self.ops.write(path, new)
        except Exception as e:
            return BlockResult(
                path=path,
                status=FileApplyStatus.Failed,
                errors=[
                    PatchError(
                        msg=f"Failed to apply change to file: {path}",
                        hint=f"{type(e).__name__}: {e}",
                        filename=path,
                    )
                ],
            )
        status = FileApplyStatus.Create if old is None else FileApplyStatus.Update
        return BlockResult(
            path=path,
            status=status,
            patch=render_unified_patch(diff_contents(old or "", new)),
        )

    def summary(self) -> str:
        """Human-readable outcome of every block processed so far."""
        created = sorted({r.path for r in self.results if r.status == FileApplyStatus.Create})
        updated = sorted({r.path for r in self.results if r.status == FileApplyStatus.Update})
        unchanged = sorted(
            {r.path for r in self.results if r.status == FileApplyStatus.Unchanged}
        )
        errs = [e for r in self.results for e in r.errors]

        lines: List[str] = []
        if not errs:
            lines.append("Applied edits successfully.")
            if created:
                lines.append("Added files:")
                lines.extend(f"* {f}" for f in created)
            if updated:
                lines.append("Fully updated files:")
                lines.extend(f"* {f}" for f in updated)
            if unchanged:
                lines.append("Unchanged files:")
                lines.extend(f"* {f}" for f in unchanged)
            return "\n".join(lines)

        if not created and not updated:
            lines.append("Edit application failed. No changes were applied.")
        else:
            lines.append("Edit application completed with errors. Summary:")
            if created:
                lines.append("Added files (fully applied):")
                lines.extend(f"* {f}" for f in created)
            if updated:
                lines.append("Fully updated files:")
                lines.extend(f"* {f}" for f in updated)

        failed = sorted({r.path for r in self.results if r.errors and r.path})
        if failed:
            lines.append("Please regenerate the edit blocks for these files:")
            lines.extend(f"* {f}" for f in failed)
            lines.append("You might want to re-read the source files first.")

        lines.append("Errors:")
        for e in errs:
            loc = ""
            if e.filename and e.line is not None:
                loc = f"{e.filename}:{e.line}: "
            elif e.filename:
                loc = f"{e.filename}: "
            lines.append(f"* {loc}{e.msg}")
            if e.hint:
                lines.append(f"  Hint: {e.hint}")
        return "\n".join(lines)
