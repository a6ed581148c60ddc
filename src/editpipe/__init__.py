from .edits import (  # noqa: F401
    EditBlock,
    FileApplyStatus,
    FullContent,
    Hunk,
    Matched,
    PatchError,
    SearchReplaceMatcher,
    SearchReplacePair,
    SearchReplacePairs,
    Unmatched,
    UnmatchedReason,
    parse_edit_block,
)
from .fileops import FileSystemPatchFileOps, InMemoryFileOps, PatchFileOps  # noqa: F401
from .patch import (  # noqa: F401
    PatchApplier,
    PatchApplyError,
    PatchParseError,
    UnanchorableHunkError,
    UnifiedPatchDocument,
    parse_unified_patch,
)
from .pipeline import BlockResult, EditStreamProcessor  # noqa: F401
from .settings import Settings, load_settings  # noqa: F401
from .stream import IncompleteTag, TagDescriptor, TagStreamScanner  # noqa: F401
