from .models import (  # noqa: F401
    EditBlock,
    FileApplyStatus,
    FullContent,
    Hunk,
    Matched,
    MatchResult,
    PatchError,
    SearchReplacePair,
    SearchReplacePairs,
    Unmatched,
    UnmatchedReason,
)
from .blocks import parse_edit_block, parse_search_replace  # noqa: F401
from .matcher import ResolveResult, SearchReplaceMatcher  # noqa: F401
