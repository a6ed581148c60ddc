from .unified import (  # noqa: F401
    LineKind,
    PatchHunk,
    PatchLine,
    PatchParseError,
    UnifiedPatchDocument,
    diff_contents,
    parse_unified_patch,
    render_unified_patch,
)
from .applier import (  # noqa: F401
    Anchor,
    PatchApplier,
    PatchApplyError,
    UnanchorableHunkError,
    apply_patch,
)
