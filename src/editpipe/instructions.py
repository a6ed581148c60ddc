from __future__ import annotations

from typing import Dict, Tuple


SEARCH_REPLACE_INSTRUCTION = r"""# Edit format: SEARCH/REPLACE blocks

**OUTPUT:** Wrap every edited file in a `<file path="...">` tag. Text outside the tags is shown to the user as is.

## Format
Emit one tag per file with one or more SEARCH/REPLACE blocks inside:

<file path="relative/path/to/file">
<<<<<<< SEARCH
<contiguous lines copied from the current content>
=======
<replacement lines>
>>>>>>> REPLACE
</file>

Edits: use the format above.
Adds (new file): put the full file contents inside the tag, without markers.
Rewrites: same as adds; the whole file is replaced by the tag body.

## Rules
1. SEARCH should match the current file. Indentation and line wrapping may differ slightly, but words and punctuation must be identical.
2. Include enough lines in SEARCH to uniquely identify the lines being replaced. Only the first occurrence is changed.
3. Blocks inside one tag are applied in order, each against the result of the previous ones.
4. A tag is applied only when every block in it matches. If any block fails, none of them are applied.
5. Keep changes narrowly scoped and blocks small. Blocks must not overlap.
6. Avoid emitting complete files if they have multiple changes. Emit multiple blocks instead.
"""


UNIFIED_INSTRUCTION = r"""# Edit format: unified diff

**OUTPUT:** Wrap every patched file in a `<file path="..." format="unified">` tag containing unified diff hunks for that file only.

## Format
<file path="relative/path/to/file" format="unified">
@@ -12,3 +12,4 @@
 <context line>
-<old line>
+<new line>
+<added line>
 <context line>
</file>

## Rules
1. Context lines start with a single space, removed lines with '-', added lines with '+'. The text after the prefix is the exact line.
2. Provide 1 to 3 lines of context around every change. Line numbers in @@ headers are hints; hunks are located by their context.
3. Removed lines must match the file apart from leading and trailing whitespace. Up to two context lines may be slightly off.
4. Use a separate @@ hunk for every non-adjacent change. Hunks may appear in any order.
5. File headers (---/+++) are optional and ignored.
6. If a hunk cannot be located, the whole tag is rejected and the file is left unchanged.
"""


# Internal registry of supported edit formats
_REGISTRY: Dict[str, str] = {
    "search_replace": SEARCH_REPLACE_INSTRUCTION,
    "unified": UNIFIED_INSTRUCTION,
}


def get_supported_formats() -> Tuple[str, ...]:
    return tuple(_REGISTRY.keys())


def get_system_instruction(fmt: str) -> str:
    key = (fmt or "").lower()
    entry = _REGISTRY.get(key)
    if not entry:
        raise ValueError(f"Unsupported edit format: {fmt}")
    return entry
