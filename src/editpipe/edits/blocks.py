from __future__ import annotations

from typing import List, Tuple
import re

from .models import (
    EditBlock,
    FullContent,
    PatchError,
    SearchReplacePair,
    SearchReplacePairs,
)


# Models sometimes emit six or eight marker characters instead of seven
SEARCH_RE = re.compile(r"^<{5,9}\s*SEARCH\s*$")
SPLIT_RE = re.compile(r"^={5,9}\s*$")
REPLACE_RE = re.compile(r"^>{5,9}\s*REPLACE\s*$")
# A markdown code fence wrapping a whole file body, with an optional language tag
FENCED_BODY_RE = re.compile(
    r"\A```[\w+.#-]*[ \t]*\r?\n(.*?\r?\n)```[ \t]*(?:\r?\n)?\Z", re.DOTALL
)


def has_search_replace_markers(text: str) -> bool:
    return any(SEARCH_RE.match(line.strip()) for line in text.splitlines())


def parse_search_replace(text: str) -> Tuple[List[SearchReplacePair], List[PatchError]]:
    """
    Parse consecutive SEARCH/REPLACE blocks:

    <<<<<<< SEARCH
    <lines to find>
    =======
    <replacement lines>
    >>>>>>> REPLACE

    Text between blocks is ignored. Incomplete blocks are reported as errors
    and skipped; the blocks around them are still returned.
    """
    errors: List[PatchError] = []
    pairs: List[SearchReplacePair] = []
    lines = text.split("\n")
    lines = [l[:-1] if l.endswith("\r") else l for l in lines]
    i = 0

    while i < len(lines):
        if not SEARCH_RE.match(lines[i].strip()):
            i += 1
            continue

        search_line_no = i + 1
        i += 1

        search_lines: List[str] = []
        while i < len(lines) and not SPLIT_RE.match(lines[i].strip()):
            if SEARCH_RE.match(lines[i].strip()) or REPLACE_RE.match(lines[i].strip()):
                break
            search_lines.append(lines[i])
            i += 1

        if i >= len(lines) or not SPLIT_RE.match(lines[i].strip()):
            errors.append(
                PatchError(
                    msg="Missing ======= split marker",
                    line=search_line_no,
                    hint="Each SEARCH section must be followed by =======",
                )
            )
            continue
        i += 1

        replace_lines: List[str] = []
        while i < len(lines) and not REPLACE_RE.match(lines[i].strip()):
            if SEARCH_RE.match(lines[i].strip()):
                break
            replace_lines.append(lines[i])
            i += 1

        if i >= len(lines) or not REPLACE_RE.match(lines[i].strip()):
            errors.append(
                PatchError(
                    msg="Missing >>>>>>> REPLACE marker",
                    line=search_line_no,
                    hint="Close every block with >>>>>>> REPLACE",
                )
            )
            continue
        i += 1

        pairs.append(
            SearchReplacePair(
                search_text="\n".join(search_lines),
                replace_text="\n".join(replace_lines),
                line=search_line_no,
            )
        )

    return pairs, errors


def parse_edit_block(path: str, body: str) -> Tuple[EditBlock, List[PatchError]]:
    """
    Turn the body of an edit tag into an EditBlock. Bodies with SEARCH
    markers become SEARCH/REPLACE pairs, anything else is full file content.
    """
    if has_search_replace_markers(body):
        pairs, errors = parse_search_replace(body)
        for err in errors:
            err.filename = path
        return EditBlock(path=path, payload=SearchReplacePairs(pairs=pairs)), errors

    content = body
    # The opening tag usually sits on its own line
    if content.startswith("\r\n"):
        content = content[2:]
    elif content.startswith("\n"):
        content = content[1:]
    m = FENCED_BODY_RE.match(content)
    if m:
        content = m.group(1)
    return EditBlock(path=path, payload=FullContent(content=content)), []
