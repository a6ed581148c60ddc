from __future__ import annotations

from dataclasses import dataclass, field
from difflib import SequenceMatcher
from enum import Enum
from typing import List, Optional
import re

from editpipe.edits import normalize


HUNK_HEADER_RE = re.compile(r"^@@\s*-(\d+)(?:,(\d+))?\s+\+(\d+)(?:,(\d+))?\s*@@")
NO_EOL_MARKER = "\\ No newline at end of file"


class PatchParseError(ValueError):
    """Unified patch text that contains no usable hunk."""


class LineKind(str, Enum):
    CONTEXT = " "
    ADD = "+"
    REMOVE = "-"


@dataclass
class PatchLine:
    kind: LineKind
    text: str
    # The line has no trailing newline in the file it describes
    no_eol: bool = False


@dataclass
class PatchHunk:
    # Header values are hints only; None when the header carried no numbers
    old_start: Optional[int] = None
    old_count: Optional[int] = None
    new_start: Optional[int] = None
    new_count: Optional[int] = None
    lines: List[PatchLine] = field(default_factory=list)
    # 1-based line of the header inside the patch text
    header_line: Optional[int] = None

    @property
    def old_lines(self) -> List[PatchLine]:
        return [l for l in self.lines if l.kind != LineKind.ADD]

    @property
    def new_lines(self) -> List[PatchLine]:
        return [l for l in self.lines if l.kind != LineKind.REMOVE]

    def header(self) -> str:
        if self.old_start is None:
            return "@@"
        old_count = len(self.old_lines) if self.old_count is None else self.old_count
        new_start = self.old_start if self.new_start is None else self.new_start
        new_count = len(self.new_lines) if self.new_count is None else self.new_count
        return f"@@ -{self.old_start},{old_count} +{new_start},{new_count} @@"


@dataclass
class UnifiedPatchDocument:
    hunks: List[PatchHunk] = field(default_factory=list)


def parse_unified_patch(text: str) -> UnifiedPatchDocument:
    """
    Lenient unified diff parser. File headers and anything before the first
    @@ line are ignored; bare '@@' headers (no numbers) are accepted; blank
    body lines are treated as blank context.
    """
    doc = UnifiedPatchDocument()
    current: Optional[PatchHunk] = None
    raw = text.split("\n")
    if raw and raw[-1] == "":
        raw.pop()
    lines = [l[:-1] if l.endswith("\r") else l for l in raw]

    i = 0
    while i < len(lines):
        line = lines[i]
        line_no = i + 1
        i += 1

        if line.startswith("@@"):
            m = HUNK_HEADER_RE.match(line)
            current = PatchHunk(header_line=line_no)
            if m:
                current.old_start = int(m.group(1))
                current.old_count = int(m.group(2)) if m.group(2) is not None else 1
                current.new_start = int(m.group(3))
                current.new_count = int(m.group(4)) if m.group(4) is not None else 1
            doc.hunks.append(current)
            continue

        if current is None:
            continue

        # A '--- a' line directly followed by '+++ b' starts another file section
        if (
            line.startswith("--- ")
            and i < len(lines)
            and lines[i].startswith("+++ ")
        ) or line.startswith(("diff ", "index ")):
            current = None
            continue

        if line.startswith("\\"):
            if current.lines:
                current.lines[-1].no_eol = True
            continue

        if line == "":
            current.lines.append(PatchLine(LineKind.CONTEXT, ""))
        elif line[0] == "+":
            current.lines.append(PatchLine(LineKind.ADD, line[1:]))
        elif line[0] == "-":
            current.lines.append(PatchLine(LineKind.REMOVE, line[1:]))
        elif line[0] == " ":
            current.lines.append(PatchLine(LineKind.CONTEXT, line[1:]))
        else:
            # Context line that lost its leading space
            current.lines.append(PatchLine(LineKind.CONTEXT, line))

    doc.hunks = [h for h in doc.hunks if h.lines]
    if not doc.hunks:
        raise PatchParseError("No hunks found in patch text")
    return doc


def render_unified_patch(doc: UnifiedPatchDocument) -> str:
    out: List[str] = []
    for hunk in doc.hunks:
        out.append(hunk.header())
        for line in hunk.lines:
            out.append(f"{line.kind.value}{line.text}")
            if line.no_eol:
                out.append(NO_EOL_MARKER)
    return "\n".join(out) + ("\n" if out else "")


def diff_contents(old: str, new: str, context: int = 3) -> UnifiedPatchDocument:
    """Build hunks that turn old into new (line endings normalized to LF)."""
    a = normalize.split_lines_keepends(normalize.to_lf(old))
    b = normalize.split_lines_keepends(normalize.to_lf(new))

    def to_line(kind: LineKind, raw: str) -> PatchLine:
        if raw.endswith("\n"):
            return PatchLine(kind, raw[:-1])
        return PatchLine(kind, raw, no_eol=True)

    doc = UnifiedPatchDocument()
    matcher = SequenceMatcher(None, a, b, autojunk=False)
    for group in matcher.get_grouped_opcodes(context):
        i1, i2 = group[0][1], group[-1][2]
        j1, j2 = group[0][3], group[-1][4]
        hunk = PatchHunk(
            old_start=i1 + 1 if i2 > i1 else i1,
            old_count=i2 - i1,
            new_start=j1 + 1 if j2 > j1 else j1,
            new_count=j2 - j1,
        )
        for tag, a1, a2, b1, b2 in group:
            if tag == "equal":
                hunk.lines.extend(to_line(LineKind.CONTEXT, l) for l in a[a1:a2])
                continue
            if tag in ("replace", "delete"):
                hunk.lines.extend(to_line(LineKind.REMOVE, l) for l in a[a1:a2])
            if tag in ("replace", "insert"):
                hunk.lines.extend(to_line(LineKind.ADD, l) for l in b[b1:b2])
        doc.hunks.append(hunk)
    return doc
