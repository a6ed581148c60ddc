from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import List, Optional, Tuple, Union


class FileApplyStatus(str, Enum):
    Create = "create"
    Update = "update"
    Unchanged = "unchanged"
    Unmatched = "unmatched"
    Incomplete = "incomplete"
    Failed = "failed"


class UnmatchedReason(Enum):
    NOT_FOUND = auto()
    ALREADY_APPLIED = auto()
    EMPTY_SEARCH = auto()
    MISSING_FILE = auto()


@dataclass
class SearchReplacePair:
    search_text: str
    replace_text: str
    # 1-based line of the SEARCH marker inside the edit body, for diagnostics
    line: Optional[int] = None


@dataclass
class FullContent:
    content: str


@dataclass
class SearchReplacePairs:
    pairs: List[SearchReplacePair] = field(default_factory=list)


@dataclass
class EditBlock:
    path: str
    payload: Union[FullContent, SearchReplacePairs]


@dataclass
class Hunk:
    """
    A located change. start/end are character offsets into the content the
    hunk was resolved against, and original_text is exactly
    content[start:end].
    """

    start: int
    end: int
    original_text: str
    replacement_text: str

    @property
    def anchor_range(self) -> Tuple[int, int]:
        return self.start, self.end


@dataclass
class Matched:
    hunk: Hunk


@dataclass
class Unmatched:
    pair: SearchReplacePair
    reason: UnmatchedReason
    hint: Optional[str] = None


MatchResult = Union[Matched, Unmatched]


@dataclass
class PatchError:
    msg: str
    line: Optional[int] = None
    hint: Optional[str] = None
    filename: Optional[str] = None
