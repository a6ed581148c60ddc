from typing import Dict, Final, Optional
from enum import Enum
import re

from pydantic import BaseModel, Field, field_validator


# Variable replacement pattern.
# Supports:
#   - ${NAME}
#   - ${env:NAME}
# Ignores '$${NAME}' so it can be used to escape a literal '${NAME}'.
VAR_PATTERN = re.compile(
    r"(?<!\$)\$\{([A-Za-z_][A-Za-z0-9_]*(?::[A-Za-z_][A-Za-z0-9_]*)?)\}"
)

DEFAULT_EDIT_TAG: Final[str] = "file"
DEFAULT_PATH_ATTRIBUTE: Final[str] = "path"


class LogLevel(str, Enum):
    debug = "debug"
    info = "info"
    warning = "warning"
    error = "error"
    critical = "critical"
    disabled = "disabled"


class LoggingSettings(BaseModel):
    # Default level for the editpipe logger if not overridden.
    default_level: LogLevel = LogLevel.info
    # Mapping of logger name -> level override (e.g., {"asyncio": "debug"})
    enabled_loggers: Dict[str, LogLevel] = Field(default_factory=dict)


class ScannerSettings(BaseModel):
    # Tag that frames one file edit in the model output: <file path="...">...</file>
    edit_tag: str = DEFAULT_EDIT_TAG
    path_attribute: str = DEFAULT_PATH_ATTRIBUTE

    @field_validator("edit_tag", "path_attribute")
    @classmethod
    def _check_name(cls, v: str) -> str:
        if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_\-:.]*", v or ""):
            raise ValueError(f"Invalid tag/attribute name: {v!r}")
        return v


class MatcherSettings(BaseModel):
    # Allow a uniform indentation offset and collapsed intra-line whitespace.
    indent_tolerance: bool = True
    # Allow token-stream matching (one-line vs multi-line reformatting).
    token_tolerance: bool = True
    # Report a pair as already applied when its match sits inside its own replacement.
    detect_applied: bool = True


class PatchSettings(BaseModel):
    # Maximum number of context lines allowed to mismatch when anchoring a hunk.
    fuzz: int = Field(default=2, ge=0)
    # Lines around the claimed header position searched before a full scan.
    search_window: int = Field(default=200, ge=0)


class Settings(BaseModel):
    scanner: ScannerSettings = Field(default_factory=ScannerSettings)
    matcher: MatcherSettings = Field(default_factory=MatcherSettings)
    patch: PatchSettings = Field(default_factory=PatchSettings)
    logging: Optional[LoggingSettings] = Field(default=None)
