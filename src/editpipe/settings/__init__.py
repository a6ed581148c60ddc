from .models import (  # noqa: F401
    LogLevel,
    LoggingSettings,
    MatcherSettings,
    PatchSettings,
    ScannerSettings,
    Settings,
)
from .loader import load_settings, settings_from_dict  # noqa: F401
