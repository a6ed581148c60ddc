from typing import Any, Dict, Optional, Set, Union
from pathlib import Path
import os
import json
import re

import yaml
import json5  # type: ignore

from .models import Settings, VAR_PATTERN


# Environment variable naming a config file when load_settings() gets no path
CONFIG_ENV_VAR = "EDITPIPE_CONFIG"
# Shared project configs may nest editpipe settings under this key
SECTION_KEY = "editpipe"
VARIABLES_KEY = "variables"


def _variables_from_section(section: Any) -> Dict[str, Any]:
    """
    Accepts either a mapping (variables: { KEY: value }) or a list of one-key
    mappings (variables: [ {KEY: value}, ... ]).
    """
    out: Dict[str, Any] = {}
    if isinstance(section, dict):
        items = [section]
    elif isinstance(section, list):
        items = [item for item in section if isinstance(item, dict)]
    else:
        return out
    for item in items:
        for k, v in item.items():
            if isinstance(k, str):
                out[k] = v
    return out


class VariableScope:
    """
    Resolves ${NAME} and ${env:NAME} placeholders. Variables may reference
    other variables by full match (a: ${b}); unknown names are left as the
    original placeholder and '$${NAME}' renders as a literal '${NAME}'.
    """

    def __init__(self, variables: Dict[str, Any]):
        self._raw = dict(variables)
        self._resolved: Dict[str, Any] = {}
        self._resolving: Set[str] = set()
        for name in self._raw:
            self._resolve(name)

    def lookup(self, name: str) -> tuple[bool, Any]:
        if name.startswith("env:"):
            val = os.getenv(name[4:]) if len(name) > 4 else None
            return (val is not None), val
        if name in self._resolved:
            return True, self._resolved[name]
        return False, None

    def _resolve(self, name: str) -> Any:
        if name in self._resolved:
            return self._resolved[name]
        if name in self._resolving:
            raise ValueError(f"Detected variable resolution cycle at '{name}'")
        self._resolving.add(name)
        val = self._raw.get(name)
        m = VAR_PATTERN.fullmatch(val) if isinstance(val, str) else None
        if m:
            ref = m.group(1)
            if ref.startswith("env:"):
                found, env_val = self.lookup(ref)
                val = env_val if found else val
            elif ref in self._raw:
                val = self._resolve(ref)
        self._resolving.discard(name)
        self._resolved[name] = val
        return val

    def interpolate(self, s: str) -> str:
        def repl(m: re.Match) -> str:
            found, val = self.lookup(m.group(1))
            if not found:
                return m.group(0)
            if val is None:
                return ""
            if isinstance(val, (dict, list)):
                return json.dumps(val, ensure_ascii=False)
            return str(val)

        return VAR_PATTERN.sub(repl, s).replace("$${", "${")

    def apply(self, obj: Any) -> Any:
        if isinstance(obj, str):
            m = VAR_PATTERN.fullmatch(obj)
            if m:
                # A whole-value placeholder keeps the variable's own type
                found, val = self.lookup(m.group(1))
                return val if found else obj
            return self.interpolate(obj)
        if isinstance(obj, dict):
            return {k: self.apply(v) for k, v in obj.items()}
        if isinstance(obj, list):
            return [self.apply(v) for v in obj]
        return obj


def _load_raw_file(path: Path) -> Any:
    ext = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if ext in {".yaml", ".yml"}:
        data = yaml.safe_load(text)
    elif ext in {".json5", ".jsonc", ".json"}:
        data = json5.loads(text)
    else:
        raise ValueError(f"Unsupported config file extension: {ext}")
    return {} if data is None else data


def settings_from_dict(data: Optional[Dict[str, Any]]) -> Settings:
    """
    Build Settings from a parsed config document. When the document has an
    'editpipe' section, settings are read from it; root-level variables are
    visible inside the section and section variables override them.
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("Root configuration must be a mapping/object")

    variables = _variables_from_section(data.get(VARIABLES_KEY))
    body = data
    section = data.get(SECTION_KEY)
    if section is not None:
        if not isinstance(section, dict):
            raise ValueError(f"'{SECTION_KEY}' section must be a mapping/object")
        variables.update(_variables_from_section(section.get(VARIABLES_KEY)))
        body = section

    body = {k: v for k, v in body.items() if k not in (VARIABLES_KEY, SECTION_KEY)}
    return Settings.model_validate(VariableScope(variables).apply(body))


def load_settings(path: Union[str, Path, None] = None) -> Settings:
    """
    Load settings from a YAML or JSON5 file. Without a path, the file named by
    $EDITPIPE_CONFIG is used; if that is unset too, defaults are returned.
    """
    if path is None:
        path = os.getenv(CONFIG_ENV_VAR)
        if not path:
            return Settings()
    return settings_from_dict(_load_raw_file(Path(path).resolve()))
