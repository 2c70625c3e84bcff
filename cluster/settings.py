"""
Cluster - Server Settings.

============================================================
RESPONSIBILITY
============================================================
Merges default and override settings and renders them into
postgresql.conf syntax.

- Overrides replace same-keyed defaults in place
- Values are classified once into a tagged SettingValue
- Each variant has an explicit render rule

============================================================
RENDERING
============================================================
  BOOLEAN  True / False      -> yes / no
  INTEGER  100               -> 100
  REAL     0.9               -> 0.9
  TEXT     128MB / it's      -> '128MB' / 'it''s'

============================================================
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

from core.exceptions import InvalidConfigError


class SettingKind(Enum):
    """Tag of a setting value."""

    BOOLEAN = "boolean"
    INTEGER = "integer"
    REAL = "real"
    TEXT = "text"


@dataclass(frozen=True)
class SettingValue:
    """A tagged configuration value."""

    kind: SettingKind
    value: Union[bool, int, float, str]

    @classmethod
    def of(cls, raw: Any, key: str = "setting") -> "SettingValue":
        """Classify a raw python value. bool is checked before int."""
        if isinstance(raw, SettingValue):
            return raw
        if isinstance(raw, bool):
            return cls(SettingKind.BOOLEAN, raw)
        if isinstance(raw, int):
            return cls(SettingKind.INTEGER, raw)
        if isinstance(raw, float):
            return cls(SettingKind.REAL, raw)
        if isinstance(raw, str):
            return cls(SettingKind.TEXT, raw)
        raise InvalidConfigError(key, raw, f"unsupported setting type {type(raw).__name__}")

    def render(self) -> str:
        if self.kind is SettingKind.BOOLEAN:
            return "yes" if self.value else "no"
        if self.kind is SettingKind.TEXT:
            return "'" + str(self.value).replace("'", "''") + "'"
        return str(self.value)


def merge_settings(
    defaults: Optional[Mapping[str, Any]],
    overrides: Optional[Mapping[str, Any]],
) -> Dict[str, SettingValue]:
    """
    Merge two ordered mappings.

    A key keeps the position of its first occurrence; its value
    comes from ``overrides`` when present there.
    """
    merged: Dict[str, SettingValue] = {}
    for source in (defaults or {}, overrides or {}):
        for key, raw in source.items():
            merged[key] = SettingValue.of(raw, key)
    return merged


def render_settings(settings: Mapping[str, SettingValue]) -> str:
    """Render ``name = value`` lines, newline terminated."""
    lines = [f"{key} = {SettingValue.of(value, key).render()}" for key, value in settings.items()]
    return "\n".join(lines) + "\n" if lines else ""


def render_config(
    defaults: Optional[Mapping[str, Any]],
    overrides: Optional[Mapping[str, Any]],
) -> str:
    return render_settings(merge_settings(defaults, overrides))
