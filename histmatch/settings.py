from __future__ import annotations

import json
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Any, Mapping

SETTINGS_VERSION = 1
COLLISION_POLICIES = ("first", "last")


class SettingsError(ValueError):
    pass


@dataclass(frozen=True)
class MatchSettings:
    """Options for a matching run."""

    collision: str = "first"
    in_place: bool = False
    parallel: bool = False
    jpeg_quality: int = 90

    def __post_init__(self) -> None:
        if self.collision not in COLLISION_POLICIES:
            raise SettingsError(
                f"collision must be one of {', '.join(COLLISION_POLICIES)}, got {self.collision!r}"
            )
        if not (1 <= self.jpeg_quality <= 95):
            raise SettingsError("jpeg_quality must be in range [1, 95]")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MatchSettings":
        defaults = cls()
        try:
            return cls(
                collision=str(data.get("collision", defaults.collision)).lower(),
                in_place=_flag(data, "in_place", defaults.in_place),
                parallel=_flag(data, "parallel", defaults.parallel),
                jpeg_quality=int(data.get("jpeg_quality", defaults.jpeg_quality)),
            )
        except SettingsError:
            raise
        except (TypeError, ValueError) as exc:
            raise SettingsError(f"Invalid settings value: {exc}") from exc

    def with_overrides(self, **changes: Any) -> "MatchSettings":
        """Copy with every change that is not None applied."""
        return replace(self, **{key: value for key, value in changes.items() if value is not None})


def _flag(data: Mapping[str, Any], key: str, default: bool) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise SettingsError(f"{key} must be true or false, got {value!r}")
    return value


def load_settings(path: str | Path) -> MatchSettings:
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise SettingsError(f"{path}: not valid JSON ({exc.msg})") from exc
    if not isinstance(data, dict):
        raise SettingsError(f"{path}: expected a JSON object")
    version = data.get("version", SETTINGS_VERSION)
    if version != SETTINGS_VERSION:
        raise SettingsError(f"{path}: unsupported settings version {version}")
    return MatchSettings.from_dict(data.get("match", {}))


def save_settings(settings: MatchSettings, path: str | Path) -> None:
    path = Path(path)
    payload = {"version": SETTINGS_VERSION, "match": settings.to_dict()}
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
