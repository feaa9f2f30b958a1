"""Runtime settings resolved from arguments, environment, then defaults."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Final

ENV_DATA_DIR: Final[str] = "TASK_MANAGER_DATA_DIR"
ENV_AGENT_ID: Final[str] = "TASK_MANAGER_AGENT_ID"
ENV_MAX_RECOMMENDATIONS: Final[str] = "TASK_MANAGER_MAX_RECOMMENDATIONS"
ENV_AUTOSAVE: Final[str] = "TASK_MANAGER_AUTOSAVE"
ENV_STRICT_TRANSITIONS: Final[str] = "TASK_MANAGER_STRICT_TRANSITIONS"

DEFAULT_DATA_DIR: Final[Path] = Path("tasks-data")
DEFAULT_MAX_RECOMMENDATIONS: Final[int] = 3

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    """Coordinator settings."""

    data_dir: Path = DEFAULT_DATA_DIR
    agent_id: str | None = None
    max_recommendations: int = DEFAULT_MAX_RECOMMENDATIONS
    autosave: bool = True
    strict_transitions: bool = False

    def __post_init__(self) -> None:
        if self.max_recommendations < 1:
            raise ValueError(
                f"max_recommendations must be >= 1, got {self.max_recommendations}"
            )

    def with_overrides(self, **overrides: object) -> Settings:
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        if "data_dir" in changes:
            changes["data_dir"] = Path(str(changes["data_dir"]))
        return replace(self, **changes)  # type: ignore[arg-type]


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def _env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if not raw:
        return default
    return _parse_bool(name, raw)


def load_settings(env: Mapping[str, str] | None = None, **overrides: object) -> Settings:
    """Build settings from the environment.

    Args:
        env: Environment mapping. Defaults to ``os.environ``.
        **overrides: Explicit values; ``None`` means "not given".

    Returns:
        Resolved Settings.
    """
    env = os.environ if env is None else env

    settings = Settings(
        data_dir=Path(env.get(ENV_DATA_DIR) or DEFAULT_DATA_DIR),
        agent_id=env.get(ENV_AGENT_ID) or None,
        max_recommendations=int(
            env.get(ENV_MAX_RECOMMENDATIONS) or DEFAULT_MAX_RECOMMENDATIONS
        ),
        autosave=_env_bool(env, ENV_AUTOSAVE, default=True),
        strict_transitions=_env_bool(env, ENV_STRICT_TRANSITIONS, default=False),
    )
    return settings.with_overrides(**overrides)
