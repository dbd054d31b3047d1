"""Data-home layout for quizmaster configuration and logs."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Mapping


WORKSPACE_ENV = "QUIZMASTER_HOME"
DEFAULT_WORKSPACE = Path.home() / ".quizmaster"

_SUBDIRS = {
    "config": "config",
    "logs": "logs",
}


class WorkspaceError(RuntimeError):
    """Raised when the data-home layout cannot be prepared."""


@dataclass(frozen=True)
class WorkspaceLayout:
    """Resolved data-home paths."""

    home: Path
    directories: Mapping[str, Path]

    def path_for(self, key: str) -> Path:
        try:
            return self.directories[key]
        except KeyError as exc:
            raise KeyError(f"Unknown workspace directory '{key}'.") from exc


def ensure_workspace(
    *,
    env: Mapping[str, str] | None = None,
    path: Path | None = None,
    create: bool = True,
) -> WorkspaceLayout:
    """Resolve the data home and, when ``create`` is set, materialize it.

    Without an explicit ``path`` or ``QUIZMASTER_HOME`` override an
    unwritable home directory falls back to a folder under the system temp
    directory.
    """

    env_map = os.environ if env is None else env
    base, has_override = _resolve_base(env_map, override=path)

    candidates = [base]
    if create and not has_override:
        candidates.append(_fallback_base())

    last_error: Exception | None = None
    for candidate in candidates:
        try:
            return _materialize(candidate, create=create)
        except OSError as exc:
            last_error = exc
    raise WorkspaceError(
        f"Unable to prepare workspace at {base}: {last_error}"
    ) from last_error


def _resolve_base(
    env: Mapping[str, str], *, override: Path | None
) -> tuple[Path, bool]:
    if override is not None:
        return override.expanduser().resolve(), True
    env_value = env.get(WORKSPACE_ENV)
    if env_value:
        return Path(env_value).expanduser().resolve(), True
    return DEFAULT_WORKSPACE, False


def _fallback_base() -> Path:
    return Path(tempfile.gettempdir()) / "quizmaster"


def _materialize(base: Path, *, create: bool) -> WorkspaceLayout:
    directories = {key: base / name for key, name in _SUBDIRS.items()}
    if create:
        base.mkdir(parents=True, exist_ok=True)
        for directory in directories.values():
            directory.mkdir(parents=True, exist_ok=True)
    return WorkspaceLayout(
        home=base,
        directories=MappingProxyType(directories),
    )
