"""TOML configuration for quizmaster.

The file is optional: missing files resolve to the built-in defaults. When
present, its tables are merged over the defaults (unknown keys are rejected)
and each value is validated before the frozen config objects are built.
"""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping, Optional

try:  # Python 3.11+
    import tomllib
except ModuleNotFoundError as exc:  # pragma: no cover - should never happen
    raise RuntimeError("Python 3.11+ required for tomllib support") from exc

from . import workspace as workspace_mod

__all__ = [
    "CONFIG_PATH_ENV",
    "CONFIG_FILENAME",
    "ConfigError",
    "ProviderConfig",
    "QuizConfig",
    "LoggingConfig",
    "QuizmasterConfig",
    "load_config",
    "resolve_config_path",
    "default_config",
    "config_template",
    "write_template",
]

CONFIG_PATH_ENV = "QUIZMASTER_CONFIG"
CONFIG_FILENAME = "quizmaster.toml"


class ConfigError(RuntimeError):
    """Raised when configuration parsing or validation fails."""


@dataclass(frozen=True)
class ProviderConfig:
    api_base: str
    model: str
    temperature: float
    max_tokens: int
    top_p: float
    connect_timeout_seconds: float
    read_timeout_seconds: float
    write_timeout_seconds: float
    api_key: Optional[str]


@dataclass(frozen=True)
class QuizConfig:
    default_count: int
    show_explanations: bool


@dataclass(frozen=True)
class LoggingConfig:
    level: str
    verbose: bool


@dataclass(frozen=True)
class QuizmasterConfig:
    provider: ProviderConfig
    quiz: QuizConfig
    logging: LoggingConfig


def _merge_dict(
    base: MutableMapping[str, Any],
    override: Mapping[str, Any],
    *,
    path: str = "",
) -> None:
    for key, value in override.items():
        dotted = f"{path}{key}"
        if key not in base:
            raise ConfigError(f"Unknown configuration key '{dotted}'.")
        base_value = base[key]
        if isinstance(base_value, MutableMapping):
            if not isinstance(value, Mapping):
                raise ConfigError(
                    "Expected table for '{0}', found {1}.".format(
                        dotted,
                        type(value).__name__,
                    )
                )
            _merge_dict(base_value, value, path=f"{dotted}.")
        else:
            base[key] = value


def _require_positive_int(value: Any, *, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"'{field}' must be a positive integer.")
    return value


def _require_positive_number(value: Any, *, field: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"'{field}' must be a number.")
    if value <= 0:
        raise ConfigError(f"'{field}' must be greater than zero.")
    return float(value)


def _require_bool(value: Any, *, field: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"'{field}' must be a boolean.")
    return value


def _require_float_range(
    value: Any, *, field: str, min_value: float, max_value: float
) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"'{field}' must be a number.")
    number = float(value)
    if not (min_value <= number <= max_value):
        raise ConfigError(
            f"'{field}' must be between {min_value} and {max_value}."
        )
    return number


def _require_string(value: Any, *, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"'{field}' must be a non-empty string.")
    return value.strip()


def _coerce_optional_string(value: Any, *, field: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(f"'{field}' must be a string when set.")
    return value.strip() or None


def _build_provider(section: Mapping[str, Any]) -> ProviderConfig:
    return ProviderConfig(
        api_base=_require_string(
            section.get("api_base"), field="provider.api_base"
        ),
        model=_require_string(section.get("model"), field="provider.model"),
        temperature=_require_float_range(
            section.get("temperature"),
            field="provider.temperature",
            min_value=0.0,
            max_value=2.0,
        ),
        max_tokens=_require_positive_int(
            section.get("max_tokens"), field="provider.max_tokens"
        ),
        top_p=_require_float_range(
            section.get("top_p"),
            field="provider.top_p",
            min_value=0.0,
            max_value=1.0,
        ),
        connect_timeout_seconds=_require_positive_number(
            section.get("connect_timeout_seconds"),
            field="provider.connect_timeout_seconds",
        ),
        read_timeout_seconds=_require_positive_number(
            section.get("read_timeout_seconds"),
            field="provider.read_timeout_seconds",
        ),
        write_timeout_seconds=_require_positive_number(
            section.get("write_timeout_seconds"),
            field="provider.write_timeout_seconds",
        ),
        api_key=_coerce_optional_string(
            section.get("api_key"), field="provider.api_key"
        ),
    )


def _build_quiz(section: Mapping[str, Any]) -> QuizConfig:
    default_count = _require_positive_int(
        section.get("default_count"), field="quiz.default_count"
    )
    if default_count > 20:
        raise ConfigError("'quiz.default_count' must be between 1 and 20.")
    return QuizConfig(
        default_count=default_count,
        show_explanations=_require_bool(
            section.get("show_explanations"), field="quiz.show_explanations"
        ),
    )


def _build_logging(section: Mapping[str, Any]) -> LoggingConfig:
    level = _require_string(section.get("level"), field="logging.level").upper()
    allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    if level not in allowed:
        raise ConfigError(
            "logging.level must be one of "
            "DEBUG, INFO, WARNING, ERROR, CRITICAL."
        )
    verbose = _require_bool(section.get("verbose"), field="logging.verbose")
    return LoggingConfig(level=level, verbose=verbose)


def _build_config(tree: Mapping[str, Any]) -> QuizmasterConfig:
    return QuizmasterConfig(
        provider=_build_provider(tree["provider"]),
        quiz=_build_quiz(tree["quiz"]),
        logging=_build_logging(tree["logging"]),
    )


def _load_toml(path: Path) -> Mapping[str, Any]:
    try:
        with path.open("rb") as fh:
            return tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Failed to parse config TOML: {exc}") from exc


def resolve_config_path(
    *,
    explicit_path: Optional[Path] = None,
    env: Mapping[str, str] | None = None,
) -> Path:
    env_map = os.environ if env is None else env
    if explicit_path is not None:
        return explicit_path.expanduser().resolve()
    env_override = env_map.get(CONFIG_PATH_ENV)
    if env_override:
        return Path(env_override).expanduser().resolve()
    layout = workspace_mod.ensure_workspace(env=env_map, create=False)
    return layout.path_for("config") / CONFIG_FILENAME


def load_config(
    *,
    explicit_path: Optional[Path] = None,
    env: Mapping[str, str] | None = None,
) -> QuizmasterConfig:
    """Load the TOML config, applying defaults and validation.

    An explicitly requested file must exist; the implicit locations are
    allowed to be absent.
    """

    path = resolve_config_path(explicit_path=explicit_path, env=env)
    tree = copy.deepcopy(_DEFAULTS)
    if path.exists():
        data = _load_toml(path)
        _merge_dict(tree, data)
    elif explicit_path is not None:
        raise ConfigError(f"Config file not found: {path}")
    return _build_config(tree)


def default_config() -> QuizmasterConfig:
    return _build_config(copy.deepcopy(_DEFAULTS))


def config_template() -> str:
    """Return the TOML template written by ``quizmaster init``."""

    return _CONFIG_TEMPLATE.strip() + "\n"


def write_template(
    path: Path, *, overwrite: bool = False, mode: int = 0o600
) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.exists() and not overwrite:
        raise ConfigError(f"Config already exists: {path}")
    with path.open("w", encoding="utf-8") as fh:
        fh.write(config_template())
    try:
        path.chmod(mode)
    except PermissionError:
        pass
    return path


_DEFAULTS: Dict[str, Any] = {
    "provider": {
        "api_base": "https://api.groq.com/openai/v1",
        "model": "llama-3.3-70b-versatile",
        "temperature": 0.1,
        "max_tokens": 1500,
        "top_p": 0.9,
        "connect_timeout_seconds": 5,
        "read_timeout_seconds": 15,
        "write_timeout_seconds": 15,
        "api_key": None,
    },
    "quiz": {
        "default_count": 5,
        "show_explanations": True,
    },
    "logging": {
        "level": "INFO",
        "verbose": False,
    },
}


_CONFIG_TEMPLATE = """
# quizmaster configuration

[provider]
# OpenAI-compatible chat completions endpoint
api_base = "https://api.groq.com/openai/v1"
model = "llama-3.3-70b-versatile"
# Keep sampling low so the model sticks to the JSON shape
temperature = 0.1
max_tokens = 1500
top_p = 0.9
connect_timeout_seconds = 5
read_timeout_seconds = 15
write_timeout_seconds = 15
# The GROQ_API_KEY environment variable and --api-key take precedence
# api_key = "gsk_..."

[quiz]
# Questions per quiz when --count is not given (1-20)
default_count = 5
show_explanations = true

[logging]
level = "INFO"
verbose = false
"""
