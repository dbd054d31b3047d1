"""Shared runtime helpers: configuration, credentials, logging, data home."""

from __future__ import annotations

from .ai import API_KEY_ENV, load_client, resolve_api_key
from .config import (
    ConfigError,
    LoggingConfig,
    ProviderConfig,
    QuizConfig,
    QuizmasterConfig,
    default_config,
    load_config,
    write_template,
)
from .logging import JsonLogFormatter, configure_logger
from .workspace import (
    WORKSPACE_ENV,
    WorkspaceError,
    WorkspaceLayout,
    ensure_workspace,
)

__all__ = [
    "API_KEY_ENV",
    "load_client",
    "resolve_api_key",
    "ConfigError",
    "LoggingConfig",
    "ProviderConfig",
    "QuizConfig",
    "QuizmasterConfig",
    "default_config",
    "load_config",
    "write_template",
    "JsonLogFormatter",
    "configure_logger",
    "WORKSPACE_ENV",
    "WorkspaceError",
    "WorkspaceLayout",
    "ensure_workspace",
]
