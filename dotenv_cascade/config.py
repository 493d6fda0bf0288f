"""Loader options and CLI configuration loading."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Iterable, Mapping

try:
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - fallback for 3.10
    import tomli as tomllib  # type: ignore[no-redef]

DEFAULT_LOG_LEVEL = "warning"
DEFAULT_PATH = ".env"
DEFAULT_ENV_KEY = "APP_ENV"
DEFAULT_DEBUG_KEY = "APP_DEBUG"
DEFAULT_ENV = "dev"
DEFAULT_PROD_ENVS = ("prod",)
DEFAULT_TEST_ENVS: tuple[str, ...] = ()

OPTION_NAMES = ("env_key", "debug_key", "default_env", "prod_envs", "test_envs")

_KEY_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


class ConfigError(ValueError):
    """Raised when configuration is invalid."""


@dataclass(frozen=True)
class LoaderConfig:
    env_key: str = DEFAULT_ENV_KEY
    debug_key: str = DEFAULT_DEBUG_KEY
    default_env: str = DEFAULT_ENV
    prod_envs: tuple[str, ...] = DEFAULT_PROD_ENVS
    test_envs: tuple[str, ...] = DEFAULT_TEST_ENVS

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "LoaderConfig":
        config, _previous = apply_options(LoaderConfig(), data)
        return config


@dataclass(frozen=True)
class GlobalConfig:
    log_level: str = DEFAULT_LOG_LEVEL
    path: Path = Path(DEFAULT_PATH)


@dataclass(frozen=True)
class Config:
    global_cfg: GlobalConfig = field(default_factory=GlobalConfig)
    loader: LoaderConfig = field(default_factory=LoaderConfig)

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Config":
        global_data = data.get("global", {})
        loader_data = data.get("loader", {})
        if not isinstance(global_data, dict) or not isinstance(loader_data, dict):
            raise ConfigError("global and loader must be tables")

        global_cfg = GlobalConfig(
            log_level=str(global_data.get("log_level", DEFAULT_LOG_LEVEL)),
            path=_expand_path(global_data.get("path", DEFAULT_PATH)),
        )
        config = Config(
            global_cfg=global_cfg,
            loader=LoaderConfig.from_dict(loader_data),
        )
        validate_config(config)
        return config


def load_config(path: Path) -> Config:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except OSError as exc:
        raise ConfigError(f"failed to read config: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"invalid config {path}: {exc}") from exc
    return Config.from_dict(data)


def validate_config(config: Config) -> None:
    _validate_log_level(config.global_cfg.log_level)
    if not str(config.global_cfg.path):
        raise ConfigError("global.path is required")
    validate_loader_config(config.loader)


def validate_loader_config(config: LoaderConfig) -> None:
    _validate_key(config.env_key, "env_key")
    _validate_key(config.debug_key, "debug_key")
    if config.env_key == config.debug_key:
        raise ConfigError("env_key and debug_key must differ")
    if not config.default_env:
        raise ConfigError("default_env is required")
    for name in config.prod_envs + config.test_envs:
        if not name:
            raise ConfigError("environment names must not be empty")


def apply_options(
    config: LoaderConfig, options: Mapping[str, Any]
) -> tuple[LoaderConfig, dict[str, Any]]:
    """Return *config* with *options* applied, plus the values they replaced.

    Applying the returned mapping to the new config restores the original.
    """
    unknown = sorted(set(options) - set(OPTION_NAMES))
    if unknown:
        raise ConfigError(f"unknown loader options: {', '.join(unknown)}")

    changes: dict[str, Any] = {}
    for name, value in options.items():
        if name in ("prod_envs", "test_envs"):
            changes[name] = _env_names(value, name)
        elif isinstance(value, str):
            changes[name] = value
        else:
            raise ConfigError(f"{name} must be a string; got {value!r}")
    previous = {name: getattr(config, name) for name in changes}
    updated = replace(config, **changes)
    validate_loader_config(updated)
    return updated, previous


def _env_names(value: Any, field_name: str) -> tuple[str, ...]:
    if isinstance(value, str) or not isinstance(value, Iterable):
        raise ConfigError(f"{field_name} must be a list of environment names")
    return tuple(str(item) for item in value)


def _expand_path(raw: Any) -> Path:
    return Path(str(raw)).expanduser()


def _validate_key(value: str, field_name: str) -> None:
    if not _KEY_RE.fullmatch(value):
        raise ConfigError(
            f"{field_name} must be a valid environment variable name; got {value!r}"
        )


def _validate_log_level(value: str) -> None:
    valid = {"debug", "info", "warning", "error", "critical"}
    if value.lower() not in valid:
        raise ConfigError(
            f"global.log_level must be one of {sorted(valid)}; got {value}"
        )
