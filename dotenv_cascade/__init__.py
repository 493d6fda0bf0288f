"""Load .env files and their environment-specific overrides."""

from __future__ import annotations

import os
from typing import Any, Mapping

from dotenv_cascade.config import ConfigError, LoaderConfig
from dotenv_cascade.loader import DotEnv, EnvironmentWriteError, PathError
from dotenv_cascade.parser import DotenvError, ParseError

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "DotEnv",
    "DotenvError",
    "EnvironmentWriteError",
    "LoaderConfig",
    "ParseError",
    "PathError",
    "boot_env",
    "load",
    "load_env",
    "overload",
    "parse",
    "populate",
]

# The helpers below build a fresh DotEnv on every call, so they share no
# loader state: variables written by one call are not "loaded" for the next.


def load(
    path: str | os.PathLike[str], *extra_paths: str | os.PathLike[str]
) -> None:
    DotEnv().load(path, *extra_paths)


def overload(
    path: str | os.PathLike[str], *extra_paths: str | os.PathLike[str]
) -> None:
    DotEnv().overload(path, *extra_paths)


def load_env(path: str | os.PathLike[str] = ".env", **options: Any) -> str:
    return DotEnv().load_env(path, **options)


def boot_env(path: str | os.PathLike[str] = ".env", **options: Any) -> str:
    return DotEnv().boot_env(path, **options)


def populate(values: Mapping[str, str], override_existing: bool = False) -> None:
    DotEnv().populate(values, override_existing)


def parse(text: str, path: str | os.PathLike[str] = "") -> dict[str, str]:
    return DotEnv().parse(text, path)
