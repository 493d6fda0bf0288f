"""Loading .env files into the process environment."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Mapping, MutableMapping

from dotenv_cascade.config import LoaderConfig, apply_options
from dotenv_cascade.parser import DotenvError, parse

_TRUTHY = {"true", "on", "yes"}


class PathError(DotenvError):
    """Raised when an environment file cannot be read."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = str(path)
        super().__init__(f'unable to read the "{self.path}" environment file')


class EnvironmentWriteError(DotenvError):
    """Raised when the environment rejects a variable."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"unable to set environment variable {name}")


class DotEnv:
    """Loads .env files into an environment mapping.

    Each instance remembers which variables it has written itself; those
    are always overwritten by later loads, while variables that were
    already present are only replaced when overriding is requested.
    """

    def __init__(
        self,
        config: LoaderConfig | None = None,
        environ: MutableMapping[str, str] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config or LoaderConfig()
        self.environ = os.environ if environ is None else environ
        self.logger = logger or logging.getLogger(__name__)
        self.loaded_vars: set[str] = set()
        self.loaded_files: list[Path] = []

    def option(self, **options: Any) -> dict[str, Any]:
        """Change loader options; returns what is needed to undo the change."""
        self.config, previous = apply_options(self.config, options)
        return previous

    def load(
        self,
        path: str | os.PathLike[str],
        *extra_paths: str | os.PathLike[str],
    ) -> None:
        self._do_load(False, (path, *extra_paths))

    def overload(
        self,
        path: str | os.PathLike[str],
        *extra_paths: str | os.PathLike[str],
    ) -> None:
        self._do_load(True, (path, *extra_paths))

    def load_env(
        self,
        path: str | os.PathLike[str],
        override_existing: bool = False,
        **options: Any,
    ) -> str:
        """Load *path* and its ``.local``, ``.{env}`` and ``.{env}.local`` siblings.

        ``.env.dist`` is used instead of *path* when only the former exists.
        ``.env.local`` is skipped for test environments. Returns the app
        environment the cascade settled on.
        """
        previous = self.option(**options)
        try:
            return self._load_cascade(str(path), override_existing)
        finally:
            self.option(**previous)

    def boot_env(
        self,
        path: str | os.PathLike[str],
        override_existing: bool = False,
        **options: Any,
    ) -> str:
        """Run :meth:`load_env` and normalise the debug flag to ``1`` or ``0``."""
        previous = self.option(**options)
        try:
            env = self._load_cascade(str(path), override_existing)
            debug_key = self.config.debug_key
            raw = self.environ.get(debug_key)
            if raw is None:
                debug = env not in self.config.prod_envs
            else:
                debug = _is_truthy(raw)
            self.populate({debug_key: "1" if debug else "0"}, True)
            return env
        finally:
            self.option(**previous)

    def populate(
        self, values: Mapping[str, str], override_existing: bool = False
    ) -> None:
        for name, value in values.items():
            loaded = name in self.loaded_vars
            if not loaded and not override_existing and name in self.environ:
                self.logger.debug("event=dotenv_var_skipped name=%s", name)
                continue
            try:
                self.environ[name] = value
            except (OSError, ValueError) as exc:
                raise EnvironmentWriteError(name) from exc
            if not loaded:
                self.loaded_vars.add(name)

    def parse(self, text: str, path: str | os.PathLike[str] = "") -> dict[str, str]:
        return parse(text, str(path), self.environ)

    def _load_cascade(self, path: str, override_existing: bool) -> str:
        env_key = self.config.env_key
        env = self.environ.get(env_key, "")

        dist = f"{path}.dist"
        if os.path.isfile(path) or not os.path.isfile(dist):
            self._do_load(override_existing, (path,))
        else:
            self._do_load(override_existing, (dist,))

        if not env:
            env = self.config.default_env
            self.populate({env_key: env}, override_existing)

        local = f"{path}.local"
        if env not in self.config.test_envs and os.path.isfile(local):
            self._do_load(override_existing, (local,))
            env = self.environ.get(env_key, "") or env

        if env == "local":
            self.logger.info("event=dotenv_cascade_complete env=%s", env)
            return env

        for candidate in (f"{path}.{env}", f"{path}.{env}.local"):
            if os.path.isfile(candidate):
                self._do_load(override_existing, (candidate,))

        self.logger.info("event=dotenv_cascade_complete env=%s", env)
        return env

    def _do_load(
        self,
        override_existing: bool,
        paths: tuple[str | os.PathLike[str], ...],
    ) -> None:
        for path in paths:
            file_path = Path(path)
            try:
                content = file_path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                raise PathError(path) from exc
            values = self.parse(content, path)
            self.populate(values, override_existing)
            self.loaded_files.append(file_path)
            self.logger.debug(
                "event=dotenv_file_loaded path=%s count=%d override=%s",
                file_path,
                len(values),
                override_existing,
            )


def _is_truthy(value: str) -> bool:
    try:
        return int(value) != 0
    except ValueError:
        return value.strip().lower() in _TRUTHY
