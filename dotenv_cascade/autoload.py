"""Import this module to load ``./.env`` and its cascade at start-up."""

from __future__ import annotations

import logging

from dotenv_cascade.loader import DotEnv
from dotenv_cascade.parser import DotenvError


def autoload(path: str = ".env") -> bool:
    try:
        DotEnv().load_env(path)
    except DotenvError as exc:
        logging.getLogger(__name__).debug(
            "event=dotenv_autoload_skipped path=%s error=%s", path, exc
        )
        return False
    return True


autoload()
