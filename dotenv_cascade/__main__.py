"""Package entrypoint."""

from __future__ import annotations

from dotenv_cascade.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
