"""CLI entrypoint and logging setup."""

from __future__ import annotations

import argparse
import json
import logging
import os
import shlex
import subprocess
import sys
from pathlib import Path
from typing import Iterable, Mapping

from dotenv_cascade.config import (
    Config,
    ConfigError,
    GlobalConfig,
    load_config,
    validate_config,
)
from dotenv_cascade.loader import DotEnv
from dotenv_cascade.parser import DotenvError, parse


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="dotenv_cascade")
    subparsers = parser.add_subparsers(dest="command")

    parse_cmd = subparsers.add_parser("parse", help="parse a single .env file")
    parse_cmd.add_argument("file", help="path to the .env file")
    parse_cmd.add_argument("--log-level", help="override log level")
    parse_cmd.add_argument(
        "--format",
        choices=("json", "shell"),
        default="json",
        help="output format",
    )

    debug = subparsers.add_parser("debug", help="show what the cascade loads")
    _add_cascade_args(debug)

    run = subparsers.add_parser("run", help="run a command with the cascade loaded")
    _add_cascade_args(run)
    run.add_argument(
        "--overload",
        action="store_true",
        help="let .env files override variables already set",
    )
    run.add_argument("cmd", nargs=argparse.REMAINDER, help="command to run")

    if argv is None:
        argv = sys.argv[1:]
    argv = list(argv)
    if not argv:
        parser.print_help()
        raise SystemExit(0)
    args = parser.parse_args(argv)
    if args.command is None:
        parser.error("command required")
    if args.command == "run":
        if args.cmd and args.cmd[0] == "--":
            args.cmd = args.cmd[1:]
        if not args.cmd:
            parser.error("run requires a command")
    return args


def _add_cascade_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", help="path to a TOML config file")
    parser.add_argument("--log-level", help="override log level")
    parser.add_argument("--path", help="base .env path (default: .env)")
    parser.add_argument("--env", help="app environment to use when none is set")


def setup_logging(level: str) -> None:
    numeric = _parse_level(level)
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def main(argv: Iterable[str] | None = None) -> int:
    try:
        args = parse_args(argv)
    except SystemExit as exc:
        return int(exc.code or 0)

    try:
        config = _load_and_override_config(args)
        setup_logging(config.global_cfg.log_level)
    except ConfigError as exc:
        print(f"config error: {exc}", file=sys.stderr)
        return 2

    logging.getLogger(__name__).info(
        "event=command_start command=%s", args.command
    )
    if args.command == "parse":
        return run_parse(args)
    if args.command == "debug":
        return run_debug(args, config)
    if args.command == "run":
        return run_command(args, config)
    return 2


def run_parse(args: argparse.Namespace) -> int:
    logger = logging.getLogger(__name__)
    path = Path(args.file).expanduser()
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.error("event=parse_read_failed path=%s error=%s", path, exc)
        return 1
    try:
        values = parse(content, str(path))
    except DotenvError as exc:
        logger.error("event=parse_failed error=%s", exc)
        return 1
    _print_values(values, args.format)
    return 0


def run_debug(args: argparse.Namespace, config: Config) -> int:
    logger = logging.getLogger(__name__)
    environ = dict(os.environ)
    dotenv = DotEnv(config.loader, environ)
    try:
        env = dotenv.load_env(config.global_cfg.path, **_env_option(args))
    except (ConfigError, DotenvError) as exc:
        logger.error("event=debug_failed error=%s", exc)
        return 1
    report = {
        "env": env,
        "files": [str(path) for path in dotenv.loaded_files],
        "variables": {name: environ[name] for name in sorted(dotenv.loaded_vars)},
    }
    json.dump(report, sys.stdout, indent=2, sort_keys=True)
    sys.stdout.write("\n")
    return 0


def run_command(args: argparse.Namespace, config: Config) -> int:
    logger = logging.getLogger(__name__)
    environ = dict(os.environ)
    dotenv = DotEnv(config.loader, environ)
    try:
        dotenv.boot_env(
            config.global_cfg.path,
            override_existing=args.overload,
            **_env_option(args),
        )
    except (ConfigError, DotenvError) as exc:
        logger.error("event=run_load_failed error=%s", exc)
        return 1
    logger.info("event=run_start cmd=%s", shlex.join(args.cmd))
    try:
        completed = subprocess.run(args.cmd, env=environ, check=False)
    except OSError as exc:
        logger.error("event=run_failed cmd=%s error=%s", args.cmd[0], exc)
        return 127
    return completed.returncode


def _env_option(args: argparse.Namespace) -> dict[str, str]:
    if args.env:
        return {"default_env": args.env}
    return {}


def _print_values(values: Mapping[str, str], output_format: str) -> None:
    if output_format == "shell":
        for name, value in values.items():
            print(f"export {name}={shlex.quote(value)}")
        return
    json.dump(dict(values), sys.stdout, indent=2)
    sys.stdout.write("\n")


def _load_and_override_config(args: argparse.Namespace) -> Config:
    config_path = getattr(args, "config", None)
    if config_path:
        config = load_config(Path(config_path).expanduser())
    else:
        config = Config()
    log_level = args.log_level or config.global_cfg.log_level
    path = getattr(args, "path", None)
    config = Config(
        global_cfg=GlobalConfig(
            log_level=log_level,
            path=Path(path).expanduser() if path else config.global_cfg.path,
        ),
        loader=config.loader,
    )
    validate_config(config)
    return config


def _parse_level(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        pass
    normalized = value.lower()
    mapping = {
        "debug": logging.DEBUG,
        "info": logging.INFO,
        "warning": logging.WARNING,
        "error": logging.ERROR,
        "critical": logging.CRITICAL,
    }
    if normalized not in mapping:
        raise ConfigError(f"invalid log level: {value}")
    return mapping[normalized]
