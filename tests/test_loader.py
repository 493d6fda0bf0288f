"""Loader, cascade and populate tests."""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from dotenv_cascade.config import ConfigError, LoaderConfig
from dotenv_cascade.loader import DotEnv, EnvironmentWriteError, PathError
from dotenv_cascade.parser import ParseError


class RejectingEnviron(dict):
    def __setitem__(self, key: str, value: str) -> None:
        if "\x00" in value:
            raise ValueError("embedded null byte")
        super().__setitem__(key, value)


def _write(directory: Path, name: str, content: str) -> Path:
    path = directory / name
    path.write_text(content, encoding="utf-8")
    return path


class PopulateTests(unittest.TestCase):
    def test_existing_variable_is_kept_without_override(self) -> None:
        environ = {"X": "orig"}
        dotenv = DotEnv(environ=environ)
        dotenv.populate({"X": "new", "Y": "1"})
        self.assertEqual(environ, {"X": "orig", "Y": "1"})
        self.assertEqual(dotenv.loaded_vars, {"Y"})

    def test_existing_variable_is_replaced_with_override(self) -> None:
        environ = {"X": "orig"}
        dotenv = DotEnv(environ=environ)
        dotenv.populate({"X": "new"}, True)
        self.assertEqual(environ["X"], "new")
        self.assertIn("X", dotenv.loaded_vars)

    def test_own_variables_are_always_replaced(self) -> None:
        environ: dict[str, str] = {}
        dotenv = DotEnv(environ=environ)
        dotenv.populate({"X": "1"})
        dotenv.populate({"X": "2"}, False)
        self.assertEqual(environ["X"], "2")

    def test_loaded_vars_are_per_instance(self) -> None:
        environ: dict[str, str] = {}
        DotEnv(environ=environ).populate({"X": "1"})
        DotEnv(environ=environ).populate({"X": "2"})
        self.assertEqual(environ["X"], "1")

    def test_rejected_write_raises(self) -> None:
        environ = RejectingEnviron()
        dotenv = DotEnv(environ=environ)
        with self.assertRaises(EnvironmentWriteError) as context:
            dotenv.populate({"BAD": "a\x00b"})
        self.assertEqual(context.exception.name, "BAD")
        self.assertIsInstance(context.exception.__cause__, ValueError)
        self.assertNotIn("BAD", dotenv.loaded_vars)


class LoadTests(unittest.TestCase):
    def test_load_does_not_override(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            path = _write(Path(temp_dir), ".env", "A=1\nB=2\n")
            environ = {"B": "shell"}
            DotEnv(environ=environ).load(path)
        self.assertEqual(environ, {"A": "1", "B": "shell"})

    def test_overload_overrides(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            path = _write(Path(temp_dir), ".env", "A=1\nB=2\n")
            environ = {"B": "shell"}
            DotEnv(environ=environ).overload(path)
        self.assertEqual(environ, {"A": "1", "B": "2"})

    def test_later_files_win(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            first = _write(Path(temp_dir), "first.env", "A=1\nB=1\n")
            second = _write(Path(temp_dir), "second.env", "B=2\nC=$A$B\n")
            environ: dict[str, str] = {}
            dotenv = DotEnv(environ=environ)
            dotenv.load(first, second)
        self.assertEqual(environ, {"A": "1", "B": "2", "C": "12"})
        self.assertEqual(dotenv.loaded_files, [first, second])

    def test_missing_file_raises_path_error(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            missing = Path(temp_dir) / "missing.env"
            with self.assertRaises(PathError) as context:
                DotEnv(environ={}).load(missing)
        self.assertEqual(context.exception.path, str(missing))
        self.assertIsInstance(context.exception.__cause__, FileNotFoundError)
        self.assertIn("unable to read", str(context.exception))

    def test_parse_error_applies_nothing(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            path = _write(Path(temp_dir), ".env", "A=1\nB=foo bar\n")
            environ: dict[str, str] = {}
            with self.assertRaises(ParseError) as context:
                DotEnv(environ=environ).load(path)
        self.assertEqual(environ, {})
        self.assertEqual(context.exception.line, 2)
        self.assertEqual(context.exception.path, str(path))


class CascadeTests(unittest.TestCase):
    def setUp(self) -> None:
        self._temp = tempfile.TemporaryDirectory()
        self.base_dir = Path(self._temp.name)
        self.base = self.base_dir / ".env"

    def tearDown(self) -> None:
        self._temp.cleanup()

    def _names(self, dotenv: DotEnv) -> list[str]:
        return [path.name for path in dotenv.loaded_files]

    def test_full_cascade_order(self) -> None:
        _write(self.base_dir, ".env", "A=base\nB=base\n")
        _write(self.base_dir, ".env.local", "B=local\nC=local\n")
        _write(self.base_dir, ".env.dev", "C=dev\nD=dev\n")
        _write(self.base_dir, ".env.dev.local", "D=devlocal\n")
        environ: dict[str, str] = {}
        dotenv = DotEnv(environ=environ)

        env = dotenv.load_env(self.base)

        self.assertEqual(env, "dev")
        self.assertEqual(
            self._names(dotenv), [".env", ".env.local", ".env.dev", ".env.dev.local"]
        )
        self.assertEqual(
            environ,
            {"A": "base", "B": "local", "C": "dev", "D": "devlocal", "APP_ENV": "dev"},
        )

    def test_default_env_ignores_other_environment_files(self) -> None:
        _write(self.base_dir, ".env", "A=base\n")
        _write(self.base_dir, ".env.local", "A=local\n")
        _write(self.base_dir, ".env.prod", "A=prod\n")
        environ: dict[str, str] = {}
        dotenv = DotEnv(environ=environ)

        dotenv.load_env(self.base)

        self.assertEqual(self._names(dotenv), [".env", ".env.local"])
        self.assertEqual(environ["A"], "local")
        self.assertEqual(environ["APP_ENV"], "dev")

    def test_environment_from_shell(self) -> None:
        _write(self.base_dir, ".env", "A=base\n")
        _write(self.base_dir, ".env.prod", "A=prod\n")
        environ = {"APP_ENV": "prod"}
        dotenv = DotEnv(environ=environ)

        env = dotenv.load_env(self.base)

        self.assertEqual(env, "prod")
        self.assertEqual(self._names(dotenv), [".env", ".env.prod"])
        self.assertEqual(environ["A"], "prod")

    def test_shell_variables_survive_cascade(self) -> None:
        _write(self.base_dir, ".env", "A=base\n")
        _write(self.base_dir, ".env.dev", "A=dev\n")
        environ = {"A": "shell"}
        DotEnv(environ=environ).load_env(self.base)
        self.assertEqual(environ["A"], "shell")

    def test_override_existing_cascade(self) -> None:
        _write(self.base_dir, ".env", "A=base\n")
        _write(self.base_dir, ".env.dev", "A=dev\n")
        environ = {"A": "shell"}
        DotEnv(environ=environ).load_env(self.base, override_existing=True)
        self.assertEqual(environ["A"], "dev")

    def test_test_environment_skips_local(self) -> None:
        _write(self.base_dir, ".env", "A=base\n")
        _write(self.base_dir, ".env.local", "A=local\n")
        _write(self.base_dir, ".env.test", "B=test\n")
        environ = {"APP_ENV": "test"}
        dotenv = DotEnv(environ=environ)

        dotenv.load_env(self.base, test_envs=["test"])

        self.assertEqual(self._names(dotenv), [".env", ".env.test"])
        self.assertEqual(environ["A"], "base")
        self.assertEqual(dotenv.config.test_envs, ())

    def test_dist_used_when_base_missing(self) -> None:
        _write(self.base_dir, ".env.dist", "A=dist\n")
        environ: dict[str, str] = {}
        dotenv = DotEnv(environ=environ)
        dotenv.load_env(self.base)
        self.assertEqual(self._names(dotenv), [".env.dist"])
        self.assertEqual(environ["A"], "dist")

    def test_base_preferred_over_dist(self) -> None:
        _write(self.base_dir, ".env", "A=base\n")
        _write(self.base_dir, ".env.dist", "A=dist\n")
        dotenv = DotEnv(environ={})
        dotenv.load_env(self.base)
        self.assertEqual(self._names(dotenv), [".env"])

    def test_missing_base_and_dist(self) -> None:
        with self.assertRaises(PathError) as context:
            DotEnv(environ={}).load_env(self.base)
        self.assertEqual(context.exception.path, str(self.base))

    def test_local_can_switch_environment(self) -> None:
        _write(self.base_dir, ".env", "A=base\n")
        _write(self.base_dir, ".env.local", "APP_ENV=staging\n")
        _write(self.base_dir, ".env.staging", "A=staging\n")
        _write(self.base_dir, ".env.dev", "A=dev\n")
        environ: dict[str, str] = {}
        dotenv = DotEnv(environ=environ)

        env = dotenv.load_env(self.base)

        self.assertEqual(env, "staging")
        self.assertEqual(
            self._names(dotenv), [".env", ".env.local", ".env.staging"]
        )
        self.assertEqual(environ["A"], "staging")

    def test_local_environment_stops_cascade(self) -> None:
        _write(self.base_dir, ".env", "A=base\n")
        _write(self.base_dir, ".env.local", "APP_ENV=local\n")
        _write(self.base_dir, ".env.local.local", "A=never\n")
        dotenv = DotEnv(environ={})

        env = dotenv.load_env(self.base)

        self.assertEqual(env, "local")
        self.assertEqual(self._names(dotenv), [".env", ".env.local"])

    def test_custom_env_key_and_default(self) -> None:
        _write(self.base_dir, ".env", "A=base\n")
        _write(self.base_dir, ".env.qa", "A=qa\n")
        environ: dict[str, str] = {}
        dotenv = DotEnv(environ=environ)

        env = dotenv.load_env(self.base, env_key="STAGE", default_env="qa")

        self.assertEqual(env, "qa")
        self.assertEqual(environ, {"A": "qa", "STAGE": "qa"})
        self.assertEqual(dotenv.config, LoaderConfig())

    def test_options_restored_after_failure(self) -> None:
        dotenv = DotEnv(environ={})
        with self.assertRaises(PathError):
            dotenv.load_env(self.base, default_env="qa")
        self.assertEqual(dotenv.config.default_env, "dev")

    def test_parse_error_aborts_cascade(self) -> None:
        _write(self.base_dir, ".env", "A=base\n")
        _write(self.base_dir, ".env.local", "B=has space\n")
        _write(self.base_dir, ".env.dev", "C=dev\n")
        environ: dict[str, str] = {}
        with self.assertRaises(ParseError):
            DotEnv(environ=environ).load_env(self.base)
        self.assertNotIn("C", environ)


class BootEnvTests(unittest.TestCase):
    def _boot(self, content: str, environ: dict[str, str]) -> dict[str, str]:
        with tempfile.TemporaryDirectory() as temp_dir:
            base = _write(Path(temp_dir), ".env", content)
            DotEnv(environ=environ).boot_env(base)
        return environ

    def test_debug_defaults_on_outside_prod(self) -> None:
        self.assertEqual(self._boot("A=1\n", {})["APP_DEBUG"], "1")

    def test_debug_defaults_off_in_prod(self) -> None:
        self.assertEqual(self._boot("A=1\n", {"APP_ENV": "prod"})["APP_DEBUG"], "0")

    def test_debug_value_is_normalised(self) -> None:
        cases = {"false": "0", "off": "0", "0": "0", "true": "1", "Yes": "1", "2": "1"}
        for raw, expected in cases.items():
            with self.subTest(raw=raw):
                environ = self._boot(f"APP_DEBUG={raw}\n", {})
                self.assertEqual(environ["APP_DEBUG"], expected)

    def test_shell_debug_value_is_normalised(self) -> None:
        environ = self._boot("A=1\n", {"APP_DEBUG": "true", "APP_ENV": "prod"})
        self.assertEqual(environ["APP_DEBUG"], "1")


class OptionTests(unittest.TestCase):
    def test_option_returns_previous_values(self) -> None:
        dotenv = DotEnv(environ={})
        previous = dotenv.option(env_key="STAGE", prod_envs=["live", "prod"])
        self.assertEqual(previous, {"env_key": "APP_ENV", "prod_envs": ("prod",)})
        self.assertEqual(dotenv.config.prod_envs, ("live", "prod"))
        dotenv.option(**previous)
        self.assertEqual(dotenv.config, LoaderConfig())

    def test_unknown_option(self) -> None:
        with self.assertRaises(ConfigError):
            DotEnv(environ={}).option(colour="blue")

    def test_env_list_must_not_be_string(self) -> None:
        with self.assertRaises(ConfigError):
            DotEnv(environ={}).option(test_envs="test")


if __name__ == "__main__":
    unittest.main()
