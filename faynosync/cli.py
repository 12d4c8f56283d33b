"""
Command-line entry point for faynosync.

Usage:
    faynosync [--log-level <level>] init
    faynosync [--log-level <level>] config view
    faynosync [--log-level <level>] config set <server|owner> [value]
    faynosync [--log-level <level>] upload [flags]

Errors raised by a command are printed as ``Error: <message>`` and the
process exits with status 1. A rejected upload (non-2xx response) is logged
but still exits 0.
"""

import sys
from typing import IO, List, Optional, Sequence, Tuple

import requests

from faynosync.errors import ConfigurationError, FaynosyncError, HelpRequested
from faynosync.uploader import UPLOAD_USAGE, parse_upload_args, require_files, run_upload
from faynosync.utils.config import (
    DEFAULT_OWNER,
    DEFAULT_SERVER,
    RuntimeConfig,
    Settings,
    config_path,
    dump_settings,
    init_settings,
    load_settings,
    save_settings,
    update_field,
)
from faynosync.utils.logging import get_logger, parse_log_level, setup_logging

HELP_TOKENS = ("-h", "--help", "help")

ROOT_USAGE = """faynosync CLI

Usage:
  faynosync [--log-level <level>] <command>

Global flags:
  --log-level <level>    trace|debug|info|warn|error|fatal|panic (default: info)

Commands:
  faynosync init
  faynosync config view
  faynosync config set <server|owner> [value]
  faynosync upload [flags]"""

CONFIG_USAGE = """faynosync config commands

Usage:
  faynosync config view
  faynosync config set <server|owner> [value]"""


def parse_global_flags(args: Sequence[str]) -> Tuple[str, List[str]]:
    """
    Split leading global flags from the command and its arguments.

    Returns:
        Tuple of (log level name, remaining arguments)

    Raises:
        FaynosyncError: On an unknown global flag or a missing --log-level value
    """
    level_name = "info"
    args = list(args)
    i = 0

    while i < len(args):
        arg = args[i]
        if not arg.startswith("-"):
            break

        if arg == "--log-level":
            if i + 1 >= len(args):
                raise FaynosyncError("missing value for --log-level")
            level_name = args[i + 1]
            i += 2
        elif arg.startswith("--log-level="):
            level_name = arg[len("--log-level="):]
            i += 1
        elif arg in HELP_TOKENS:
            return level_name, args[i:]
        else:
            raise FaynosyncError(f"unknown global flag: {arg}")

    return level_name, args[i:]


class App:
    """
    faynosync command runner.

    Attributes:
        stdin: Binary input stream (prompts and --changelog-stdin)
        stdout: Text stream for usage, settings output and log records
        session: requests session used for uploads (optional)
    """

    def __init__(
        self,
        stdin: IO[bytes],
        stdout: IO[str],
        session: Optional[requests.Session] = None,
    ):
        if stdin is None or stdout is None:
            raise ValueError("App: stdin and stdout must not be None")
        self.stdin = stdin
        self.stdout = stdout
        self.session = session
        self.logger = get_logger("faynosync")

    def _print(self, text: str = "", end: str = "\n") -> None:
        self.stdout.write(text + end)
        self.stdout.flush()

    def run(self, args: Sequence[str]) -> None:
        level_name, args = parse_global_flags(args)
        try:
            level = parse_log_level(level_name)
        except ValueError as e:
            raise FaynosyncError(str(e)) from None
        setup_logging(level=level, stream=self.stdout)

        if not args:
            self._print(ROOT_USAGE)
            return

        command, rest = args[0], args[1:]
        if command == "init":
            self.init_config()
        elif command == "config":
            self.run_config(rest)
        elif command == "upload":
            self.run_upload(rest)
        elif command in HELP_TOKENS:
            self._print(ROOT_USAGE)
        else:
            raise FaynosyncError(f"unknown command: {command}")

    # ------------------------------------------------------------------
    # config
    # ------------------------------------------------------------------

    def run_config(self, args: Sequence[str]) -> None:
        if not args:
            self._print(CONFIG_USAGE)
            return

        command = args[0]
        if command == "view":
            self.view_config()
        elif command == "set":
            self.set_config(args[1:])
        elif command in HELP_TOKENS:
            self._print(CONFIG_USAGE)
        else:
            raise FaynosyncError(f"unknown config command: {command}")

    def init_config(self) -> None:
        path = config_path()
        if path.exists():
            self.logger.info("Config already exists", extra={"path": str(path)})
            return

        server = self.prompt_with_default("server", DEFAULT_SERVER)
        self.logger.debug("Server value", extra={"server": server})
        owner = self.prompt_with_default("owner", DEFAULT_OWNER)
        self.logger.debug("Owner value", extra={"owner": owner})

        path = init_settings(Settings(server=server, owner=owner), path)
        self.logger.info("Config initialized", extra={"path": str(path)})

    def view_config(self) -> None:
        settings, _ = load_settings()
        self._print(dump_settings(settings), end="")

    def set_config(self, args: Sequence[str]) -> None:
        if not args:
            raise FaynosyncError("usage: faynosync config set <server|owner> [value]")

        key = args[0]
        value = args[1] if len(args) >= 2 else self.prompt(key)
        if value == "":
            raise ConfigurationError("value cannot be empty")

        settings, path = load_settings()
        update_field(settings, key, value)
        save_settings(path, settings)
        self.logger.info("Config updated", extra={"key": key})

    def _read_line(self) -> str:
        return self.stdin.readline().decode("utf-8", errors="replace").strip()

    def prompt(self, key: str) -> str:
        self._print(f"Enter value for {key}: ", end="")
        return self._read_line()

    def prompt_with_default(self, key: str, default: str) -> str:
        self._print(f"Enter value for {key} [{default}]: ", end="")
        return self._read_line() or default

    # ------------------------------------------------------------------
    # upload
    # ------------------------------------------------------------------

    def run_upload(self, args: Sequence[str]) -> None:
        try:
            intent = parse_upload_args(args)
        except HelpRequested:
            self._print(UPLOAD_USAGE)
            return

        require_files(intent)
        runtime = RuntimeConfig.from_env()

        run_upload(
            intent,
            runtime,
            self.stdin,
            self.logger,
            session=self.session,
        )


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the faynosync CLI."""
    if argv is None:
        argv = sys.argv[1:]

    app = App(sys.stdin.buffer, sys.stdout)
    try:
        app.run(argv)
    except KeyboardInterrupt:
        print("Cancelled by user", file=sys.stderr)
        return 130
    except (FaynosyncError, OSError, requests.RequestException) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
