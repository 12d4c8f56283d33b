"""
Argument parsing and validation for the ``upload`` command.

Turns the argument list that follows ``upload`` into an immutable
UploadIntent. Value options accept ``--opt value`` and ``--opt=value``;
boolean options may be given bare (meaning true) or followed by a boolean
literal.

Example usage:
    >>> intent = parse_upload_args(
    ...     ["--app", "demo", "--file", "a.bin", "--file", "b.bin", "--publish"]
    ... )
    >>> intent.files
    ('a.bin', 'b.bin')
    >>> intent.publish
    True
"""

import argparse
from dataclasses import dataclass
from typing import List, NoReturn, Optional, Sequence, Tuple

from faynosync.errors import HelpRequested, UploadArgumentError

HELP_TOKENS = ("-h", "--help", "help")

# Literals accepted for boolean options
TRUE_LITERALS = ("1", "t", "T", "TRUE", "true", "True")
FALSE_LITERALS = ("0", "f", "F", "FALSE", "false", "False")

# option -> UploadIntent attribute
VALUE_OPTIONS = {
    "--app": "app_name",
    "--file": "files",
    "--version": "version",
    "--channel": "channel",
    "--platform": "platform",
    "--arch": "arch",
    "--changelog": "changelog",
    "--changelog-file": "changelog_file",
}
BOOLEAN_OPTIONS = {
    "--publish": "publish",
    "--critical": "critical",
    "--intermediate": "intermediate",
    "--changelog-stdin": "changelog_stdin",
}

UPLOAD_USAGE = """faynosync upload

Usage:
  faynosync upload [flags]

Upload flags:
  --app <name>
  --file <path>          may be specified multiple times
  --version <value>
  --channel <value>
  --platform <value>
  --arch <value>
  --publish[=true|false]
  --critical[=true|false]
  --intermediate[=true|false]
  --changelog <text>
  --changelog-file <path>
  --changelog-stdin"""


@dataclass(frozen=True)
class UploadIntent:
    """
    Validated description of one upload request.

    Attributes:
        app_name: Application name registered on the server
        files: Paths to upload, in command-line order (duplicates kept)
        version: Version string
        channel: Release channel
        platform: Target platform
        arch: Target architecture
        publish: Publish the version immediately
        critical: Mark the version as a critical update
        intermediate: Mark the version as intermediate
        changelog: Inline changelog text
        changelog_file: Path to read the changelog from
        changelog_stdin: Read the changelog from standard input
    """

    app_name: str = ""
    files: Tuple[str, ...] = ()
    version: str = ""
    channel: str = ""
    platform: str = ""
    arch: str = ""
    publish: bool = False
    critical: bool = False
    intermediate: bool = False
    changelog: str = ""
    changelog_file: str = ""
    changelog_stdin: bool = False


def parse_bool(value: str, option: str) -> bool:
    """
    Parse a boolean literal given to ``option``.

    Raises:
        UploadArgumentError: If ``value`` is not a recognized literal
    """
    text = value.strip()
    if text in TRUE_LITERALS:
        return True
    if text in FALSE_LITERALS:
        return False
    raise UploadArgumentError(f"invalid boolean value for {option}: {value!r}")


class _UploadArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises instead of printing usage and exiting."""

    def error(self, message: str) -> NoReturn:
        raise UploadArgumentError(message)


class _BoolAction(argparse.Action):
    """Bare flag means true; a following literal is parsed as a boolean."""

    def __call__(self, parser, namespace, values, option_string=None):
        if values is None:
            setattr(namespace, self.dest, True)
        else:
            setattr(namespace, self.dest, parse_bool(values, self.option_strings[0]))


def _build_parser() -> argparse.ArgumentParser:
    parser = _UploadArgumentParser(
        prog="faynosync upload",
        add_help=False,
        allow_abbrev=False,
    )

    for option, dest in VALUE_OPTIONS.items():
        if dest == "files":
            parser.add_argument(option, dest=dest, action="append", default=[])
        else:
            parser.add_argument(option, dest=dest, default="")

    for option, dest in BOOLEAN_OPTIONS.items():
        parser.add_argument(
            option, dest=dest, action=_BoolAction, nargs="?", default=False
        )

    return parser


def _check_tokens(args: Sequence[str]) -> List[str]:
    """
    Walk the option positions before argparse sees them.

    Errors are raised in argument order: a help token in option position,
    an unknown token named verbatim, a value option whose value is missing
    or looks like another option, or an invalid boolean literal.
    """
    tokens = [arg.strip() for arg in args]

    i = 0
    while i < len(tokens):
        token = tokens[i]
        if token in HELP_TOKENS:
            raise HelpRequested("upload help requested")

        name, has_inline_value, inline_value = token.partition("=")
        if name not in VALUE_OPTIONS and name not in BOOLEAN_OPTIONS:
            raise UploadArgumentError(f"unknown upload flag: {token}")

        if has_inline_value:
            if name in BOOLEAN_OPTIONS:
                parse_bool(inline_value, name)
        else:
            has_next = i + 1 < len(tokens) and not tokens[i + 1].startswith("-")
            if name in VALUE_OPTIONS:
                if not has_next:
                    raise UploadArgumentError(f"missing value for {name}")
                i += 1
            elif has_next:
                parse_bool(tokens[i + 1], name)
                i += 1
        i += 1

    return tokens


def validate_changelog_sources(intent: UploadIntent) -> None:
    """
    Ensure at most one changelog source is configured.

    Raises:
        UploadArgumentError: If two or more of --changelog, --changelog-file
            and --changelog-stdin are set
    """
    used = sum(
        (
            intent.changelog != "",
            intent.changelog_file.strip() != "",
            intent.changelog_stdin,
        )
    )
    if used > 1:
        raise UploadArgumentError(
            "use only one changelog source: --changelog, --changelog-file, "
            "or --changelog-stdin"
        )


def require_files(intent: UploadIntent) -> None:
    """Raise UploadArgumentError unless at least one --file was given."""
    if not intent.files:
        raise UploadArgumentError("at least one --file is required")


def parse_upload_args(args: Optional[Sequence[str]]) -> UploadIntent:
    """
    Parse the arguments following the ``upload`` command.

    Args:
        args: Raw arguments (without the ``upload`` token itself)

    Returns:
        Validated UploadIntent

    Raises:
        HelpRequested: If -h, --help or help appears in option position
        UploadArgumentError: On unknown options, missing values, invalid
            boolean literals or conflicting changelog sources

    Example:
        >>> parse_upload_args(["--file", "a.bin", "--critical=false"]).critical
        False
    """
    tokens = _check_tokens(args or [])
    namespace = _build_parser().parse_args(tokens)

    intent = UploadIntent(
        app_name=namespace.app_name,
        files=tuple(namespace.files),
        version=namespace.version,
        channel=namespace.channel,
        platform=namespace.platform,
        arch=namespace.arch,
        publish=namespace.publish,
        critical=namespace.critical,
        intermediate=namespace.intermediate,
        changelog=namespace.changelog,
        changelog_file=namespace.changelog_file,
        changelog_stdin=namespace.changelog_stdin,
    )

    validate_changelog_sources(intent)
    return intent
