"""
Changelog resolution for uploads.

The changelog comes from exactly one of: inline ``--changelog`` text, a
``--changelog-file`` path, or standard input (``--changelog-stdin``). The
text is sent byte-for-byte except that a leading byte-order mark is dropped
and CRLF line endings become LF.
"""

from pathlib import Path
from typing import IO

from faynosync.uploader.flags import UploadIntent, validate_changelog_sources
from faynosync.utils.logging import get_logger, log_function_call

logger = get_logger(__name__)

BYTE_ORDER_MARK = "\ufeff"


def normalize_changelog(text: str) -> str:
    """
    Strip a leading byte-order mark and convert CRLF pairs to LF.

    Repeated until stable so that normalizing twice changes nothing
    (``"\\r\\r\\n"`` collapses to ``"\\n"``).

    Example:
        >>> normalize_changelog("\\ufeffline1\\r\\nline2")
        'line1\\nline2'
    """
    text = text.lstrip(BYTE_ORDER_MARK)
    while "\r\n" in text:
        text = text.replace("\r\n", "\n")
    return text


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace")


@log_function_call
def resolve_changelog(intent: UploadIntent, stdin: IO[bytes]) -> str:
    """
    Produce the changelog text to send with the upload.

    Args:
        intent: Parsed upload intent
        stdin: Binary stream read when ``changelog_stdin`` is set

    Returns:
        Normalized changelog text (empty when no source is configured)

    Raises:
        UploadArgumentError: If more than one changelog source is set
        OSError: If the changelog file or stdin cannot be read
    """
    validate_changelog_sources(intent)

    changelog_file = intent.changelog_file.strip()
    if changelog_file:
        logger.debug("Reading changelog file", extra={"path": changelog_file})
        return normalize_changelog(_decode(Path(changelog_file).read_bytes()))

    if intent.changelog_stdin:
        logger.debug("Reading changelog from stdin")
        return normalize_changelog(_decode(stdin.read()))

    return normalize_changelog(intent.changelog)
