"""
Upload pipeline: parsed intent in, reported outcome out.

Resolves the changelog, serializes the metadata payload, streams the
multipart body into the HTTP request and interprets the response. The outcome
is logged once through the logger the caller passes in.

Example usage:
    >>> from faynosync.uploader import parse_upload_args, run_upload
    >>> from faynosync.utils.config import RuntimeConfig
    >>>
    >>> intent = parse_upload_args(["--app", "demo", "--file", "dist/demo.zip"])
    >>> outcome = run_upload(intent, RuntimeConfig.from_env(), sys.stdin.buffer, logger)
    >>> if outcome.success:
    ...     print(outcome.uploaded_id)
"""

import json
import logging
from dataclasses import dataclass
from typing import IO, Any, Dict, Optional

import requests

from faynosync.uploader.changelog import resolve_changelog
from faynosync.uploader.flags import UploadIntent, require_files
from faynosync.uploader.multipart import build_upload_body
from faynosync.uploader.response import extract_uploaded_id
from faynosync.uploader.submitter import (
    UPLOAD_TIMEOUT_SECONDS,
    build_endpoint,
    submit_upload,
)
from faynosync.utils.config import RuntimeConfig


@dataclass
class UploadOutcome:
    """
    Terminal result of one upload.

    Attributes:
        success: Whether the server answered with a 2xx status
        status_code: HTTP status returned by the server
        file_count: Number of files sent
        app_name: Application name from the intent
        version: Version from the intent
        uploaded_id: Server-assigned id ("" when absent or unrecognized)
        response_body: Response text, truncated; only kept on failure
    """

    success: bool
    status_code: int
    file_count: int
    app_name: str
    version: str
    uploaded_id: str = ""
    response_body: Optional[str] = None

    def log_fields(self) -> Dict[str, Any]:
        """Structured fields describing the outcome."""
        if self.success:
            return {
                "files": self.file_count,
                "app": self.app_name,
                "version": self.version,
                "uploaded_id": self.uploaded_id,
            }
        return {"status": self.status_code, "body": self.response_body}


def build_metadata(intent: UploadIntent, changelog: str) -> str:
    """
    Serialize the ``data`` field sent alongside the files.

    Keys: app_name, version, channel, publish, critical, intermediate,
    platform, arch, changelog.
    """
    payload = {
        "app_name": intent.app_name,
        "version": intent.version,
        "channel": intent.channel,
        "publish": intent.publish,
        "critical": intent.critical,
        "intermediate": intent.intermediate,
        "platform": intent.platform,
        "arch": intent.arch,
        "changelog": changelog,
    }
    return json.dumps(payload, ensure_ascii=False)


def report_outcome(outcome: UploadOutcome, sink: logging.Logger) -> None:
    if outcome.success:
        sink.info("Upload completed", extra=outcome.log_fields())
    else:
        sink.error("upload failed", extra=outcome.log_fields())


def run_upload(
    intent: UploadIntent,
    runtime: RuntimeConfig,
    stdin: IO[bytes],
    sink: logging.Logger,
    session: Optional[requests.Session] = None,
    timeout: float = UPLOAD_TIMEOUT_SECONDS,
) -> UploadOutcome:
    """
    Upload the intent's files and metadata in a single request.

    Args:
        intent: Parsed upload intent
        runtime: Resolved token/server/owner
        stdin: Binary stream used for --changelog-stdin
        sink: Logger receiving the outcome record
        session: requests session (a new one when omitted)
        timeout: Ceiling for the whole HTTP exchange in seconds

    Returns:
        UploadOutcome; a non-2xx response is a failed outcome, not an error

    Raises:
        UploadArgumentError: If no files were given or changelog sources
            conflict
        OSError: If the changelog file cannot be read
        UploadStreamError: If an upload file cannot be opened or read
        UploadTimeoutError: If the exchange exceeds ``timeout``
        requests.RequestException: On transport failures
    """
    require_files(intent)

    endpoint = build_endpoint(runtime.server)
    changelog = resolve_changelog(intent, stdin)
    metadata = build_metadata(intent, changelog)

    body, content_type = build_upload_body(intent.files, metadata)
    response = submit_upload(
        endpoint,
        body,
        content_type,
        runtime.token,
        timeout=timeout,
        session=session,
    )

    if not response.ok:
        outcome = UploadOutcome(
            success=False,
            status_code=response.status_code,
            file_count=len(intent.files),
            app_name=intent.app_name,
            version=intent.version,
            response_body=response.body.decode("utf-8", errors="replace").strip(),
        )
    else:
        outcome = UploadOutcome(
            success=True,
            status_code=response.status_code,
            file_count=len(intent.files),
            app_name=intent.app_name,
            version=intent.version,
            uploaded_id=extract_uploaded_id(response.body),
        )

    report_outcome(outcome, sink)
    return outcome
