"""
Upload submission pipeline.

Parses ``upload`` arguments, resolves the changelog, streams files and
metadata as one multipart request and reports the server-assigned id.
"""

from .changelog import normalize_changelog, resolve_changelog
from .flags import (
    UPLOAD_USAGE,
    UploadIntent,
    parse_upload_args,
    require_files,
    validate_changelog_sources,
)
from .multipart import BodyPipe, build_upload_body
from .response import extract_uploaded_id
from .submitter import SubmitResponse, build_endpoint, submit_upload
from .uploader import UploadOutcome, build_metadata, run_upload

__all__ = [
    "UPLOAD_USAGE",
    "UploadIntent",
    "UploadOutcome",
    "SubmitResponse",
    "BodyPipe",
    "parse_upload_args",
    "require_files",
    "validate_changelog_sources",
    "normalize_changelog",
    "resolve_changelog",
    "build_upload_body",
    "build_endpoint",
    "submit_upload",
    "extract_uploaded_id",
    "build_metadata",
    "run_upload",
]
