"""
Extraction of the server-assigned upload identifier.

The server has answered with several JSON shapes over time; they are tried in
a fixed order and the first string value found wins:

    1. {"uploadResult.Uploaded": "<id>"}
    2. {"uploadResult": {"Uploaded": "<id>"}}  (or lowercase "uploaded")
    3. {"uploaded_id": "<id>"}

Anything else, including a body that is not JSON, yields an empty id.
"""

import json
from typing import Any, Callable, Dict, Optional, Sequence

from faynosync.utils.logging import get_logger

logger = get_logger(__name__)

FLAT_RESULT_KEY = "uploadResult.Uploaded"
RESULT_KEY = "uploadResult"
NESTED_ID_KEYS = ("Uploaded", "uploaded")
GENERIC_ID_KEY = "uploaded_id"

ShapeMatcher = Callable[[Dict[str, Any]], Optional[str]]


def _string(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _flat_dotted_key(doc: Dict[str, Any]) -> Optional[str]:
    return _string(doc.get(FLAT_RESULT_KEY))


def _nested_result(doc: Dict[str, Any]) -> Optional[str]:
    nested = doc.get(RESULT_KEY)
    if not isinstance(nested, dict):
        return None
    for key in NESTED_ID_KEYS:
        found = _string(nested.get(key))
        if found is not None:
            return found
    return None


def _generic_key(doc: Dict[str, Any]) -> Optional[str]:
    return _string(doc.get(GENERIC_ID_KEY))


# TODO: confirm this precedence against the current server response schema
SHAPE_MATCHERS: Sequence[ShapeMatcher] = (
    _flat_dotted_key,
    _nested_result,
    _generic_key,
)


def extract_uploaded_id(body: bytes) -> str:
    """
    Return the uploaded id found in a success response, or "".

    Never raises on bad input.

    Example:
        >>> extract_uploaded_id(b'{"uploadResult":{"Uploaded":"abc123"}}')
        'abc123'
        >>> extract_uploaded_id(b'{"foo":"bar"}')
        ''
    """
    try:
        doc = json.loads(body)
    except (ValueError, TypeError, RecursionError):
        logger.debug("Upload response is not decodable JSON")
        return ""

    if not isinstance(doc, dict):
        return ""

    for matcher in SHAPE_MATCHERS:
        found = matcher(doc)
        if found is not None:
            return found.strip()

    logger.debug("Upload response has no recognized id field")
    return ""
