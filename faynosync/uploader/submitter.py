"""
HTTP submission of a streamed upload body.

Performs exactly one POST per call. The whole exchange (connect, streaming
the body, reading the response) is bounded by UPLOAD_TIMEOUT_SECONDS, and at
most MAX_RESPONSE_BYTES of the response body are kept.
"""

import threading
import time
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

import requests

from faynosync.errors import UploadStreamError, UploadTimeoutError
from faynosync.uploader.multipart import BodyPipe
from faynosync.utils.logging import get_logger, log_function_call

logger = get_logger(__name__)

UPLOAD_PATH = "/upload"
UPLOAD_TIMEOUT_SECONDS = 300.0
MAX_RESPONSE_BYTES = 1 << 20
RESPONSE_CHUNK_SIZE = 64 * 1024


@dataclass
class SubmitResponse:
    """
    Raw result of one upload POST.

    Attributes:
        status_code: HTTP status returned by the server
        body: Response body, truncated to MAX_RESPONSE_BYTES
    """

    status_code: int
    body: bytes

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


@log_function_call
def build_endpoint(server: str) -> str:
    """
    Derive the upload URL from the server base URL.

    Example:
        >>> build_endpoint("https://updates.example.com//")
        'https://updates.example.com/upload'
    """
    return server.rstrip("/") + UPLOAD_PATH


def read_capped(response: requests.Response, limit: int, deadline: float) -> bytes:
    """Read at most ``limit`` bytes of a streamed response body."""
    buffer = bytearray()
    for chunk in response.iter_content(chunk_size=RESPONSE_CHUNK_SIZE):
        if time.monotonic() > deadline:
            raise UploadTimeoutError("timed out reading upload response")
        buffer.extend(chunk[: limit - len(buffer)])
        if len(buffer) >= limit:
            break
    return bytes(buffer)


class _Exchange:
    """
    One POST plus the capped response read, run on a worker thread.

    The caller waits on ``done`` with the overall deadline; ``cancel`` fails
    whatever the worker is still blocked on.
    """

    def __init__(
        self,
        session: requests.Session,
        endpoint: str,
        body: Iterable[bytes],
        headers: Dict[str, str],
        timeout: float,
        deadline: float,
    ):
        self.session = session
        self.endpoint = endpoint
        self.body = body
        self.headers = headers
        self.timeout = timeout
        self.deadline = deadline
        self.response: Optional[requests.Response] = None
        self.result: Optional[SubmitResponse] = None
        self.error: Optional[BaseException] = None
        self.cancelled = False
        self.done = threading.Event()
        self._lock = threading.Lock()

    def run(self) -> None:
        try:
            response = self.session.post(
                self.endpoint,
                data=self.body,
                headers=self.headers,
                stream=True,
                timeout=(self.timeout, self.timeout),
            )
            with self._lock:
                self.response = response
                cancelled = self.cancelled
            try:
                if cancelled or time.monotonic() > self.deadline:
                    raise UploadTimeoutError(f"upload exceeded {self.timeout:g}s")
                payload = read_capped(response, MAX_RESPONSE_BYTES, self.deadline)
            finally:
                response.close()
            self.result = SubmitResponse(status_code=response.status_code, body=payload)
        except Exception as e:
            self.error = e
        finally:
            self.done.set()

    def cancel(self) -> None:
        with self._lock:
            self.cancelled = True
            response = self.response
        if isinstance(self.body, BodyPipe):
            self.body.abort(UploadTimeoutError(f"upload exceeded {self.timeout:g}s"))
        if response is not None:
            response.close()
        self.session.close()


def submit_upload(
    endpoint: str,
    body: Iterable[bytes],
    content_type: str,
    token: str,
    timeout: float = UPLOAD_TIMEOUT_SECONDS,
    session: Optional[requests.Session] = None,
) -> SubmitResponse:
    """
    POST a streamed multipart body with bearer authentication.

    The request runs on a worker thread so the deadline holds even while
    the server trickles its response headers.

    Args:
        endpoint: Full upload URL (see build_endpoint)
        body: Iterable of body chunks, usually the BodyPipe from
            build_upload_body
        content_type: Multipart Content-Type including the boundary
        token: Bearer token
        timeout: Ceiling in seconds for the whole exchange
        session: requests session to use (a new one when omitted)

    Returns:
        SubmitResponse with the status and capped body; non-2xx statuses are
        returned, not raised

    Raises:
        UploadStreamError: If the body producer failed (unreadable file etc.)
        UploadTimeoutError: If the exchange exceeded ``timeout``
        requests.RequestException: On connection or other transport errors
    """
    headers = {
        "Authorization": f"Bearer {token}",
        "Content-Type": content_type,
    }
    deadline = time.monotonic() + timeout
    owns_session = session is None
    session = session or requests.Session()

    logger.debug("Submitting upload", extra={"endpoint": endpoint})

    exchange = _Exchange(session, endpoint, body, headers, timeout, deadline)
    worker = threading.Thread(
        target=exchange.run, name="faynosync-upload", daemon=True
    )

    try:
        worker.start()
        if not exchange.done.wait(timeout):
            exchange.cancel()
            raise UploadTimeoutError(f"upload exceeded {timeout:g}s")
    finally:
        if isinstance(body, BodyPipe):
            # Releases a producer still blocked on a full pipe
            body.abort(UploadStreamError("upload request finished"))
        if owns_session:
            session.close()

    if exchange.error is not None:
        raise exchange.error

    result = exchange.result
    logger.debug(
        "Upload response received",
        extra={"status": result.status_code, "bytes": len(result.body)},
    )
    return result
