"""
Streaming multipart/form-data body construction.

A producer thread writes the multipart parts into a bounded BodyPipe while the
HTTP layer iterates the pipe as a chunked request body. Files are opened one
at a time, in order, so the first bytes of the first file can be on the wire
before later files are opened, and no file is ever held fully in memory.

Body layout:
    --<boundary>  file part (name="file", filename=<base name>)   x N
    --<boundary>  data part (name="data", JSON metadata)
    --<boundary>--

Example usage:
    >>> body, content_type = build_upload_body(["dist/app.zip"], '{"app_name": "demo"}')
    >>> requests.post(url, data=body, headers={"Content-Type": content_type})
"""

import threading
from collections import deque
from pathlib import Path
from typing import Deque, Iterator, Optional, Sequence, Tuple

from urllib3.fields import RequestField
from urllib3.filepost import choose_boundary

from faynosync.errors import UploadStreamError
from faynosync.utils.logging import get_logger

logger = get_logger(__name__)

FILE_FIELD = "file"
DATA_FIELD = "data"
FILE_CONTENT_TYPE = "application/octet-stream"

CHUNK_SIZE = 64 * 1024
DEFAULT_PIPE_CAPACITY = 4 * CHUNK_SIZE

CRLF = b"\r\n"


class PipeClosedError(Exception):
    """Raised on the writer side once the pipe can no longer accept data."""


class BodyPipe:
    """
    Bounded, thread-safe byte conduit between one writer and one reader.

    ``write`` blocks while ``capacity`` bytes are buffered and unread;
    iteration blocks while nothing is buffered. ``close`` ends iteration
    cleanly. ``abort`` makes the reader raise UploadStreamError instead,
    discarding anything still buffered, and makes further writes raise
    PipeClosedError.

    Attributes:
        capacity: Buffered byte count at which writers block
    """

    def __init__(self, capacity: int = DEFAULT_PIPE_CAPACITY):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._chunks: Deque[bytes] = deque()
        self._buffered = 0
        self._closed = False
        self._error: Optional[BaseException] = None
        self._condition = threading.Condition()

    @property
    def error(self) -> Optional[BaseException]:
        """The exception the pipe was aborted with, if any."""
        with self._condition:
            return self._error

    def write(self, data: bytes) -> None:
        if not data:
            return
        with self._condition:
            while self._buffered >= self.capacity and not self._done():
                self._condition.wait()
            if self._done():
                raise PipeClosedError("write to closed body pipe")
            self._chunks.append(bytes(data))
            self._buffered += len(data)
            self._condition.notify_all()

    def close(self) -> None:
        """Signal end of body. Buffered data is still delivered."""
        with self._condition:
            self._closed = True
            self._condition.notify_all()

    def abort(self, error: BaseException) -> None:
        """Fail the pipe with ``error``; the first abort wins."""
        with self._condition:
            if self._error is None:
                self._error = error
            self._chunks.clear()
            self._buffered = 0
            self._condition.notify_all()

    def _done(self) -> bool:
        return self._closed or self._error is not None

    def __iter__(self) -> Iterator[bytes]:
        while True:
            with self._condition:
                while not self._chunks and not self._done():
                    self._condition.wait()
                if self._error is not None:
                    raise UploadStreamError(
                        f"upload body aborted: {self._error}", cause=self._error
                    )
                if not self._chunks:
                    return
                chunk = self._chunks.popleft()
                self._buffered -= len(chunk)
                self._condition.notify_all()
            yield chunk


class MultipartWriter:
    """
    Writes multipart/form-data framing into a BodyPipe.

    Part headers are rendered with urllib3's RequestField, the same encoder
    requests uses for ``files=`` uploads.
    """

    def __init__(self, pipe: BodyPipe, boundary: Optional[str] = None):
        self.pipe = pipe
        self.boundary = boundary or choose_boundary()

    @property
    def content_type(self) -> str:
        return f"multipart/form-data; boundary={self.boundary}"

    def _begin_part(
        self, name: str, filename: Optional[str] = None, content_type: Optional[str] = None
    ) -> None:
        field = RequestField(name=name, data=b"", filename=filename)
        field.make_multipart(content_type=content_type)
        self.pipe.write(b"--" + self.boundary.encode("ascii") + CRLF)
        self.pipe.write(field.render_headers().encode("utf-8"))

    def write_file(self, path: str) -> int:
        """
        Stream one file as a ``file`` part.

        Returns:
            Number of content bytes written

        Raises:
            ValueError: If ``path`` is blank
            OSError: If the file cannot be opened or read
        """
        clean_path = path.strip()
        if not clean_path:
            raise ValueError("file path cannot be empty")

        written = 0
        with open(clean_path, "rb") as handle:
            self._begin_part(
                FILE_FIELD,
                filename=Path(clean_path).name,
                content_type=FILE_CONTENT_TYPE,
            )
            for chunk in iter(lambda: handle.read(CHUNK_SIZE), b""):
                self.pipe.write(chunk)
                written += len(chunk)
            self.pipe.write(CRLF)
        return written

    def write_field(self, name: str, value: str) -> None:
        self._begin_part(name)
        self.pipe.write(value.encode("utf-8"))
        self.pipe.write(CRLF)

    def finish(self) -> None:
        self.pipe.write(b"--" + self.boundary.encode("ascii") + b"--" + CRLF)


def _produce(writer: MultipartWriter, file_paths: Sequence[str], data_field: str) -> None:
    pipe = writer.pipe
    try:
        for path in file_paths:
            size = writer.write_file(path)
            logger.debug("Streamed file part", extra={"path": path, "bytes": size})
        writer.write_field(DATA_FIELD, data_field)
        writer.finish()
    except PipeClosedError:
        # Reader side already failed; its error is what gets reported
        logger.debug("Body pipe closed before the body was complete")
        return
    except Exception as e:
        logger.debug(f"Aborting upload body: {e}")
        pipe.abort(e)
        return
    pipe.close()


def build_upload_body(
    file_paths: Sequence[str],
    data_field: str,
    capacity: int = DEFAULT_PIPE_CAPACITY,
    boundary: Optional[str] = None,
) -> Tuple[BodyPipe, str]:
    """
    Start streaming a multipart body for ``file_paths`` plus the data field.

    The producer runs on a daemon thread and starts immediately; it blocks
    as soon as ``capacity`` bytes are waiting to be read.

    Args:
        file_paths: Files to send, in order, each as a ``file`` part
        data_field: JSON metadata sent as the final ``data`` part
        capacity: Pipe buffer size in bytes
        boundary: Multipart boundary (random when omitted)

    Returns:
        Tuple of (pipe to iterate as the request body, Content-Type value)
    """
    pipe = BodyPipe(capacity=capacity)
    writer = MultipartWriter(pipe, boundary=boundary)

    producer = threading.Thread(
        target=_produce,
        args=(writer, list(file_paths), data_field),
        name="faynosync-body-producer",
        daemon=True,
    )
    producer.start()

    return pipe, writer.content_type
