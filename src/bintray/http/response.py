"""read-once wrapper around streamed API responses."""

from typing import Optional

import httpx

from ..domain.errors import BodyConsumedError


class Response:
    """
    wraps a streamed httpx response.

    status code and headers are available immediately. the body may be read
    once, through either accessor; reading drains and closes the stream.
    """

    def __init__(self, raw: httpx.Response):
        self.raw = raw
        self.status_code = raw.status_code
        self.headers = raw.headers
        self.method = raw.request.method
        self.url = str(raw.request.url)
        self._content: Optional[bytes] = None
        self._closed = False
        self._consumed = False

    def __enter__(self) -> "Response":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code <= 299

    def close(self) -> None:
        """drain and close the underlying stream; safe to call repeatedly."""
        if self._closed:
            return
        try:
            self._content = self.raw.read()
        finally:
            self.raw.close()
            self._closed = True

    def body_as_bytes(self) -> bytes:
        """return the body as bytes, closing the stream."""
        if self._consumed:
            raise BodyConsumedError(f"response body of {self.method} {self.url} was already read")
        self._consumed = True
        self.close()
        return self._content or b""

    def body_as_text(self) -> str:
        """
        return the body decoded as UTF-8, closing the stream.

        raises:
            UnicodeDecodeError: if the body is not valid UTF-8
        """
        return self.body_as_bytes().decode("utf-8")

    def __repr__(self) -> str:
        return f"<Response [{self.status_code}] {self.method} {self.url}>"
