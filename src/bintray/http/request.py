"""construction of authenticated, fully addressed API requests."""

import base64
from typing import BinaryIO, Mapping, Optional, Union

import httpx

from ..domain.errors import InvalidURLError
from ..domain.models import ClientConfig

Body = Union[None, str, bytes, BinaryIO]


def basic_auth_header(subject: str, api_key: str) -> str:
    token = base64.b64encode(f"{subject}:{api_key}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


class RequestBuilder:
    """turns relative paths and bodies into requests against the configured base URL."""

    def __init__(self, config: ClientConfig):
        self.config = config
        self.base_url = httpx.URL(config.base_url)

    def resolve(self, path: str) -> httpx.URL:
        """
        resolve a path relative to the base URL.

        paths should be given without a leading slash so that a base URL
        with a path prefix is preserved.

        raises:
            InvalidURLError: if the path cannot be parsed as a URL reference
        """
        try:
            reference = httpx.URL(path)
        except httpx.InvalidURL as e:
            raise InvalidURLError(path, str(e)) from e
        return self.base_url.join(reference)

    def build(
        self,
        method: str,
        path: str,
        body: Body = None,
        content_length: Optional[int] = None,
        params: Optional[Mapping[str, str]] = None,
    ) -> httpx.Request:
        """
        build a request.

        args:
            method: HTTP method
            path: path relative to the base URL
            body: nothing, text, bytes, or a readable binary stream
            content_length: length of a stream body, when known
            params: query arguments appended to the URL

        returns:
            request ready to be sent by the executor
        """
        url = self.resolve(path)
        if params:
            url = url.copy_merge_params(params)

        if isinstance(body, str):
            body = body.encode("utf-8")
        if isinstance(body, bytes):
            content_length = len(body)
            if not body:
                body = None

        headers = {"User-Agent": self.config.user_agent}
        if content_length is not None and content_length > 0:
            headers["Content-Length"] = str(content_length)
        if self.config.has_credentials:
            headers["Authorization"] = basic_auth_header(self.config.subject, self.config.api_key)

        return httpx.Request(method, url, headers=headers, content=body)
