from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..http.response import Response


class BintrayError(Exception):
    """base class for exceptions in the bintray client."""
    pass


class ValidationError(BintrayError, ValueError):
    """raised before any request is sent when arguments are missing or inconsistent."""
    pass


class InvalidURLError(ValidationError):
    """raised when a request path cannot be parsed as a URL reference."""
    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"Invalid URL '{path}': {reason}")


class ApiError(BintrayError):
    """raised for any response outside the 2xx range.

    the response stays attached so callers can inspect the status code.
    """
    def __init__(self, response: "Response"):
        self.response = response
        super().__init__(f"{response.method} {response.url}: {response.status_code}")

    @property
    def status_code(self) -> int:
        return self.response.status_code

    @property
    def method(self) -> str:
        return self.response.method

    @property
    def url(self) -> str:
        return self.response.url


class ResponseFormatError(BintrayError):
    """raised when a response body does not have the expected shape."""
    pass


class BodyConsumedError(BintrayError):
    """raised when a response body is read a second time."""
    pass


class PackageNotFoundError(BintrayError):
    """raised when a release targets a package that does not exist."""
    def __init__(self, subject: str, repository: str, package: str):
        self.subject = subject
        self.repository = repository
        self.package = package
        super().__init__(f"Package '{subject}/{repository}/{package}' not found")
