import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Union

import httpx
from pydantic import ValidationError as ModelValidationError

from .config import DEFAULT_BASE_URL, USER_AGENT, load_settings
from .domain.errors import ApiError, ResponseFormatError, ValidationError
from .domain.models import ClientConfig, PackageInfo, PublishResult, Settings
from .http.request import Body, RequestBuilder
from .http.response import Response

logger = logging.getLogger(__name__)


def _require(operation: str, **fields: str) -> None:
    missing = [name for name, value in fields.items() if not value]
    if missing:
        names = ", ".join(fields)
        raise ValidationError(f"{operation}: {names} shouldn't be empty (missing: {', '.join(missing)})")


def _package_path(subject: str, repository: str, package: str) -> str:
    return f"packages/{subject}/{repository}/{package}"


def _content_path(subject: str, repository: str, package: str, version: str) -> str:
    return f"content/{subject}/{repository}/{package}/{version}"


class _ProgressReader:
    """file wrapper reporting how many bytes the transport has pulled."""

    CHUNK_SIZE = 65536

    def __init__(self, f, on_progress: Callable[[int], None]):
        self._file = f
        self._on_progress = on_progress

    def read(self, size: int = -1) -> bytes:
        chunk = self._file.read(size)
        if chunk:
            self._on_progress(len(chunk))
        return chunk

    def __iter__(self) -> Iterator[bytes]:
        while True:
            chunk = self.read(self.CHUNK_SIZE)
            if not chunk:
                break
            yield chunk


def entity_path(
    version: str,
    file_name: str,
    group_id: str = "",
    artifact_id: str = "",
    maven: bool = False,
) -> str:
    """
    path of an uploaded file below its version.

    flat repositories store files as {version}/{file}; maven repositories use
    {group/as/path}/{artifact}/{version}/{file}.
    """
    if maven:
        return f"{group_id.replace('.', '/')}/{artifact_id}/{version}/{file_name}"
    return f"{version}/{file_name}"


class BintrayClient:
    """manages communication with the Bintray REST API."""

    def __init__(
        self,
        http_client: Optional[httpx.Client] = None,
        subject: str = "",
        api_key: str = "",
        base_url: str = DEFAULT_BASE_URL,
        user_agent: str = USER_AGENT,
    ):
        self._owns_http_client = http_client is None
        self.http_client = http_client or httpx.Client(follow_redirects=True)
        self.config = ClientConfig(
            base_url=base_url,
            user_agent=user_agent,
            subject=subject,
            api_key=api_key,
        )
        self.request_builder = RequestBuilder(self.config)

    @classmethod
    def from_settings(
        cls, settings: Optional[Settings] = None, http_client: Optional[httpx.Client] = None
    ) -> "BintrayClient":
        """create a client from persisted settings (config file and environment)."""
        settings = settings or load_settings()
        return cls(http_client, settings.subject, settings.api_key, base_url=settings.base_url)

    @property
    def base_url(self) -> str:
        return self.config.base_url

    @property
    def user_agent(self) -> str:
        return self.config.user_agent

    def close(self) -> None:
        if self._owns_http_client:
            self.http_client.close()

    def __enter__(self) -> "BintrayClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def new_request(
        self,
        method: str,
        path: str,
        body: Body = None,
        content_length: Optional[int] = None,
        params: Optional[Mapping[str, str]] = None,
    ) -> httpx.Request:
        return self.request_builder.build(method, path, body, content_length, params)

    def execute(self, request: httpx.Request) -> Response:
        """
        send a request and wrap the response.

        transport failures (DNS, connection, TLS, redirect loops) propagate
        as raised by httpx.

        raises:
            ApiError: for any status outside 200-299, after the body was closed
        """
        logger.debug(f"{request.method} {request.url}")
        # redirects are always followed so that a loop surfaces as httpx.TooManyRedirects
        raw = self.http_client.send(request, stream=True, follow_redirects=True)
        response = Response(raw)
        logger.debug(f"{request.method} {request.url} -> {response.status_code}")
        if not response.is_success:
            response.close()
            raise ApiError(response)
        return response

    def package_exists(self, subject: str, repository: str, package: str) -> bool:
        """
        check whether a package is present.

        GET /packages/:subject/:repo/:package

        returns:
            true iff the API answered 200; a 404 is reported as false
        """
        _require("package exists", subject=subject, repository=repository, package=package)
        request = self.new_request("GET", _package_path(subject, repository, package))
        try:
            with self.execute(request) as response:
                return response.status_code == 200
        except ApiError as e:
            if e.status_code == 404:
                return False
            raise

    def get_package(self, subject: str, repository: str, package: str) -> PackageInfo:
        """fetch and decode the package resource."""
        _require("get package", subject=subject, repository=repository, package=package)
        request = self.new_request("GET", _package_path(subject, repository, package))
        with self.execute(request) as response:
            body = response.body_as_bytes()
        try:
            return PackageInfo.model_validate_json(body)
        except ModelValidationError as e:
            raise ResponseFormatError(
                f"unexpected package resource for {subject}/{repository}/{package}: {e}"
            ) from e

    def get_versions(self, subject: str, repository: str, package: str) -> List[str]:
        """list the version labels of a package, in the order the API returns them."""
        _require("get versions", subject=subject, repository=repository, package=package)
        return self.get_package(subject, repository, package).versions

    def create_version(
        self,
        subject: str,
        repository: str,
        package: str,
        version: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """
        create a version.

        POST /packages/:subject/:repo/:package/versions

        args:
            metadata: optional version attributes; must carry a 'name' equal to version

        raises:
            ValidationError: if an identifier is empty or metadata lacks a matching name
        """
        _require(
            "create version", subject=subject, repository=repository, package=package, version=version
        )
        if metadata is None:
            payload: Dict[str, Any] = {"name": version}
        else:
            if "name" not in metadata:
                raise ValidationError("create version: metadata must contain the name key")
            if metadata["name"] != version:
                raise ValidationError(
                    f"create version: metadata name '{metadata['name']}' does not match version '{version}'"
                )
            payload = dict(metadata)

        body = json.dumps(payload, separators=(",", ":"))
        request = self.new_request("POST", f"{_package_path(subject, repository, package)}/versions", body)
        with self.execute(request):
            pass
        logger.info(f"created version {subject}/{repository}/{package}@{version}")

    def upload_file(
        self,
        subject: str,
        repository: str,
        package: str,
        version: str,
        file_path: Union[str, Path],
        group_id: str = "",
        artifact_id: str = "",
        maven: bool = False,
        params: Optional[Mapping[str, str]] = None,
        publish: bool = False,
        override: bool = False,
        on_progress: Optional[Callable[[int], None]] = None,
    ) -> str:
        """
        upload a local file into a version.

        PUT /content/:subject/:repo/:package/:version/:path

        args:
            group_id: dotted group coordinate, used only for maven layouts
            artifact_id: artifact name, used only for maven layouts
            maven: build a maven-style entity path
            params: extra query arguments
            publish: publish the file together with the upload
            override: replace an already uploaded file
            on_progress: called with the number of bytes sent after each chunk

        returns:
            the entity path the file was stored under

        raises:
            ValidationError: if an identifier or a maven coordinate is empty
            OSError: if the file cannot be opened or stat'ed
        """
        _require(
            "upload file", subject=subject, repository=repository, package=package, version=version
        )
        if maven:
            _require("upload file", group_id=group_id, artifact_id=artifact_id)

        full_path = Path(file_path).resolve()
        target = entity_path(version, full_path.name, group_id, artifact_id, maven)
        if maven:
            url = f"{_content_path(subject, repository, package, version)}/{target}"
        else:
            url = f"content/{subject}/{repository}/{package}/{target}"

        query = dict(params or {})
        if publish:
            query["publish"] = "1"
        if override:
            query["override"] = "1"

        with open(full_path, "rb") as f:
            size = os.fstat(f.fileno()).st_size
            body = f if on_progress is None else _ProgressReader(f, on_progress)
            request = self.new_request("PUT", url, body, size, query)
            # a 409 conflict surfaces as an ordinary ApiError
            with self.execute(request):
                pass
        logger.info(f"uploaded {full_path.name} to {subject}/{repository}/{package}@{version} as {target}")
        return target

    def publish(self, subject: str, repository: str, package: str, version: str) -> None:
        """
        publish all uploaded content of a version.

        POST /content/:subject/:repo/:package/:version/publish
        """
        _require("publish", subject=subject, repository=repository, package=package, version=version)
        request = self.new_request("POST", f"{_content_path(subject, repository, package, version)}/publish")
        with self.execute(request) as response:
            body = response.body_as_bytes()
        try:
            result = PublishResult.model_validate_json(body)
        except ModelValidationError as e:
            logger.warning(f"could not decode publish response for {package}@{version}: {e}")
            return
        logger.info(f"published {result.files} file(s) for {subject}/{repository}/{package}@{version}")
