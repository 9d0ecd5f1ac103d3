"""test suite for BintrayClient against a mocked transport."""
import json
import pytest
import sys
from pathlib import Path

import httpx

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from bintray.client import BintrayClient, entity_path
from bintray.config import USER_AGENT
from bintray.domain.errors import ApiError, ResponseFormatError, ValidationError

BASE_URL = "http://testserver/"

# response body for /packages/:subject/:repo/:package
PACKAGE_BODY = """
{"name":"optools","repo":"prova","owner":"enrico","desc":"this entity does...","labels":[],"attribute_names":[],"followers":0,
"created":"2013-03-04T09:50:00.742Z","versions":["0.1","0.1.1","0.4","0.9"],"latest_version":"0.9",
"updated":"2013-03-04T09:50:00.742Z","rating_count":0}"""


class _TrackingStream(httpx.SyncByteStream):
    """response body that records whether it was closed."""

    def __init__(self, data: bytes):
        self.data = data
        self.closed = False

    def __iter__(self):
        yield self.data

    def close(self):
        self.closed = True


class Server:
    """records requests and answers them with a configurable handler."""

    def __init__(self):
        self.requests = []
        self.handler = lambda request: httpx.Response(200, text='{"A":"a"}')

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)


@pytest.fixture
def server():
    return Server()


@pytest.fixture
def client(server):
    http_client = httpx.Client(transport=httpx.MockTransport(server), follow_redirects=True)
    with http_client:
        yield BintrayClient(http_client, "sub", "api", base_url=BASE_URL)


class TestExecute:
    def test_execute(self, client, server):
        request = client.new_request("GET", "/", "request_data")
        response = client.execute(request)
        assert response.status_code == 200
        assert response.body_as_text().strip() == '{"A":"a"}'
        assert server.requests[0].method == "GET"

    def test_http_error_carries_response(self, client, server):
        server.handler = lambda request: httpx.Response(400, text="Bad Request")
        request = client.new_request("GET", "/", "request_data")
        with pytest.raises(ApiError) as exc_info:
            client.execute(request)
        error = exc_info.value
        assert error.status_code == 400
        assert error.method == "GET"
        assert error.url == BASE_URL
        assert str(error) == f"GET {BASE_URL}: 400"
        assert error.response.body_as_text() == "Bad Request"

    def test_redirect_loop_with_injected_default_client(self):
        """an injected client with httpx defaults still treats a redirect loop as a transport error."""
        loop = lambda request: httpx.Response(302, headers={"Location": "/"})
        client = BintrayClient(httpx.Client(transport=httpx.MockTransport(loop)), base_url=BASE_URL)
        with pytest.raises(httpx.TooManyRedirects):
            client.package_exists("subject", "repository", "pkg")

    def test_error_body_closed_before_raising(self, client, server):
        stream = _TrackingStream(b"Internal Server Error")
        server.handler = lambda request: httpx.Response(500, stream=stream)
        with pytest.raises(ApiError):
            client.get_versions("subject", "repository", "pkg")
        assert stream.closed

    def test_absorbed_not_found_body_closed(self, client, server):
        stream = _TrackingStream(b"Not Found")
        server.handler = lambda request: httpx.Response(404, stream=stream)
        assert client.package_exists("subject", "repository", "pkg") is False
        assert stream.closed

    def test_success_body_closed(self, client, server):
        stream = _TrackingStream(b"")
        server.handler = lambda request: httpx.Response(201, stream=stream)
        client.create_version("subject", "repository", "pkg", "0.1.2")
        assert stream.closed

    def test_redirect_loop_is_transport_error(self, client, server):
        server.handler = lambda request: httpx.Response(302, headers={"Location": "/"})
        request = client.new_request("GET", "/", "")
        with pytest.raises(httpx.TooManyRedirects):
            client.execute(request)

    def test_connection_error_propagates(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        http_client = httpx.Client(transport=httpx.MockTransport(refuse))
        client = BintrayClient(http_client, base_url=BASE_URL)
        with pytest.raises(httpx.ConnectError):
            client.package_exists("subject", "repository", "pkg")

    def test_authentication_headers(self, server):
        http_client = httpx.Client(transport=httpx.MockTransport(server))
        client = BintrayClient(http_client, "testsub", "testapi", base_url=BASE_URL)
        response = client.execute(client.new_request("GET", "/", "request_data"))
        assert response.body_as_text() == '{"A":"a"}'
        sent = server.requests[0]
        assert sent.headers["Authorization"] == "Basic dGVzdHN1Yjp0ZXN0YXBp"
        assert sent.headers["User-Agent"] == USER_AGENT

    def test_no_authentication_without_subject(self, server):
        http_client = httpx.Client(transport=httpx.MockTransport(server))
        client = BintrayClient(http_client, base_url=BASE_URL)
        client.execute(client.new_request("GET", "/")).close()
        assert "Authorization" not in server.requests[0].headers


class TestPackageExists:
    def test_not_found(self, client, server):
        server.handler = lambda request: httpx.Response(404, text="Not Found")
        assert client.package_exists("subject", "repository", "pkg") is False

    def test_found(self, client, server):
        server.handler = lambda request: httpx.Response(200, text=PACKAGE_BODY)
        assert client.package_exists("subject", "repository", "pkg") is True
        assert server.requests[0].method == "GET"
        assert server.requests[0].url.path == "/packages/subject/repository/pkg"

    def test_server_error_propagates(self, client, server):
        server.handler = lambda request: httpx.Response(500, text="boom")
        with pytest.raises(ApiError) as exc_info:
            client.package_exists("subject", "repository", "pkg")
        assert exc_info.value.status_code == 500

    def test_other_success_status_is_false(self, client, server):
        server.handler = lambda request: httpx.Response(204)
        assert client.package_exists("subject", "repository", "pkg") is False


class TestGetVersions:
    def test_get_versions(self, client, server):
        server.handler = lambda request: httpx.Response(200, text=PACKAGE_BODY)
        versions = client.get_versions("subject", "repository", "pkg")
        assert sorted(versions) == sorted(["0.1", "0.1.1", "0.4", "0.9"])
        assert server.requests[0].url.path == "/packages/subject/repository/pkg"

    def test_missing_versions_field(self, client, server):
        server.handler = lambda request: httpx.Response(200, json={"name": "optools"})
        with pytest.raises(ResponseFormatError):
            client.get_versions("subject", "repository", "pkg")

    def test_versions_not_strings(self, client, server):
        server.handler = lambda request: httpx.Response(200, json={"versions": [1, 2]})
        with pytest.raises(ResponseFormatError):
            client.get_versions("subject", "repository", "pkg")

    def test_malformed_json(self, client, server):
        server.handler = lambda request: httpx.Response(200, text="not json")
        with pytest.raises(ResponseFormatError):
            client.get_versions("subject", "repository", "pkg")

    def test_http_error_propagates(self, client, server):
        server.handler = lambda request: httpx.Response(404, text="Not Found")
        with pytest.raises(ApiError):
            client.get_versions("subject", "repository", "pkg")


class TestCreateVersion:
    def test_create_version(self, client, server):
        server.handler = lambda request: httpx.Response(201, text="")
        client.create_version("subject", "repository", "pkg", "0.1.2")
        sent = server.requests[0]
        assert sent.method == "POST"
        assert sent.url.path == "/packages/subject/repository/pkg/versions"
        assert sent.content == b'{"name":"0.1.2"}'

    def test_create_version_with_metadata(self, client, server):
        metadata = {"name": "0.1.2", "desc": "bugfix release", "vcs_tag": "v0.1.2"}
        client.create_version("subject", "repository", "pkg", "0.1.2", metadata)
        assert json.loads(server.requests[0].content) == metadata

    def test_metadata_without_name(self, client, server):
        with pytest.raises(ValidationError, match="name key"):
            client.create_version("subject", "repository", "pkg", "0.1.2", {"desc": "x"})
        assert server.requests == []

    def test_metadata_name_mismatch(self, client, server):
        with pytest.raises(ValidationError, match="does not match"):
            client.create_version("subject", "repository", "pkg", "0.1.2", {"name": "0.1.3"})
        assert server.requests == []

    def test_conflict_propagates(self, client, server):
        server.handler = lambda request: httpx.Response(409, json={"message": "exists"})
        with pytest.raises(ApiError) as exc_info:
            client.create_version("subject", "repository", "pkg", "0.1.2")
        assert exc_info.value.status_code == 409


class TestUploadFile:
    @pytest.fixture
    def upload(self, tmp_path):
        path = tmp_path / "01.txt"
        path.write_text("first test file\n")
        return path

    def test_flat_layout(self, client, server, upload):
        target = client.upload_file("subject", "repository", "pkg", "1.2", upload)
        sent = server.requests[0]
        assert sent.method == "PUT"
        assert sent.url.path == "/content/subject/repository/pkg/1.2/01.txt"
        assert sent.content == b"first test file\n"
        assert sent.headers["Content-Length"] == str(upload.stat().st_size)
        assert target == "1.2/01.txt"

    def test_maven_layout(self, client, server, upload):
        target = client.upload_file(
            "subject", "repository", "pkg", "1.2", upload,
            group_id="com.example", artifact_id="demo", maven=True,
        )
        assert server.requests[0].url.path == "/content/subject/repository/pkg/1.2/com/example/demo/1.2/01.txt"
        assert target == "com/example/demo/1.2/01.txt"

    def test_maven_layout_requires_coordinates(self, client, server, upload):
        with pytest.raises(ValidationError):
            client.upload_file("subject", "repository", "pkg", "1.2", upload, maven=True)
        assert server.requests == []

    def test_query_arguments(self, client, server, upload):
        client.upload_file(
            "subject", "repository", "pkg", "1.2", upload,
            params={"explode": "0"}, publish=True, override=True,
        )
        params = server.requests[0].url.params
        assert params["explode"] == "0"
        assert params["publish"] == "1"
        assert params["override"] == "1"

    def test_missing_file(self, client, server, tmp_path):
        with pytest.raises(FileNotFoundError):
            client.upload_file("subject", "repository", "pkg", "1.2", tmp_path / "missing.txt")
        assert server.requests == []

    @pytest.fixture
    def opened_files(self, monkeypatch):
        """record every file handle the client opens."""
        handles = []

        def tracking_open(*args, **kwargs):
            f = open(*args, **kwargs)
            handles.append(f)
            return f

        monkeypatch.setattr("bintray.client.open", tracking_open, raising=False)
        return handles

    def test_file_closed_after_success(self, client, server, upload, opened_files):
        client.upload_file("subject", "repository", "pkg", "1.2", upload)
        assert len(opened_files) == 1
        assert opened_files[0].closed

    def test_file_closed_after_conflict(self, client, server, upload, opened_files):
        server.handler = lambda request: httpx.Response(409, json={"message": "Unable to upload files"})
        with pytest.raises(ApiError):
            client.upload_file("subject", "repository", "pkg", "1.2", upload)
        assert len(opened_files) == 1
        assert opened_files[0].closed

    def test_file_closed_after_transport_error(self, upload, opened_files):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = BintrayClient(httpx.Client(transport=httpx.MockTransport(refuse)), base_url=BASE_URL)
        with pytest.raises(httpx.ConnectError):
            client.upload_file("subject", "repository", "pkg", "1.2", upload)
        assert len(opened_files) == 1
        assert opened_files[0].closed

    def test_progress_reports_every_byte(self, client, server, upload):
        sent = []
        client.upload_file("subject", "repository", "pkg", "1.2", upload, on_progress=sent.append)
        assert sum(sent) == upload.stat().st_size
        assert server.requests[0].content == b"first test file\n"
        assert server.requests[0].headers["Content-Length"] == str(upload.stat().st_size)

    def test_conflict_is_api_error(self, client, server, upload):
        server.handler = lambda request: httpx.Response(409, json={"message": "Unable to upload files"})
        with pytest.raises(ApiError) as exc_info:
            client.upload_file("subject", "repository", "pkg", "1.2", upload)
        assert exc_info.value.status_code == 409


class TestPublish:
    def test_publish(self, client, server):
        server.handler = lambda request: httpx.Response(200, json={"files": 3})
        assert client.publish("subject", "repository", "pkg", "1.2") is None
        sent = server.requests[0]
        assert sent.method == "POST"
        assert sent.url.path == "/content/subject/repository/pkg/1.2/publish"
        assert sent.content == b""

    def test_publish_unexpected_body(self, client, server):
        assert client.publish("subject", "repository", "pkg", "1.2") is None

    def test_publish_malformed_json_is_not_an_error(self, client, server, caplog):
        server.handler = lambda request: httpx.Response(200, text="<html>")
        with caplog.at_level("WARNING", logger="bintray.client"):
            client.publish("subject", "repository", "pkg", "1.2")
        assert "could not decode publish response" in caplog.text

    def test_publish_error_propagates(self, client, server):
        server.handler = lambda request: httpx.Response(401, text="Unauthorized")
        with pytest.raises(ApiError):
            client.publish("subject", "repository", "pkg", "1.2")


class TestValidation:
    @pytest.mark.parametrize("args", [
        ("", "repository", "pkg"),
        ("subject", "", "pkg"),
        ("subject", "repository", ""),
    ])
    def test_package_operations(self, client, server, args):
        with pytest.raises(ValidationError):
            client.package_exists(*args)
        with pytest.raises(ValidationError):
            client.get_versions(*args)
        assert server.requests == []

    @pytest.mark.parametrize("args", [
        ("", "repository", "pkg", "1.2"),
        ("subject", "", "pkg", "1.2"),
        ("subject", "repository", "", "1.2"),
        ("subject", "repository", "pkg", ""),
    ])
    def test_version_operations(self, client, server, args, tmp_path):
        upload = tmp_path / "01.txt"
        upload.write_text("x")
        with pytest.raises(ValidationError):
            client.create_version(*args)
        with pytest.raises(ValidationError):
            client.upload_file(*args, upload)
        with pytest.raises(ValidationError):
            client.publish(*args)
        assert server.requests == []

    def test_validation_error_is_value_error(self, client):
        with pytest.raises(ValueError):
            client.publish("", "", "", "")


class TestEntityPath:
    def test_flat(self):
        assert entity_path("1.2", "01.txt") == "1.2/01.txt"

    def test_maven(self):
        assert entity_path("1.2", "demo-1.2.jar", "org.acme.tools", "demo", maven=True) == \
            "org/acme/tools/demo/1.2/demo-1.2.jar"

    def test_coordinates_ignored_when_flat(self):
        assert entity_path("1.2", "01.txt", "com.example", "demo") == "1.2/01.txt"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
