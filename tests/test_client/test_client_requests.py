"""
client.py 请求执行测试

使用 responses 模拟 HTTP 服务:
- 请求头、Cookie、默认参数和认证器
- 表单、multipart 和原始请求体
- 传输错误与 HTTP 错误处理
- 验证器和格式化器
- request() 统一入口、便捷方法和文件下载
"""

import json
import os
from dataclasses import dataclass

import pytest
import requests
import responses
from requests.auth import HTTPBasicAuth

from restflex import RestClient, RestRequest, RestResponse
from restflex.authenticators import JwtAuthenticator
from restflex.constants import ResponseStatus
from restflex.exceptions import (
    APIClientHTTPError,
    APIClientNetworkError,
    APIClientResponseValidationError,
    APIClientTimeoutError,
    APIClientValidationError,
)
from restflex.formatter import BaseResponseFormatter, RestResponseFormatter
from restflex.parser import FileWriteResponseParser
from restflex.validator import StatusCodeValidator

BASE_URL = "https://api.example.com"


@dataclass
class User:
    id: int = 0
    name: str = ""


class UserAPIClient(RestClient):
    base_url = BASE_URL
    endpoint = "/users/{user_id}"
    method = "GET"


class CreateUserClient(RestClient):
    base_url = BASE_URL
    endpoint = "/users"
    method = "POST"


def last_request():
    return responses.calls[-1].request


class TestRequestHeaders:
    """测试请求头和 Cookie"""

    @pytest.mark.unit
    @responses.activate
    def test_default_headers(self, client):
        """默认请求包含 Accept 和 User-Agent"""
        # Arrange
        responses.add(responses.GET, f"{BASE_URL}/ping", json={})

        # Act
        client.execute(RestRequest("/ping"))

        # Assert
        headers = last_request().headers
        assert headers["Accept"].startswith("application/json, text/json")
        assert "application/xml" in headers["Accept"]
        assert headers["User-Agent"] == "restflex/1.0.0"

    @pytest.mark.unit
    @responses.activate
    def test_custom_accept_not_overridden(self, client):
        responses.add(responses.GET, f"{BASE_URL}/ping", json={})

        client.execute(RestRequest("/ping").add_header("accept", "text/csv"))

        assert last_request().headers["Accept"] == "text/csv"

    @pytest.mark.unit
    @responses.activate
    def test_duplicate_headers_joined(self, client):
        """同名请求头合并为逗号分隔的值"""
        responses.add(responses.GET, f"{BASE_URL}/ping", json={})

        client.execute(RestRequest("/ping").add_header("X-Tag", "a").add_header("x-tag", "b"))

        assert last_request().headers["X-Tag"] == "a, b"

    @pytest.mark.unit
    @responses.activate
    def test_request_header_overrides_default(self, client):
        responses.add(responses.GET, f"{BASE_URL}/ping", json={})
        client.add_default_header("X-Env", "prod")

        client.execute(RestRequest("/ping").add_header("X-Env", "test"))

        assert last_request().headers["X-Env"] == "test"

    @pytest.mark.unit
    @responses.activate
    def test_cookies(self, client):
        responses.add(responses.GET, f"{BASE_URL}/ping", json={})

        client.execute(RestRequest("/ping").add_cookie("session", "abc"))

        assert last_request().headers["Cookie"] == "session=abc"

    @pytest.mark.unit
    @responses.activate
    def test_authenticator_applied(self):
        responses.add(responses.GET, f"{BASE_URL}/me", json={})

        with RestClient(BASE_URL, authenticator=JwtAuthenticator("Bearer abc.def")) as client:
            client.execute(RestRequest("/me"))

        assert last_request().headers["Authorization"] == "Bearer abc.def"

    @pytest.mark.unit
    @responses.activate
    def test_requests_authentication(self):
        responses.add(responses.GET, f"{BASE_URL}/me", json={})

        with RestClient(BASE_URL, authentication=HTTPBasicAuth("user", "pass")) as client:
            client.execute(RestRequest("/me"))

        assert last_request().headers["Authorization"] == "Basic dXNlcjpwYXNz"

    @pytest.mark.unit
    @responses.activate
    def test_before_request_hook_modifies_request(self, client):
        """before_request 钩子可以添加请求头"""
        responses.add(responses.GET, f"{BASE_URL}/ping", json={})
        client.register_hook("before_request", lambda c, request_id, request: request.add_header("X-Signed", "1"))

        client.execute(RestRequest("/ping"))

        assert last_request().headers["X-Signed"] == "1"


class TestRequestBodies:
    """测试请求体构建"""

    @pytest.mark.unit
    @responses.activate
    def test_json_body(self, client):
        # Arrange
        responses.add(responses.POST, f"{BASE_URL}/users", json={"id": 1}, status=201)

        # Act
        response = client.execute(RestRequest("/users", "POST").add_json_body(User(name="john")))

        # Assert
        request = last_request()
        assert request.headers["Content-Type"] == "application/json"
        assert json.loads(request.body) == {"id": 0, "name": "john"}
        assert response.status_code == 201
        assert response.data == {"id": 1}

    @pytest.mark.unit
    @responses.activate
    def test_form_urlencoded(self, client):
        """POST 请求的 GetOrPost 参数作为表单发送"""
        responses.add(responses.POST, f"{BASE_URL}/login", json={})

        client.execute(RestRequest("/login", "POST").add_parameter("user", "a b").add_parameter("pwd", "x&y"))

        request = last_request()
        assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
        assert request.body == b"user=a+b&pwd=x%26y"

    @pytest.mark.unit
    @responses.activate
    def test_body_with_parameters_moves_parameters_to_query(self, client):
        """没有文件时，请求体和表单参数同时存在，表单参数进入查询字符串"""
        responses.add(responses.POST, f"{BASE_URL}/items", json={})

        client.execute(RestRequest("/items", "POST").add_json_body({"a": 1}).add_parameter("dry_run", "true"))

        request = last_request()
        assert request.url == f"{BASE_URL}/items?dry_run=true"
        assert json.loads(request.body) == {"a": 1}

    @pytest.mark.unit
    @responses.activate
    def test_multipart_with_file(self, client, temp_file):
        """有文件时使用 multipart/form-data"""
        # Arrange
        responses.add(responses.POST, f"{BASE_URL}/upload", json={})
        request = RestRequest("/upload", "POST").add_file("doc", temp_file).add_parameter("title", "Report")

        # Act
        client.execute(request)

        # Assert
        sent = last_request()
        boundary = request.form_boundary
        assert sent.headers["Content-Type"] == f"multipart/form-data; boundary={boundary}"
        assert b'Content-Disposition: form-data; name="doc"; filename="report.txt"' in sent.body
        assert b"hello file" in sent.body
        assert b'name="title"\r\n\r\nReport\r\n' in sent.body
        assert sent.body.endswith(f"--{boundary}--\r\n".encode())

    @pytest.mark.unit
    @responses.activate
    def test_always_multipart(self, client):
        responses.add(responses.POST, f"{BASE_URL}/form", json={})
        request = RestRequest("/form", "POST", always_multipart_form_data=True, form_boundary="xyz")

        client.execute(request.add_parameter("a", "1"))

        sent = last_request()
        assert sent.headers["Content-Type"] == "multipart/form-data; boundary=xyz"
        assert sent.body == b'--xyz\r\nContent-Disposition: form-data; name="a"\r\n\r\n1\r\n--xyz--\r\n'

    @pytest.mark.unit
    @responses.activate
    def test_binary_body(self, client):
        responses.add(responses.PUT, f"{BASE_URL}/blob", body="")

        client.execute(RestRequest("/blob", "PUT").add_body(b"\x00\x01"))

        sent = last_request()
        assert sent.body == b"\x00\x01"
        assert sent.headers["Content-Type"] == "application/octet-stream"


class TestTransportErrors:
    """测试传输层错误"""

    @pytest.mark.unit
    @responses.activate
    def test_timeout(self, client):
        """超时时返回 TIMED_OUT 响应"""
        # Arrange
        responses.add(responses.GET, f"{BASE_URL}/slow", body=requests.exceptions.Timeout("read timed out"))

        # Act
        response = client.execute(RestRequest("/slow", timeout=5))

        # Assert
        assert response.response_status is ResponseStatus.TIMED_OUT
        assert response.status_code == 0
        assert isinstance(response.error_exception, APIClientTimeoutError)
        assert response.error_message == f"Request to {BASE_URL}/slow timed out after 5s"

    @pytest.mark.unit
    @responses.activate
    def test_timeout_raises_when_configured(self):
        responses.add(responses.GET, f"{BASE_URL}/slow", body=requests.exceptions.Timeout())

        with RestClient(BASE_URL, throw_on_any_error=True) as client:
            with pytest.raises(APIClientTimeoutError):
                client.execute(RestRequest("/slow"))

    @pytest.mark.unit
    @responses.activate
    def test_connection_error(self, client, mocker):
        """连接失败时返回 ERROR 响应并调用 on_request_error 钩子"""
        # Arrange
        responses.add(responses.GET, f"{BASE_URL}/down", body=requests.exceptions.ConnectionError("refused"))
        hook = mocker.Mock()
        client.register_hook("on_request_error", hook)

        # Act
        response = client.execute(RestRequest("/down"))

        # Assert
        assert response.response_status is ResponseStatus.ERROR
        assert isinstance(response.error_exception, APIClientNetworkError)
        hook.assert_called_once()
        assert hook.call_args.args[2] is response.error_exception

    @pytest.mark.unit
    @responses.activate
    def test_connection_error_raises_when_configured(self):
        responses.add(responses.GET, f"{BASE_URL}/down", body=requests.exceptions.ConnectionError("refused"))

        with RestClient(BASE_URL, throw_on_any_error=True) as client:
            with pytest.raises(APIClientNetworkError, match="refused"):
                client.execute(RestRequest("/down"))

    @pytest.mark.unit
    @responses.activate
    def test_sensitive_query_masked_in_error(self, client):
        responses.add(responses.GET, f"{BASE_URL}/slow", body=requests.exceptions.Timeout())

        response = client.execute(RestRequest("/slow").add_query_parameter("token", "secret"))

        assert "secret" not in response.error_message
        assert "token=***" in response.error_message


class TestHttpErrors:
    """测试 HTTP 错误响应"""

    @pytest.mark.unit
    @responses.activate
    def test_http_error_response(self, client):
        """4xx 响应仍然是 COMPLETED，内容照常反序列化"""
        responses.add(responses.GET, f"{BASE_URL}/users/9", json={"detail": "missing"}, status=404)

        response = client.execute(RestRequest("/users/9"))

        assert response.response_status is ResponseStatus.COMPLETED
        assert response.is_successful is False
        assert response.data == {"detail": "missing"}
        assert isinstance(response.get_exception(), APIClientHTTPError)

    @pytest.mark.unit
    @responses.activate
    def test_http_error_raises_when_configured(self):
        responses.add(responses.GET, f"{BASE_URL}/boom", json={"error": "x"}, status=500)

        with RestClient(BASE_URL, throw_on_any_error=True) as client:
            with pytest.raises(APIClientHTTPError, match="HTTP 500: Internal Server Error") as exc_info:
                client.execute(RestRequest("/boom"))

        assert exc_info.value.status_code == 500
        assert exc_info.value.response.data == {"error": "x"}


class TestValidatorsAndFormatters:
    """测试验证器和格式化器"""

    @pytest.mark.unit
    @responses.activate
    def test_validator_failure_marks_response(self):
        # Arrange
        responses.add(responses.POST, f"{BASE_URL}/users", json={"id": 1}, status=201)

        # Act
        with RestClient(BASE_URL, response_validator=StatusCodeValidator()) as client:
            response = client.execute(RestRequest("/users", "POST"))

        # Assert
        assert response.response_status is ResponseStatus.ERROR
        assert response.data is None
        assert isinstance(response.error_exception, APIClientResponseValidationError)

    @pytest.mark.unit
    @responses.activate
    def test_validator_failure_in_request_result(self):
        responses.add(responses.POST, f"{BASE_URL}/users", json={"id": 1}, status=201)

        result = CreateUserClient.request({"name": "john"}, response_validator=StatusCodeValidator())

        assert result == {
            "result": False,
            "code": 201,
            "message": "Response status code 201 not in allowed codes: [200]",
            "data": None,
        }

    @pytest.mark.unit
    @responses.activate
    def test_validator_raises_when_configured(self):
        responses.add(responses.GET, f"{BASE_URL}/ping", body="", status=204)

        with RestClient(BASE_URL, response_validator=StatusCodeValidator(), throw_on_any_error=True) as client:
            with pytest.raises(APIClientResponseValidationError):
                client.execute(RestRequest("/ping"))

    @pytest.mark.unit
    @responses.activate
    def test_rest_response_formatter(self):
        responses.add(responses.GET, f"{BASE_URL}/users/1", json={"id": 1, "name": "john"})

        result = UserAPIClient.request({"user_id": 1}, User, response_formatter=RestResponseFormatter)

        assert isinstance(result, RestResponse)
        assert result.data == User(1, "john")

    @pytest.mark.unit
    @responses.activate
    def test_custom_formatter(self):
        """自定义格式化器接收默认结构和上下文"""

        class DataOnlyFormatter(BaseResponseFormatter):
            def format(self, formated_response, parsed_data=None, **kwargs):
                return {"ok": formated_response["result"], "payload": parsed_data}

        responses.add(responses.GET, f"{BASE_URL}/users/1", json={"id": 1})

        result = UserAPIClient.request({"user_id": 1}, response_formatter=DataOnlyFormatter)

        assert result == {"ok": True, "payload": {"id": 1}}

    @pytest.mark.unit
    @responses.activate
    def test_formatter_failure(self):
        """格式化失败时返回 -3 错误结构"""

        class BrokenFormatter(BaseResponseFormatter):
            def format(self, formated_response, parsed_data=None, **kwargs):
                raise KeyError("missing")

        responses.add(responses.GET, f"{BASE_URL}/users/1", json={"id": 1})

        result = UserAPIClient.request({"user_id": 1}, response_formatter=BrokenFormatter)

        assert result["result"] is False
        assert result["code"] == -3
        assert result["message"].startswith("Formatting failed:")
        assert result["data"] is None


class TestRequestEntry:
    """测试 request() 统一入口"""

    @pytest.mark.unit
    @responses.activate
    def test_class_level_request(self):
        """类调用：endpoint 占位符取自请求数据，其余数据作为查询参数"""
        # Arrange
        responses.add(responses.GET, f"{BASE_URL}/users/123", json={"id": 123, "name": "john"})

        # Act
        result = UserAPIClient.request({"user_id": 123, "expand": "profile"})

        # Assert
        assert result == {"result": True, "code": 200, "message": "Success", "data": {"id": 123, "name": "john"}}
        assert last_request().url == f"{BASE_URL}/users/123?expand=profile"

    @pytest.mark.unit
    @responses.activate
    def test_class_level_request_with_client_kwargs(self):
        responses.add(responses.GET, "https://staging.example.com/users/1", json={"id": 1})

        result = UserAPIClient.request({"user_id": 1}, base_url="https://staging.example.com")

        assert result["result"] is True

    @pytest.mark.unit
    @responses.activate
    def test_dict_becomes_json_body_for_post(self):
        responses.add(responses.POST, f"{BASE_URL}/users", json={"id": 7, "name": "jane"}, status=201)

        with CreateUserClient() as client:
            result = client.request({"name": "jane"}, target_type=User)

        assert result["data"] == User(7, "jane")
        assert json.loads(last_request().body) == {"name": "jane"}

    @pytest.mark.unit
    @responses.activate
    def test_rest_request(self, client):
        responses.add(responses.GET, f"{BASE_URL}/users?page=2", json=[{"id": 1, "name": "a"}])

        result = client.request(RestRequest("/users").add_query_parameter("page", 2), list[User])

        assert result["data"] == [User(1, "a")]

    @pytest.mark.unit
    def test_invalid_request_data(self, client):
        with pytest.raises(APIClientValidationError, match="request_data must be a dictionary or a RestRequest"):
            client.request("/users")

    @pytest.mark.unit
    @responses.activate
    def test_timeout_in_request_result(self):
        responses.add(responses.GET, f"{BASE_URL}/users/1", body=requests.exceptions.Timeout())

        result = UserAPIClient.request({"user_id": 1})

        assert result["result"] is False
        assert result["code"] == -1
        assert "timed out" in result["message"]

    @pytest.mark.unit
    @responses.activate
    def test_exception_in_request_result(self):
        """throw_on_any_error 时异常被格式化为错误结构"""
        responses.add(responses.GET, f"{BASE_URL}/users/1", json={"detail": "gone"}, status=410)

        result = UserAPIClient.request({"user_id": 1}, throw_on_any_error=True)

        assert result == {"result": False, "code": 410, "message": "HTTP 410: Gone", "data": {"detail": "gone"}}

    @pytest.mark.unit
    def test_default_format_unexpected_type(self, client):
        result = client.default_format_response("not a response")

        assert result["code"] == -2
        assert result["result"] is False


class TestConvenienceMethods:
    """测试便捷方法"""

    @pytest.mark.unit
    @responses.activate
    def test_get(self, client):
        responses.add(responses.GET, f"{BASE_URL}/users/1", json={"id": 1, "name": "john"})

        assert client.get("/users/1", User) == User(1, "john")

    @pytest.mark.unit
    @responses.activate
    def test_get_raises_http_error(self, client):
        responses.add(responses.GET, f"{BASE_URL}/users/9", json={}, status=404)

        with pytest.raises(APIClientHTTPError) as exc_info:
            client.get("/users/9")

        assert exc_info.value.status_code == 404

    @pytest.mark.unit
    @responses.activate
    def test_get_raises_transport_error(self, client):
        responses.add(responses.GET, f"{BASE_URL}/slow", body=requests.exceptions.Timeout())

        with pytest.raises(APIClientTimeoutError):
            client.get("/slow")

    @pytest.mark.unit
    @pytest.mark.parametrize("method", ["post", "put", "patch", "delete"])
    @responses.activate
    def test_methods_override_request_method(self, client, method):
        responses.add(method.upper(), f"{BASE_URL}/items/1", json={"ok": True})

        result = getattr(client, method)(RestRequest("/items/1"))

        assert result == {"ok": True}
        assert last_request().method == method.upper()

    @pytest.mark.unit
    @responses.activate
    def test_head_and_options(self, client):
        responses.add(responses.HEAD, f"{BASE_URL}/items", headers={"X-Total": "3"})
        responses.add(responses.OPTIONS, f"{BASE_URL}/items", headers={"Allow": "GET, POST"})

        assert client.head("/items").headers["X-Total"] == "3"
        assert client.options("/items").headers["Allow"] == "GET, POST"

    @pytest.mark.unit
    @responses.activate
    def test_download_data(self, client):
        responses.add(responses.GET, f"{BASE_URL}/files/1", body=b"\x89PNG", content_type="image/png")

        assert client.download_data("/files/1") == b"\x89PNG"

    @pytest.mark.unit
    @responses.activate
    def test_download_data_error(self, client):
        responses.add(responses.GET, f"{BASE_URL}/files/9", status=404)

        with pytest.raises(APIClientHTTPError):
            client.download_data("/files/9")


class TestFileDownload:
    """测试流式文件下载"""

    @pytest.mark.unit
    @responses.activate
    def test_file_write_parser_with_filename(self, tmp_path):
        """请求数据中的 filename 作为保存的文件名"""
        # Arrange
        responses.add(responses.GET, f"{BASE_URL}/files/report.csv", body=b"a,b\n1,2\n", content_type="text/csv")

        class DownloadClient(RestClient):
            base_url = BASE_URL
            endpoint = "/files/{name}"

        # Act
        with DownloadClient(response_parser=FileWriteResponseParser(base_path=str(tmp_path))) as client:
            result = client.request({"name": "report.csv", "filename": "saved.csv"})

        # Assert
        assert result["result"] is True
        assert result["data"] == os.path.join(str(tmp_path), "saved.csv")
        with open(result["data"], "rb") as f:
            assert f.read() == b"a,b\n1,2\n"
        assert last_request().url == f"{BASE_URL}/files/report.csv"

    @pytest.mark.unit
    @responses.activate
    def test_file_write_parser_uses_url_name(self, tmp_path):
        responses.add(responses.GET, f"{BASE_URL}/files/data.bin", body=b"\x00" * 10)

        with RestClient(BASE_URL, response_parser=FileWriteResponseParser(base_path=str(tmp_path))) as client:
            response = client.execute(RestRequest("/files/data.bin"))

        assert response.data == os.path.join(str(tmp_path), "data.bin")
        assert response.raw_bytes is None

    @pytest.mark.unit
    @responses.activate
    def test_file_write_parser_skips_error_response(self, tmp_path):
        """错误响应不保存文件，正文用于错误信息"""
        responses.add(responses.GET, f"{BASE_URL}/files/gone.bin", json={"detail": "Not found."}, status=404)

        with RestClient(BASE_URL, response_parser=FileWriteResponseParser(base_path=str(tmp_path))) as client:
            response = client.execute(RestRequest("/files/gone.bin"))

        assert response.status_code == 404
        assert response.data is None
        assert response.content == '{"detail": "Not found."}'
        assert list(tmp_path.iterdir()) == []
