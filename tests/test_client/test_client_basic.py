"""
client.py 模块的基础单元测试

主要测试 RestClient 的核心功能:
- 客户端初始化与配置合并
- Session 与重试适配器配置
- 组件解析
- 钩子注册
- URL 构建
"""

import re

import pytest
import requests
from requests.adapters import HTTPAdapter
from requests.auth import HTTPBasicAuth

from restflex import RestClient, RestRequest
from restflex.authenticators import BaseAuthenticator, JwtAuthenticator
from restflex.constants import DEFAULT_RETRY_CONFIG, ParameterType
from restflex.exceptions import APIClientConfigurationError, APIClientValidationError
from restflex.formatter import DefaultResponseFormatter, RestResponseFormatter
from restflex.parser import BaseResponseParser, DeserializingResponseParser, RawResponseParser
from restflex.serializer import SerializerConfig
from restflex.validator import StatusCodeValidator


class MyTestClient(RestClient):
    """测试用的客户端子类"""

    base_url = "https://api.example.com/"
    endpoint = "/test"
    default_headers = {"X-Client": "tests"}


class TestRestClientInitialization:
    """测试 RestClient 初始化"""

    @pytest.mark.unit
    def test_basic_initialization(self):
        """测试基本初始化"""
        # Arrange & Act
        client = MyTestClient()

        # Assert
        assert client.base_url == "https://api.example.com"
        assert client.timeout == 30
        assert client.verify is True
        assert isinstance(client.session, requests.Session)
        assert isinstance(client.response_parser_instance, DeserializingResponseParser)
        assert isinstance(client.response_formatter_instance, DefaultResponseFormatter)
        assert client.response_validator_instance is None
        assert client.authenticator_instance is None
        client.close()

    @pytest.mark.unit
    def test_instance_arguments_override_class_attributes(self):
        """实例参数覆盖类属性"""
        client = MyTestClient(
            base_url="https://other.example.com",
            timeout=60,
            verify=False,
            throw_on_any_error=True,
            fail_on_deserialization_error=False,
        )

        assert client.base_url == "https://other.example.com"
        assert client.timeout == 60
        assert client.verify is False
        assert client.throw_on_any_error is True
        assert client.fail_on_deserialization_error is False
        assert MyTestClient.throw_on_any_error is False
        client.close()

    @pytest.mark.unit
    def test_base_url_is_optional(self):
        with RestClient() as client:
            assert client.base_url == ""

    @pytest.mark.unit
    def test_default_headers_merged(self):
        """类属性 default_headers 与实例 headers 合并为默认参数"""
        client = MyTestClient(headers={"X-Extra": "1"})

        headers = client.default_parameters.get_parameters(ParameterType.HTTP_HEADER)

        assert [(p.name, p.value) for p in headers] == [("X-Client", "tests"), ("X-Extra", "1")]
        client.close()

    @pytest.mark.unit
    def test_extra_kwargs_kept_for_requests(self):
        client = MyTestClient(proxies={"https": "http://proxy:3128"})

        assert client.default_request_kwargs == {"proxies": {"https": "http://proxy:3128"}}
        client.close()

    @pytest.mark.unit
    def test_context_manager_closes_session(self, mocker):
        """测试上下文管理器退出时关闭会话"""
        with MyTestClient() as client:
            close = mocker.spy(client.session, "close")

        close.assert_called_once()

    @pytest.mark.unit
    def test_default_serializers(self):
        """默认注册 JSON 和 XML 序列化器"""
        with MyTestClient() as client:
            accepted = client.serializers.get_accepted_content_types()

        assert accepted[0] == "application/json"
        assert "application/xml" in accepted
        assert "text/csv" not in accepted

    @pytest.mark.unit
    def test_invalid_serializers(self):
        with pytest.raises(APIClientConfigurationError, match="serializers must be a RestSerializers instance"):
            MyTestClient(serializers={"json": object()})

    @pytest.mark.unit
    def test_configure_serialization_callback(self):
        """回调在默认配置之后调用"""
        calls = []

        def configure(config):
            calls.append(config)
            return config.use_xml()

        with MyTestClient(configure_serialization=configure) as client:
            accepted = client.serializers.get_accepted_content_types()

        assert isinstance(calls[0], SerializerConfig)
        assert accepted == ["application/xml", "text/xml"]


class TestSessionConfiguration:
    """测试 Session 配置"""

    @pytest.mark.unit
    def test_user_agent_and_redirects(self):
        with MyTestClient(user_agent="my-agent/2.0") as client:
            assert client.session.headers["User-Agent"] == "my-agent/2.0"
            assert client.session.max_redirects == 30

    @pytest.mark.unit
    def test_retry_disabled_by_default(self):
        """默认不挂载重试适配器"""
        with MyTestClient() as client:
            adapter = client.session.get_adapter("https://api.example.com")

        assert adapter.max_retries.total == 0

    @pytest.mark.unit
    def test_retry_adapter_mounted(self):
        """启用重试时为 http 和 https 挂载同一个适配器"""
        # Act
        with MyTestClient(enable_retry=True, max_retries=5) as client:
            https_adapter = client.session.get_adapter("https://api.example.com")
            http_adapter = client.session.get_adapter("http://api.example.com")

        # Assert
        assert isinstance(https_adapter, HTTPAdapter)
        assert https_adapter is http_adapter
        assert https_adapter.max_retries.total == 5
        assert 503 in https_adapter.max_retries.status_forcelist
        assert client.retry_config["backoff_factor"] == DEFAULT_RETRY_CONFIG["backoff_factor"]

    @pytest.mark.unit
    def test_retry_config_merge(self):
        """实例配置与类配置合并，不修改类属性"""
        with MyTestClient(retry_config={"backoff_factor": 2}) as client:
            assert client.retry_config["backoff_factor"] == 2
            assert client.retry_config["total"] == DEFAULT_RETRY_CONFIG["total"]

        assert MyTestClient.retry_config["backoff_factor"] == DEFAULT_RETRY_CONFIG["backoff_factor"]

    @pytest.mark.unit
    def test_requests_authentication_on_session(self):
        auth = HTTPBasicAuth("user", "pass")

        with MyTestClient(authentication=auth) as client:
            assert client.session.auth is auth


class TestComponentResolution:
    """测试组件解析"""

    @pytest.mark.unit
    def test_component_class_is_instantiated(self):
        with MyTestClient(response_parser=RawResponseParser, response_formatter=RestResponseFormatter) as client:
            assert isinstance(client.response_parser_instance, RawResponseParser)
            assert isinstance(client.response_formatter_instance, RestResponseFormatter)

    @pytest.mark.unit
    def test_component_instance_is_used(self):
        validator = StatusCodeValidator(allowed_codes=[200, 201])
        authenticator = JwtAuthenticator("token")

        with MyTestClient(response_validator=validator, authenticator=authenticator) as client:
            assert client.response_validator_instance is validator
            assert client.authenticator_instance is authenticator

    @pytest.mark.unit
    def test_class_attributes(self):
        class ConfiguredClient(MyTestClient):
            response_parser_class = RawResponseParser
            response_validator_class = StatusCodeValidator

        with ConfiguredClient() as client:
            assert isinstance(client.response_parser_instance, RawResponseParser)
            assert isinstance(client.response_validator_instance, StatusCodeValidator)

    @pytest.mark.unit
    def test_invalid_component_falls_back(self):
        """无效配置使用降级类"""
        with MyTestClient(response_parser="not-a-parser") as client:
            assert isinstance(client.response_parser_instance, DeserializingResponseParser)

    @pytest.mark.unit
    def test_failed_instantiation_falls_back(self):
        class BrokenParser(BaseResponseParser):
            def __init__(self):
                raise RuntimeError("boom")

            def parse(self, client_instance, response, target_type=None, **context):
                return None

        with MyTestClient(response_parser=BrokenParser) as client:
            assert isinstance(client.response_parser_instance, DeserializingResponseParser)

    @pytest.mark.unit
    def test_invalid_component_without_fallback(self):
        """没有降级类时抛出验证异常"""
        with pytest.raises(APIClientValidationError, match="BaseAuthenticator"):
            MyTestClient(authenticator="not-an-authenticator")

    @pytest.mark.unit
    def test_failed_instantiation_without_fallback(self):
        class BrokenAuthenticator(BaseAuthenticator):
            def __init__(self):
                raise RuntimeError("boom")

            def authenticate(self, client, request):
                pass

        with pytest.raises(APIClientValidationError, match="authenticator_class instantiation failed: boom"):
            MyTestClient(authenticator=BrokenAuthenticator)


class TestHooks:
    """测试钩子注册"""

    @pytest.mark.unit
    @pytest.mark.parametrize("hook_name", ["before_request", "after_request", "on_request_error"])
    def test_register_hook(self, client, hook_name):
        def callback(*args):
            return None

        client.register_hook(hook_name, callback)

        assert client._hooks[hook_name] == [callback]

    @pytest.mark.unit
    def test_register_invalid_hook(self, client):
        with pytest.raises(ValueError, match="Invalid hook name: on_success"):
            client.register_hook("on_success", lambda *args: None)

    @pytest.mark.unit
    def test_before_request_hooks_chain(self, client):
        """钩子返回的请求替换原请求，返回 None 时保留原请求"""
        # Arrange
        replacement = RestRequest("/replaced")
        client.register_hook("before_request", lambda c, request_id, request: None)
        client.register_hook("before_request", lambda c, request_id, request: replacement)

        # Act
        result = client.before_request("REQ-1", RestRequest("/original"))

        # Assert
        assert result is replacement

    @pytest.mark.unit
    def test_failing_hook_is_ignored(self, client):
        def failing_hook(c, request_id, request):
            raise RuntimeError("hook failed")

        client.register_hook("before_request", failing_hook)
        request = RestRequest("/original")

        assert client.before_request("REQ-1", request) is request


class TestRequestId:
    """测试请求 ID 生成"""

    @pytest.mark.unit
    def test_generate_request_id(self, client):
        request_id = client.generate_request_id()

        assert re.fullmatch(r"REQ-\d{13}-[0-9a-f]{8}", request_id)

    @pytest.mark.unit
    def test_generate_request_id_with_suffix(self, client):
        assert re.fullmatch(r"REQ-\d{13}-[0-9a-f]{8}-3", client.generate_request_id(3))

    @pytest.mark.unit
    def test_request_ids_are_unique(self, client):
        assert len({client.generate_request_id() for _ in range(100)}) == 100


class TestBuildUri:
    """测试 URL 构建"""

    @pytest.mark.unit
    def test_url_segments_encoded(self, client):
        """URL 段参数替换占位符并编码"""
        request = RestRequest("/users/{id}/files/{name}").add_url_segment("id", 42).add_url_segment("name", "a b/c")

        assert client.build_uri(request) == "https://api.example.com/users/42/files/a%20b%2Fc"

    @pytest.mark.unit
    def test_url_segment_without_encoding(self, client):
        request = RestRequest("/files/{path}").add_url_segment("path", "a/b", encode=False)

        assert client.build_uri(request) == "https://api.example.com/files/a/b"

    @pytest.mark.unit
    def test_base_url_placeholders(self):
        """默认 URL 段参数也用于替换 base_url 中的占位符"""
        with RestClient("https://{tenant}.example.com/api") as client:
            client.add_default_url_segment("tenant", "acme")

            assert client.build_uri(RestRequest("/users")) == "https://acme.example.com/api/users"

    @pytest.mark.unit
    def test_empty_resource_uses_base_url(self, client):
        assert client.build_uri(RestRequest()) == "https://api.example.com"

    @pytest.mark.unit
    def test_absolute_resource(self):
        """绝对 URL 资源不需要 base_url"""
        with RestClient() as client:
            assert client.build_uri(RestRequest("https://other.example.com/x")) == "https://other.example.com/x"

    @pytest.mark.unit
    def test_relative_resource_without_base_url(self):
        with RestClient() as client:
            with pytest.raises(APIClientConfigurationError, match="no base_url is configured"):
                client.build_uri(RestRequest("/users"))

    @pytest.mark.unit
    def test_empty_base_url_and_resource(self):
        with RestClient() as client:
            with pytest.raises(APIClientConfigurationError, match="Both base_url and resource are empty"):
                client.build_uri(RestRequest())

    @pytest.mark.unit
    def test_get_or_post_parameters_in_query_for_get(self, client):
        """GET 请求的 GetOrPost 参数进入查询字符串"""
        request = RestRequest("/search").add_parameter("q", "a b").add_query_parameter("page", 2)

        assert client.build_uri(request) == "https://api.example.com/search?q=a%20b&page=2"

    @pytest.mark.unit
    def test_get_or_post_parameters_not_in_query_for_post(self, client):
        request = RestRequest("/search", "POST").add_parameter("q", "books").add_query_parameter("page", 2)

        assert client.build_uri(request) == "https://api.example.com/search?page=2"

    @pytest.mark.unit
    def test_query_parameter_without_value(self, client):
        request = RestRequest("/items").add_query_parameter("flag", None).add_query_parameter("x", "")

        assert client.build_uri(request) == "https://api.example.com/items?flag&x="

    @pytest.mark.unit
    def test_resource_query_string_kept(self, client):
        """资源中已编码的查询字符串原样保留"""
        request = RestRequest("/search?q=a%20b&x=1").add_query_parameter("page", 1)

        assert client.build_uri(request) == "https://api.example.com/search?q=a%20b&x=1&page=1"

    @pytest.mark.unit
    def test_default_query_parameters(self, client):
        """默认参数在请求参数之后，同名请求参数优先"""
        client.add_default_query_parameter("api_version", "2").add_default_query_parameter("page", 1)
        request = RestRequest("/items").add_query_parameter("page", 5)

        assert client.build_uri(request) == "https://api.example.com/items?page=5&api_version=2"

    @pytest.mark.unit
    def test_empty_url_segment_value(self):
        with pytest.raises(APIClientValidationError, match="cannot have an empty value"):
            RestRequest("/users/{id}").add_url_segment("id", "")


class TestDefaultParameters:
    """测试默认参数"""

    @pytest.mark.unit
    def test_default_body_rejected(self, client):
        with pytest.raises(APIClientConfigurationError, match="Cannot set request body using default parameters"):
            client.add_default_parameter("body", {"a": 1}, ParameterType.REQUEST_BODY)

    @pytest.mark.unit
    def test_duplicate_default_header_rejected(self, client):
        client.add_default_header("X-Api-Key", "one")

        with pytest.raises(APIClientConfigurationError, match="X-Api-Key"):
            client.add_default_header("x-api-key", "two")

    @pytest.mark.unit
    def test_duplicate_default_header_allowed(self):
        with RestClient("https://api.example.com", allow_multiple_default_parameters=True) as client:
            client.add_default_header("X-Tag", "a").add_default_header("X-Tag", "b")

            assert len(client.default_parameters) == 2
