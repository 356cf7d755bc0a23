"""REST 客户端核心模块

提供可扩展的 REST 客户端基类，支持：
- 类型化的请求参数（查询、URL 段、请求头、Cookie、表单、请求体、文件）
- multipart/form-data、application/x-www-form-urlencoded 和原始请求体
- 按内容类型自动选择序列化器，把响应反序列化为数据类、列表、枚举等类型
- 认证器、响应解析器、验证器和格式化器
- 自动重试和连接池管理
- 可配置的错误策略
"""

from __future__ import annotations

import logging
import re
import threading
import time
import uuid
from typing import Any, Callable, TypeAlias
from urllib.parse import urlsplit

import requests
from requests.adapters import HTTPAdapter
from requests.auth import AuthBase
from urllib3.util.retry import Retry

from restflex.authenticators import BaseAuthenticator
from restflex.body import RequestBody, RequestBodyBuilder
from restflex.constants import (
    BODY_METHODS,
    DEFAULT_ENCODING,
    DEFAULT_MAX_REDIRECTS,
    DEFAULT_POOL_CONFIG,
    DEFAULT_RETRIES,
    DEFAULT_RETRY_CONFIG,
    DEFAULT_TIMEOUT,
    DEFAULT_USER_AGENT,
    HEADER_ACCEPT,
    HEADER_CONTENT_TYPE,
    HEADER_USER_AGENT,
    HTTP_METHOD_DELETE,
    HTTP_METHOD_GET,
    HTTP_METHOD_HEAD,
    HTTP_METHOD_OPTIONS,
    HTTP_METHOD_PATCH,
    HTTP_METHOD_POST,
    HTTP_METHOD_PUT,
    RESPONSE_CODE_FORMATTING_ERROR,
    RESPONSE_CODE_NON_HTTP_ERROR,
    RESPONSE_CODE_UNEXPECTED_TYPE,
    ParameterType,
    ResponseStatus,
)
from restflex.exceptions import (
    APIClientConfigurationError,
    APIClientDeserializationError,
    APIClientError,
    APIClientHTTPError,
    APIClientNetworkError,
    APIClientTimeoutError,
    APIClientValidationError,
)
from restflex.formatter import BaseResponseFormatter, DefaultResponseFormatter
from restflex.parameters import (
    DefaultParameters,
    HeaderParameter,
    Parameter,
    ParametersCollection,
    QueryParameter,
    UrlSegmentParameter,
    merge_parameters,
)
from restflex.parser import (
    BaseResponseParser,
    ContentResponseParser,
    DeserializingResponseParser,
    FileWriteResponseParser,
)
from restflex.request import RestRequest
from restflex.response import RestResponse
from restflex.serializer import RestSerializers, SerializerConfig
from restflex.utils import sanitize_headers, sanitize_url, to_string, url_encode
from restflex.validator import BaseResponseValidator

# 类型别名定义
RequestData: TypeAlias = dict[str, Any]
ResponseDict: TypeAlias = dict[str, Any]

logger = logging.getLogger(__name__)

_PLACEHOLDER_PATTERN = re.compile(r"\{(\w+)\}")


class _RequestMethodDescriptor:
    """
    自定义描述符：实现 request 方法的"重载"效果

    - 实例调用（client.request()）：执行实例方法逻辑
    - 类调用（MyClient.request()）：自动创建临时实例并执行，结束后关闭会话
    """

    def __init__(self, instance_method):
        self.instance_method = instance_method

    def __get__(self, instance, owner):
        # 情况1: 实例调用（client.request()）
        if instance is not None:
            return self.instance_method.__get__(instance, owner)

        # 情况2: 类调用（MyClient.request()），创建临时实例并自动管理生命周期
        def class_method_wrapper(
            request_data: RequestData | RestRequest | None = None,
            target_type: Any = None,
            **client_kwargs,
        ) -> Any:
            with owner(**client_kwargs) as temp_instance:
                return temp_instance.request(request_data=request_data, target_type=target_type)

        return class_method_wrapper

    def __set_name__(self, owner, name):
        self.name = name


class RestClient:
    """
    REST 客户端基类

    类属性均可在子类中覆盖，或在实例化时通过同名参数覆盖

    类属性:
        base_url: API 基础 URL，可包含 {name} 占位符
        endpoint: request() 使用字典调用时的默认资源路径
        method: request() 使用字典调用时的默认 HTTP 方法
        verify: SSL 证书验证开关
        follow_redirects: 是否跟随重定向
        max_redirects: 最大重定向次数
        encoding: 请求体和 URL 编码使用的字符集
        user_agent: User-Agent 请求头
        default_timeout: 默认超时时间（秒）
        enable_retry: 是否启用重试机制
        max_retries: 最大重试次数
        retry_config: 重试策略配置字典
        pool_config: 连接池配置字典
        default_headers: 默认请求头，作为默认参数加入每个请求
        throw_on_any_error: 传输错误、HTTP 错误和反序列化错误都直接抛出
        throw_on_deserialization_error: 反序列化失败时抛出 APIClientDeserializationError
        fail_on_deserialization_error: 反序列化失败时把 response_status 置为 ERROR
        allow_multiple_default_parameters: 允许同名的默认参数
        stream_multipart_body: multipart 请求体以分块方式发送，不预先拼接为完整字节
        authentication_class: requests 认证类或实例，挂载到会话上
        authenticator_class: 认证器类或实例，在构建请求前修改请求参数
        response_parser_class: 响应解析器类或实例
        response_formatter_class: 响应格式化器类或实例
        response_validator_class: 响应验证器类或实例
        serializers: 序列化器表，None 时使用 JSON + XML 并调用 configure_serialization
    """

    # ========== 基础配置 ==========
    base_url: str = ""
    endpoint: str = ""
    method: str = HTTP_METHOD_GET

    # SSL 证书验证开关，True 表示验证证书（生产环境推荐）
    verify: bool = True

    follow_redirects: bool = True
    max_redirects: int = DEFAULT_MAX_REDIRECTS
    encoding: str = DEFAULT_ENCODING
    user_agent: str = DEFAULT_USER_AGENT

    # ========== 安全性配置 ==========
    # 敏感请求头名称集合，这些头在日志中会被脱敏
    sensitive_headers: set[str] = {
        "Authorization",
        "Cookie",
        "X-API-Key",
        "X-Auth-Token",
        "X-Access-Token",
    }

    # 敏感 URL 参数名称集合，这些参数在日志中会被脱敏
    sensitive_params: set[str] = {
        "token",
        "password",
        "secret",
        "key",
        "api_key",
        "access_token",
        "oauth_token",
    }

    # 是否启用敏感信息脱敏
    enable_sanitization: bool = True

    # ========== 超时和重试配置 ==========
    default_timeout: int = DEFAULT_TIMEOUT
    enable_retry: bool = False
    max_retries: int = DEFAULT_RETRIES

    # 配置项: total(重试次数), backoff_factor(退避因子), status_forcelist(重试状态码),
    #         allowed_methods(允许重试的方法), raise_on_status(是否抛出状态异常)
    retry_config: dict[str, Any] = DEFAULT_RETRY_CONFIG

    # 配置项: pool_connections(连接池大小), pool_maxsize(连接池最大连接数)
    pool_config: dict[str, Any] = DEFAULT_POOL_CONFIG

    default_headers: dict[str, str] = {}

    # ========== 错误策略 ==========
    throw_on_any_error: bool = False
    throw_on_deserialization_error: bool = False
    fail_on_deserialization_error: bool = True

    allow_multiple_default_parameters: bool = False
    stream_multipart_body: bool = False

    # ========== 可插拔组件配置 ==========
    authentication_class: type[AuthBase] | AuthBase | None = None
    authenticator_class: type[BaseAuthenticator] | BaseAuthenticator | None = None
    response_parser_class: type[BaseResponseParser] | BaseResponseParser = DeserializingResponseParser
    response_formatter_class: type[BaseResponseFormatter] | BaseResponseFormatter = DefaultResponseFormatter
    response_validator_class: type[BaseResponseValidator] | BaseResponseValidator | None = None
    serializers: RestSerializers | None = None

    def __init__(
        self,
        base_url: str | None = None,
        headers: dict[str, str] | None = None,
        timeout: int | None = None,
        verify: bool | None = None,
        follow_redirects: bool | None = None,
        enable_retry: bool | None = None,
        max_retries: int | None = None,
        retry_config: dict[str, Any] | None = None,
        pool_config: dict[str, Any] | None = None,
        encoding: str | None = None,
        user_agent: str | None = None,
        throw_on_any_error: bool | None = None,
        throw_on_deserialization_error: bool | None = None,
        fail_on_deserialization_error: bool | None = None,
        allow_multiple_default_parameters: bool | None = None,
        authentication: AuthBase | type[AuthBase] | None = None,
        authenticator: BaseAuthenticator | type[BaseAuthenticator] | None = None,
        response_parser: BaseResponseParser | type[BaseResponseParser] | None = None,
        response_formatter: BaseResponseFormatter | type[BaseResponseFormatter] | None = None,
        response_validator: BaseResponseValidator | type[BaseResponseValidator] | None = None,
        serializers: RestSerializers | None = None,
        configure_serialization: Callable[[SerializerConfig], Any] | None = None,
        **kwargs,
    ):
        """
        初始化 REST 客户端实例

        参数:
            base_url: API 基础 URL（覆盖类属性），可以为空，此时请求资源必须是绝对 URL
            headers: 默认请求头，与类属性 default_headers 合并
            configure_serialization: 修改序列化器配置的回调，在默认的 JSON + XML 配置之后调用
            **kwargs: 其他传递给 requests 的参数（如 proxies、cert）

        执行步骤:
            1. 规范化 base_url，合并实例级别配置
            2. 解析认证、解析器、格式化器、验证器组件
            3. 构建序列化器表和请求体构建器
            4. 把默认请求头转换为默认参数
            5. 创建并配置 requests.Session 对象
        """
        # ========== 步骤1: 基础配置 ==========
        self.base_url = (base_url if base_url is not None else self.base_url or "").rstrip("/")
        self.timeout = timeout if timeout is not None else self.default_timeout
        self.verify = verify if verify is not None else self.verify
        self.follow_redirects = follow_redirects if follow_redirects is not None else self.follow_redirects
        self.enable_retry = enable_retry if enable_retry is not None else self.enable_retry
        self.max_retries = max_retries if max_retries is not None else self.max_retries
        self.encoding = encoding or self.encoding
        self.user_agent = user_agent or self.user_agent

        for name, value in (
            ("throw_on_any_error", throw_on_any_error),
            ("throw_on_deserialization_error", throw_on_deserialization_error),
            ("fail_on_deserialization_error", fail_on_deserialization_error),
            ("allow_multiple_default_parameters", allow_multiple_default_parameters),
        ):
            if value is not None:
                setattr(self, name, value)

        self.retry_config = self._merge_config(self.retry_config, retry_config, max_retries_override=max_retries)
        self.pool_config = self._merge_config(self.pool_config, pool_config)

        # ========== 步骤2: 解析各个组件实例 ==========
        self.auth_instance = self._resolve_component(authentication, "authentication_class", AuthBase, None)
        self.authenticator_instance = self._resolve_component(
            authenticator, "authenticator_class", BaseAuthenticator, None
        )
        self.response_parser_instance = self._resolve_component(
            response_parser, "response_parser_class", BaseResponseParser, DeserializingResponseParser
        )
        self.response_formatter_instance = self._resolve_component(
            response_formatter, "response_formatter_class", BaseResponseFormatter, DefaultResponseFormatter
        )
        self.response_validator_instance = self._resolve_component(
            response_validator, "response_validator_class", BaseResponseValidator, None
        )

        # ========== 步骤3: 序列化器表 ==========
        self.serializers = self._build_serializers(serializers, configure_serialization)
        self.body_builder = RequestBodyBuilder(self.serializers, encoding=self.encoding)

        # ========== 步骤4: 默认参数 ==========
        self.default_parameters = DefaultParameters(self.allow_multiple_default_parameters)
        self.add_default_headers({**self.default_headers, **(headers or {})})

        # 保存所有额外的请求参数（如 proxies、cert 等），用于每次请求时合并
        self.default_request_kwargs = kwargs

        # ========== 步骤5: 会话 ==========
        self.session = self._create_session()
        self._session_lock = threading.RLock()

        self._hooks = {
            "before_request": [],
            "after_request": [],
            "on_request_error": [],
        }

    # ========== 序列化 ==========

    def configure_serialization(self, config: SerializerConfig) -> SerializerConfig | None:
        """
        修改序列化器配置，子类可重写

        使用示例:
            class XmlOnlyClient(RestClient):
                def configure_serialization(self, config):
                    return config.use_xml()
        """
        return config

    def _build_serializers(
        self,
        serializers: RestSerializers | None,
        configure_serialization: Callable[[SerializerConfig], Any] | None,
    ) -> RestSerializers:
        source = serializers if serializers is not None else type(self).serializers
        if source is not None:
            if not isinstance(source, RestSerializers):
                raise APIClientConfigurationError(
                    f"serializers must be a RestSerializers instance, got {type(source).__name__}"
                )
            return source

        config = SerializerConfig().use_default_serializers()
        configure = configure_serialization or self.configure_serialization
        result = configure(config)
        if isinstance(result, SerializerConfig):
            config = result
        return config.build()

    # ========== 默认参数 ==========

    def add_default_parameter(
        self,
        name_or_parameter: str | Parameter,
        value: Any = None,
        type: ParameterType = ParameterType.GET_OR_POST,
    ) -> RestClient:
        """
        添加默认参数，合并进之后的每个请求

        异常:
            APIClientConfigurationError: 参数是请求体，或同名参数已存在且不允许重复
        """
        if isinstance(name_or_parameter, Parameter):
            parameter = name_or_parameter
        else:
            parameter = Parameter.create(name_or_parameter, value, type)
        self.default_parameters.add_parameter(parameter)
        return self

    def add_default_header(self, name: str, value: str) -> RestClient:
        self.default_parameters.add_parameter(HeaderParameter(name, value))
        return self

    def add_default_headers(self, headers: dict[str, str]) -> RestClient:
        for name, value in headers.items():
            self.add_default_header(name, value)
        return self

    def add_default_url_segment(self, name: str, value: Any) -> RestClient:
        self.default_parameters.add_parameter(UrlSegmentParameter(name, value))
        return self

    def add_default_query_parameter(self, name: str, value: Any) -> RestClient:
        self.default_parameters.add_parameter(QueryParameter(name, value))
        return self

    # ========== 钩子机制 ==========

    def register_hook(self, hook_name: str, callback: Callable) -> None:
        """
        注册钩子函数

        参数:
            hook_name: 钩子名称，可选值："before_request", "after_request", "on_request_error"
            callback: 钩子回调函数

        异常:
            ValueError: 当钩子名称不合法时抛出
        """
        if hook_name not in self._hooks:
            raise ValueError(f"Invalid hook name: {hook_name}. Must be one of: {list(self._hooks.keys())}")
        self._hooks[hook_name].append(callback)
        logger.debug(f"Registered hook: {hook_name}")

    def before_request(self, request_id: str, request: RestRequest) -> RestRequest:
        """
        请求发送前的钩子方法，子类可以重写（如添加签名、修改请求头）

        返回:
            修改后的请求对象
        """
        for hook in self._hooks["before_request"]:
            try:
                request = hook(self, request_id, request) or request
            except Exception as e:
                logger.exception(f"[{request_id}] before_request hook failed,{e}")
        return request

    def after_request(self, request_id: str, response: requests.Response) -> requests.Response:
        """请求成功后的钩子方法，返回修改后的底层响应对象"""
        for hook in self._hooks["after_request"]:
            try:
                response = hook(self, request_id, response) or response
            except Exception:
                logger.exception(f"[{request_id}] after_request hook failed")
        return response

    def on_request_error(self, request_id: str, error: Exception) -> None:
        """请求失败时的钩子方法"""
        for hook in self._hooks["on_request_error"]:
            try:
                hook(self, request_id, error)
            except Exception:
                logger.exception(f"[{request_id}] on_request_error hook failed")

    # ========== 组件与会话 ==========

    def _resolve_component(self, component, class_attr_name, base_class, fallback_class, **init_kwargs):
        """
        统一的组件解析方法

        参数:
            component: 传入的组件配置（类或实例）
            class_attr_name: 类属性名称
            base_class: 基类类型
            fallback_class: 失败时的降级类
            **init_kwargs: 实例化时的额外参数

        返回:
            组件实例
        """
        source = component if component is not None else getattr(self, class_attr_name, fallback_class)

        if source is None:
            return None

        if isinstance(source, type) and issubclass(source, base_class):
            try:
                return source(**init_kwargs)
            except Exception as e:
                logger.error(f"Failed to instantiate {source.__name__}: {e}")
                if fallback_class and fallback_class != source:
                    return fallback_class(**init_kwargs)
                raise APIClientValidationError(f"{class_attr_name} instantiation failed: {e}") from e

        if isinstance(source, base_class):
            return source

        if fallback_class:
            logger.warning(f"Invalid {class_attr_name}: {source}. Using {fallback_class.__name__}.")
            return fallback_class(**init_kwargs)

        raise APIClientValidationError(f"{class_attr_name} must be a {base_class.__name__} subclass or instance")

    def _merge_config(self, base_config: dict, override_config: dict | None, **extra_updates) -> dict:
        merged = {**base_config, **(override_config or {})}
        if max_retries_override := extra_updates.get("max_retries_override"):
            merged["total"] = max_retries_override
        return merged

    def _create_session(self) -> requests.Session:
        """
        创建并配置 requests.Session 对象

        执行步骤:
            1. 设置 User-Agent 和重定向上限
            2. 配置 requests 认证（如果有）
            3. 启用重试时为 HTTP 和 HTTPS 挂载带重试策略的适配器
        """
        session = requests.Session()
        session.headers[HEADER_USER_AGENT] = self.user_agent
        session.max_redirects = self.max_redirects
        if self.auth_instance:
            session.auth = self.auth_instance

        if self.enable_retry and self.max_retries > 0:
            retry_strategy = Retry(**self.retry_config)
            adapter = HTTPAdapter(max_retries=retry_strategy, **self.pool_config)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
        return session

    def generate_request_id(self, suffix=None) -> str:
        """生成全局唯一的请求 ID"""
        timestamp = int(time.time() * 1000)
        short_uuid = uuid.uuid4().hex[:8]
        if suffix is None:
            return f"REQ-{timestamp}-{short_uuid}"
        return f"REQ-{timestamp}-{short_uuid}-{suffix}"

    # ========== URL 与请求组装 ==========

    def build_uri(
        self,
        request: RestRequest,
        parameters: ParametersCollection | None = None,
        extra_query_parameters: list[Parameter] | None = None,
    ) -> str:
        """
        构建完整的请求 URL

        执行步骤:
            1. 用 URL 段参数替换资源路径和 base_url 中的 {name} 占位符
            2. 绝对 URL 资源直接使用，否则拼接到 base_url 之后
            3. 追加查询参数（GET 类请求包括 GetOrPost 参数）

        异常:
            APIClientConfigurationError: 没有 base_url 且资源不是绝对 URL
        """
        if parameters is None:
            parameters = merge_parameters(request.parameters, self.default_parameters)

        resource = request.resource or ""
        base_url = self.base_url
        for segment in parameters.get_parameters(ParameterType.URL_SEGMENT):
            placeholder = f"{{{segment.name}}}"
            value = url_encode(segment.value, self.encoding) if segment.encode else to_string(segment.value)
            resource = resource.replace(placeholder, value)
            base_url = base_url.replace(placeholder, value)

        if urlsplit(resource).scheme:
            url = resource
        elif not base_url:
            if not resource:
                raise APIClientConfigurationError("Both base_url and resource are empty")
            raise APIClientConfigurationError(f"Resource '{resource}' is relative and no base_url is configured")
        else:
            url = f"{base_url}/{resource.lstrip('/')}" if resource else base_url

        query_parameters = list(parameters.get_query_parameters(request.method)) + list(extra_query_parameters or [])
        if not query_parameters:
            return url

        query = "&".join(self._encode_query_parameter(p) for p in query_parameters)
        separator = "&" if "?" in url else "?"
        return f"{url}{separator}{query}"

    def _encode_query_parameter(self, parameter: Parameter) -> str:
        name = url_encode(parameter.name, self.encoding) if parameter.encode else parameter.name
        if parameter.value is None:
            return name
        value = url_encode(parameter.value, self.encoding) if parameter.encode else to_string(parameter.value)
        return f"{name}={value}"

    def _build_headers(self, parameters: ParametersCollection, body: RequestBody | None) -> dict[str, str]:
        """同名请求头合并为逗号分隔的值；请求体的内容类型覆盖 Content-Type"""
        headers: dict[str, str] = {}
        lower_keys: dict[str, str] = {}
        for parameter in parameters.get_parameters(ParameterType.HTTP_HEADER):
            value = to_string(parameter.value)
            if (key := lower_keys.get(parameter.name.lower())) is not None:
                headers[key] = f"{headers[key]}, {value}"
            else:
                lower_keys[parameter.name.lower()] = parameter.name
                headers[parameter.name] = value

        if HEADER_ACCEPT.lower() not in lower_keys:
            if accepted := self.serializers.get_accepted_content_types():
                headers[HEADER_ACCEPT] = ", ".join(accepted)

        if body is not None:
            if (key := lower_keys.get(HEADER_CONTENT_TYPE.lower())) is not None:
                headers.pop(key)
            if body.content_type:
                headers[HEADER_CONTENT_TYPE] = body.content_type
            headers.update(body.headers)
        return headers

    def _build_request_config(self, request: RestRequest, stream: bool = False) -> dict[str, Any]:
        """
        构建 requests.Session.request 的参数字典

        执行步骤:
            1. 合并请求参数和默认参数
            2. 构建请求体（可能把 GetOrPost 参数改放到查询字符串）
            3. 构建 URL、请求头和 Cookie
        """
        parameters = merge_parameters(request.parameters, self.default_parameters)
        body = self.body_builder.build(request, parameters)
        url = self.build_uri(request, parameters, body.query_parameters if body is not None else None)

        request_kwargs = {
            **self.default_request_kwargs,
            "method": request.method,
            "url": url,
            "headers": self._build_headers(parameters, body),
            "stream": stream,
            "timeout": request.timeout if request.timeout is not None else self.timeout,
            "verify": self.verify,
            "allow_redirects": self.follow_redirects,
        }

        if cookies := {p.name: to_string(p.value) for p in parameters.get_parameters(ParameterType.COOKIE)}:
            request_kwargs["cookies"] = cookies

        if body is not None:
            if body.is_multipart and self.stream_multipart_body:
                request_kwargs["data"] = body.data
            else:
                request_kwargs["data"] = body.read()
        return request_kwargs

    # ========== 执行 ==========

    def execute(
        self,
        request: RestRequest,
        target_type: Any = None,
        *,
        request_id: str | None = None,
        response_parser: BaseResponseParser | None = None,
        parser_context: dict[str, Any] | None = None,
    ) -> RestResponse:
        """
        执行请求并返回 RestResponse

        参数:
            request: 请求对象
            target_type: 反序列化的目标类型，None 时反序列化为 dict/list
            request_id: 请求 ID，None 时自动生成
            response_parser: 只用于本次请求的解析器
            parser_context: 传给解析器的上下文（如下载文件名）

        返回:
            RestResponse；传输失败时 response_status 为 ERROR/TIMED_OUT

        异常:
            APIClientConfigurationError/APIClientValidationError: 请求配置错误
            APIClientTimeoutError/APIClientNetworkError/APIClientHTTPError: throw_on_any_error 时
            APIClientDeserializationError: throw_on_deserialization_error 时
        """
        request_id = request_id or self.generate_request_id()
        parser = response_parser or self.response_parser_instance

        request = self.before_request(request_id, request)
        if self.authenticator_instance is not None:
            self.authenticator_instance.authenticate(self, request)

        stream = getattr(parser, "is_stream", False)
        request_config = self._build_request_config(request, stream=stream)
        url = request_config["url"]
        safe_url = sanitize_url(url, self.sensitive_params) if self.enable_sanitization else url

        # INFO 级别：记录请求的基本信息（方法和 URL）
        logger.info(f"[{request_id}] Starting {request.method} request to {safe_url}")
        if logger.isEnabledFor(logging.DEBUG):
            headers = request_config["headers"]
            if self.enable_sanitization:
                headers = sanitize_headers(headers, self.sensitive_headers)
            data = request_config.get("data")
            body_shape = f"{len(data)} bytes" if isinstance(data, bytes) else type(data).__name__
            logger.debug(f"[{request_id}] Request headers: {headers}, body: {body_shape}")

        try:
            with self._session_lock:
                http_response = self.session.request(**request_config)

            http_response = self.after_request(request_id, http_response)
            logger.info(f"[{request_id}] Received {http_response.status_code} response")
            logger.debug(f"[{request_id}] Response headers: {http_response.headers}")

        except requests.exceptions.Timeout as e:
            error = APIClientTimeoutError(f"Request to {safe_url} timed out after {request_config['timeout']}s")
            logger.error(f"[{request_id}] Request failed: {error}")
            self.on_request_error(request_id, error)
            if self.throw_on_any_error:
                raise error from e
            return RestResponse.from_error(request, error, ResponseStatus.TIMED_OUT)
        except requests.exceptions.RequestException as e:
            error = APIClientNetworkError(f"Request to {safe_url} failed: {e}")
            logger.error(f"[{request_id}] Request failed: {error}")
            self.on_request_error(request_id, error)
            if self.throw_on_any_error:
                raise error from e
            return RestResponse.from_error(request, error, ResponseStatus.ERROR)

        response = RestResponse.from_http_response(http_response, request, read_content=not stream)
        response.data = self._parse_response(request_id, parser, response, target_type, parser_context or {})

        if self.throw_on_any_error and not response.is_success_status_code:
            error = APIClientHTTPError(f"HTTP {response.status_code}: {response.status_description}", response=response)
            self.on_request_error(request_id, error)
            raise error
        return response

    def _parse_response(
        self,
        request_id: str,
        parser: BaseResponseParser,
        response: RestResponse,
        target_type: Any,
        parser_context: dict[str, Any],
    ) -> Any:
        """
        解析响应数据并执行验证

        解析或验证失败时错误记录到响应上，response_status 置为 ERROR；
        反序列化异常按客户端的错误策略抛出
        """
        try:
            logger.debug(f"[{request_id}] Parsing response data")
            parsed_data = parser.parse(self, response, target_type, **parser_context)

            if self.response_validator_instance and response.response_status is ResponseStatus.COMPLETED:
                logger.debug(f"[{request_id}] Validating parsed response data")
                self.response_validator_instance.validate(self, response, parsed_data)

            return parsed_data
        except APIClientDeserializationError:
            raise
        except Exception as e:
            if self.throw_on_any_error:
                raise
            logger.error(f"[{request_id}] Response validation/parsing failed: {e}")
            response.response_status = ResponseStatus.ERROR
            response.add_exception(e)
            return None

    # ========== 便捷方法 ==========

    def _execute_method(self, request: RestRequest | str, method: str, target_type: Any = None) -> RestResponse:
        if isinstance(request, str):
            request = RestRequest(request)
        request.method = method
        return self.execute(request, target_type).raise_for_error()

    def get(self, request: RestRequest | str, target_type: Any = None) -> Any:
        """执行 GET 请求并返回反序列化后的数据，失败时抛出异常"""
        return self._execute_method(request, HTTP_METHOD_GET, target_type).data

    def post(self, request: RestRequest | str, target_type: Any = None) -> Any:
        return self._execute_method(request, HTTP_METHOD_POST, target_type).data

    def put(self, request: RestRequest | str, target_type: Any = None) -> Any:
        return self._execute_method(request, HTTP_METHOD_PUT, target_type).data

    def patch(self, request: RestRequest | str, target_type: Any = None) -> Any:
        return self._execute_method(request, HTTP_METHOD_PATCH, target_type).data

    def delete(self, request: RestRequest | str, target_type: Any = None) -> Any:
        return self._execute_method(request, HTTP_METHOD_DELETE, target_type).data

    def head(self, request: RestRequest | str) -> RestResponse:
        return self._execute_method(request, HTTP_METHOD_HEAD)

    def options(self, request: RestRequest | str) -> RestResponse:
        return self._execute_method(request, HTTP_METHOD_OPTIONS)

    def download_data(self, request: RestRequest | str) -> bytes | None:
        """
        下载响应的原始字节

        异常:
            请求失败时抛出对应的 APIClientError
        """
        if isinstance(request, str):
            request = RestRequest(request)
        response = self.execute(request, response_parser=ContentResponseParser())
        return response.raise_for_error().raw_bytes

    # ========== 统一请求入口 ==========

    def _extract_url_segments(self, endpoint: str, request_data: RequestData) -> tuple[dict[str, Any], RequestData]:
        """
        从请求数据中取出 endpoint 占位符对应的值

        示例:
            endpoint = "/users/{user_id}/posts/{post_id}"
            request_data = {"user_id": 123, "post_id": 456, "title": "Hello"}
            # 返回: ({"user_id": 123, "post_id": 456}, {"title": "Hello"})
        """
        remaining_data = dict(request_data)
        segments = {}
        for var_name in _PLACEHOLDER_PATTERN.findall(endpoint or ""):
            if var_name in remaining_data:
                segments[var_name] = remaining_data.pop(var_name)
        return segments, remaining_data

    def _build_rest_request(self, request_data: RequestData) -> tuple[RestRequest, dict[str, Any]]:
        """
        把请求数据字典转换为 RestRequest

        endpoint 占位符对应的值作为 URL 段；剩余数据在 POST/PUT/PATCH 请求中作为 JSON 请求体，
        其他方法作为 GetOrPost 参数。使用 FileWriteResponseParser 时 "filename" 键作为下载文件名
        """
        parser_context = {}
        request_data = dict(request_data)
        if isinstance(self.response_parser_instance, FileWriteResponseParser) and "filename" in request_data:
            parser_context["filename"] = request_data.pop("filename")

        segments, remaining_data = self._extract_url_segments(self.endpoint, request_data)
        request = RestRequest(self.endpoint, self.method)
        for name, value in segments.items():
            request.add_url_segment(name, value)

        if remaining_data:
            if request.method in BODY_METHODS:
                request.add_json_body(remaining_data)
            else:
                request.add_object(remaining_data)
        return request, parser_context

    def _validate_request(self, request_data: RequestData) -> RequestData:
        """验证请求数据，子类可重写（如 DRFClient）"""
        return request_data

    @_RequestMethodDescriptor
    def request(self, request_data: RequestData | RestRequest | None = None, target_type: Any = None) -> Any:
        """
        执行请求的统一入口方法，返回格式化器的结果（默认 {result, code, message, data}）

        使用示例:
            class UserAPIClient(RestClient):
                base_url = "https://api.example.com"
                endpoint = "/users/{user_id}"
                method = "GET"

            # 类方法调用（自动创建临时实例）
            response = UserAPIClient.request({"user_id": 123, "expand": "profile"})

            # 实例调用，反序列化为数据类
            with UserAPIClient() as client:
                response = client.request({"user_id": 123}, target_type=User)
                user = response["data"]

            # 直接传入 RestRequest
            response = client.request(RestRequest("/users").add_query_parameter("page", 2), list[User])
        """
        request_id = self.generate_request_id()

        # 步骤1: 验证请求参数并转换为 RestRequest，失败时直接抛出
        if request_data is None or isinstance(request_data, dict):
            validated_data = self._validate_request(request_data or {})
            rest_request, parser_context = self._build_rest_request(validated_data)
        elif isinstance(request_data, RestRequest):
            rest_request, parser_context = request_data, {}
        else:
            raise APIClientValidationError("request_data must be a dictionary or a RestRequest")

        # 步骤2: 执行请求并捕获响应或异常
        try:
            response_or_exception = self.execute(
                rest_request, target_type, request_id=request_id, parser_context=parser_context
            )
        except APIClientError as e:
            response_or_exception = e

        formated_response = self.default_format_response(response_or_exception)

        try:
            return self.response_formatter_instance.format(
                formated_response,
                parsed_data=formated_response["data"],
                request_id=request_id,
                request=rest_request,
                response_or_exception=response_or_exception,
                client_instance=self,
            )
        except Exception as format_error:
            logger.error(f"[{request_id}] Response formatting failed: {format_error}")
            return {
                "result": False,
                "code": RESPONSE_CODE_FORMATTING_ERROR,
                "message": f"Formatting failed: {format_error}",
                "data": None,
            }

    def default_format_response(self, response_or_exception: RestResponse | APIClientError) -> dict[str, Any]:
        """
        将响应或异常格式化为统一的标准字典结构

        返回值:
            - result (bool): 请求是否成功（2xx 且 response_status 为 COMPLETED）
            - code (int): HTTP 状态码；传输失败时为 RESPONSE_CODE_NON_HTTP_ERROR
            - message (str): "Success" 或错误描述
            - data (Any): 解析后的响应数据
        """
        formated_response: dict[str, Any] = {"result": False, "code": None, "message": "", "data": None}

        if isinstance(response_or_exception, RestResponse):
            response = response_or_exception
            formated_response["result"] = response.is_successful
            formated_response["code"] = response.status_code or RESPONSE_CODE_NON_HTTP_ERROR
            formated_response["data"] = response.data
            if response.is_successful:
                formated_response["message"] = "Success"
            elif response.error_message:
                formated_response["message"] = response.error_message
            else:
                formated_response["message"] = f"HTTP {response.status_code}: {response.status_description}"

        elif isinstance(response_or_exception, APIClientError):
            formated_response["code"] = getattr(response_or_exception, "status_code", None) or RESPONSE_CODE_NON_HTTP_ERROR
            formated_response["message"] = str(response_or_exception)
            response = getattr(response_or_exception, "response", None)
            if isinstance(response, RestResponse):
                formated_response["data"] = response.data

        else:
            formated_response["code"] = RESPONSE_CODE_UNEXPECTED_TYPE
            formated_response["message"] = f"Unexpected response/exception type: {type(response_or_exception)}"

        return formated_response

    def close(self):
        """关闭 Session 会话，释放连接池资源"""
        if self.session:
            self.session.close()
            logger.info("Session closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
