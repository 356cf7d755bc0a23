"""
restflex REST 客户端模块

提供类型化参数、自动序列化和可扩展组件的 REST 客户端框架

主要组件:
    - RestClient: 客户端基类
    - DRFClient: 使用 DRF 序列化器验证请求和响应的客户端
    - RestRequest / RestResponse: 请求和响应对象
    - 参数: QueryParameter, UrlSegmentParameter, HeaderParameter, FileParameter 等
    - 序列化器: JsonSerializer, XmlSerializer, CsvSerializer
    - 认证器: HttpBasicAuthenticator, JwtAuthenticator, OAuth2 认证器等
    - 解析器、验证器、格式化器
    - 异常类: APIClientError 及其子类

使用示例:
    >>> from dataclasses import dataclass
    >>> from restflex import RestClient, RestRequest
    >>>
    >>> @dataclass
    ... class User:
    ...     id: int = 0
    ...     name: str = ""
    >>>
    >>> client = RestClient("https://api.example.com")
    >>> request = RestRequest("/users/{id}").add_url_segment("id", 1)
    >>> user = client.get(request, User)
"""

# 核心客户端
from restflex.client import RestClient
from restflex.drf import DRFClient
from restflex.request import RestRequest
from restflex.response import RestResponse

# 异常类
from restflex.exceptions import (
    APIClientConfigurationError,
    APIClientDeserializationError,
    APIClientEncodingError,
    APIClientError,
    APIClientHTTPError,
    APIClientNetworkError,
    APIClientRequestValidationError,
    APIClientResponseValidationError,
    APIClientSerializationError,
    APIClientTimeoutError,
    APIClientValidationError,
)

# 参数
from restflex.parameters import (
    BodyParameter,
    CookieParameter,
    CsvParameter,
    DefaultParameters,
    FileParameter,
    FileParameterOptions,
    GetOrPostParameter,
    HeaderParameter,
    JsonParameter,
    Parameter,
    ParametersCollection,
    QueryParameter,
    UrlSegmentParameter,
    XmlParameter,
)

# 字段元数据
from restflex.fields import (
    DeserializeAs,
    RequestProperty,
    SerializeAs,
    deserialize_as,
    request_property,
    serialize_as,
)

# 序列化器
from restflex.serializer import BaseRestSerializer, RestSerializers, SerializerConfig
from restflex.json_serializer import JsonSerializer
from restflex.xml_serializer import XmlSerializer
from restflex.csv_serializer import CsvSerializer

# 认证器
from restflex.authenticators import (
    BaseAuthenticator,
    HttpBasicAuthenticator,
    JwtAuthenticator,
    OAuth2AuthorizationRequestHeaderAuthenticator,
    OAuth2UriQueryParameterAuthenticator,
    SimpleAuthenticator,
    TokenAuthenticator,
)

# 响应解析器
from restflex.parser import (
    BaseResponseParser,
    ContentResponseParser,
    DeserializingResponseParser,
    FileWriteResponseParser,
    RawResponseParser,
)

# 响应格式化器
from restflex.formatter import (
    BaseResponseFormatter,
    DefaultResponseFormatter,
    RestResponseFormatter,
)

# 响应验证器
from restflex.validator import (
    BaseResponseValidator,
    RequiredDataValidator,
    StatusCodeValidator,
)

# 工具函数
from restflex.utils import sanitize_headers, sanitize_url

# 常量配置
from restflex.constants import (
    DEFAULT_RETRIES,
    DEFAULT_TIMEOUT,
    HTTP_METHOD_DELETE,
    HTTP_METHOD_GET,
    HTTP_METHOD_HEAD,
    HTTP_METHOD_OPTIONS,
    HTTP_METHOD_PATCH,
    HTTP_METHOD_POST,
    HTTP_METHOD_PUT,
    DataFormat,
    ParameterType,
    RequestArrayQueryType,
    ResponseStatus,
)

__all__ = [
    # 核心类
    "RestClient",
    "DRFClient",
    "RestRequest",
    "RestResponse",
    # 异常
    "APIClientError",
    "APIClientConfigurationError",
    "APIClientValidationError",
    "APIClientEncodingError",
    "APIClientSerializationError",
    "APIClientDeserializationError",
    "APIClientHTTPError",
    "APIClientNetworkError",
    "APIClientTimeoutError",
    "APIClientRequestValidationError",
    "APIClientResponseValidationError",
    # 参数
    "Parameter",
    "GetOrPostParameter",
    "QueryParameter",
    "UrlSegmentParameter",
    "HeaderParameter",
    "CookieParameter",
    "BodyParameter",
    "JsonParameter",
    "XmlParameter",
    "CsvParameter",
    "FileParameter",
    "FileParameterOptions",
    "ParametersCollection",
    "DefaultParameters",
    # 字段元数据
    "RequestProperty",
    "DeserializeAs",
    "SerializeAs",
    "request_property",
    "deserialize_as",
    "serialize_as",
    # 序列化器
    "BaseRestSerializer",
    "RestSerializers",
    "SerializerConfig",
    "JsonSerializer",
    "XmlSerializer",
    "CsvSerializer",
    # 认证器
    "BaseAuthenticator",
    "TokenAuthenticator",
    "HttpBasicAuthenticator",
    "JwtAuthenticator",
    "OAuth2AuthorizationRequestHeaderAuthenticator",
    "OAuth2UriQueryParameterAuthenticator",
    "SimpleAuthenticator",
    # 解析器
    "BaseResponseParser",
    "DeserializingResponseParser",
    "ContentResponseParser",
    "RawResponseParser",
    "FileWriteResponseParser",
    # 格式化器
    "BaseResponseFormatter",
    "DefaultResponseFormatter",
    "RestResponseFormatter",
    # 验证器
    "BaseResponseValidator",
    "StatusCodeValidator",
    "RequiredDataValidator",
    # 工具函数
    "sanitize_headers",
    "sanitize_url",
    # 常量
    "DEFAULT_TIMEOUT",
    "DEFAULT_RETRIES",
    "HTTP_METHOD_GET",
    "HTTP_METHOD_POST",
    "HTTP_METHOD_PUT",
    "HTTP_METHOD_DELETE",
    "HTTP_METHOD_PATCH",
    "HTTP_METHOD_HEAD",
    "HTTP_METHOD_OPTIONS",
    "ParameterType",
    "DataFormat",
    "ResponseStatus",
    "RequestArrayQueryType",
]

__version__ = "1.0.0"
__author__ = "HACK-WU"
