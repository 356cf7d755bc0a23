"""
请求模块

RestRequest 描述一次请求：资源路径、HTTP 方法、参数集合以及反序列化相关的设置。
所有 add_* 方法返回 self 以便链式调用。

使用示例:
    request = (
        RestRequest("/users/{id}", "GET")
        .add_url_segment("id", 123)
        .add_query_parameter("expand", "profile")
        .add_header("X-Trace", "abc")
    )

    request = RestRequest("/users", "POST").add_json_body({"name": "john"})
    request = RestRequest("/upload", "POST").add_file("avatar", "/tmp/avatar.png").add_parameter("k", "v")
"""

from __future__ import annotations

import os
from typing import Any, BinaryIO, Callable

from restflex.constants import (
    CONTENT_TYPE_PLAIN,
    HTTP_METHOD_GET,
    DataFormat,
    ParameterType,
)
from restflex.exceptions import APIClientValidationError
from restflex.object_parser import get_properties
from restflex.parameters import (
    BodyParameter,
    CookieParameter,
    CsvParameter,
    FileParameter,
    FileParameterOptions,
    HeaderParameter,
    JsonParameter,
    Parameter,
    ParametersCollection,
    QueryParameter,
    UrlSegmentParameter,
    XmlParameter,
)


class RestRequest:
    """
    REST 请求

    参数:
        resource: 资源路径，可包含 {name} 占位符和查询字符串，也可以是绝对 URL
        method: HTTP 方法
        request_format: 请求体对象的默认数据格式，响应缺少内容类型时也作为反序列化格式
        timeout: 单次请求的超时时间（秒），None 时使用客户端配置
        always_multipart_form_data: 没有文件时也使用 multipart/form-data
        form_boundary: multipart 分隔符，None 时自动生成
        root_element: 反序列化时的根元素
        date_format: 反序列化时 datetime 的格式
        xml_namespace: 反序列化 XML 时使用的命名空间
        on_before_deserialization: 反序列化前调用的回调，参数为 RestResponse
    """

    def __init__(
        self,
        resource: str = "",
        method: str = HTTP_METHOD_GET,
        *,
        request_format: DataFormat = DataFormat.JSON,
        timeout: float | None = None,
        always_multipart_form_data: bool = False,
        form_boundary: str | None = None,
        root_element: str | None = None,
        date_format: str | None = None,
        xml_namespace: str | None = None,
        on_before_deserialization: Callable[[Any], None] | None = None,
    ):
        self.method = method.upper()
        self.request_format = request_format
        self.timeout = timeout
        self.always_multipart_form_data = always_multipart_form_data
        self.form_boundary = form_boundary
        self.root_element = root_element
        self.date_format = date_format
        self.xml_namespace = xml_namespace
        self.on_before_deserialization = on_before_deserialization
        self.parameters = ParametersCollection()
        self.resource = self._extract_query(resource or "")

    def _extract_query(self, resource: str) -> str:
        """资源路径中的查询字符串转换为查询参数，已编码的文本原样保留"""
        if "?" not in resource:
            return resource
        path, query = resource.split("?", 1)
        for pair in filter(None, query.split("&")):
            name, _, value = pair.partition("=")
            self.parameters.add_parameter(QueryParameter(name, value, encode=False))
        return path

    def __repr__(self) -> str:
        return f"<RestRequest {self.method} {self.resource!r}>"

    @property
    def files(self) -> list[FileParameter]:
        return self.parameters.files

    @property
    def body(self) -> BodyParameter | None:
        return self.parameters.body

    # ========== 通用参数 ==========

    def add_parameter(
        self,
        name_or_parameter: str | Parameter,
        value: Any = None,
        type: ParameterType = ParameterType.GET_OR_POST,
        encode: bool = True,
    ) -> RestRequest:
        """
        添加参数

        参数:
            name_or_parameter: 参数对象，或参数名（此时按 type 创建参数）
            value: 参数值
            type: 参数类型，默认 GetOrPost
            encode: 是否 URL 编码
        """
        if isinstance(name_or_parameter, Parameter):
            parameter = name_or_parameter
        else:
            parameter = Parameter.create(name_or_parameter, value, type, encode)
        self.parameters.add_parameter(parameter)
        return self

    def add_or_update_parameter(
        self,
        name_or_parameter: str | Parameter,
        value: Any = None,
        type: ParameterType = ParameterType.GET_OR_POST,
        encode: bool = True,
    ) -> RestRequest:
        if isinstance(name_or_parameter, Parameter):
            parameter = name_or_parameter
        else:
            parameter = Parameter.create(name_or_parameter, value, type, encode)
        self.parameters.add_or_update_parameter(parameter)
        return self

    def add_or_update_parameters(self, parameters: list[Parameter]) -> RestRequest:
        for parameter in parameters:
            self.parameters.add_or_update_parameter(parameter)
        return self

    def add_url_segment(self, name: str, value: Any, encode: bool = True) -> RestRequest:
        self.parameters.add_parameter(UrlSegmentParameter(name, value, encode=encode))
        return self

    def add_query_parameter(self, name: str, value: Any, encode: bool = True) -> RestRequest:
        self.parameters.add_parameter(QueryParameter(name, value, encode=encode))
        return self

    def add_header(self, name: str, value: Any) -> RestRequest:
        self.parameters.add_parameter(HeaderParameter(name, value))
        return self

    def add_headers(self, headers: dict[str, Any]) -> RestRequest:
        for name, value in headers.items():
            self.add_header(name, value)
        return self

    def add_or_update_header(self, name: str, value: Any) -> RestRequest:
        self.parameters.add_or_update_parameter(HeaderParameter(name, value))
        return self

    def add_or_update_headers(self, headers: dict[str, Any]) -> RestRequest:
        for name, value in headers.items():
            self.add_or_update_header(name, value)
        return self

    def add_cookie(self, name: str, value: Any) -> RestRequest:
        self.parameters.add_parameter(CookieParameter(name, value))
        return self

    def add_object(
        self,
        obj: Any,
        *included_properties: str,
        type: ParameterType = ParameterType.GET_OR_POST,
    ) -> RestRequest:
        """
        把对象的公开属性展开为参数

        参数:
            obj: 数据类、带注解的类、普通对象或字典
            included_properties: 只包含这些属性
            type: 生成的参数类型
        """
        for prop in get_properties(obj, *included_properties):
            self.parameters.add_parameter(Parameter.create(prop.name, prop.value, type, prop.encode))
        return self

    # ========== 请求体 ==========

    def add_body(self, obj: Any, content_type: str | None = None) -> RestRequest:
        """
        添加请求体

        str 作为纯文本发送，bytes 作为二进制发送，其他对象按 request_format 序列化

        异常:
            APIClientConfigurationError: 已经存在请求体
        """
        if isinstance(obj, str):
            return self.add_string_body(obj, content_type or CONTENT_TYPE_PLAIN)
        if isinstance(obj, (bytes, bytearray)):
            self.parameters.add_parameter(BodyParameter(None, obj, content_type, data_format=DataFormat.BINARY))
            return self
        if self.request_format is DataFormat.XML:
            return self.add_xml_body(obj, content_type)
        if self.request_format is DataFormat.CSV:
            return self.add_csv_body(obj, content_type)
        if self.request_format is DataFormat.JSON:
            return self.add_json_body(obj, content_type)
        raise APIClientValidationError(
            f"Cannot add a {type(obj).__name__} body for request format {self.request_format.value}"
        )

    def add_string_body(self, body: str, content_type: str = CONTENT_TYPE_PLAIN) -> RestRequest:
        self.parameters.add_parameter(BodyParameter(None, body, content_type))
        return self

    def add_json_body(self, obj: Any, content_type: str | None = None) -> RestRequest:
        self.request_format = DataFormat.JSON
        self.parameters.add_parameter(JsonParameter(None, obj, content_type))
        return self

    def add_xml_body(self, obj: Any, content_type: str | None = None, xml_namespace: str | None = None) -> RestRequest:
        self.request_format = DataFormat.XML
        self.parameters.add_parameter(
            XmlParameter(None, obj, content_type, xml_namespace=xml_namespace or self.xml_namespace)
        )
        return self

    def add_csv_body(self, obj: Any, content_type: str | None = None) -> RestRequest:
        self.parameters.add_parameter(CsvParameter(None, obj, content_type))
        return self

    # ========== 文件 ==========

    def add_file(
        self,
        name: str,
        path: str | os.PathLike,
        content_type: str | None = None,
        options: FileParameterOptions | None = None,
    ) -> RestRequest:
        """
        添加本地文件，文件在发送时才会打开

        异常:
            FileNotFoundError: 文件不存在
        """
        self.parameters.add_parameter(FileParameter.from_file(path, name, content_type, options))
        return self

    def add_file_bytes(
        self,
        name: str,
        data: bytes,
        file_name: str,
        content_type: str | None = None,
        options: FileParameterOptions | None = None,
    ) -> RestRequest:
        self.parameters.add_parameter(FileParameter.create(name, data, file_name, content_type, options))
        return self

    def add_file_stream(
        self,
        name: str,
        get_file: Callable[[], BinaryIO],
        file_name: str,
        content_type: str | None = None,
        options: FileParameterOptions | None = None,
    ) -> RestRequest:
        self.parameters.add_parameter(FileParameter.from_stream_factory(name, get_file, file_name, content_type, options))
        return self
