"""
请求体构建模块

根据参数集合为每个请求选择唯一的请求体形态（每个请求只判断一次）:

    1. multipart/form-data
       存在文件参数或 always_multipart_form_data=True 时。文件、请求体参数、GetOrPost 参数
       按添加顺序各自成为一个部分；文件内容按块写出，bytes 值直接写出，都不经过文本转换；
       部分头由 urllib3 的 RequestField 渲染
    2. 原始请求体
       存在请求体参数且没有文件、未强制 multipart 时。JSON/XML/CSV 格式先交给对应的序列化器
    3. application/x-www-form-urlencoded
       只有 GetOrPost 参数时

原始请求体与 GetOrPost 参数同时存在（无文件）时请求体优先，GetOrPost 参数改为放入查询字符串
"""

from __future__ import annotations

import logging
import uuid
from contextlib import closing
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterator

from urllib3.fields import RequestField

from restflex.constants import (
    CONTENT_TYPE_BINARY,
    CONTENT_TYPE_FORM_URLENCODED,
    CONTENT_TYPE_MULTIPART_FORM_DATA,
    CONTENT_TYPE_PLAIN,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_ENCODING,
    HEADER_CONTENT_ENCODING,
    HEADER_CONTENT_TYPE,
    MULTIPART_LINE_BREAK,
    DataFormat,
    ParameterType,
)
from restflex.exceptions import APIClientSerializationError
from restflex.parameters import BodyParameter, FileParameter, Parameter, ParametersCollection
from restflex.utils import form_encode, to_string, url_encode

if TYPE_CHECKING:
    from restflex.request import RestRequest
    from restflex.serializer import RestSerializers

logger = logging.getLogger(__name__)


def _unescaped_header_param(name: str, value: str) -> str:
    return f'{name}="{value}"'


@dataclass
class RequestBody:
    """
    构建好的请求体

    属性:
        content_type: Content-Type 请求头的值
        data: bytes，或 multipart 时按需生成的字节块迭代器
        headers: 请求体附带的额外请求头（如 Content-Encoding）
        is_multipart: 是否为 multipart/form-data
        boundary: multipart 分隔符
        query_parameters: 需要改放到查询字符串的 GetOrPost 参数
    """

    content_type: str | None
    data: bytes | Iterator[bytes] | None
    headers: dict[str, str] = field(default_factory=dict)
    is_multipart: bool = False
    boundary: str | None = None
    query_parameters: list[Parameter] = field(default_factory=list)

    def read(self) -> bytes:
        """读取完整的请求体，multipart 迭代器只会被消费一次"""
        if self.data is None:
            return b""
        if not isinstance(self.data, (bytes, bytearray)):
            self.data = b"".join(self.data)
        return bytes(self.data)


class RequestBodyBuilder:
    """
    请求体构建器

    参数:
        serializers: 序列化器表，用于 JSON/XML/CSV 请求体
        encoding: 文本转换为字节时使用的编码
        chunk_size: 读取文件流的分块大小
    """

    def __init__(
        self,
        serializers: RestSerializers,
        encoding: str = DEFAULT_ENCODING,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self.serializers = serializers
        self.encoding = encoding
        self.chunk_size = chunk_size

    def build(self, request: RestRequest, parameters: ParametersCollection | None = None) -> RequestBody | None:
        """
        为请求构建请求体

        参数:
            request: 请求对象
            parameters: 已合并默认参数的参数集合，None 时使用 request.parameters

        返回:
            RequestBody，没有任何请求体内容时返回 None
        """
        parameters = parameters if parameters is not None else request.parameters
        method = request.method
        files = parameters.files
        body = parameters.body
        post_parameters = list(parameters.get_content_parameters(method))
        content_type_header = parameters.try_find(HEADER_CONTENT_TYPE, ParameterType.HTTP_HEADER)

        if files or request.always_multipart_form_data:
            result = self._build_multipart(request, parameters, method)
        elif body is not None:
            result = self._build_raw(body)
            if post_parameters:
                logger.warning(
                    f"Request has a body and {len(post_parameters)} form parameters without files, "
                    f"form parameters are sent in the query string"
                )
                result.query_parameters = post_parameters
        elif post_parameters:
            result = self._build_form_urlencoded(post_parameters)
        else:
            return None

        if content_type_header is not None:
            content_type = to_string(content_type_header.value)
            if result.is_multipart and "boundary=" not in content_type:
                content_type = f"{content_type}; boundary={result.boundary}"
            result.content_type = content_type

        return result

    # ========== multipart/form-data ==========

    def _build_multipart(self, request: RestRequest, parameters: ParametersCollection, method: str) -> RequestBody:
        boundary = request.form_boundary or uuid.uuid4().hex
        request.form_boundary = boundary

        content_parameters = parameters.get_content_parameters(method)
        parts = [
            p
            for p in parameters
            if isinstance(p, FileParameter) or p.type is ParameterType.REQUEST_BODY or p in content_parameters
        ]
        logger.debug(f"Building multipart body with {len(parts)} parts")

        return RequestBody(
            content_type=f"{CONTENT_TYPE_MULTIPART_FORM_DATA}; boundary={boundary}",
            data=self._write_multipart(parts, boundary),
            is_multipart=True,
            boundary=boundary,
        )

    def _write_multipart(self, parts: list[Parameter], boundary: str) -> Iterator[bytes]:
        line_break = MULTIPART_LINE_BREAK.encode(self.encoding)
        for parameter in parts:
            if isinstance(parameter, FileParameter):
                yield self._file_part_header(parameter, boundary)
                # 文件流只打开一次，写完立即关闭
                with closing(parameter.get_file()) as stream:
                    while chunk := stream.read(self.chunk_size):
                        yield chunk
            elif parameter.type is ParameterType.REQUEST_BODY:
                payload, content_type = self._serialize_body(parameter)
                field = RequestField(parameter.name or content_type, payload)
                yield self._part_header(boundary, field, content_type)
                yield payload
            else:
                yield self._part_header(boundary, RequestField(parameter.name, parameter.value))
                yield self._to_bytes(parameter.value)
            yield line_break

        yield f"--{boundary}--{MULTIPART_LINE_BREAK}".encode(self.encoding)

    def _part_header(self, boundary: str, field: RequestField, content_type: str | None = None) -> bytes:
        """分隔行加上 urllib3 渲染的部分头（以空行结尾）"""
        if "Content-Disposition" not in field.headers:
            field.make_multipart(content_type=content_type)
        return f"--{boundary}{MULTIPART_LINE_BREAK}{field.render_headers()}".encode(self.encoding)

    def _file_part_header(self, parameter: FileParameter, boundary: str) -> bytes:
        options = parameter.options
        field = RequestField(
            parameter.name,
            b"",
            filename=parameter.file_name,
            header_formatter=_unescaped_header_param if options.disable_filename_encoding else None,
        )
        field.make_multipart(content_type=parameter.content_type or CONTENT_TYPE_BINARY)
        if not options.disable_filename_star:
            field.headers["Content-Disposition"] += (
                f"; filename*={self.encoding}''{url_encode(parameter.file_name, self.encoding)}"
            )
        return self._part_header(boundary, field)

    def _to_bytes(self, value: Any) -> bytes:
        if isinstance(value, (bytes, bytearray)):
            return bytes(value)
        return to_string(value).encode(self.encoding)

    # ========== 原始请求体 ==========

    def _build_raw(self, body: BodyParameter) -> RequestBody:
        payload, content_type = self._serialize_body(body)
        headers = {}
        if body.data_format is DataFormat.BINARY and body.content_encoding:
            headers[HEADER_CONTENT_ENCODING] = body.content_encoding
        return RequestBody(content_type=content_type, data=payload, headers=headers)

    def _serialize_body(self, body: BodyParameter) -> tuple[bytes, str]:
        """
        序列化请求体参数

        返回:
            (字节内容, 内容类型)

        异常:
            APIClientConfigurationError: 数据格式没有注册序列化器
            APIClientSerializationError: 序列化器没有产生内容
        """
        data_format = getattr(body, "data_format", DataFormat.NONE)

        if data_format is DataFormat.BINARY:
            return bytes(body.value), body.content_type or CONTENT_TYPE_BINARY

        if data_format is DataFormat.NONE:
            return self._to_bytes(body.value), body.content_type or CONTENT_TYPE_PLAIN

        serializer = self.serializers.get_serializer(data_format)
        serialized = serializer.serialize_parameter(body)
        if serialized is None:
            raise APIClientSerializationError(
                f"{type(serializer).__name__} produced no content for the {data_format.value} request body"
            )
        payload = serialized.encode(self.encoding) if isinstance(serialized, str) else bytes(serialized)
        return payload, body.content_type or serializer.content_type

    # ========== application/x-www-form-urlencoded ==========

    def _build_form_urlencoded(self, parameters: list[Parameter]) -> RequestBody:
        pairs = []
        for parameter in parameters:
            if parameter.encode:
                pairs.append(f"{form_encode(parameter.name, self.encoding)}={form_encode(parameter.value, self.encoding)}")
            else:
                pairs.append(f"{parameter.name}={to_string(parameter.value)}")
        return RequestBody(
            content_type=CONTENT_TYPE_FORM_URLENCODED,
            data="&".join(pairs).encode(self.encoding),
        )
