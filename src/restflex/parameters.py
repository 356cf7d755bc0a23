"""
请求参数模块

定义不可变的参数记录以及持有它们的有序集合:
    - Parameter 及其按类型划分的子类（查询、URL 段、请求头、Cookie、表单字段、请求体、文件）
    - ParametersCollection: 请求独占的参数集合，支持按类型/HTTP 方法过滤
    - DefaultParameters: 客户端级别的默认参数，线程安全
"""

from __future__ import annotations

import io
import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Callable, Iterable, Iterator

from restflex.constants import (
    BODY_METHODS,
    CONTENT_TYPE_BINARY,
    MULTI_VALUE_PARAMETER_TYPES,
    DataFormat,
    ParameterType,
)
from restflex.exceptions import (
    APIClientConfigurationError,
    APIClientEncodingError,
    APIClientValidationError,
)
from restflex.utils import to_string

logger = logging.getLogger(__name__)


def _same_name(left: str | None, right: str | None) -> bool:
    if left is None or right is None:
        return left is right
    return left.lower() == right.lower()


@dataclass(frozen=True)
class Parameter:
    """
    请求参数基类

    属性:
        name: 参数名，除请求体外不能为空
        value: 参数值
        type: 参数落点类型
        encode: 是否对参数值进行 URL 编码
        content_type: 参数自身的内容类型（请求体、multipart 部分使用）
    """

    name: str | None
    value: Any
    type: ParameterType
    encode: bool = True
    content_type: str | None = None

    def __post_init__(self):
        if self.type is not ParameterType.REQUEST_BODY and not self.name:
            raise APIClientValidationError(f"Parameter name cannot be empty for {self.type.value} parameters")

    def __str__(self) -> str:
        return f"{self.name}={to_string(self.value)}"

    @staticmethod
    def create(name: str | None, value: Any, type: ParameterType, encode: bool = True) -> Parameter:
        """根据参数类型创建对应的参数记录"""
        if type is ParameterType.REQUEST_BODY:
            return BodyParameter(name, value)
        if type is ParameterType.FILE:
            raise APIClientValidationError("File parameters must be created with FileParameter factories")
        parameter_class = _PARAMETER_CLASSES[type]
        return parameter_class(name, value, encode=encode)


@dataclass(frozen=True)
class GetOrPostParameter(Parameter):
    """GET 类请求进入查询字符串，POST/PUT/PATCH 请求进入表单"""

    type: ParameterType = field(default=ParameterType.GET_OR_POST, init=False)


@dataclass(frozen=True)
class QueryParameter(Parameter):
    type: ParameterType = field(default=ParameterType.QUERY_STRING, init=False)


@dataclass(frozen=True)
class UrlSegmentParameter(Parameter):
    """
    URL 段参数，替换资源路径中的 {name} 占位符

    已转义的 "%2F" 会先还原为 "/"，保证编码时只被转义一次；
    encode=True 时 "/" 会被转义，因此 URL 段不会引入额外的路径分隔符
    """

    type: ParameterType = field(default=ParameterType.URL_SEGMENT, init=False)

    def __post_init__(self):
        super().__post_init__()
        text = to_string(self.value)
        if not text:
            raise APIClientValidationError(f"Url segment parameter '{self.name}' cannot have an empty value")
        object.__setattr__(self, "value", text.replace("%2F", "/").replace("%2f", "/"))


@dataclass(frozen=True)
class HeaderParameter(Parameter):
    type: ParameterType = field(default=ParameterType.HTTP_HEADER, init=False)
    encode: bool = False

    def __post_init__(self):
        super().__post_init__()
        text = to_string(self.value)
        if "\r" in text or "\n" in text:
            raise APIClientValidationError(f"Header '{self.name}' value cannot contain line breaks")


@dataclass(frozen=True)
class CookieParameter(Parameter):
    type: ParameterType = field(default=ParameterType.COOKIE, init=False)
    encode: bool = False


@dataclass(frozen=True)
class BodyParameter(Parameter):
    """
    请求体参数

    属性:
        data_format: 数据格式，JSON/XML/CSV 由对应的序列化器生成报文
        content_encoding: 请求体的 Content-Encoding（如 gzip），仅 BINARY 格式使用

    异常:
        APIClientEncodingError: data_format 为 BINARY 但 value 不是字节序列
    """

    type: ParameterType = field(default=ParameterType.REQUEST_BODY, init=False)
    encode: bool = field(default=False, init=False)
    data_format: DataFormat = DataFormat.NONE
    content_encoding: str | None = None

    def __post_init__(self):
        super().__post_init__()
        if self.data_format is DataFormat.BINARY and not isinstance(self.value, (bytes, bytearray, memoryview)):
            raise APIClientEncodingError("Binary data format needs a byte array as value")


@dataclass(frozen=True)
class JsonParameter(BodyParameter):
    data_format: DataFormat = field(default=DataFormat.JSON, init=False)


@dataclass(frozen=True)
class XmlParameter(BodyParameter):
    data_format: DataFormat = field(default=DataFormat.XML, init=False)
    xml_namespace: str | None = None


@dataclass(frozen=True)
class CsvParameter(BodyParameter):
    data_format: DataFormat = field(default=DataFormat.CSV, init=False)


@dataclass(frozen=True)
class FileParameterOptions:
    """
    文件参数的 Content-Disposition 选项

    属性:
        disable_filename_star: 不输出 RFC 5987 的 filename* 参数
        disable_filename_encoding: 文件名原样输出，不做 HTML5 风格的引号和反斜杠转义
    """

    disable_filename_star: bool = True
    disable_filename_encoding: bool = False


@dataclass(frozen=True)
class FileParameter(Parameter):
    """
    文件参数

    文件内容由 get_file 延迟提供，只在写入请求体时打开一次并随即关闭；
    除非通过 create() 直接传入 bytes，否则不会预先把整个文件读入内存。
    """

    value: Any = field(default=None, init=False, repr=False)
    type: ParameterType = field(default=ParameterType.FILE, init=False)
    encode: bool = field(default=False, init=False)
    content_type: str | None = CONTENT_TYPE_BINARY
    file_name: str | None = None
    get_file: Callable[[], BinaryIO] | None = field(default=None, repr=False, compare=False)
    options: FileParameterOptions = field(default_factory=FileParameterOptions)

    def __post_init__(self):
        super().__post_init__()
        if self.get_file is None:
            raise APIClientValidationError(f"File parameter '{self.name}' needs a stream provider")
        if not self.file_name:
            object.__setattr__(self, "file_name", self.name)
        if not self.content_type:
            object.__setattr__(self, "content_type", CONTENT_TYPE_BINARY)

    @classmethod
    def create(
        cls,
        name: str,
        data: bytes,
        file_name: str,
        content_type: str | None = None,
        options: FileParameterOptions | None = None,
    ) -> FileParameter:
        """从内存中的字节数据创建文件参数"""
        payload = bytes(data)
        return cls(
            name,
            content_type=content_type,
            file_name=file_name,
            get_file=lambda: io.BytesIO(payload),
            options=options or FileParameterOptions(),
        )

    @classmethod
    def from_stream_factory(
        cls,
        name: str,
        get_file: Callable[[], BinaryIO],
        file_name: str,
        content_type: str | None = None,
        options: FileParameterOptions | None = None,
    ) -> FileParameter:
        return cls(
            name,
            content_type=content_type,
            file_name=file_name,
            get_file=get_file,
            options=options or FileParameterOptions(),
        )

    @classmethod
    def from_file(
        cls,
        path: str | os.PathLike,
        name: str | None = None,
        content_type: str | None = None,
        options: FileParameterOptions | None = None,
    ) -> FileParameter:
        """
        从本地文件创建文件参数，文件在写入请求体时才会被打开

        异常:
            FileNotFoundError: 文件不存在
        """
        path = os.fspath(path)
        if not os.path.isfile(path):
            raise FileNotFoundError(f"File not found: {path}")
        file_name = os.path.basename(path)
        return cls(
            name or file_name,
            content_type=content_type,
            file_name=file_name,
            get_file=lambda: open(path, "rb"),
            options=options or FileParameterOptions(),
        )


_PARAMETER_CLASSES: dict[ParameterType, type[Parameter]] = {
    ParameterType.GET_OR_POST: GetOrPostParameter,
    ParameterType.QUERY_STRING: QueryParameter,
    ParameterType.URL_SEGMENT: UrlSegmentParameter,
    ParameterType.HTTP_HEADER: HeaderParameter,
    ParameterType.COOKIE: CookieParameter,
}


class ParametersCollection:
    """
    有序、默认允许重名的参数集合

    约束:
        - 最多只有一个请求体参数，重复添加会抛出 APIClientConfigurationError（除非 replace=True）
        - GetOrPost/QueryString 参数允许同名多次出现
    """

    def __init__(self, parameters: Iterable[Parameter] | None = None):
        self._parameters: list[Parameter] = list(parameters or [])

    def add_parameter(self, parameter: Parameter, replace: bool = False) -> ParametersCollection:
        """
        追加参数

        参数:
            parameter: 要添加的参数
            replace: 已存在请求体时是否替换

        异常:
            APIClientConfigurationError: 已存在请求体参数且 replace=False
        """
        if parameter.type is ParameterType.REQUEST_BODY and (existing := self.body) is not None:
            if not replace:
                raise APIClientConfigurationError(
                    "A request body parameter has already been added, use replace=True to overwrite it"
                )
            self._parameters.remove(existing)
        self._parameters.append(parameter)
        return self

    def add_parameters(self, parameters: Iterable[Parameter]) -> ParametersCollection:
        for parameter in parameters:
            self.add_parameter(parameter)
        return self

    def add_or_update_parameter(self, parameter: Parameter) -> ParametersCollection:
        """替换同名同类型的参数，不存在时追加"""
        if parameter.type is ParameterType.REQUEST_BODY:
            return self.add_parameter(parameter, replace=True)
        self.remove_parameter(parameter.name, parameter.type)
        self._parameters.append(parameter)
        return self

    def remove_parameter(self, name_or_parameter: str | Parameter, type: ParameterType | None = None) -> None:
        """按参数对象或参数名（不区分大小写，可限定类型）移除参数"""
        if isinstance(name_or_parameter, Parameter):
            self._parameters = [p for p in self._parameters if p is not name_or_parameter]
            return
        self._parameters = [
            p
            for p in self._parameters
            if not (_same_name(p.name, name_or_parameter) and (type is None or p.type is type))
        ]

    def exists(self, parameter: Parameter) -> bool:
        """按名称（不区分大小写）+ 类型判断是否已存在"""
        return any(p.type is parameter.type and _same_name(p.name, parameter.name) for p in self._parameters)

    def try_find(self, name: str, type: ParameterType | None = None) -> Parameter | None:
        for parameter in self._parameters:
            if _same_name(parameter.name, name) and (type is None or parameter.type is type):
                return parameter
        return None

    def get_parameters(self, type_or_class: ParameterType | type[Parameter]) -> ParametersCollection:
        """按参数类型或参数类过滤，返回新的集合"""
        if isinstance(type_or_class, ParameterType):
            return ParametersCollection(p for p in self._parameters if p.type is type_or_class)
        return ParametersCollection(p for p in self._parameters if isinstance(p, type_or_class))

    def of_class(self, parameter_class: type[Parameter]) -> list[Parameter]:
        return [p for p in self._parameters if isinstance(p, parameter_class)]

    def get_query_parameters(self, method: str) -> ParametersCollection:
        """
        获取放入查询字符串的参数

        POST/PUT/PATCH 只返回 QueryString 参数（GetOrPost 参数留给请求体），
        其他方法同时返回 GetOrPost 和 QueryString 参数
        """
        if method.upper() in BODY_METHODS:
            return self.get_parameters(ParameterType.QUERY_STRING)
        return ParametersCollection(
            p
            for p in self._parameters
            if p.type in (ParameterType.GET_OR_POST, ParameterType.QUERY_STRING)
        )

    def get_content_parameters(self, method: str) -> ParametersCollection:
        """获取进入请求体的表单参数，只有 POST/PUT/PATCH 才有"""
        if method.upper() not in BODY_METHODS:
            return ParametersCollection()
        return self.get_parameters(ParameterType.GET_OR_POST)

    @property
    def body(self) -> BodyParameter | None:
        for parameter in self._parameters:
            if parameter.type is ParameterType.REQUEST_BODY:
                return parameter
        return None

    @property
    def files(self) -> list[FileParameter]:
        return [p for p in self._parameters if isinstance(p, FileParameter)]

    def __iter__(self) -> Iterator[Parameter]:
        return iter(list(self._parameters))

    def __len__(self) -> int:
        return len(self._parameters)

    def __getitem__(self, index: int) -> Parameter:
        return self._parameters[index]

    def __contains__(self, parameter: object) -> bool:
        return parameter in self._parameters

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._parameters!r})"


class DefaultParameters(ParametersCollection):
    """
    客户端级别的默认参数，合并进每个请求

    约束:
        - 不能包含请求体
        - 同名参数只允许 GetOrPost/QueryString 类型重复，
          或者在 allow_multiple_with_same_name=True 时允许
    """

    def __init__(self, allow_multiple_with_same_name: bool = False):
        super().__init__()
        self.allow_multiple_with_same_name = allow_multiple_with_same_name
        self._lock = threading.RLock()

    def add_parameter(self, parameter: Parameter, replace: bool = False) -> DefaultParameters:
        with self._lock:
            if parameter.type is ParameterType.REQUEST_BODY:
                raise APIClientConfigurationError(
                    "Cannot set request body using default parameters. Use RestRequest.add_body() instead."
                )
            if replace:
                super().remove_parameter(parameter.name, parameter.type)
            elif (
                not self.allow_multiple_with_same_name
                and parameter.type not in MULTI_VALUE_PARAMETER_TYPES
                and self.exists(parameter)
            ):
                raise APIClientConfigurationError(
                    f"A default parameter named '{parameter.name}' has already been added"
                )
            self._parameters.append(parameter)
        return self

    def replace_parameter(self, parameter: Parameter) -> DefaultParameters:
        return self.add_parameter(parameter, replace=True)

    def remove_parameter(self, name_or_parameter: str | Parameter, type: ParameterType | None = None) -> None:
        with self._lock:
            super().remove_parameter(name_or_parameter, type)

    def __iter__(self) -> Iterator[Parameter]:
        with self._lock:
            return iter(list(self._parameters))


def merge_parameters(
    request_parameters: Iterable[Parameter],
    default_parameters: DefaultParameters | None = None,
) -> ParametersCollection:
    """
    合并请求参数和客户端默认参数

    请求参数在前；默认参数只有在请求中不存在同名同类型参数时才追加，
    允许重名时 GetOrPost/QueryString 类型的默认参数总是追加
    """
    merged = ParametersCollection(request_parameters)
    if default_parameters is None:
        return merged

    for parameter in default_parameters:
        multi_value = (
            default_parameters.allow_multiple_with_same_name and parameter.type in MULTI_VALUE_PARAMETER_TYPES
        )
        if multi_value or not merged.exists(parameter):
            merged.add_parameter(parameter)
    return merged
