"""
序列化器注册模块

提供:
    - BaseRestSerializer: 序列化器接口（同时负责序列化请求体和反序列化响应）
    - SerializerRecord: 数据格式 -> 序列化器的注册记录
    - SerializerConfig: 构建序列化器表的构建器
    - RestSerializers: 不可变的序列化器表，负责内容协商和反序列化错误策略

使用示例:
    >>> serializers = SerializerConfig().use_default_serializers().build()
    >>> serializers.get_serializer(DataFormat.JSON)
    <restflex.json_serializer.JsonSerializer ...>

    # 只保留 XML
    >>> client = RestClient(configure_serialization=lambda config: config.use_xml())
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Mapping

from restflex.constants import DataFormat, ResponseStatus
from restflex.detector import detect_content_type
from restflex.exceptions import APIClientConfigurationError, APIClientDeserializationError

if TYPE_CHECKING:
    from restflex.parameters import BodyParameter
    from restflex.response import RestResponse

logger = logging.getLogger(__name__)


def normalize_content_type(content_type: str | None) -> str:
    """去掉参数（如 charset）并转为小写: "Application/JSON; charset=utf-8" -> "application/json" """
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


class BaseRestSerializer(ABC):
    """
    序列化器基类

    类属性:
        data_format: 该序列化器负责的数据格式，注册表以此为键
        content_type: 序列化请求体时使用的内容类型
        accepted_content_types: 能够反序列化的响应内容类型，用于生成 Accept 请求头
    """

    data_format: DataFormat = DataFormat.NONE
    content_type: str = ""
    accepted_content_types: tuple[str, ...] = ()

    def supports_content_type(self, content_type: str) -> bool:
        """模糊匹配响应内容类型，子类可扩展（如 *+json）"""
        return normalize_content_type(content_type) in self.accepted_content_types

    @abstractmethod
    def serialize(self, obj: Any) -> str | bytes | None:
        """将对象序列化为请求体"""

    def serialize_parameter(self, parameter: BodyParameter) -> str | bytes | None:
        """序列化请求体参数，子类可读取参数上的额外设置（如 XML 命名空间）"""
        return self.serialize(parameter.value)

    @abstractmethod
    def deserialize(self, response: RestResponse, target_type: Any) -> Any:
        """
        将响应内容反序列化为目标类型

        参数:
            response: 响应对象，response.content 为原始文本，
                response.request 上的 root_element/date_format 等设置优先于序列化器自身的设置
            target_type: 目标类型，如数据类、list[Item]、dict[str, int]
        """


@dataclass(frozen=True)
class SerializerRecord:
    """
    序列化器注册记录

    属性:
        data_format: 数据格式
        accepted_content_types: 可接受的响应内容类型
        supports_content_type: 模糊匹配谓词
        factory: 序列化器工厂
        instance: 由工厂创建的序列化器实例（只创建一次）
    """

    data_format: DataFormat
    accepted_content_types: tuple[str, ...]
    supports_content_type: Callable[[str], bool] = field(compare=False)
    factory: Callable[[], BaseRestSerializer] = field(compare=False)
    instance: BaseRestSerializer = field(compare=False, repr=False)


class SerializerConfig:
    """
    序列化器表构建器

    所有方法返回 self 以便链式调用，最后调用 build() 得到不可变的 RestSerializers
    """

    def __init__(self):
        self._records: dict[DataFormat, SerializerRecord] = {}

    def use_serializer(self, factory: Callable[[], BaseRestSerializer]) -> SerializerConfig:
        """注册序列化器，同一数据格式的旧记录会被替换"""
        instance = factory()
        if not isinstance(instance, BaseRestSerializer):
            raise APIClientConfigurationError(
                f"Serializer factory must produce a BaseRestSerializer, got {type(instance).__name__}"
            )
        self._records[instance.data_format] = SerializerRecord(
            data_format=instance.data_format,
            accepted_content_types=tuple(instance.accepted_content_types),
            supports_content_type=instance.supports_content_type,
            factory=factory,
            instance=instance,
        )
        return self

    def use_default_serializers(self) -> SerializerConfig:
        """注册 JSON 和 XML 序列化器"""
        from restflex.json_serializer import JsonSerializer
        from restflex.xml_serializer import XmlSerializer

        return self.use_serializer(JsonSerializer).use_serializer(XmlSerializer)

    def use_json(self) -> SerializerConfig:
        """只保留 JSON 序列化器"""
        from restflex.json_serializer import JsonSerializer

        self._records.pop(DataFormat.XML, None)
        return self.use_serializer(JsonSerializer)

    def use_xml(self) -> SerializerConfig:
        """只保留 XML 序列化器"""
        from restflex.xml_serializer import XmlSerializer

        self._records.pop(DataFormat.JSON, None)
        return self.use_serializer(XmlSerializer)

    def use_only_serializer(self, factory: Callable[[], BaseRestSerializer]) -> SerializerConfig:
        self._records.clear()
        return self.use_serializer(factory)

    def build(self) -> RestSerializers:
        return RestSerializers(self._records)


class RestSerializers:
    """
    不可变的序列化器表

    在客户端构建时创建一次，随后只读，可在多线程间共享
    """

    def __init__(self, records: Mapping[DataFormat, SerializerRecord]):
        self._records = MappingProxyType(dict(records))

    @classmethod
    def default(cls) -> RestSerializers:
        return SerializerConfig().use_default_serializers().build()

    @property
    def records(self) -> Mapping[DataFormat, SerializerRecord]:
        return self._records

    def get_serializer(self, data_format: DataFormat) -> BaseRestSerializer:
        """
        获取指定数据格式的序列化器

        异常:
            APIClientConfigurationError: 该格式没有注册序列化器
        """
        record = self._records.get(data_format)
        if record is None:
            raise APIClientConfigurationError(f"Unable to find a serializer for {data_format.value}")
        return record.instance

    def get_accepted_content_types(self) -> list[str]:
        """所有序列化器可接受内容类型的并集（保序去重），用于 Accept 请求头"""
        content_types = (ct for record in self._records.values() for ct in record.accepted_content_types)
        return list(dict.fromkeys(content_types))

    def find_by_content_type(self, content_type: str | None) -> BaseRestSerializer | None:
        """先精确匹配，再使用各序列化器的模糊匹配谓词"""
        normalized = normalize_content_type(content_type)
        if not normalized:
            return None

        for record in self._records.values():
            if normalized in record.accepted_content_types:
                return record.instance

        for record in self._records.values():
            if record.supports_content_type(normalized):
                return record.instance

        return None

    def get_content_deserializer(
        self,
        response: RestResponse,
        request_format: DataFormat | None = None,
    ) -> BaseRestSerializer | None:
        """
        为响应选择反序列化器

        执行步骤:
            1. 响应内容为空时不反序列化
            2. 使用声明的 Content-Type，缺失时使用内容嗅探的结果
            3. 两者都没有时，使用请求的 request_format 对应的序列化器
            4. 声明的类型匹配不到序列化器时，嗅探内容并重试一次
        """
        content = response.content
        if not content or not content.strip():
            return None

        content_type = response.content_type or detect_content_type(content)
        if content_type is None:
            record = self._records.get(request_format) if request_format is not None else None
            return record.instance if record else None

        serializer = self.find_by_content_type(content_type)
        if serializer is not None:
            return serializer

        detected = detect_content_type(content)
        if detected is None or detected == normalize_content_type(content_type):
            return None
        logger.debug(f"No serializer for content type {content_type}, detected {detected} from content")
        return self.find_by_content_type(detected)

    def deserialize(
        self,
        response: RestResponse,
        target_type: Any,
        throw_on_any_error: bool = False,
        throw_on_deserialization_error: bool = False,
        fail_on_deserialization_error: bool = True,
    ) -> RestResponse:
        """
        反序列化响应内容到 response.data

        错误策略:
            - throw_on_any_error: 原始异常直接抛出
            - fail_on_deserialization_error 或 throw_on_deserialization_error: 响应状态置为 ERROR
            - 异常信息总是记录到 response.error_message / response.error_exception
            - throw_on_deserialization_error: 抛出携带响应的 APIClientDeserializationError

        返回:
            同一个 response 对象
        """
        request = response.request
        try:
            if request is not None and request.on_before_deserialization is not None:
                request.on_before_deserialization(response)

            request_format = request.request_format if request is not None else None
            serializer = self.get_content_deserializer(response, request_format)
            if serializer is None:
                logger.debug(f"No deserializer selected for content type {response.content_type}")
                return response

            response.data = serializer.deserialize(response, target_type)
        except Exception as e:
            if throw_on_any_error:
                raise
            logger.error(f"Failed to deserialize response into {getattr(target_type, '__name__', target_type)}: {e}")
            if fail_on_deserialization_error or throw_on_deserialization_error:
                response.response_status = ResponseStatus.ERROR
            response.add_exception(e)
            if throw_on_deserialization_error:
                raise APIClientDeserializationError(str(e), response=response) from e

        return response
