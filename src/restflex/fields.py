"""
属性元数据模块

为数据类/普通类的属性声明序列化相关的元数据，并为每个类型构建一次、缓存复用的属性描述表。

元数据有两种声明方式:

    # 方式1: dataclasses.field 的 metadata
    @dataclass
    class Person:
        first_name: str = field(default=None, metadata=deserialize_as(name="FirstName"))
        tags: list[str] = field(default_factory=list, metadata=request_property(
            array_query_type=RequestArrayQueryType.ARRAY_PARAMETERS))

    # 方式2: typing.Annotated
    class Person:
        id: Annotated[int, DeserializeAs(name="Id", attribute=True)]
"""

from __future__ import annotations

import dataclasses
import functools
import logging
import sys
import typing
from dataclasses import dataclass
from typing import Annotated, Any, ClassVar, get_args, get_origin

from restflex.constants import NameStyle, RequestArrayQueryType
from restflex.utils import to_camel_case, to_pascal_case

logger = logging.getLogger(__name__)

REQUEST_PROPERTY_KEY = "restflex.request_property"
DESERIALIZE_AS_KEY = "restflex.deserialize_as"
SERIALIZE_AS_KEY = "restflex.serialize_as"


@dataclass(frozen=True)
class RequestProperty:
    """
    对象转换为请求参数时的属性设置

    属性:
        name: 参数名，默认使用属性名
        format: 传给 format() 的格式说明，如 ".2f"、"%Y-%m-%d"
        array_query_type: 数组属性的展开方式
        encode: 参数值是否需要 URL 编码
    """

    name: str | None = None
    format: str | None = None
    array_query_type: RequestArrayQueryType = RequestArrayQueryType.COMMA_SEPARATED
    encode: bool = True


@dataclass(frozen=True)
class DeserializeAs:
    """
    反序列化时的属性设置

    属性:
        name: 报文中的名称（也可以是 JSON 中以 "." 分隔的嵌套路径）
        attribute: XML 中只从属性读取
        content: XML 中读取当前元素的文本内容，每个类最多一个
    """

    name: str | None = None
    attribute: bool = False
    content: bool = False


@dataclass(frozen=True)
class SerializeAs:
    """XML 序列化时的属性设置，index 越小越靠前"""

    name: str | None = None
    attribute: bool = False
    content: bool = False
    name_style: NameStyle = NameStyle.AS_IS
    index: int = sys.maxsize

    def transform_name(self, name: str) -> str:
        if self.name_style is NameStyle.CAMEL_CASE:
            return to_camel_case(name)
        if self.name_style is NameStyle.PASCAL_CASE:
            return to_pascal_case(name)
        if self.name_style is NameStyle.LOWER_CASE:
            return name.lower()
        return name


DEFAULT_SERIALIZE_AS = SerializeAs()


def request_property(**kwargs) -> dict[str, RequestProperty]:
    """生成可传给 dataclasses.field(metadata=...) 的元数据"""
    return {REQUEST_PROPERTY_KEY: RequestProperty(**kwargs)}


def deserialize_as(**kwargs) -> dict[str, DeserializeAs]:
    return {DESERIALIZE_AS_KEY: DeserializeAs(**kwargs)}


def serialize_as(**kwargs) -> dict[str, SerializeAs]:
    return {SERIALIZE_AS_KEY: SerializeAs(**kwargs)}


@dataclass(frozen=True)
class PropertyDescriptor:
    """类型中单个可读写属性的描述"""

    name: str
    type: Any
    request_property: RequestProperty | None = None
    deserialize_as: DeserializeAs | None = None
    serialize_as: SerializeAs | None = None
    init: bool = True
    required: bool = False

    @property
    def source_name(self) -> str:
        """反序列化时优先查找的名称"""
        if self.deserialize_as and self.deserialize_as.name:
            return self.deserialize_as.name
        return self.name

    @property
    def has_explicit_name(self) -> bool:
        return bool(self.deserialize_as and self.deserialize_as.name)


def _split_annotated(hint: Any) -> tuple[Any, tuple]:
    if get_origin(hint) is Annotated:
        base, *extras = get_args(hint)
        return base, tuple(extras)
    return hint, ()


def _pick(kind: type, extras: tuple, metadata: typing.Mapping, key: str):
    if (value := metadata.get(key)) is not None:
        return value
    for extra in extras:
        if isinstance(extra, kind):
            return extra
    return None


def _collect_type_hints(cls: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(cls, include_extras=True)
    except (NameError, TypeError) as e:
        # 未解析的前向引用保留为字符串，映射时按 Any 处理
        logger.debug(f"Failed to resolve type hints of {cls.__name__}: {e}")
        hints: dict[str, Any] = {}
        for klass in reversed(cls.__mro__):
            hints.update(getattr(klass, "__annotations__", {}))
        return hints


@functools.lru_cache(maxsize=None)
def get_property_descriptors(cls: type) -> tuple[PropertyDescriptor, ...]:
    """
    获取类型的属性描述表（按类型缓存）

    数据类使用 dataclasses.fields 的顺序；普通类使用类型注解（包括父类）的顺序。
    私有属性（下划线开头）和 ClassVar 会被跳过。
    """
    hints = _collect_type_hints(cls)
    descriptors = []

    if dataclasses.is_dataclass(cls):
        for field in dataclasses.fields(cls):
            hint, extras = _split_annotated(hints.get(field.name, field.type))
            descriptors.append(
                PropertyDescriptor(
                    name=field.name,
                    type=hint,
                    request_property=_pick(RequestProperty, extras, field.metadata, REQUEST_PROPERTY_KEY),
                    deserialize_as=_pick(DeserializeAs, extras, field.metadata, DESERIALIZE_AS_KEY),
                    serialize_as=_pick(SerializeAs, extras, field.metadata, SERIALIZE_AS_KEY),
                    init=field.init,
                    required=field.default is dataclasses.MISSING and field.default_factory is dataclasses.MISSING,
                )
            )
        return tuple(descriptors)

    for name, raw_hint in hints.items():
        if name.startswith("_") or get_origin(raw_hint) is ClassVar or raw_hint is ClassVar:
            continue
        hint, extras = _split_annotated(raw_hint)
        descriptors.append(
            PropertyDescriptor(
                name=name,
                type=hint,
                request_property=_pick(RequestProperty, extras, {}, REQUEST_PROPERTY_KEY),
                deserialize_as=_pick(DeserializeAs, extras, {}, DESERIALIZE_AS_KEY),
                serialize_as=_pick(SerializeAs, extras, {}, SERIALIZE_AS_KEY),
            )
        )
    return tuple(descriptors)


def has_properties(cls: Any) -> bool:
    """类型是否声明了可映射的属性（数据类或带注解的普通类）"""
    if not isinstance(cls, type) or get_origin(cls) is not None:
        return False
    return dataclasses.is_dataclass(cls) or bool(get_property_descriptors(cls))
