"""
对象解析模块

把任意对象的公开属性展开为 (name, value, encode) 三元组，供 RestRequest.add_object 生成请求参数。

属性元数据通过 RequestProperty 声明:
    @dataclass
    class SearchQuery:
        keyword: str
        price: float = field(default=None, metadata=request_property(format=".2f"))
        ids: list[int] = field(default_factory=list, metadata=request_property(
            name="id", array_query_type=RequestArrayQueryType.ARRAY_PARAMETERS))

    >>> get_properties(SearchQuery("book", 9.5, [1, 2]))
    [ObjectProperty("keyword", "book", True), ObjectProperty("price", "9.50", True),
     ObjectProperty("id[]", "1", True), ObjectProperty("id[]", "2", True)]
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Iterator, NamedTuple

from restflex.constants import RequestArrayQueryType
from restflex.fields import RequestProperty, get_property_descriptors, has_properties
from restflex.utils import to_string

_DEFAULT_REQUEST_PROPERTY = RequestProperty()
_ARRAY_TYPES = (list, tuple, set, frozenset)


class ObjectProperty(NamedTuple):
    name: str
    value: str | None
    encode: bool


def _iter_attributes(obj: Any) -> Iterator[tuple[str, Any, RequestProperty]]:
    if isinstance(obj, Mapping):
        for key, value in obj.items():
            yield str(key), value, _DEFAULT_REQUEST_PROPERTY
        return

    if has_properties(type(obj)):
        for descriptor in get_property_descriptors(type(obj)):
            yield descriptor.name, getattr(obj, descriptor.name, None), descriptor.request_property or _DEFAULT_REQUEST_PROPERTY
        return

    for name, value in vars(obj).items():
        if not name.startswith("_"):
            yield name, value, _DEFAULT_REQUEST_PROPERTY


def format_value(value: Any, value_format: str | None = None) -> str:
    """按格式说明格式化单个值，未指定格式时使用线上字符串表示"""
    if value_format:
        return format(value, value_format)
    return to_string(value)


def get_properties(obj: Any, *included_properties: str) -> list[ObjectProperty]:
    """
    获取对象的参数候选列表

    参数:
        obj: 数据类、带注解的普通类、普通对象或字典
        included_properties: 只包含这些属性（属性名或参数名），为空时包含全部

    返回:
        ObjectProperty 列表，值为 None 的属性被跳过；
        空数组仍会生成一个值为 None 的参数，以保留查询键
    """
    properties = []

    for attribute_name, value, settings in _iter_attributes(obj):
        name = settings.name or attribute_name
        if included_properties and attribute_name not in included_properties and name not in included_properties:
            continue
        if value is None:
            continue

        if isinstance(value, _ARRAY_TYPES):
            properties.extend(_parse_array(name, value, settings))
        else:
            properties.append(ObjectProperty(name, format_value(value, settings.format), settings.encode))

    return properties


def _parse_array(name: str, values: Any, settings: RequestProperty) -> list[ObjectProperty]:
    items = list(values)
    if not items:
        return [ObjectProperty(name, None, settings.encode)]

    if settings.array_query_type is RequestArrayQueryType.ARRAY_PARAMETERS:
        return [ObjectProperty(f"{name}[]", format_value(item, settings.format), settings.encode) for item in items]

    joined = ",".join(format_value(item, settings.format) for item in items)
    return [ObjectProperty(name, joined, settings.encode)]
