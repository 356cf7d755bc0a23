"""
类型映射模块

JSON/XML/CSV 反序列化器共用的值转换逻辑:
    - Optional[T] 解包，None/空字符串映射为 None
    - bool/int/float 按区域设置（小数点、千分位）转换
    - Enum 按成员名（不区分大小写）或成员值匹配
    - datetime/date 支持显式格式或宽松的 JSON 日期解析
    - Decimal/UUID/timedelta 空字符串回退为默认值
    - list/tuple/set/Iterable、dict 递归转换，None 元素保留
    - 数据类和带注解的普通类递归实例化并逐属性映射
    - 继承 list 的自定义类先填充元素再映射其余属性
"""

from __future__ import annotations

import base64
import collections.abc
import dataclasses
import logging
import types
import typing
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Mapping, Union, get_args, get_origin
from uuid import UUID

from restflex.exceptions import APIClientDeserializationError
from restflex.fields import PropertyDescriptor, get_property_descriptors, has_properties
from restflex.utils import get_name_variants, parse_json_date, parse_timespan, remove_underscores_and_dashes

logger = logging.getLogger(__name__)

_LIST_ORIGINS = {
    list,
    collections.abc.Sequence,
    collections.abc.MutableSequence,
    collections.abc.Iterable,
    collections.abc.Collection,
}
_SET_ORIGINS = {set, frozenset, collections.abc.Set, collections.abc.MutableSet}
_DICT_ORIGINS = {dict, collections.abc.Mapping, collections.abc.MutableMapping}
_UNION_TYPES = (Union, types.UnionType) if hasattr(types, "UnionType") else (Union,)

# 直接以文本表示的标量类型
SCALAR_TYPES = (str, bool, int, float, Decimal, datetime, date, time, timedelta, UUID, bytes)


@dataclass(frozen=True)
class Culture:
    """数值转换使用的区域设置"""

    name: str = "invariant"
    decimal_separator: str = "."
    group_separator: str = ","


INVARIANT_CULTURE = Culture()


def unwrap_optional(target_type: Any) -> tuple[Any, bool]:
    """Optional[T] / T | None -> (T, True)；多个非 None 成员时返回去掉 None 的 Union"""
    if get_origin(target_type) in _UNION_TYPES:
        args = [arg for arg in get_args(target_type) if arg is not type(None)]
        is_optional = len(args) < len(get_args(target_type))
        if len(args) == 1:
            return args[0], is_optional
        return Union[tuple(args)], is_optional
    return target_type, False


def is_list_type(target_type: Any) -> bool:
    origin = get_origin(target_type)
    if origin is not None:
        return origin in _LIST_ORIGINS or origin in _SET_ORIGINS or origin is tuple
    return target_type in (list, tuple, set, frozenset)


def list_item_type(target_type: Any) -> Any:
    """
    获取列表类型的元素类型

    支持 list[T]、Iterable[T] 以及 class Items(list[T]) 这类继承 list 的自定义类
    """
    args = get_args(target_type)
    if args:
        return args[0]
    if isinstance(target_type, type):
        for klass in target_type.__mro__:
            for base in getattr(klass, "__orig_bases__", ()):
                if get_origin(base) is list and get_args(base):
                    return get_args(base)[0]
    return Any


def is_list_derived(target_type: Any) -> bool:
    """是否为继承 list 的自定义类（不包括 list 本身）"""
    return (
        isinstance(target_type, type)
        and get_origin(target_type) is None
        and issubclass(target_type, list)
        and target_type is not list
    )


def is_scalar_type(target_type: Any) -> bool:
    target_type, _ = unwrap_optional(target_type)
    if get_origin(target_type) is not None:
        return False
    return isinstance(target_type, type) and (issubclass(target_type, SCALAR_TYPES) or issubclass(target_type, Enum))


def type_name(target_type: Any) -> str:
    return getattr(target_type, "__name__", None) or str(target_type)


def create_instance(cls: type, values: Mapping[str, Any]) -> Any:
    """
    使用属性值创建实例

    数据类: 通过构造函数传入 init 字段，缺失的必填字段传入 None，其余字段在创建后赋值
    普通类: 使用无参构造函数创建后逐个赋值
    """
    if dataclasses.is_dataclass(cls):
        init_kwargs = {}
        deferred = {}
        for descriptor in get_property_descriptors(cls):
            if descriptor.name in values:
                target = init_kwargs if descriptor.init else deferred
                target[descriptor.name] = values[descriptor.name]
            elif descriptor.init and descriptor.required:
                init_kwargs[descriptor.name] = None
        instance = cls(**init_kwargs)
        for name, value in deferred.items():
            object.__setattr__(instance, name, value)
        return instance

    instance = cls()
    apply_values(instance, values)
    return instance


def apply_values(instance: Any, values: Mapping[str, Any]) -> None:
    for name, value in values.items():
        setattr(instance, name, value)


def find_enum_value(enum_type: type[Enum], value: Any) -> Enum:
    """
    查找枚举成员

    匹配顺序: 成员对象本身 -> 成员名（不区分大小写，忽略 _ 和 -）-> 成员值

    异常:
        APIClientDeserializationError: 无法匹配任何成员
    """
    if isinstance(value, enum_type):
        return value

    text = str(value).strip()
    normalized = remove_underscores_and_dashes(text).lower()
    for member in enum_type:
        if member.name.lower() == text.lower() or remove_underscores_and_dashes(member.name).lower() == normalized:
            return member

    for member in enum_type:
        if member.value == value or str(member.value) == text:
            return member

    raise APIClientDeserializationError(f"Value '{value}' is not a valid member of enum {enum_type.__name__}")


class ValueConverter:
    """
    值转换器

    参数:
        culture: 数值转换使用的区域设置，默认不变区域
        date_format: datetime 的 strptime 格式，未设置时宽松解析
    """

    def __init__(self, culture: Culture | None = None, date_format: str | None = None):
        self.culture = culture or INVARIANT_CULTURE
        self.date_format = date_format

    # ========== 入口 ==========

    def convert(self, value: Any, target_type: Any) -> Any:
        """
        将解析后的报文值（dict/list/基础类型）转换为目标类型

        异常:
            APIClientDeserializationError: 值无法转换为目标类型
        """
        if target_type is Any or target_type is object or isinstance(target_type, (str, typing.ForwardRef)):
            return value

        if get_origin(target_type) is typing.Annotated:
            target_type = get_args(target_type)[0]

        target_type, is_optional = unwrap_optional(target_type)
        if value is None:
            return None
        if is_optional and isinstance(value, str) and not value.strip():
            return None

        if get_origin(target_type) in _UNION_TYPES:
            return self._convert_union(value, target_type)

        try:
            return self._convert(value, target_type)
        except APIClientDeserializationError:
            raise
        except (ValueError, TypeError, ArithmeticError, InvalidOperation) as e:
            raise APIClientDeserializationError(
                f"Unable to convert value '{value}' to type {type_name(target_type)}: {e}"
            ) from e

    def _convert_union(self, value: Any, target_type: Any) -> Any:
        for candidate in get_args(target_type):
            try:
                return self.convert(value, candidate)
            except APIClientDeserializationError:
                continue
        raise APIClientDeserializationError(f"Unable to convert value '{value}' to any of {target_type}")

    def _convert(self, value: Any, target_type: Any) -> Any:
        origin = get_origin(target_type)

        if origin is not None:
            if origin in _LIST_ORIGINS:
                return self.build_list(value, list_item_type(target_type))
            if origin in _SET_ORIGINS:
                items = self.build_list(value, list_item_type(target_type))
                return frozenset(items) if origin is frozenset else set(items)
            if origin is tuple:
                return self._build_tuple(value, get_args(target_type))
            if origin in _DICT_ORIGINS:
                key_type, value_type = (get_args(target_type) + (Any, Any))[:2]
                return self.build_dict(value, key_type, value_type)
            if origin is typing.Literal:
                if value not in get_args(target_type):
                    raise ValueError(f"expected one of {get_args(target_type)}")
                return value
            return value

        if target_type in (list, set, frozenset, tuple):
            return target_type(self.build_list(value, Any))
        if target_type is dict:
            return self.build_dict(value, Any, Any)

        if not isinstance(target_type, type):
            return value

        if issubclass(target_type, Enum):
            return find_enum_value(target_type, value)
        if issubclass(target_type, bool):
            return self.to_bool(value)
        if issubclass(target_type, str):
            return value if isinstance(value, str) else str(value)
        if issubclass(target_type, datetime):
            return self.to_datetime(value)
        if issubclass(target_type, date):
            return self.to_datetime(value).date() if not isinstance(value, date) else value
        if issubclass(target_type, time):
            return value if isinstance(value, time) else time.fromisoformat(str(value))
        if issubclass(target_type, Decimal):
            return self.to_decimal(value)
        if issubclass(target_type, int):
            return self.to_int(value)
        if issubclass(target_type, float):
            return float(self._normalize_number(value))
        if issubclass(target_type, UUID):
            return self.to_uuid(value)
        if issubclass(target_type, timedelta):
            return self.to_timedelta(value)
        if issubclass(target_type, bytes):
            return value if isinstance(value, bytes) else base64.b64decode(value)

        if is_list_derived(target_type):
            return self.build_list_derived(value, target_type)
        if isinstance(value, target_type):
            return value
        if has_properties(target_type):
            if not isinstance(value, Mapping):
                raise TypeError(f"expected an object for {target_type.__name__}, got {type(value).__name__}")
            return self.map_object(value, target_type)

        return target_type(value)

    # ========== 标量 ==========

    def _normalize_number(self, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        text = value.strip()
        if self.culture.group_separator:
            text = text.replace(self.culture.group_separator, "")
        if self.culture.decimal_separator != ".":
            text = text.replace(self.culture.decimal_separator, ".")
        return text

    def to_bool(self, value: Any) -> bool:
        if isinstance(value, str):
            text = value.strip().lower()
            if text in ("true", "1"):
                return True
            if text in ("false", "0"):
                return False
            raise ValueError(f"'{value}' is not a boolean")
        return bool(value)

    def to_int(self, value: Any) -> int:
        if isinstance(value, float):
            if not value.is_integer():
                raise ValueError(f"{value} is not an integer")
            return int(value)
        return int(self._normalize_number(value))

    def to_decimal(self, value: Any) -> Decimal:
        if isinstance(value, Decimal):
            return value
        if isinstance(value, str) and not value.strip():
            return Decimal(0)
        if isinstance(value, float):
            return Decimal(str(value))
        return Decimal(self._normalize_number(value))

    def to_uuid(self, value: Any) -> UUID:
        if isinstance(value, UUID):
            return value
        text = str(value).strip()
        return UUID(text) if text else UUID(int=0)

    def to_timedelta(self, value: Any) -> timedelta:
        if isinstance(value, timedelta):
            return value
        if isinstance(value, (int, float)):
            return timedelta(seconds=value)
        text = str(value).strip()
        return parse_timespan(text) if text else timedelta(0)

    def to_datetime(self, value: Any) -> datetime:
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return parse_json_date(str(int(value)))
        text = str(value).strip()
        if self.date_format:
            return datetime.strptime(text, self.date_format)
        return parse_json_date(text)

    # ========== 容器 ==========

    def build_list(self, value: Any, item_type: Any) -> list:
        """转换为列表，None 元素保留；非列表的源值视为单元素列表"""
        items = value if isinstance(value, (list, tuple, set, frozenset)) else [value]
        return [None if item is None else self.convert(item, item_type) for item in items]

    def _build_tuple(self, value: Any, args: tuple) -> tuple:
        if len(args) == 2 and args[1] is Ellipsis:
            return tuple(self.build_list(value, args[0]))
        items = list(value) if isinstance(value, (list, tuple)) else [value]
        if args and len(items) != len(args):
            raise ValueError(f"expected {len(args)} items, got {len(items)}")
        return tuple(self.convert(item, arg) for item, arg in zip(items, args or [Any] * len(items)))

    def build_dict(self, value: Any, key_type: Any, value_type: Any) -> dict:
        if not isinstance(value, Mapping):
            raise TypeError(f"expected an object, got {type(value).__name__}")
        return {self.convert(key, key_type): self.convert(item, value_type) for key, item in value.items()}

    def build_list_derived(self, value: Any, target_type: type) -> list:
        """
        继承 list 的自定义类: 先填充元素，再把对象中的其余属性映射到同一实例

        元素只来自数组；来源是对象时只映射属性，列表保持为空
        """
        instance = target_type()
        item_type = list_item_type(target_type)
        if isinstance(value, Mapping):
            logger.debug(
                f"Source for list-derived type {type_name(target_type)} is an object, "
                f"only its properties are mapped and the list stays empty"
            )
            apply_values(instance, self.map_values(value, target_type))
            return instance
        instance.extend(self.build_list(value, item_type))
        return instance

    # ========== 对象 ==========

    def map_object(self, data: Mapping[str, Any], cls: type) -> Any:
        return create_instance(cls, self.map_values(data, cls))

    def map_values(self, data: Mapping[str, Any], cls: type) -> dict[str, Any]:
        """逐属性查找并转换，找不到的属性保持默认值"""
        values = {}
        for descriptor in get_property_descriptors(cls):
            found, raw = find_value(data, descriptor)
            if not found or raw is None:
                continue
            values[descriptor.name] = self.convert(raw, descriptor.type)
        return values


def find_value(data: Mapping[str, Any], descriptor: PropertyDescriptor) -> tuple[bool, Any]:
    """
    在字典中查找属性对应的值

    查找顺序:
        1. 精确名称（DeserializeAs.name 或属性名）
        2. 以 "." 分隔的嵌套路径
        3. 名称变体（PascalCase、camelCase、snake_case、dash-case 等）
        4. 忽略大小写、下划线和短横线的匹配
    """
    name = descriptor.source_name
    if name in data:
        return True, data[name]

    if "." in name:
        current: Any = data
        for part in name.split("."):
            if not isinstance(current, Mapping):
                return False, None
            found, current = _lookup(current, part)
            if not found:
                return False, None
        return True, current

    return _lookup(data, name)


def _lookup(data: Mapping[str, Any], name: str) -> tuple[bool, Any]:
    for variant in get_name_variants(name):
        if variant in data:
            return True, data[variant]

    normalized = remove_underscores_and_dashes(name).lower()
    for key, value in data.items():
        if isinstance(key, str) and remove_underscores_and_dashes(key).replace(" ", "").lower() == normalized:
            return True, value
    return False, None
