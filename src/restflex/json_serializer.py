"""
JSON 序列化器

序列化使用标准库 json，支持数据类/普通对象、枚举（按成员名）、日期（ISO-8601）、
Decimal（字符串）、UUID、timedelta、集合和 bytes（base64）；已经是 JSON 文本的字符串原样发送。

反序列化先把文本解析为 dict/list 树，再交给 ValueConverter 映射为目标类型。
"""

from __future__ import annotations

import base64
import dataclasses
import json
import logging
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID

from restflex.constants import CONTENT_TYPE_JSON, JSON_ACCEPT, DataFormat
from restflex.mapping import Culture, ValueConverter
from restflex.serializer import BaseRestSerializer, normalize_content_type
from restflex.utils import format_timespan

if TYPE_CHECKING:
    from restflex.response import RestResponse

logger = logging.getLogger(__name__)


def to_serializable(obj: Any) -> Any:
    """json.dumps 的 default 钩子，把无法直接序列化的对象转换为基础类型"""
    if isinstance(obj, Enum):
        return obj.name
    if isinstance(obj, (datetime, date, time)):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        # 与 DRF DecimalField 一致按字符串写出，不经过 float
        return str(obj)
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, timedelta):
        return format_timespan(obj)
    if isinstance(obj, (set, frozenset)):
        return list(obj)
    if isinstance(obj, (bytes, bytearray)):
        return base64.b64encode(bytes(obj)).decode("ascii")
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {field.name: getattr(obj, field.name) for field in dataclasses.fields(obj)}
    if hasattr(obj, "__dict__"):
        return {key: value for key, value in vars(obj).items() if not key.startswith("_")}
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def is_serialized_string(value: str) -> bool:
    text = value.strip()
    return (text.startswith("{") and text.endswith("}")) or (text.startswith("[") and text.endswith("]"))


class JsonSerializer(BaseRestSerializer):
    """
    JSON 序列化器

    参数:
        root_element: 反序列化前从最外层对象中取出的键（请求上的设置优先）
        date_format: datetime 的 strptime 格式（请求上的设置优先）
        culture: 数值转换的区域设置
        ensure_ascii: 序列化时是否转义非 ASCII 字符
    """

    data_format = DataFormat.JSON
    content_type = CONTENT_TYPE_JSON
    accepted_content_types = JSON_ACCEPT

    def __init__(
        self,
        root_element: str | None = None,
        date_format: str | None = None,
        culture: Culture | None = None,
        ensure_ascii: bool = False,
    ):
        self.root_element = root_element
        self.date_format = date_format
        self.culture = culture
        self.ensure_ascii = ensure_ascii

    def supports_content_type(self, content_type: str) -> bool:
        normalized = normalize_content_type(content_type)
        return normalized in self.accepted_content_types or normalized.endswith("+json")

    def serialize(self, obj: Any) -> str | None:
        if obj is None:
            return None
        if isinstance(obj, str) and is_serialized_string(obj):
            return obj
        return json.dumps(obj, default=to_serializable, ensure_ascii=self.ensure_ascii)

    def deserialize(self, response: RestResponse, target_type: Any) -> Any:
        content = response.content
        if not content or not content.strip():
            return None

        data = json.loads(content)

        request = response.request
        root_element = response.root_element or self.root_element
        if root_element and isinstance(data, dict):
            logger.debug(f"Unwrapping JSON root element '{root_element}'")
            data = data.get(root_element)

        date_format = (request.date_format if request is not None else None) or self.date_format
        converter = ValueConverter(culture=self.culture, date_format=date_format)
        return converter.convert(data, target_type)
