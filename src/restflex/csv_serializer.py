"""
CSV 序列化器

基于标准库 csv。第一行为表头，每一行映射为一个对象:
    - 目标类型为列表时返回所有行
    - 目标类型为单个对象时只返回第一行
    - 目标类型为 dict/Any 时返回原始的行字典
"""

from __future__ import annotations

import csv
import dataclasses
import io
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping

from restflex.constants import CONTENT_TYPE_CSV, CSV_ACCEPT, DataFormat
from restflex.fields import get_property_descriptors, has_properties
from restflex.mapping import Culture, ValueConverter, is_list_derived, is_list_type, unwrap_optional
from restflex.serializer import BaseRestSerializer, normalize_content_type
from restflex.utils import to_string

if TYPE_CHECKING:
    from restflex.response import RestResponse

logger = logging.getLogger(__name__)


class CsvSerializer(BaseRestSerializer):
    """
    CSV 序列化器

    参数:
        delimiter: 字段分隔符
        date_format: datetime 的 strptime 格式
        culture: 数值转换的区域设置
    """

    data_format = DataFormat.CSV
    content_type = CONTENT_TYPE_CSV
    accepted_content_types = CSV_ACCEPT

    def __init__(self, delimiter: str = ",", date_format: str | None = None, culture: Culture | None = None):
        self.delimiter = delimiter
        self.date_format = date_format
        self.culture = culture

    def supports_content_type(self, content_type: str) -> bool:
        normalized = normalize_content_type(content_type)
        return normalized in self.accepted_content_types or "csv" in normalized

    def _row(self, obj: Any) -> dict[str, str]:
        if isinstance(obj, Mapping):
            items = obj.items()
        elif has_properties(type(obj)):
            items = ((d.source_name, getattr(obj, d.name, None)) for d in get_property_descriptors(type(obj)))
        elif dataclasses.is_dataclass(obj):
            items = dataclasses.asdict(obj).items()
        else:
            items = ((k, v) for k, v in vars(obj).items() if not k.startswith("_"))
        return {str(key): "" if value is None else self._format(value) for key, value in items}

    @staticmethod
    def _format(value: Any) -> str:
        if isinstance(value, Enum):
            return value.name
        return to_string(value)

    def serialize(self, obj: Any) -> str | None:
        if obj is None:
            return None
        if isinstance(obj, str):
            return obj

        rows = [self._row(item) for item in (obj if isinstance(obj, (list, tuple)) else [obj])]
        if not rows:
            return ""

        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=list(rows[0]), delimiter=self.delimiter, lineterminator="\n")
        writer.writeheader()
        writer.writerows(rows)
        return buffer.getvalue()

    def deserialize(self, response: RestResponse, target_type: Any) -> Any:
        content = response.content
        if not content or not content.strip():
            return None

        rows = list(csv.DictReader(io.StringIO(content), delimiter=self.delimiter))
        request = response.request
        date_format = (request.date_format if request is not None else None) or self.date_format
        converter = ValueConverter(culture=self.culture, date_format=date_format)

        target_type, _ = unwrap_optional(target_type)
        if is_list_type(target_type) or is_list_derived(target_type):
            return converter.convert(rows, target_type)

        if not rows:
            logger.debug("CSV response has no data rows")
            return None
        return converter.convert(rows[0], target_type)
