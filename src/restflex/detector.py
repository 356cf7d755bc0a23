"""
内容类型嗅探模块

响应缺少或声明了无法识别的 Content-Type 时，根据正文第一个非空白字符猜测格式:
    "<"       -> XML
    "{" / "[" -> JSON
    其他      -> 无法识别

这是启发式判断：以 "{" 开头的纯文本会被误判为 JSON，随后的反序列化失败按反序列化错误处理
"""

from __future__ import annotations

from restflex.constants import CONTENT_TYPE_JSON, CONTENT_TYPE_XML, DataFormat


def detect_data_format(content: str | bytes | None) -> DataFormat | None:
    if not content:
        return None
    if isinstance(content, (bytes, bytearray)):
        stripped = bytes(content).lstrip()
        first = chr(stripped[0]) if stripped else ""
    else:
        stripped = content.lstrip()
        first = stripped[:1]

    if first == "<":
        return DataFormat.XML
    if first in ("{", "["):
        return DataFormat.JSON
    return None


def detect_content_type(content: str | bytes | None) -> str | None:
    """返回嗅探出的内容类型，无法识别时返回 None"""
    data_format = detect_data_format(content)
    if data_format is DataFormat.XML:
        return CONTENT_TYPE_XML
    if data_format is DataFormat.JSON:
        return CONTENT_TYPE_JSON
    return None
