"""工具函数模块

提供 URL 编码、命名风格转换、日期/时长解析以及日志脱敏等实用功能
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any
from urllib.parse import parse_qs, quote, quote_plus, urlencode, urlparse, urlunparse

from restflex.constants import DEFAULT_ENCODING, UNIX_MAX_SECONDS

# 默认敏感请求头名称集合
DEFAULT_SENSITIVE_HEADERS = {
    "Authorization",
    "Cookie",
    "X-API-Key",
    "X-Auth-Token",
    "X-Access-Token",
    "API-Key",
    "Auth-Token",
    "Session-ID",
}

# 默认敏感URL参数名称集合
DEFAULT_SENSITIVE_PARAMS = {
    "token",
    "password",
    "secret",
    "key",
    "api_key",
    "apikey",
    "access_token",
    "auth_token",
    "oauth_token",
    "session",
    "pwd",
}

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_MS_DATE_PATTERN = re.compile(r"^/Date\((?P<ms>-?\d+)(?P<offset>[+-]\d{4})?\)/$")
_NEW_DATE_PATTERN = re.compile(r"^new Date\((?P<ms>-?\d+)\)$")
_FALLBACK_DATE_FORMATS = (
    "%Y-%m-%d %H:%M:%SZ",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%fZ",
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y",
    "%Y-%m-%d",
)

_TIMESPAN_PATTERN = re.compile(
    r"^(?P<sign>-)?(?:(?P<days>\d+)\.)?(?P<hours>\d{1,2}):(?P<minutes>\d{1,2})"
    r"(?::(?P<seconds>\d{1,2})(?:\.(?P<fraction>\d{1,7}))?)?$"
)
_ISO_DURATION_PATTERN = re.compile(
    r"^(?P<sign>-)?P(?:(?P<weeks>\d+(?:\.\d+)?)W)?(?:(?P<days>\d+(?:\.\d+)?)D)?"
    r"(?:T(?:(?P<hours>\d+(?:\.\d+)?)H)?(?:(?P<minutes>\d+(?:\.\d+)?)M)?(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$"
)
_WORD_SEPARATORS = re.compile(r"[_\-\s]+")


# ========== URL 编码 ==========


def url_encode(value: Any, encoding: str = DEFAULT_ENCODING) -> str:
    """
    按 RFC 3986 对值进行百分号编码，仅保留非保留字符（字母、数字、-._~）

    用于 URL 段和查询参数

    示例:
        >>> url_encode("a b/c")
        "a%20b%2Fc"
    """
    return quote(to_string(value), safe="", encoding=encoding)


def form_encode(value: Any, encoding: str = DEFAULT_ENCODING) -> str:
    """
    application/x-www-form-urlencoded 编码，空格编码为 "+"

    示例:
        >>> form_encode("a b&c")
        "a+b%26c"
    """
    return quote_plus(to_string(value), safe="", encoding=encoding)


def to_string(value: Any) -> str:
    """将参数值转换为线上传输的字符串表示"""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return value.name
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode(DEFAULT_ENCODING)
    return str(value)


# ========== 命名风格转换 ==========


def to_pascal_case(name: str) -> str:
    """
    转换为 PascalCase

    示例:
        >>> to_pascal_case("start_date")
        "StartDate"
        >>> to_pascal_case("startDate")
        "StartDate"
    """
    words = [word for word in _WORD_SEPARATORS.split(name or "") if word]
    if not words:
        return name
    return "".join(word[0].upper() + word[1:] for word in words)


def to_camel_case(name: str) -> str:
    """转换为 camelCase"""
    pascal = to_pascal_case(name)
    return pascal[:1].lower() + pascal[1:]


def _separate_words(name: str, separator: str) -> str:
    text = re.sub(r"([A-Z]+)([A-Z][a-z])", lambda m: f"{m.group(1)}{separator}{m.group(2)}", name)
    text = re.sub(r"([a-z\d])([A-Z])", lambda m: f"{m.group(1)}{separator}{m.group(2)}", text)
    return _WORD_SEPARATORS.sub(separator, text)


def add_underscores(name: str) -> str:
    """StartDate -> Start_Date"""
    return _separate_words(name, "_")


def add_dashes(name: str) -> str:
    """StartDate -> Start-Date"""
    return _separate_words(name, "-")


def add_spaces(name: str) -> str:
    """StartDate -> Start Date"""
    return _separate_words(name, " ")


def to_snake_case(name: str) -> str:
    """StartDate / startDate -> start_date"""
    return add_underscores(name).lower()


def remove_underscores_and_dashes(name: str) -> str:
    return name.replace("_", "").replace("-", "")


def get_name_variants(name: str) -> list[str]:
    """
    生成属性名在报文中可能出现的各种写法，按匹配优先级排序且去重

    参数:
        name: 属性名（snake_case、camelCase 或 PascalCase 均可）

    返回:
        名称变体列表，第一个元素总是原始名称

    示例:
        >>> get_name_variants("start_date")[:4]
        ["start_date", "StartDate", "startDate", "startdate"]
    """
    if not name:
        return []

    pascal = to_pascal_case(name)
    camel = to_camel_case(name)
    underscored = add_underscores(pascal)
    dashed = add_dashes(pascal)
    spaced = add_spaces(pascal)
    underscored_camel = add_underscores(camel)

    variants = [
        name,
        pascal,
        camel,
        name.lower(),
        pascal.lower(),
        underscored,
        underscored.lower(),
        dashed,
        dashed.lower(),
        f"_{pascal}",
        f"_{camel}",
        underscored_camel,
        f"_{underscored_camel}",
        spaced,
        spaced.lower(),
    ]
    return list(dict.fromkeys(variants))


# ========== 日期/时长解析 ==========


def _from_unix(number: int) -> datetime:
    # 超出秒级范围的时间戳视为毫秒
    if abs(number) > UNIX_MAX_SECONDS:
        return _EPOCH + timedelta(milliseconds=number)
    return _EPOCH + timedelta(seconds=number)


def parse_json_date(value: str) -> datetime:
    """
    宽松地解析 JSON 报文中的日期

    支持的格式（按顺序尝试）:
        - unix 时间戳（秒或毫秒），结果为 UTC
        - /Date(1262736000000+0800)/ 与 new Date(1262736000000)
        - ISO-8601（结尾的 Z 视为 UTC，无时区信息时返回 naive datetime）
        - 若干常见的备用格式，如 "12/18/2009 10:02:23 AM"

    异常:
        ValueError: 所有格式都无法解析时抛出
    """
    text = str(value).replace("\\/", "/").strip()

    if re.fullmatch(r"-?\d+", text):
        return _from_unix(int(text))

    if match := _MS_DATE_PATTERN.match(text):
        result = _EPOCH + timedelta(milliseconds=int(match.group("ms")))
        if offset := match.group("offset"):
            sign = -1 if offset[0] == "-" else 1
            delta = timedelta(hours=int(offset[1:3]), minutes=int(offset[3:5]))
            result = result.astimezone(timezone(sign * delta))
        return result

    if match := _NEW_DATE_PATTERN.match(text):
        return _EPOCH + timedelta(milliseconds=int(match.group("ms")))

    iso_text = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        return datetime.fromisoformat(iso_text)
    except ValueError:
        pass

    for date_format in _FALLBACK_DATE_FORMATS:
        try:
            return datetime.strptime(text, date_format)
        except ValueError:
            continue

    raise ValueError(f"Unable to parse '{value}' as a date")


def parse_timespan(value: str) -> timedelta:
    """
    解析时长字符串

    支持 "[-][d.]hh:mm[:ss[.fffffff]]"、纯天数以及 ISO-8601 时长（如 "P1DT2H30M"）

    异常:
        ValueError: 格式无法识别时抛出
    """
    text = str(value).strip()

    if re.fullmatch(r"-?\d+", text):
        return timedelta(days=int(text))

    if match := _TIMESPAN_PATTERN.match(text):
        fraction = match.group("fraction") or "0"
        result = timedelta(
            days=int(match.group("days") or 0),
            hours=int(match.group("hours")),
            minutes=int(match.group("minutes")),
            seconds=int(match.group("seconds") or 0),
            microseconds=int(fraction.ljust(7, "0")[:7]) // 10,
        )
        return -result if match.group("sign") else result

    if (match := _ISO_DURATION_PATTERN.match(text)) and text.lstrip("-") not in ("P", "PT"):
        result = timedelta(
            weeks=float(match.group("weeks") or 0),
            days=float(match.group("days") or 0),
            hours=float(match.group("hours") or 0),
            minutes=float(match.group("minutes") or 0),
            seconds=float(match.group("seconds") or 0),
        )
        return -result if match.group("sign") else result

    raise ValueError(f"Unable to parse '{value}' as a time span")


def format_timespan(value: timedelta) -> str:
    """
    将 timedelta 格式化为 "[-][d.]hh:mm:ss[.fffffff]"

    示例:
        >>> format_timespan(timedelta(days=1, hours=2, seconds=3))
        "1.02:00:03"
    """
    sign = "-" if value < timedelta(0) else ""
    value = abs(value)
    hours, remainder = divmod(value.seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    text = f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    if value.days:
        text = f"{value.days}.{text}"
    if value.microseconds:
        text = f"{text}.{value.microseconds:06d}0"
    return f"{sign}{text}"


# ========== 日志脱敏 ==========


def sanitize_headers(
    headers: dict[str, str],
    sensitive_keys: set[str] | None = None,
    mask: str = "***",
) -> dict[str, str]:
    """
    脱敏请求头中的敏感信息

    参数:
        headers: 原始请求头字典
        sensitive_keys: 敏感键名集合，不区分大小写。None 时使用默认集合
        mask: 脱敏后的替换字符串

    返回:
        脱敏后的请求头字典（新字典，不修改原字典）
    """
    if sensitive_keys is None:
        sensitive_keys = DEFAULT_SENSITIVE_HEADERS

    sensitive_keys_lower = {k.lower() for k in sensitive_keys}
    return {k: mask if k.lower() in sensitive_keys_lower else v for k, v in headers.items()}


def sanitize_url(
    url: str,
    sensitive_params: set[str] | None = None,
    mask: str = "***",
) -> str:
    """
    脱敏 URL 中的敏感查询参数

    示例:
        >>> sanitize_url("https://api.example.com/user?token=abc123&page=1")
        "https://api.example.com/user?token=***&page=1"
    """
    if sensitive_params is None:
        sensitive_params = DEFAULT_SENSITIVE_PARAMS

    parsed = urlparse(url)
    if not parsed.query:
        return url

    sensitive_params_lower = {p.lower() for p in sensitive_params}
    params = parse_qs(parsed.query, keep_blank_values=True)
    sanitized_params = {
        key: [mask] * len(values) if key.lower() in sensitive_params_lower else values
        for key, values in params.items()
    }
    return urlunparse(parsed._replace(query=urlencode(sanitized_params, doseq=True, safe="*")))
