"""
响应解析器模块

解析器在收到响应（response_status 为 COMPLETED）后调用，返回值写入 response.data:
    - DeserializingResponseParser: 按内容类型选择序列化器并反序列化为目标类型（默认）
    - RawResponseParser: 返回底层 requests.Response
    - ContentResponseParser: 返回原始响应字节
    - FileWriteResponseParser: 以流式方式把响应写入文件，返回文件路径
"""

from __future__ import annotations

import logging
import os
import re
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any
from urllib.parse import unquote

import requests

from restflex.constants import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_DOWNLOAD_PATH,
    DEFAULT_FILENAME,
)

if TYPE_CHECKING:
    from restflex.client import RestClient
    from restflex.response import RestResponse

logger = logging.getLogger(__name__)

_FILENAME_STAR_PATTERN = re.compile(r"filename\*\s*=\s*[^']*'[^']*'([^;]+)", re.IGNORECASE)
_FILENAME_PATTERN = re.compile(r'filename\s*=\s*"?([^";]+)"?', re.IGNORECASE)


class BaseResponseParser(ABC):
    """响应解析器基类"""

    # 为 True 时以流式方式请求，响应内容不会预先读入内存
    is_stream: bool = False

    @abstractmethod
    def parse(self, client_instance: RestClient, response: RestResponse, target_type: Any = None, **context) -> Any:
        """
        解析响应

        参数:
            client_instance: 发起请求的客户端
            response: 响应对象
            target_type: 反序列化的目标类型
            **context: 请求级别的额外上下文（如下载文件名）
        """


class DeserializingResponseParser(BaseResponseParser):
    """
    使用客户端的序列化器表反序列化响应

    错误策略取自客户端的 throw_on_any_error / throw_on_deserialization_error /
    fail_on_deserialization_error 配置
    """

    def parse(self, client_instance: RestClient, response: RestResponse, target_type: Any = None, **context) -> Any:
        client_instance.serializers.deserialize(
            response,
            target_type if target_type is not None else Any,
            throw_on_any_error=client_instance.throw_on_any_error,
            throw_on_deserialization_error=client_instance.throw_on_deserialization_error,
            fail_on_deserialization_error=client_instance.fail_on_deserialization_error,
        )
        return response.data


class ContentResponseParser(BaseResponseParser):
    """返回原始响应字节"""

    def parse(self, client_instance: RestClient, response: RestResponse, target_type: Any = None, **context) -> bytes:
        logger.debug("Parsing response as content bytes")
        return response.raw_bytes


class RawResponseParser(BaseResponseParser):
    """返回底层 requests.Response"""

    def parse(
        self, client_instance: RestClient, response: RestResponse, target_type: Any = None, **context
    ) -> requests.Response:
        logger.debug("Returning raw response object")
        return response.http_response


class FileWriteResponseParser(BaseResponseParser):
    """
    文件写入响应解析器

    将响应内容以流式方式写入文件，适用于大文件下载

    文件名优先级: context 中的 filename -> Content-Disposition -> URL 最后一段 -> default_filename

    参数:
        base_path: 文件保存的基础路径
        chunk_size: 分块读取大小（字节）
        default_filename: 默认文件名
    """

    is_stream: bool = True
    chunk_size: int = DEFAULT_CHUNK_SIZE
    base_path: str = DEFAULT_DOWNLOAD_PATH
    default_filename = DEFAULT_FILENAME
    suffix: str = ""

    def __init__(self, base_path=None, chunk_size=None, default_filename=None):
        self.base_path = base_path or self.base_path
        self.chunk_size = chunk_size or self.chunk_size
        self.default_filename = default_filename or self.default_filename
        os.makedirs(self.base_path, exist_ok=True)

    def resolve_filename(self, response: RestResponse, filename: str | None = None) -> str:
        if filename:
            return filename

        disposition = response.headers.get("Content-Disposition") or ""
        if match := _FILENAME_STAR_PATTERN.search(disposition):
            return os.path.basename(unquote(match.group(1).strip()))
        if match := _FILENAME_PATTERN.search(disposition):
            return os.path.basename(match.group(1).strip())

        if response.response_uri:
            parts = response.response_uri.split("?")[0].rstrip("/").split("/")
            if parts and parts[-1] and "." in parts[-1]:
                return parts[-1]
        return self.default_filename

    def parse(
        self, client_instance: RestClient, response: RestResponse, target_type: Any = None, **context
    ) -> str | None:
        """
        写入文件并返回文件路径

        非 2xx 响应不写文件，正文读入 response.content 后返回 None；
        写入中途失败时删除不完整的文件并重新抛出异常
        """
        http_response = response.http_response
        if not response.is_success_status_code:
            try:
                response.raw_bytes = http_response.content
                response.content = http_response.text
            finally:
                http_response.close()
            logger.warning(f"Skipping file write for HTTP {response.status_code} response")
            return None

        filename = self.resolve_filename(response, context.get("filename"))
        if self.suffix:
            filename += self.suffix

        file_path = os.path.join(self.base_path, filename)
        logger.debug(f"Writing response content to file: {file_path}")

        try:
            with open(file_path, "wb") as f:
                for chunk in http_response.iter_content(chunk_size=self.chunk_size):
                    if chunk:
                        f.write(chunk)
        except Exception:
            logger.error(f"Failed to write response content, removing partial file: {file_path}")
            if os.path.exists(file_path):
                os.remove(file_path)
            raise
        finally:
            http_response.close()
        return file_path
