"""
响应模块

RestResponse 统一承载 HTTP 响应和传输失败的结果:
    - 成功收到响应: response_status 为 COMPLETED，状态码可能是任意值
    - 超时: response_status 为 TIMED_OUT
    - 其他传输错误: response_status 为 ERROR
原始内容（content/raw_bytes）总是保留，便于在反序列化失败时排查。
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import requests
from requests.structures import CaseInsensitiveDict

from restflex.constants import ResponseStatus
from restflex.exceptions import APIClientError, APIClientHTTPError

if TYPE_CHECKING:
    from restflex.request import RestRequest

logger = logging.getLogger(__name__)


class RestResponse:
    """
    REST 响应

    属性:
        request: 对应的请求
        status_code: HTTP 状态码，传输失败时为 0
        status_description: 状态描述（reason）
        content: 解码后的响应文本
        raw_bytes: 原始响应字节
        content_type: 媒体类型（不含 charset 等参数）
        content_length: Content-Length
        content_encoding: Content-Encoding
        headers: 响应头
        cookies: 响应 Cookie
        response_uri: 最终响应的 URL（跟随重定向之后）
        server: Server 响应头
        response_status: 请求完成状态
        error_message: 错误信息
        error_exception: 错误异常
        data: 反序列化后的数据
        root_element: 反序列化根元素（默认取请求上的设置）
        http_response: 底层的 requests.Response
    """

    def __init__(
        self,
        request: RestRequest | None = None,
        *,
        status_code: int = 0,
        status_description: str = "",
        content: str | None = None,
        raw_bytes: bytes | None = None,
        content_type: str | None = None,
        content_length: int | None = None,
        content_encoding: str | None = None,
        headers: dict[str, str] | None = None,
        cookies: dict[str, str] | None = None,
        response_uri: str | None = None,
        server: str | None = None,
        response_status: ResponseStatus = ResponseStatus.NONE,
        error_message: str | None = None,
        error_exception: Exception | None = None,
        data: Any = None,
        root_element: str | None = None,
        http_response: requests.Response | None = None,
    ):
        self.request = request
        self.status_code = status_code
        self.status_description = status_description
        self.content = content
        self.raw_bytes = raw_bytes
        self.content_type = content_type
        self.content_length = content_length
        self.content_encoding = content_encoding
        self.headers = CaseInsensitiveDict(headers or {})
        self.cookies = cookies or {}
        self.response_uri = response_uri
        self.server = server
        self.response_status = response_status
        self.error_message = error_message
        self.error_exception = error_exception
        self.data = data
        if root_element is None and request is not None:
            root_element = request.root_element
        self.root_element = root_element
        self.http_response = http_response

    def __repr__(self) -> str:
        return f"<RestResponse [{self.status_code}] {self.response_status.name}>"

    @classmethod
    def from_http_response(
        cls,
        http_response: requests.Response,
        request: RestRequest | None = None,
        read_content: bool = True,
    ) -> RestResponse:
        """
        从 requests.Response 创建响应

        参数:
            http_response: 底层响应
            request: 对应的请求
            read_content: 是否读取响应内容，流式下载时为 False
        """
        content_type = http_response.headers.get("Content-Type")
        content_length = http_response.headers.get("Content-Length")

        raw_bytes = content = None
        if read_content:
            raw_bytes = http_response.content
            content = http_response.text if raw_bytes else ""

        return cls(
            request,
            status_code=http_response.status_code,
            status_description=http_response.reason or "",
            content=content,
            raw_bytes=raw_bytes,
            content_type=content_type.split(";", 1)[0].strip() if content_type else None,
            content_length=int(content_length) if content_length and content_length.isdigit() else None,
            content_encoding=http_response.headers.get("Content-Encoding"),
            headers=http_response.headers,
            cookies=http_response.cookies.get_dict(),
            response_uri=http_response.url,
            server=http_response.headers.get("Server"),
            response_status=ResponseStatus.COMPLETED,
            http_response=http_response,
        )

    @classmethod
    def from_error(
        cls,
        request: RestRequest | None,
        exception: Exception,
        response_status: ResponseStatus = ResponseStatus.ERROR,
    ) -> RestResponse:
        """传输失败（超时、连接失败等）时创建响应"""
        return cls(
            request,
            response_status=response_status,
            error_message=str(exception),
            error_exception=exception,
        )

    @property
    def is_success_status_code(self) -> bool:
        return 200 <= self.status_code <= 299

    @property
    def is_successful(self) -> bool:
        return self.is_success_status_code and self.response_status is ResponseStatus.COMPLETED

    def add_exception(self, exception: Exception) -> None:
        """记录错误，已有错误时保留第一个异常并追加错误信息"""
        if self.error_exception is None:
            self.error_exception = exception
            self.error_message = str(exception)
        else:
            self.error_message = f"{self.error_message}; {exception}"

    def get_exception(self) -> APIClientError | Exception | None:
        """
        获取描述本次失败的异常

        返回:
            传输/反序列化异常；非 2xx 响应返回 APIClientHTTPError；成功时返回 None
        """
        if self.error_exception is not None:
            return self.error_exception
        if self.response_status is ResponseStatus.COMPLETED and not self.is_success_status_code:
            return APIClientHTTPError(f"HTTP {self.status_code}: {self.status_description}", response=self)
        return None

    def raise_for_error(self) -> RestResponse:
        """请求失败时抛出对应的异常"""
        if (error := self.get_exception()) is not None:
            raise error
        return self
