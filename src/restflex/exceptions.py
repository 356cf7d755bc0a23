"""
HTTP 客户端异常模块

定义所有 API 客户端相关的异常类，提供统一的错误处理机制

异常层次:
    APIClientError
    ├── APIClientConfigurationError   配置错误（缺少序列化器、重复请求体等），在调用点立即抛出
    ├── APIClientValidationError      输入验证错误（参数名为空、URL 无法构建等）
    ├── APIClientEncodingError        编码错误（Binary 格式的请求体不是字节序列）
    ├── APIClientSerializationError   请求体序列化失败
    ├── APIClientDeserializationError 响应反序列化失败，携带部分填充的响应
    ├── APIClientHTTPError            4xx/5xx 响应
    ├── APIClientNetworkError         网络层错误
    ├── APIClientTimeoutError         超时
    ├── APIClientRequestValidationError  请求参数未通过序列化器验证
    └── APIClientResponseValidationError 响应未通过验证器
"""

from __future__ import annotations

from typing import Any


class APIClientError(Exception):
    """
    API 客户端异常基类

    所有自定义异常的基类，用于统一捕获和处理客户端相关错误
    """


class APIClientConfigurationError(APIClientError):
    """
    配置异常

    违反客户端/请求配置约束时抛出，例如：
        - 为某种数据格式请求序列化器，但未注册
        - 向同一请求添加第二个请求体参数
        - 通过默认参数设置请求体
    """


class APIClientValidationError(APIClientError):
    """
    输入验证异常

    当请求参数、配置等输入数据验证失败时抛出此异常
    """


class APIClientEncodingError(APIClientError, ValueError):
    """
    编码异常

    在参数构造阶段发现值与声明的数据格式不符时抛出，
    例如 DataFormat.BINARY 的请求体参数值不是 bytes
    """


class APIClientSerializationError(APIClientError):
    """请求体序列化异常"""


class APIClientDeserializationError(APIClientError):
    """
    响应反序列化异常

    参数:
        message: 错误描述信息
        response: 已部分填充的 RestResponse（可选）

    属性:
        response: 原始内容始终保留在 response.content 中，便于排查
    """

    def __init__(self, message: str, response: Any = None):
        super().__init__(message)
        self.response = response


class APIClientHTTPError(APIClientError):
    """
    HTTP 错误响应异常

    当服务器返回 4xx 或 5xx 状态码且客户端配置为抛出异常时使用

    参数:
        message: 错误描述信息
        response: RestResponse 对象（可选）

    属性:
        response: 保存响应对象，便于获取详细错误信息
        status_code: HTTP 状态码
    """

    def __init__(self, message: str, response: Any = None):
        super().__init__(message)
        self.response = response
        self.status_code = response.status_code if response is not None else None


class APIClientNetworkError(APIClientError):
    """
    网络连接异常

    当网络连接失败、DNS 解析失败等网络层面问题时抛出此异常
    """


class APIClientTimeoutError(APIClientError):
    """
    请求超时异常

    当请求执行时间超过设定的超时时间时抛出此异常
    """


class APIClientRequestValidationError(APIClientError):
    """
    请求参数验证异常

    当请求参数不符合序列化器定义的验证规则时抛出此异常

    属性:
        errors: 验证失败的详细错误信息，格式为 {field_name: [error_messages]}
    """

    def __init__(self, message: str, errors: dict | None = None):
        super().__init__(message)
        self.errors = errors or {}


class APIClientResponseValidationError(APIClientError):
    """
    响应验证异常

    当响应内容不符合预期的验证规则时抛出此异常

    属性:
        response: 保存的响应对象
        validation_result: 验证失败的详细信息
    """

    def __init__(
        self,
        message: str,
        response: Any = None,
        validation_result: dict | None = None,
    ):
        super().__init__(message)
        self.response = response
        self.validation_result = validation_result or {}
