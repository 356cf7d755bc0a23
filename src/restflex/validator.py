"""响应验证器模块

验证器在响应解析之后调用，验证失败时抛出 APIClientResponseValidationError，
客户端把该异常记录到响应上并将 response_status 置为 ERROR
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from restflex.exceptions import APIClientResponseValidationError

if TYPE_CHECKING:
    from restflex.client import RestClient
    from restflex.response import RestResponse

logger = logging.getLogger(__name__)


class BaseResponseValidator(ABC):
    """
    响应验证器基类

    用于验证响应是否符合预期，不符合时抛出异常
    """

    @abstractmethod
    def validate(self, client_instance: RestClient, response: RestResponse, parsed_data: Any) -> None:
        """
        验证响应

        参数:
            client_instance: 调用此验证器的客户端
            response: 响应对象
            parsed_data: 解析后的响应数据

        异常:
            APIClientResponseValidationError: 当验证失败时抛出
        """


class StatusCodeValidator(BaseResponseValidator):
    """
    状态码验证器

    参数:
        allowed_codes: 允许的状态码集合，默认 200
        strict_mode: 严格模式，True 时只允许集合中的状态码；False 时允许任意 2xx

    使用示例:
        >>> validator = StatusCodeValidator(allowed_codes=[200, 201, 204])
        >>> client = RestClient(base_url="https://api.example.com", response_validator=validator)
    """

    def __init__(self, allowed_codes: list[int] | set[int] | None = None, strict_mode: bool = True):
        self.allowed_codes = set(allowed_codes) if allowed_codes else {200}
        self.strict_mode = strict_mode

    def validate(self, client_instance: RestClient, response: RestResponse, parsed_data: Any) -> None:
        status_code = response.status_code
        if status_code in self.allowed_codes:
            return
        if not self.strict_mode and response.is_success_status_code:
            return

        raise APIClientResponseValidationError(
            f"Response status code {status_code} not in allowed codes: {sorted(self.allowed_codes)}",
            response=response,
            validation_result={"status_code": status_code, "allowed_codes": sorted(self.allowed_codes)},
        )


class RequiredDataValidator(BaseResponseValidator):
    """要求成功响应必须带有反序列化后的数据"""

    def validate(self, client_instance: RestClient, response: RestResponse, parsed_data: Any) -> None:
        if response.is_success_status_code and parsed_data is None:
            logger.debug(f"Response from {response.response_uri} has no data")
            raise APIClientResponseValidationError(
                "Response has no deserialized data",
                response=response,
                validation_result={"content_type": response.content_type},
            )
