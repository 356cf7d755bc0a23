"""
响应格式化器模块

RestClient.request() 先把执行结果整理为 {result, code, message, data} 结构，
再交给格式化器决定最终返回值
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

logger = logging.getLogger(__name__)


class BaseResponseFormatter(ABC):
    """响应格式化器基类"""

    @abstractmethod
    def format(self, formated_response: dict, parsed_data: Any = None, **kwargs) -> Any:
        """
        格式化执行结果

        参数:
            formated_response: {result, code, message, data} 结构的默认结果
            parsed_data: 解析后的数据
            **kwargs: request_id、request、response_or_exception、client_instance

        返回:
            request() 的返回值
        """


class DefaultResponseFormatter(BaseResponseFormatter):
    """默认响应格式化器，返回 {result, code, message, data} 结构"""

    def format(self, formated_response: dict, parsed_data: Any = None, **kwargs) -> dict[str, Any]:
        return formated_response


class RestResponseFormatter(BaseResponseFormatter):
    """
    返回 RestResponse 对象

    请求在传输前就失败（如配置错误）时没有响应对象，此时返回默认结构
    """

    def format(self, formated_response: dict, parsed_data: Any = None, **kwargs) -> Any:
        from restflex.response import RestResponse

        response_or_exception = kwargs.get("response_or_exception")
        if isinstance(response_or_exception, RestResponse):
            return response_or_exception
        logger.debug(f"[{kwargs.get('request_id')}] No response object, returning default result")
        return formated_response
