"""
DRF 集成模块

DRFClient 使用 Django REST Framework 序列化器:
    - 请求: request() 的字典参数先经过 request_serializer_class 验证
    - 响应: target_type 为 DRF Serializer 类时，先反序列化为 dict/list，再由序列化器验证并返回 validated_data
"""

from __future__ import annotations

import logging
from typing import Any

from rest_framework import serializers

from restflex.client import RequestData, RestClient
from restflex.constants import ResponseStatus
from restflex.exceptions import (
    APIClientRequestValidationError,
    APIClientResponseValidationError,
    APIClientValidationError,
)
from restflex.request import RestRequest
from restflex.response import RestResponse

logger = logging.getLogger(__name__)


def is_serializer_class(target_type: Any) -> bool:
    return isinstance(target_type, type) and issubclass(target_type, serializers.BaseSerializer)


class DRFClient(RestClient):
    """
    支持 DRF 序列化器的 REST 客户端

    可以将 DRF 的 Serializer 类直接赋值给 request_serializer_class，
    也可以把 Serializer 类作为 target_type 验证响应数据。

    使用示例:
        from rest_framework import serializers

        class CreateUserSerializer(serializers.Serializer):
            username = serializers.CharField(max_length=100, required=True)
            email = serializers.EmailField(required=True)
            age = serializers.IntegerField(min_value=0, max_value=150, required=False)

        class UserAPIClient(DRFClient):
            base_url = "https://api.example.com"
            endpoint = "/users"
            method = "POST"
            request_serializer_class = CreateUserSerializer

        # 发送请求（会自动验证请求数据）
        result = UserAPIClient.request({"username": "john_doe", "email": "john@example.com", "age": 25})
    """

    request_serializer_class: type[serializers.Serializer] | serializers.Serializer | None = None

    def __init__(self, *args, request_serializer=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.request_serializer_instance = self._resolve_request_serializer(request_serializer)

    def _resolve_request_serializer(self, request_serializer):
        """
        解析请求序列化器，直接返回 DRF Serializer 类

        参数:
            request_serializer: 传入的序列化器类

        返回:
            DRF Serializer 类或 None

        异常:
            APIClientValidationError: 当传入的不是 DRF Serializer 类时抛出
        """
        source = request_serializer
        if source is None:
            source = self.request_serializer_class
        if source is None:
            source = getattr(self.__class__, "RequestSerializer", None)

        if source is None:
            return None

        if isinstance(source, type) and issubclass(source, serializers.Serializer):
            return source

        if isinstance(source, serializers.Serializer):
            return source.__class__

        raise APIClientValidationError(
            f"request_serializer must be a DRF Serializer class or instance, got {type(source).__name__}"
        )

    def _validate_request(self, request_data: RequestData) -> RequestData:
        """
        使用 DRF 序列化器验证请求参数

        异常:
            APIClientRequestValidationError: 当验证失败时抛出
        """
        if self.request_serializer_instance is None:
            return request_data

        serializer = self.request_serializer_instance(data=request_data)
        if not serializer.is_valid():
            raise APIClientRequestValidationError("请求参数验证失败", errors=serializer.errors)
        return dict(serializer.data)

    def execute(self, request: RestRequest, target_type: Any = None, **kwargs) -> RestResponse:
        if not is_serializer_class(target_type):
            return super().execute(request, target_type, **kwargs)

        response = super().execute(request, None, **kwargs)
        if response.is_successful and response.data is not None:
            self._validate_response_data(response, target_type)
        return response

    def _validate_response_data(self, response: RestResponse, serializer_class: type[serializers.BaseSerializer]):
        """用序列化器验证反序列化后的数据，验证失败时把错误记录到响应上"""
        data = response.data
        serializer = serializer_class(data=data, many=isinstance(data, list))
        if serializer.is_valid():
            response.data = serializer.validated_data
            return

        error = APIClientResponseValidationError(
            f"Response data failed {serializer_class.__name__} validation",
            response=response,
            validation_result={"errors": serializer.errors},
        )
        if self.throw_on_any_error:
            raise error
        logger.error(f"Response validation failed: {serializer.errors}")
        response.response_status = ResponseStatus.ERROR
        response.data = None
        response.add_exception(error)
