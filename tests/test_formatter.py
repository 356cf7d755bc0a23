"""
formatter.py 模块的单元测试

测试用例:
- UT-FMT-001: DefaultResponseFormatter 格式化标准响应
- UT-FMT-002: DefaultResponseFormatter 处理 kwargs 参数
- UT-FMT-003: RestResponseFormatter 返回响应对象
- UT-FMT-004: BaseResponseFormatter 抽象方法验证
"""

from abc import ABC

import pytest

from restflex.exceptions import APIClientConfigurationError
from restflex.formatter import BaseResponseFormatter, DefaultResponseFormatter, RestResponseFormatter
from restflex.response import RestResponse


class TestBaseResponseFormatter:
    """测试 BaseResponseFormatter 抽象基类"""

    @pytest.mark.unit
    def test_is_abstract_class(self):
        """UT-FMT-004: BaseResponseFormatter 是抽象类"""
        assert issubclass(BaseResponseFormatter, ABC)

        with pytest.raises(TypeError, match="Can't instantiate abstract class"):
            BaseResponseFormatter()

    @pytest.mark.unit
    def test_has_abstract_format_method(self):
        """UT-FMT-004: BaseResponseFormatter 有抽象 format 方法"""
        assert getattr(BaseResponseFormatter.format, "__isabstractmethod__", False)


class TestDefaultResponseFormatter:
    """测试 DefaultResponseFormatter 格式化器"""

    @pytest.fixture
    def formatter(self):
        return DefaultResponseFormatter()

    @pytest.mark.unit
    def test_format_standard_response(self, formatter):
        """UT-FMT-001: 原样返回默认结构"""
        # Arrange
        formatted_response = {"result": True, "code": 200, "message": "Success", "data": {"user_id": 123}}

        # Act
        result = formatter.format(formatted_response)

        # Assert
        assert result is formatted_response

    @pytest.mark.unit
    def test_format_with_kwargs(self, formatter):
        """UT-FMT-002: 额外参数不影响结果"""
        formatted_response = {"result": False, "code": -1, "message": "timed out", "data": None}

        result = formatter.format(
            formatted_response,
            parsed_data=None,
            request_id="REQ-1",
            request=None,
            response_or_exception=None,
            client_instance=None,
        )

        assert result == {"result": False, "code": -1, "message": "timed out", "data": None}


class TestRestResponseFormatter:
    """测试 RestResponseFormatter 格式化器"""

    @pytest.mark.unit
    def test_returns_response(self):
        """UT-FMT-003: 有响应对象时返回响应对象"""
        response = RestResponse(status_code=200)

        result = RestResponseFormatter().format({}, response_or_exception=response)

        assert result is response

    @pytest.mark.unit
    def test_falls_back_without_response(self):
        """UT-FMT-003: 只有异常时返回默认结构"""
        formatted_response = {"result": False, "code": -1, "message": "bad config", "data": None}

        result = RestResponseFormatter().format(
            formatted_response, request_id="REQ-1", response_or_exception=APIClientConfigurationError("bad config")
        )

        assert result is formatted_response
