"""
通用测试 Fixture 定义

提供测试所需的 Mock 对象、Fixture 和工具函数
"""

import django
import pytest
from django.conf import settings

# DRF 序列化器需要 Django 设置，在导入 restflex 之前配置
if not settings.configured:
    settings.configure(
        DEBUG=True,
        SECRET_KEY="test-secret-key",
        USE_I18N=True,
        USE_TZ=True,
    )
    django.setup()

from restflex import RestClient, RestRequest, RestResponse  # noqa: E402
from restflex.constants import ResponseStatus  # noqa: E402


BASE_URL = "https://api.example.com"


@pytest.fixture
def client():
    """指向测试 API 的客户端，测试结束后关闭会话"""
    with RestClient(base_url=BASE_URL) as rest_client:
        yield rest_client


@pytest.fixture
def make_response():
    """构造已完成的 RestResponse"""

    def _make(content, content_type="application/json", status_code=200, request=None):
        return RestResponse(
            request or RestRequest("/test"),
            status_code=status_code,
            content=content,
            raw_bytes=content.encode("utf-8") if content is not None else None,
            content_type=content_type,
            response_status=ResponseStatus.COMPLETED,
        )

    return _make


@pytest.fixture
def temp_file(tmp_path):
    """临时上传文件"""
    path = tmp_path / "report.txt"
    path.write_bytes(b"hello file")
    return path
