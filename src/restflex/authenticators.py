"""
认证器模块

认证器在构建 URL 和请求体之前调用，可以添加或替换请求头、查询参数等凭据参数。

使用示例:
    class GitHubClient(RestClient):
        base_url = "https://api.github.com"
        authenticator_class = JwtAuthenticator

    client = GitHubClient(authenticator=JwtAuthenticator("my-token"))

也可以直接使用 requests.auth.AuthBase，此时认证由 requests 会话完成:
    client = RestClient(base_url="https://api.example.com", authentication=HTTPBasicAuth("u", "p"))
"""

from __future__ import annotations

import base64
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from restflex.constants import HEADER_AUTHORIZATION
from restflex.parameters import GetOrPostParameter, HeaderParameter, Parameter

if TYPE_CHECKING:
    from restflex.client import RestClient
    from restflex.request import RestRequest

logger = logging.getLogger(__name__)


class BaseAuthenticator(ABC):
    """认证器基类"""

    @abstractmethod
    def authenticate(self, client: RestClient, request: RestRequest) -> None:
        """
        为请求添加凭据

        参数:
            client: 发起请求的客户端
            request: 待发送的请求，可直接修改其参数
        """


class TokenAuthenticator(BaseAuthenticator):
    """
    基于单个令牌的认证器基类

    子类只需实现 get_authentication_parameter，同名同类型的旧参数会被替换
    """

    def __init__(self, token: str):
        self.token = token

    def authenticate(self, client: RestClient, request: RestRequest) -> None:
        request.add_or_update_parameter(self.get_authentication_parameter(self.token))

    @abstractmethod
    def get_authentication_parameter(self, access_token: str) -> Parameter:
        """根据令牌生成凭据参数"""


class HttpBasicAuthenticator(TokenAuthenticator):
    """HTTP Basic 认证，用户名和密码按 encoding 编码后 base64"""

    def __init__(self, username: str, password: str, encoding: str = "latin-1"):
        credentials = f"{username}:{password}".encode(encoding)
        super().__init__(base64.b64encode(credentials).decode("ascii"))

    def get_authentication_parameter(self, access_token: str) -> Parameter:
        return HeaderParameter(HEADER_AUTHORIZATION, f"Basic {access_token}")


class JwtAuthenticator(TokenAuthenticator):
    """Bearer 令牌认证，令牌可以带或不带 "Bearer " 前缀"""

    def __init__(self, access_token: str):
        super().__init__(self._strip_scheme(access_token))

    @staticmethod
    def _strip_scheme(access_token: str) -> str:
        if access_token.lower().startswith("bearer "):
            return access_token[len("bearer ") :].strip()
        return access_token

    def set_bearer_token(self, access_token: str) -> None:
        """更新令牌，后续请求使用新令牌"""
        self.token = self._strip_scheme(access_token)

    def get_authentication_parameter(self, access_token: str) -> Parameter:
        return HeaderParameter(HEADER_AUTHORIZATION, f"Bearer {access_token}")


class OAuth2AuthorizationRequestHeaderAuthenticator(TokenAuthenticator):
    """
    OAuth2 请求头认证

    参数:
        access_token: 访问令牌
        token_type: Authorization 请求头中的令牌类型，如 "Bearer"
    """

    def __init__(self, access_token: str, token_type: str = "OAuth"):
        super().__init__(access_token)
        self.token_type = token_type

    def get_authentication_parameter(self, access_token: str) -> Parameter:
        return HeaderParameter(HEADER_AUTHORIZATION, f"{self.token_type} {access_token}")


class OAuth2UriQueryParameterAuthenticator(TokenAuthenticator):
    """OAuth2 查询参数认证，令牌以 oauth_token 参数发送"""

    def get_authentication_parameter(self, access_token: str) -> Parameter:
        return GetOrPostParameter("oauth_token", access_token)


class SimpleAuthenticator(BaseAuthenticator):
    """
    用户名/密码参数认证

    参数:
        username_key: 用户名参数名
        username: 用户名
        password_key: 密码参数名
        password: 密码
    """

    def __init__(self, username_key: str, username: str, password_key: str, password: str):
        self.username_key = username_key
        self.username = username
        self.password_key = password_key
        self.password = password

    def authenticate(self, client: RestClient, request: RestRequest) -> None:
        request.add_or_update_parameter(GetOrPostParameter(self.username_key, self.username))
        request.add_or_update_parameter(GetOrPostParameter(self.password_key, self.password))
