"""
HTTP 客户端常量配置模块

定义客户端使用的枚举、内容类型、默认配置等
"""

from enum import Enum

# HTTP 方法常量
HTTP_METHOD_GET = "GET"
HTTP_METHOD_POST = "POST"
HTTP_METHOD_PUT = "PUT"
HTTP_METHOD_DELETE = "DELETE"
HTTP_METHOD_PATCH = "PATCH"
HTTP_METHOD_HEAD = "HEAD"
HTTP_METHOD_OPTIONS = "OPTIONS"
HTTP_METHOD_TRACE = "TRACE"

# 携带请求体的 HTTP 方法集合，GetOrPost 参数在这些方法下进入请求体
BODY_METHODS = {HTTP_METHOD_POST, HTTP_METHOD_PUT, HTTP_METHOD_PATCH}


class ParameterType(Enum):
    """请求参数的落点类型"""

    GET_OR_POST = "GetOrPost"
    QUERY_STRING = "QueryString"
    URL_SEGMENT = "UrlSegment"
    HTTP_HEADER = "HttpHeader"
    REQUEST_BODY = "RequestBody"
    FILE = "File"
    COOKIE = "Cookie"


# 允许同名多次出现的参数类型
MULTI_VALUE_PARAMETER_TYPES = {ParameterType.GET_OR_POST, ParameterType.QUERY_STRING}


class DataFormat(Enum):
    """请求体/序列化器的数据格式"""

    NONE = "None"
    JSON = "Json"
    XML = "Xml"
    BINARY = "Binary"
    CSV = "Csv"


class ResponseStatus(Enum):
    """响应的传输层状态"""

    NONE = "None"
    COMPLETED = "Completed"
    ERROR = "Error"
    TIMED_OUT = "TimedOut"
    ABORTED = "Aborted"


class RequestArrayQueryType(Enum):
    """数组属性转换为请求参数的方式"""

    COMMA_SEPARATED = "CommaSeparated"  # a=1,2,3
    ARRAY_PARAMETERS = "ArrayParameters"  # a[]=1&a[]=2&a[]=3


class NameStyle(Enum):
    """XML 序列化时元素名的命名风格"""

    AS_IS = "AsIs"
    CAMEL_CASE = "CamelCase"
    LOWER_CASE = "LowerCase"
    PASCAL_CASE = "PascalCase"


# 内容类型常量
CONTENT_TYPE_JSON = "application/json"
CONTENT_TYPE_XML = "application/xml"
CONTENT_TYPE_PLAIN = "text/plain"
CONTENT_TYPE_BINARY = "application/octet-stream"
CONTENT_TYPE_GZIP = "application/x-gzip"
CONTENT_TYPE_CSV = "text/csv"
CONTENT_TYPE_FORM_URLENCODED = "application/x-www-form-urlencoded"
CONTENT_TYPE_MULTIPART_FORM_DATA = "multipart/form-data"

# 各序列化器可接受的响应内容类型
JSON_ACCEPT = ("application/json", "text/json", "text/x-json", "text/javascript")
XML_ACCEPT = ("application/xml", "text/xml")
CSV_ACCEPT = ("text/csv", "application/x-download")

# 数据格式到默认内容类型的映射
DATA_FORMAT_CONTENT_TYPES = {
    DataFormat.NONE: CONTENT_TYPE_PLAIN,
    DataFormat.JSON: CONTENT_TYPE_JSON,
    DataFormat.XML: CONTENT_TYPE_XML,
    DataFormat.BINARY: CONTENT_TYPE_BINARY,
    DataFormat.CSV: CONTENT_TYPE_CSV,
}

# 常用请求头名称
HEADER_ACCEPT = "Accept"
HEADER_AUTHORIZATION = "Authorization"
HEADER_CONTENT_TYPE = "Content-Type"
HEADER_CONTENT_ENCODING = "Content-Encoding"
HEADER_USER_AGENT = "User-Agent"

# multipart 报文换行符
MULTIPART_LINE_BREAK = "\r\n"

# 默认配置
DEFAULT_TIMEOUT = 30  # 默认超时时间（秒）
DEFAULT_RETRIES = 3  # 默认重试次数
DEFAULT_ENCODING = "utf-8"  # 默认请求体编码
DEFAULT_USER_AGENT = "restflex/1.0.0"
DEFAULT_MAX_REDIRECTS = 30

# 重试策略配置
RETRY_STATUS_FORCELIST = [429, 500, 502, 503, 504]  # 需要重试的 HTTP 状态码
RETRY_BACKOFF_FACTOR = 0.5  # 重试退避因子
RETRY_ALLOWED_METHODS = [
    HTTP_METHOD_HEAD,
    HTTP_METHOD_GET,
    HTTP_METHOD_PUT,
    HTTP_METHOD_DELETE,
    HTTP_METHOD_OPTIONS,
    HTTP_METHOD_TRACE,
]

# 连接池配置
POOL_CONNECTIONS = 100  # 连接池大小
POOL_MAXSIZE = 100  # 连接池最大连接数

DEFAULT_RETRY_CONFIG = {
    "total": DEFAULT_RETRIES,  # 重试总次数
    "backoff_factor": RETRY_BACKOFF_FACTOR,  # 重试退避因子
    "status_forcelist": RETRY_STATUS_FORCELIST,  # 需要重试的状态码列表
    "allowed_methods": RETRY_ALLOWED_METHODS,  # 允许重试的HTTP方法
    "raise_on_status": False,  # 不在重试时抛出状态异常
}

DEFAULT_POOL_CONFIG = {
    "pool_connections": POOL_CONNECTIONS,
    "pool_maxsize": POOL_MAXSIZE,
}

# 文件上传/下载配置
DEFAULT_DOWNLOAD_PATH = "./downloads"  # 默认下载路径
DEFAULT_CHUNK_SIZE = 8192  # 默认分块大小（字节）
DEFAULT_FILENAME = "downloaded_file"  # 默认文件名

# 大于该值的 unix 时间戳按毫秒处理（9999-12-31T23:59:59 的秒数）
UNIX_MAX_SECONDS = 253402300799

# 日志格式
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# 字典格式化器状态码
RESPONSE_CODE_NON_HTTP_ERROR = -1  # 非HTTP错误代码（如网络超时、连接失败等）
RESPONSE_CODE_UNEXPECTED_TYPE = -2  # 未预期的响应类型错误代码
RESPONSE_CODE_FORMATTING_ERROR = -3  # 响应格式化失败错误代码
