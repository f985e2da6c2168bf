"""
错误类型定义

上传校验、存储、转码、流媒体解析各阶段的异常，每个异常携带对应的 HTTP 状态码。
"""

from typing import Any, Dict, Optional


class StreamingError(Exception):
    """流媒体服务异常基类

    Attributes:
        status_code: 对应的 HTTP 状态码
        message: 返回给客户端的错误信息
    """

    status_code = 500
    default_message = "Something went wrong"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典（用于 API 响应）"""
        return {"error": self.message}


class NoFileError(StreamingError):
    """请求中没有上传文件"""

    status_code = 400
    default_message = "No file uploaded"


class UnsupportedTypeError(StreamingError):
    """文件扩展名不在允许列表中"""

    status_code = 400
    default_message = "File type not allowed"


class PayloadTooLargeError(StreamingError):
    """上传文件超过大小上限

    与原始服务保持一致，返回 400 而不是 413。
    """

    status_code = 400
    default_message = "File too large"


class StorageError(StreamingError):
    """目录创建或文件写入失败"""

    status_code = 500
    default_message = "Storage failure"


class TranscodeError(StreamingError):
    """FFmpeg 转码失败

    Attributes:
        format: 失败的格式（hls / dash）
        exit_info: FFmpeg 的退出码和错误输出摘要
    """

    status_code = 500

    def __init__(self, format: str, exit_info: str = ""):
        self.format = format
        self.exit_info = exit_info
        super().__init__(f"{format.upper()} conversion failed")


class NotFoundError(StreamingError):
    """请求的流文件不存在"""

    status_code = 404
    default_message = "Not found"


class ForbiddenError(StreamingError):
    """请求路径越出资源输出目录"""

    status_code = 403
    default_message = "Forbidden"
