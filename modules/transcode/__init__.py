"""
视频上传转码服务模块

接收上传的视频，使用 FFmpeg 并发转码为 HLS 和 DASH 两种格式，并提供支持 Range 的流媒体文件服务。

核心特性：
- 每个上传分配唯一 ID 和独立目录
- HLS 与 DASH 并发转码，一个失败不影响另一个
- 失败格式的输出被删除，成功格式的输出保留可播放
- 流媒体路径解析拒绝越出资源目录的请求
"""

from .config import StreamingConfig, get_streaming_config, load_config
from .errors import (
    StreamingError,
    NoFileError,
    UnsupportedTypeError,
    PayloadTooLargeError,
    StorageError,
    TranscodeError,
    NotFoundError,
    ForbiddenError,
)
from .task import Asset, StreamFormat, JobOutcome, CombinedOutcome
from .storage import AssetStore
from .upload import UploadReceiver
from .ffmpeg import FFmpegRunner
from .manager import TranscodeCoordinator
from .stream import StreamResolver

__all__ = [
    'StreamingConfig',
    'get_streaming_config',
    'load_config',
    'StreamingError',
    'NoFileError',
    'UnsupportedTypeError',
    'PayloadTooLargeError',
    'StorageError',
    'TranscodeError',
    'NotFoundError',
    'ForbiddenError',
    'Asset',
    'StreamFormat',
    'JobOutcome',
    'CombinedOutcome',
    'AssetStore',
    'UploadReceiver',
    'FFmpegRunner',
    'TranscodeCoordinator',
    'StreamResolver',
]
