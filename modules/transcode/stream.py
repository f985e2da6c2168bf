"""
流媒体文件解析模块

把 (资源 ID, 格式, 相对路径) 解析为输出目录下的具体文件，拒绝越出资源目录的路径。
"""

import os
import mimetypes
import logging

from .config import StreamingConfig
from .errors import NotFoundError, ForbiddenError
from .task import StreamFormat

logger = logging.getLogger(__name__)

# 流媒体相关文件的 MIME 类型
STREAM_MIMETYPES = {
    ".m3u8": "application/vnd.apple.mpegurl",
    ".ts": "video/mp2t",
    ".mpd": "application/dash+xml",
    ".m4s": "video/iso.segment",
    ".mp4": "video/mp4",
}


def mimetype_for(path: str) -> str:
    """根据扩展名获取 MIME 类型

    Args:
        path: 文件路径

    Returns:
        MIME 类型
    """
    extension = os.path.splitext(path)[1].lower()
    if extension in STREAM_MIMETYPES:
        return STREAM_MIMETYPES[extension]
    guessed, _ = mimetypes.guess_type(path)
    return guessed or "application/octet-stream"


class StreamResolver:
    """流媒体文件解析器

    只读访问输出目录，不需要加锁。
    """

    def __init__(self, config: StreamingConfig):
        """初始化解析器

        Args:
            config: 流媒体配置
        """
        self.config = config

    def resolve(self, asset_id: str, format_type: str, relative_path: str) -> str:
        """解析流媒体文件路径

        Args:
            asset_id: 资源 ID
            format_type: 格式（hls / dash）
            relative_path: 相对于格式目录的路径（如 playlist.m3u8、chunk-0-00001.m4s）

        Returns:
            文件的绝对路径

        Raises:
            NotFoundError: 格式不支持，或文件不存在
            ForbiddenError: 路径越出资源的输出目录
        """
        # 格式检查必须在构建路径之前
        if format_type not in StreamFormat.values():
            raise NotFoundError(f"Unknown format: {format_type}")

        output_root = os.path.realpath(self.config.get_output_root(asset_id))
        format_root = os.path.join(output_root, format_type)
        output_folder = os.path.realpath(self.config.output_folder)

        # asset_id 本身也不能越出输出根目录
        if os.path.dirname(output_root) != output_folder:
            logger.warning(f"Rejected stream request with asset id {asset_id!r}")
            raise ForbiddenError()

        candidate = os.path.realpath(os.path.join(format_root, relative_path))
        if os.path.commonpath([candidate, format_root]) != format_root:
            logger.warning(f"Rejected path traversal for asset {asset_id}: {relative_path!r}")
            raise ForbiddenError()

        if not os.path.isfile(candidate):
            raise NotFoundError()

        return candidate
