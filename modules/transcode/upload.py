"""
上传接收模块

校验上传文件（是否存在、扩展名、大小），然后写入资源的上传目录。
"""

import os
import re
import logging
from typing import Optional, Tuple

from werkzeug.datastructures import FileStorage

from .config import StreamingConfig
from .errors import NoFileError, UnsupportedTypeError, PayloadTooLargeError, StorageError
from .storage import AssetStore
from .task import Asset

logger = logging.getLogger(__name__)

# 字母、数字、点以外的字符全部替换为下划线
UNSAFE_FILENAME_CHARS = re.compile(r'[^a-zA-Z0-9.]')


def sanitize_filename(filename: str) -> str:
    """清理文件名

    Args:
        filename: 原始文件名

    Returns:
        只包含 [A-Za-z0-9.] 和 _ 的文件名
    """
    return UNSAFE_FILENAME_CHARS.sub('_', filename)


def get_extension(filename: str) -> str:
    """获取扩展名（最后一个点之后的部分，小写）

    没有点的文件名返回空字符串。
    """
    if '.' not in filename:
        return ''
    return filename.rsplit('.', 1)[-1].lower()


def measure_upload(file_storage: FileStorage) -> Optional[int]:
    """获取上传文件大小

    优先使用 multipart 分段声明的长度，否则通过 seek 测量实际长度。

    Args:
        file_storage: werkzeug 上传文件对象

    Returns:
        文件字节数，无法测量时返回 None
    """
    if file_storage.content_length:
        return file_storage.content_length

    stream = file_storage.stream
    try:
        position = stream.tell()
        stream.seek(0, os.SEEK_END)
        size = stream.tell()
        stream.seek(position)
        return size
    except (AttributeError, OSError):
        return None


class UploadReceiver:
    """上传接收器

    校验顺序：无文件 → 扩展名 → 大小。校验通过后才会创建资源目录。
    """

    def __init__(self, config: StreamingConfig, store: AssetStore):
        """初始化上传接收器

        Args:
            config: 流媒体配置
            store: 资源存储
        """
        self.config = config
        self.store = store

    def validate(self, file_storage: Optional[FileStorage], content_length: Optional[int] = None):
        """校验上传文件

        Args:
            file_storage: 上传文件对象，可能为 None
            content_length: 请求声明的长度（无法测量文件大小时使用）

        Raises:
            NoFileError: 没有上传文件
            UnsupportedTypeError: 扩展名不在允许列表中
            PayloadTooLargeError: 超过大小上限
        """
        if file_storage is None or not file_storage.filename:
            raise NoFileError()

        extension = get_extension(file_storage.filename)
        if not self.config.is_allowed_extension(extension):
            logger.warning(f"Rejected upload {file_storage.filename!r}: extension {extension!r} not allowed")
            raise UnsupportedTypeError()

        size = measure_upload(file_storage)
        if size is None:
            size = content_length
        if size is not None and size > self.config.max_content_length:
            logger.warning(f"Rejected upload {file_storage.filename!r}: {size} bytes exceeds "
                           f"{self.config.max_content_length}")
            raise PayloadTooLargeError()

    def receive(self, file_storage: Optional[FileStorage], content_length: Optional[int] = None) -> Tuple[Asset, str]:
        """接收上传文件

        校验通过后创建资源目录并写入原始文件。写入失败时删除已创建的目录。

        Args:
            file_storage: 上传文件对象
            content_length: 请求声明的长度

        Returns:
            (资源, 原始文件路径)

        Raises:
            StorageError: 目录创建或文件写入失败
        """
        self.validate(file_storage, content_length)

        asset = self.store.create_asset()
        filename = sanitize_filename(file_storage.filename)
        raw_path = os.path.join(asset.raw_dir, filename)

        try:
            file_storage.save(raw_path)
        except OSError as e:
            logger.error(f"Failed to write upload for asset {asset.asset_id}: {e}")
            self.store.discard(asset)
            raise StorageError(f"Failed to store upload: {e}") from e

        logger.info(f"Stored upload {filename} ({os.path.getsize(raw_path)} bytes) for asset {asset.asset_id}")
        return asset, raw_path
