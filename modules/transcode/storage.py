"""
资源存储模块

负责资源 ID 的分配和磁盘目录布局：

    uploads/<asset_id>/<原始文件名>
    streams/<asset_id>/hls/playlist.m3u8
    streams/<asset_id>/dash/manifest.mpd
"""

import os
import uuid
import shutil
import logging
from typing import List, Dict, Any, Optional

from .config import StreamingConfig
from .errors import StorageError
from .task import Asset, StreamFormat, stream_url, player_url

logger = logging.getLogger(__name__)


class AssetStore:
    """资源存储

    为每次上传分配唯一 ID 并创建对应的上传目录和输出根目录。
    """

    # 生成的 ID 与已有目录冲突时的重试次数
    MAX_ALLOCATION_ATTEMPTS = 5

    def __init__(self, config: StreamingConfig):
        """初始化资源存储

        Args:
            config: 流媒体配置
        """
        self.config = config

    def ensure_roots(self):
        """创建上传根目录和输出根目录"""
        try:
            os.makedirs(self.config.upload_folder, exist_ok=True)
            os.makedirs(self.config.output_folder, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to create storage roots: {e}") from e

    def create_asset(self) -> Asset:
        """创建新资源

        上传目录使用独占方式创建（exist_ok=False），目录创建成功即代表 ID 被占用。
        输出根目录创建失败时回滚上传目录。

        Returns:
            Asset 实例

        Raises:
            StorageError: 目录创建失败（权限、磁盘满等）
        """
        self.ensure_roots()

        for _ in range(self.MAX_ALLOCATION_ATTEMPTS):
            asset_id = str(uuid.uuid4())
            raw_dir = self.config.get_upload_dir(asset_id)
            output_root = self.config.get_output_root(asset_id)

            try:
                os.makedirs(raw_dir, exist_ok=False)
            except FileExistsError:
                logger.warning(f"Asset id collision on {asset_id}, drawing a new one")
                continue
            except OSError as e:
                raise StorageError(f"Failed to create upload directory: {e}") from e

            try:
                os.makedirs(output_root, exist_ok=True)
            except OSError as e:
                shutil.rmtree(raw_dir, ignore_errors=True)
                raise StorageError(f"Failed to create output directory: {e}") from e

            logger.info(f"Created asset {asset_id}")
            return Asset(asset_id=asset_id, raw_dir=raw_dir, output_root=output_root)

        raise StorageError("Could not allocate a unique asset id")

    def output_root(self, asset_id: str) -> str:
        return self.config.get_output_root(asset_id)

    def format_dir(self, asset_id: str, fmt: StreamFormat) -> str:
        """获取某格式的输出目录（由转码任务启动时创建）

        Args:
            asset_id: 资源 ID
            fmt: 输出格式

        Returns:
            输出目录路径
        """
        return os.path.join(self.output_root(asset_id), fmt.value)

    def discard(self, asset: Asset):
        """删除资源的上传目录和输出目录

        用于转码开始之前的失败路径（写入失败等）。

        Args:
            asset: 要删除的资源
        """
        for path in (asset.raw_dir, asset.output_root):
            if os.path.exists(path):
                shutil.rmtree(path, ignore_errors=True)
        logger.info(f"Discarded asset {asset.asset_id}")

    def get_asset_entry(self, asset_id: str) -> Optional[Dict[str, Any]]:
        """获取单个资源的可播放信息

        Args:
            asset_id: 资源 ID

        Returns:
            包含 id、hls_url、dash_url、player_url 的字典；没有任何已完成格式时返回 None
        """
        asset_dir = self.output_root(asset_id)
        if not os.path.isdir(asset_dir):
            return None

        hls_exists = os.path.isfile(os.path.join(asset_dir, "hls", StreamFormat.HLS.manifest_name))
        dash_exists = os.path.isfile(os.path.join(asset_dir, "dash", StreamFormat.DASH.manifest_name))

        if not (hls_exists or dash_exists):
            return None

        return {
            "id": asset_id,
            "hls_url": stream_url(asset_id, StreamFormat.HLS) if hls_exists else None,
            "dash_url": stream_url(asset_id, StreamFormat.DASH) if dash_exists else None,
            "player_url": player_url(asset_id),
        }

    def list_assets(self) -> List[Dict[str, Any]]:
        """列出所有包含已完成播放列表或清单的资源

        Returns:
            资源信息列表，最新的在前
        """
        output_folder = self.config.output_folder
        if not os.path.isdir(output_folder):
            return []

        entries = []
        for asset_id in os.listdir(output_folder):
            entry = self.get_asset_entry(asset_id)
            if entry:
                mtime = os.path.getmtime(self.output_root(asset_id))
                entries.append((mtime, entry))

        entries.sort(key=lambda item: item[0], reverse=True)
        return [entry for _, entry in entries]
