"""
转码数据模型

定义资源（Asset）、输出格式以及转码结果的数据结构。
"""

import os
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List

from .errors import TranscodeError


class StreamFormat(Enum):
    """输出格式枚举"""
    HLS = "hls"
    DASH = "dash"

    @property
    def manifest_name(self) -> str:
        """播放列表 / 清单文件名"""
        if self is StreamFormat.HLS:
            return "playlist.m3u8"
        return "manifest.mpd"

    @classmethod
    def values(cls) -> List[str]:
        return [fmt.value for fmt in cls]


def stream_url(asset_id: str, fmt: StreamFormat) -> str:
    """获取播放列表 / 清单的访问 URL

    Args:
        asset_id: 资源 ID
        fmt: 输出格式

    Returns:
        形如 /stream/<asset_id>/hls/playlist.m3u8 的 URL
    """
    return f"/stream/{asset_id}/{fmt.value}/{fmt.manifest_name}"


def player_url(asset_id: str) -> str:
    return f"/player/{asset_id}"


@dataclass(frozen=True)
class Asset:
    """上传资源

    ID 在上传时生成一次，唯一对应一个上传目录和一个输出根目录。
    """

    asset_id: str
    raw_dir: str
    output_root: str


@dataclass
class JobOutcome:
    """单个格式的转码结果"""

    format: StreamFormat
    output_dir: str
    succeeded: bool = False
    error: Optional[TranscodeError] = None
    returncode: Optional[int] = None
    elapsed: float = 0.0

    @classmethod
    def success(cls, fmt: StreamFormat, output_dir: str, returncode: int = 0, elapsed: float = 0.0) -> 'JobOutcome':
        return cls(format=fmt, output_dir=output_dir, succeeded=True, returncode=returncode, elapsed=elapsed)

    @classmethod
    def failure(cls, fmt: StreamFormat, output_dir: str, error: TranscodeError, elapsed: float = 0.0) -> 'JobOutcome':
        return cls(format=fmt, output_dir=output_dir, succeeded=False, error=error, elapsed=elapsed)

    @property
    def manifest_path(self) -> str:
        return os.path.join(self.output_dir, self.format.manifest_name)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典（用于日志和调试）"""
        result = {
            "format": self.format.value,
            "succeeded": self.succeeded,
            "elapsed": round(self.elapsed, 3),
        }
        if self.returncode is not None:
            result["returncode"] = self.returncode
        if self.error:
            result["error"] = self.error.message
            result["exit_info"] = self.error.exit_info
        return result


@dataclass
class CombinedOutcome:
    """一个资源的联合转码结果

    只有 HLS 和 DASH 都成功时才算成功；失败时仍保留已完成格式的输出。
    """

    asset_id: str
    outcomes: Dict[StreamFormat, JobOutcome] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return len(self.outcomes) == len(StreamFormat) and all(o.succeeded for o in self.outcomes.values())

    @property
    def failed_formats(self) -> List[str]:
        return [fmt.value for fmt in StreamFormat if fmt in self.outcomes and not self.outcomes[fmt].succeeded]

    @property
    def completed_formats(self) -> List[str]:
        return [fmt.value for fmt in StreamFormat if fmt in self.outcomes and self.outcomes[fmt].succeeded]

    def url_for(self, fmt: StreamFormat) -> Optional[str]:
        """获取某格式的 URL，未成功的格式返回 None"""
        outcome = self.outcomes.get(fmt)
        if outcome and outcome.succeeded:
            return stream_url(self.asset_id, fmt)
        return None

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典（用于 /upload 的 API 响应）"""
        if self.succeeded:
            return {
                "id": self.asset_id,
                "status": "success",
                "hls_url": stream_url(self.asset_id, StreamFormat.HLS),
                "dash_url": stream_url(self.asset_id, StreamFormat.DASH),
                "player_url": player_url(self.asset_id),
            }

        return {
            "error": f"Conversion failed: {', '.join(self.failed_formats)}",
            "id": self.asset_id,
            "failed_formats": self.failed_formats,
            "hls_url": self.url_for(StreamFormat.HLS),
            "dash_url": self.url_for(StreamFormat.DASH),
        }
