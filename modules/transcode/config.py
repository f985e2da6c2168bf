"""
转码配置模块

定义上传、转码、流媒体服务相关的配置参数和默认值。
配置在启动时构建一次，然后显式传递给各组件。
"""

import os
import json
import logging
from typing import Optional, Tuple
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "config/config.json"

# 100 MiB
DEFAULT_MAX_CONTENT_LENGTH = 100 * 1024 * 1024

DEFAULT_ALLOWED_EXTENSIONS = ("mp4", "avi", "mov", "mkv", "wmv", "flv", "webm")


@dataclass
class StreamingConfig:
    """流媒体服务配置

    从全局配置中读取上传、转码相关参数，提供默认值。
    """

    # 目录配置
    upload_folder: str = "uploads"
    output_folder: str = "streams"
    log_dir: str = "logs"

    # 上传限制
    allowed_extensions: Tuple[str, ...] = DEFAULT_ALLOWED_EXTENSIONS
    max_content_length: int = DEFAULT_MAX_CONTENT_LENGTH

    # 服务监听
    host: str = "0.0.0.0"
    port: int = 5000

    # FFmpeg
    ffmpeg_path: str = "ffmpeg"
    loglevel: str = "warning"
    video_encoder: str = "libx264"
    audio_encoder: str = "aac"

    # HLS 参数
    hls_time: int = 10  # 切片时长（秒）
    hls_start_number: int = 0
    hls_list_size: int = 0  # 0 表示保留所有切片
    hls_profile: str = "baseline"
    hls_level: str = "3.0"

    # DASH 参数
    dash_video_bitrate: str = "1500k"
    dash_audio_bitrate: str = "128k"
    gop_size: int = 60  # GOP 大小（帧数）
    b_frames: int = 1

    # 超时与并发
    task_timeout: Optional[int] = 3600  # 单个转码任务超时（秒），None 表示不限制
    max_concurrent_jobs: int = 4  # 最大并发 FFmpeg 进程数，小于 2 时按 2 处理

    @classmethod
    def from_app_config(cls, app_config: dict) -> 'StreamingConfig':
        """从应用配置创建 StreamingConfig

        Args:
            app_config: 全局配置字典，读取其中的 "streaming" 部分

        Returns:
            StreamingConfig 实例
        """
        streaming_config = app_config.get("streaming", {}) or {}

        config = cls()

        # 更新目录配置
        if "upload_folder" in streaming_config:
            config.upload_folder = streaming_config["upload_folder"]
        if "output_folder" in streaming_config:
            config.output_folder = streaming_config["output_folder"]
        if "log_dir" in streaming_config:
            config.log_dir = streaming_config["log_dir"]

        # 更新上传限制
        if "allowed_extensions" in streaming_config:
            config.allowed_extensions = tuple(
                str(ext).lower().lstrip(".") for ext in streaming_config["allowed_extensions"]
            )
        if "max_content_length" in streaming_config:
            config.max_content_length = int(streaming_config["max_content_length"] or DEFAULT_MAX_CONTENT_LENGTH)

        # 更新服务监听
        if "host" in streaming_config:
            config.host = streaming_config["host"]
        if "port" in streaming_config:
            config.port = int(streaming_config["port"] or 5000)

        # 更新 FFmpeg 配置
        if "ffmpeg_path" in streaming_config:
            config.ffmpeg_path = streaming_config["ffmpeg_path"]
        if "loglevel" in streaming_config:
            config.loglevel = streaming_config["loglevel"]
        if "video_encoder" in streaming_config:
            config.video_encoder = streaming_config["video_encoder"]
        if "audio_encoder" in streaming_config:
            config.audio_encoder = streaming_config["audio_encoder"]

        # 更新 HLS 参数
        if "hls_time" in streaming_config:
            config.hls_time = int(streaming_config["hls_time"] or 10)
        if "hls_start_number" in streaming_config:
            config.hls_start_number = int(streaming_config["hls_start_number"] or 0)
        if "hls_list_size" in streaming_config:
            config.hls_list_size = int(streaming_config["hls_list_size"] or 0)
        if "hls_profile" in streaming_config:
            config.hls_profile = streaming_config["hls_profile"]
        if "hls_level" in streaming_config:
            config.hls_level = str(streaming_config["hls_level"])

        # 更新 DASH 参数
        if "dash_video_bitrate" in streaming_config:
            config.dash_video_bitrate = streaming_config["dash_video_bitrate"]
        if "dash_audio_bitrate" in streaming_config:
            config.dash_audio_bitrate = streaming_config["dash_audio_bitrate"]
        if "gop_size" in streaming_config:
            config.gop_size = int(streaming_config["gop_size"] or 60)
        if "b_frames" in streaming_config:
            config.b_frames = int(streaming_config["b_frames"] or 0)

        # 更新超时与并发
        if "task_timeout" in streaming_config:
            config.task_timeout = int(streaming_config["task_timeout"]) if streaming_config["task_timeout"] else None
        if "max_concurrent_jobs" in streaming_config:
            config.max_concurrent_jobs = int(streaming_config["max_concurrent_jobs"] or 4)

        return config

    def apply_env(self, environ=None) -> 'StreamingConfig':
        """使用环境变量覆盖配置

        支持 PORT、HOST、UPLOAD_FOLDER、OUTPUT_FOLDER、FFMPEG_PATH、MAX_CONTENT_LENGTH。

        Args:
            environ: 环境变量字典，默认 os.environ

        Returns:
            自身（便于链式调用）
        """
        environ = os.environ if environ is None else environ

        if environ.get("PORT"):
            self.port = int(environ["PORT"])
        if environ.get("HOST"):
            self.host = environ["HOST"]
        if environ.get("UPLOAD_FOLDER"):
            self.upload_folder = environ["UPLOAD_FOLDER"]
        if environ.get("OUTPUT_FOLDER"):
            self.output_folder = environ["OUTPUT_FOLDER"]
        if environ.get("FFMPEG_PATH"):
            self.ffmpeg_path = environ["FFMPEG_PATH"]
        if environ.get("MAX_CONTENT_LENGTH"):
            self.max_content_length = int(environ["MAX_CONTENT_LENGTH"])

        return self

    def is_allowed_extension(self, extension: str) -> bool:
        """判断扩展名是否在允许列表中（不区分大小写）"""
        return extension.lower() in self.allowed_extensions

    def get_upload_dir(self, asset_id: str) -> str:
        """获取原始上传目录

        Args:
            asset_id: 资源 ID

        Returns:
            上传目录路径
        """
        return os.path.join(self.upload_folder, asset_id)

    def get_output_root(self, asset_id: str) -> str:
        """获取转码输出根目录（hls/ 与 dash/ 的父目录）

        Args:
            asset_id: 资源 ID

        Returns:
            输出根目录路径
        """
        return os.path.join(self.output_folder, asset_id)


def load_config(config_file: str = DEFAULT_CONFIG_FILE) -> dict:
    """加载 JSON 配置文件

    文件不存在时返回空字典，所有参数使用默认值。

    Args:
        config_file: 配置文件路径

    Returns:
        配置字典
    """
    if not os.path.exists(config_file):
        logger.info(f"No configuration file at {config_file}, using defaults")
        return {}

    with open(config_file, 'r', encoding='utf-8') as f:
        loaded_config = json.load(f)
    logger.info(f"Loaded configuration file: {config_file}")
    return loaded_config


def get_streaming_config(config_file: str = DEFAULT_CONFIG_FILE, environ=None) -> StreamingConfig:
    """获取流媒体配置的便捷函数

    优先级：默认值 < 配置文件 < 环境变量

    Args:
        config_file: 配置文件路径
        environ: 环境变量字典

    Returns:
        StreamingConfig 实例
    """
    return StreamingConfig.from_app_config(load_config(config_file)).apply_env(environ)
