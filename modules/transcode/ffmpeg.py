"""
FFmpeg 进程管理模块

负责构建和执行 HLS / DASH 转码命令。
"""

import os
import time
import shutil
import subprocess
import logging
from typing import List, Optional

from .config import StreamingConfig
from .errors import TranscodeError, StorageError
from .task import StreamFormat, JobOutcome

logger = logging.getLogger(__name__)

# 错误输出保留的最大字符数
EXIT_INFO_LIMIT = 2000


def resolve_ffmpeg_path(configured: str) -> Optional[str]:
    """解析 ffmpeg 可执行文件路径

    Args:
        configured: 配置中的路径，可以是可执行文件、所在目录或命令名

    Returns:
        可执行文件路径，找不到返回 None
    """
    if os.path.isdir(configured):
        exe_name = 'ffmpeg.exe' if os.name == 'nt' else 'ffmpeg'
        configured = os.path.join(configured, exe_name)
    if os.path.isabs(configured):
        return configured if os.access(configured, os.X_OK) else None
    return shutil.which(configured)


class FFmpegRunner:
    """FFmpeg 进程管理器

    构建 FFmpeg 命令并同步执行转码进程。
    """

    def __init__(self, config: StreamingConfig, ffmpeg_path: Optional[str] = None):
        """初始化 FFmpeg 运行器

        Args:
            config: 流媒体配置
            ffmpeg_path: ffmpeg 可执行文件路径，默认使用配置中的路径
        """
        self.config = config
        self.ffmpeg_path = ffmpeg_path or config.ffmpeg_path

    def _base_command(self, input_path: str) -> List[str]:
        return [
            self.ffmpeg_path,
            "-hide_banner",
            "-loglevel", self.config.loglevel,
            "-y",
            "-i", input_path,
        ]

    def build_hls_command(self, input_path: str, output_dir: str) -> List[str]:
        """构建 HLS 转码命令

        baseline profile，level 3.0，从 0 开始编号，所有切片保留在同一个播放列表中。

        Args:
            input_path: 原始视频路径
            output_dir: HLS 输出目录

        Returns:
            FFmpeg 命令列表
        """
        cmd = self._base_command(input_path)

        cmd.extend(["-c:v", self.config.video_encoder])
        cmd.extend(["-profile:v", self.config.hls_profile])
        cmd.extend(["-level", self.config.hls_level])
        cmd.extend(["-c:a", self.config.audio_encoder])

        cmd.extend([
            "-start_number", str(self.config.hls_start_number),
            "-hls_time", str(self.config.hls_time),
            "-hls_list_size", str(self.config.hls_list_size),
            "-f", "hls",
        ])

        # 切片文件与播放列表在同一目录
        cmd.append(os.path.join(output_dir, StreamFormat.HLS.manifest_name))
        return cmd

    def build_dash_command(self, input_path: str, output_dir: str) -> List[str]:
        """构建 DASH 转码命令

        固定码率、固定 GOP（关闭场景切换检测），保证切片在模板可预测的位置独立可解码。

        Args:
            input_path: 原始视频路径
            output_dir: DASH 输出目录

        Returns:
            FFmpeg 命令列表
        """
        gop = str(self.config.gop_size)
        cmd = self._base_command(input_path)

        # 一路视频 + 一路音频
        cmd.extend(["-map", "0:v", "-map", "0:a"])

        # 视频编码
        cmd.extend(["-c:v", self.config.video_encoder])
        cmd.extend(["-x264-params", f"keyint={gop}:min-keyint={gop}:no-scenecut=1"])
        cmd.extend(["-b:v:0", self.config.dash_video_bitrate])

        # 音频编码
        cmd.extend(["-c:a", self.config.audio_encoder])
        cmd.extend(["-b:a", self.config.dash_audio_bitrate])

        # GOP
        cmd.extend([
            "-bf", str(self.config.b_frames),
            "-keyint_min", gop,
            "-g", gop,
            "-sc_threshold", "0",
        ])

        # DASH 输出参数
        cmd.extend([
            "-f", "dash",
            "-use_template", "1",
            "-use_timeline", "1",
            "-init_seg_name", "init-$RepresentationID$.m4s",
            "-media_seg_name", "chunk-$RepresentationID$-$Number%05d$.m4s",
            "-adaptation_sets", "id=0,streams=v id=1,streams=a",
        ])

        cmd.append(os.path.join(output_dir, StreamFormat.DASH.manifest_name))
        return cmd

    def run_hls(self, input_path: str, output_dir: str) -> JobOutcome:
        """执行 HLS 转码

        Raises:
            TranscodeError: FFmpeg 失败、超时或没有生成播放列表
        """
        command = self.build_hls_command(input_path, output_dir)
        return self.run(StreamFormat.HLS, command, output_dir)

    def run_dash(self, input_path: str, output_dir: str) -> JobOutcome:
        """执行 DASH 转码

        Raises:
            TranscodeError: FFmpeg 失败、超时或没有生成清单
        """
        command = self.build_dash_command(input_path, output_dir)
        return self.run(StreamFormat.DASH, command, output_dir)

    def run(self, fmt: StreamFormat, command: List[str], output_dir: str) -> JobOutcome:
        """执行 FFmpeg 命令并等待结束

        Args:
            fmt: 输出格式
            command: FFmpeg 命令
            output_dir: 输出目录

        Returns:
            成功的 JobOutcome

        Raises:
            StorageError: 输出目录创建失败
            TranscodeError: FFmpeg 非零退出、超时、找不到或无法启动可执行文件，或退出码为 0 但没有生成清单
        """
        try:
            # 确保输出目录存在
            os.makedirs(output_dir, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to create {fmt.value} output directory: {e}") from e

        logger.info(f"Starting {fmt.value.upper()} conversion: {self.get_command_line_string(command)}")
        start_time = time.time()
        timeout = self.config.task_timeout or None

        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            logger.error(f"{fmt.value.upper()} conversion timed out after {timeout}s")
            raise TranscodeError(fmt.value, f"timed out after {timeout}s")
        except FileNotFoundError:
            logger.error(f"FFmpeg executable not found: {self.ffmpeg_path}")
            raise TranscodeError(fmt.value, f"executable not found: {self.ffmpeg_path}")
        except OSError as e:
            logger.error(f"FFmpeg executable could not be started: {self.ffmpeg_path}: {e}")
            raise TranscodeError(fmt.value, f"executable could not be started: {e}")

        elapsed = time.time() - start_time

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            logger.error(f"{fmt.value.upper()} conversion failed (rc={result.returncode}): {stderr[-500:]}")
            raise TranscodeError(fmt.value, f"rc={result.returncode}: {stderr[-EXIT_INFO_LIMIT:]}")

        manifest_path = os.path.join(output_dir, fmt.manifest_name)
        if not os.path.isfile(manifest_path):
            logger.error(f"{fmt.value.upper()} conversion exited 0 without writing {manifest_path}")
            raise TranscodeError(fmt.value, f"rc=0 but {fmt.manifest_name} was not written")

        logger.info(f"{fmt.value.upper()} conversion completed for {command[command.index('-i') + 1]} "
                    f"in {elapsed:.1f}s")
        return JobOutcome.success(fmt, output_dir, returncode=result.returncode, elapsed=elapsed)

    def get_command_line_string(self, command: List[str]) -> str:
        """获取命令行字符串（用于日志记录）

        Args:
            command: FFmpeg 命令列表

        Returns:
            命令行字符串
        """
        return " ".join(f'"{arg}"' if " " in arg else arg for arg in command)
