"""
转码协调器

负责一个资源的 HLS 和 DASH 转码：
- 两个转码任务并发执行，互不影响
- 等待两个任务全部结束（不会因为一个失败而取消另一个）
- 合并两个任务的结果
- 失败格式的输出目录会被删除，成功格式的输出保留
"""

import os
import time
import shutil
import logging
from concurrent.futures import ThreadPoolExecutor, Future, wait, ALL_COMPLETED
from typing import Dict, Optional

from .config import StreamingConfig
from .errors import StreamingError, TranscodeError
from .ffmpeg import FFmpegRunner
from .task import StreamFormat, JobOutcome, CombinedOutcome

logger = logging.getLogger(__name__)


class TranscodeCoordinator:
    """转码协调器

    所有资源共享一个有界线程池，线程池大小即同时运行的 FFmpeg 进程上限。
    线程池至少有 2 个线程，保证同一资源的 HLS 和 DASH 能同时运行。
    """

    def __init__(self, config: StreamingConfig, runner: Optional[FFmpegRunner] = None):
        """初始化转码协调器

        Args:
            config: 流媒体配置
            runner: FFmpeg 运行器，默认根据配置创建
        """
        self.config = config
        self.runner = runner or FFmpegRunner(config)
        self._executor = ThreadPoolExecutor(
            max_workers=max(2, config.max_concurrent_jobs),
            thread_name_prefix="Transcode",
        )

    def transcode(self, asset_id: str, raw_file_path: str, output_root: str) -> CombinedOutcome:
        """转码一个资源

        阻塞直到 HLS 和 DASH 两个任务都结束，无论哪个先结束、是否失败。

        Args:
            asset_id: 资源 ID
            raw_file_path: 原始视频路径
            output_root: 输出根目录

        Returns:
            CombinedOutcome 联合结果
        """
        jobs = {
            StreamFormat.HLS: self.runner.run_hls,
            StreamFormat.DASH: self.runner.run_dash,
        }

        futures: Dict[StreamFormat, Future] = {}
        for fmt, job in jobs.items():
            output_dir = os.path.join(output_root, fmt.value)
            futures[fmt] = self._executor.submit(self._run_job, fmt, job, raw_file_path, output_dir)

        wait(futures.values(), return_when=ALL_COMPLETED)

        combined = CombinedOutcome(asset_id=asset_id)
        for fmt, future in futures.items():
            combined.outcomes[fmt] = future.result()

        if combined.succeeded:
            logger.info(f"Asset {asset_id} converted to HLS and DASH")
        else:
            logger.error(f"Asset {asset_id} conversion failed for {', '.join(combined.failed_formats)}; "
                         f"kept: {', '.join(combined.completed_formats) or 'none'}")
        return combined

    def _run_job(self, fmt: StreamFormat, job, input_path: str, output_dir: str) -> JobOutcome:
        """执行单个转码任务，把已知的失败转换为 JobOutcome

        Args:
            fmt: 输出格式
            job: run_hls 或 run_dash
            input_path: 原始视频路径
            output_dir: 该格式的输出目录

        Returns:
            JobOutcome
        """
        start_time = time.time()
        try:
            return job(input_path, output_dir)
        except StreamingError as e:
            error = e if isinstance(e, TranscodeError) else TranscodeError(fmt.value, e.message)
            self._remove_partial_output(output_dir)
            return JobOutcome.failure(fmt, output_dir, error, elapsed=time.time() - start_time)

    def _remove_partial_output(self, output_dir: str):
        """删除失败任务的输出目录

        保证播放列表 / 清单只在转码成功时存在。

        Args:
            output_dir: 失败格式的输出目录
        """
        if os.path.exists(output_dir):
            shutil.rmtree(output_dir, ignore_errors=True)
            logger.info(f"Removed partial output {output_dir}")

    def shutdown(self, wait_for_jobs: bool = True):
        """停止线程池"""
        self._executor.shutdown(wait=wait_for_jobs)
