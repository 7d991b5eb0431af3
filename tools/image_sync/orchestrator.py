"""
批量同步

每个镜像独立执行 解析 -> 计算目标路径 -> (可选) 检查是否已存在 -> 复制,
单个镜像失败不影响其他镜像, 全部处理完成后再根据失败数量决定退出码。
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Iterable, List, Optional

import requests

from .cache import SyncCache
from .config import SyncConfig
from .errors import ConfigurationMissing, CopyError
from .executor import CopyExecutor
from .oracle import ExistenceOracle, build_oracle
from .reference import Destination, ImageReference, Overrides, map_destination, parse
from .runner import CommandRunner
from .sources import clean_references
from .summary import RunSummary, SyncOutcome

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    def __init__(
        self,
        config: SyncConfig,
        runner: Optional[CommandRunner] = None,
        cache: Optional[SyncCache] = None,
        executor: Optional[CopyExecutor] = None,
        oracle: Optional[ExistenceOracle] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        初始化

        Args:
            config: 同步配置, 目标组织/项目缺失时抛出 ConfigurationMissing
            runner: 命令执行器
            cache: 已同步镜像缓存, 默认使用 config.cache_file
            executor: 复制执行器
            oracle: 镜像存在检查
            session: HEAD 请求使用的 requests 会话
        """
        config.validate()
        self.config = config
        self.runner = runner if runner is not None else CommandRunner(secrets=config.credentials.secrets())
        # SyncCache 定义了 __len__, 空缓存为假值, 不能用 or
        self.cache = cache if cache is not None else SyncCache(config.cache_file)
        if executor is None:
            executor = CopyExecutor(
                self.runner,
                cache=self.cache,
                credentials=config.credentials,
                tool=config.copy_tool,
                timeout=config.copy_timeout,
            )
        self.executor = executor
        if oracle is None:
            oracle = build_oracle(
                self.cache,
                self.runner,
                self.executor.tool,
                config.credentials,
                timeout=config.probe_timeout,
                session=session,
            )
        self.oracle = oracle

    def _copy(self, ref: ImageReference, destination: Destination, arch: str, dry_run: bool) -> List[str]:
        attempt = 0
        while True:
            try:
                return self.executor.copy(ref, destination, arch, dry_run=dry_run)
            except CopyError as e:
                if not e.retryable or attempt >= self.config.retries:
                    raise
                delay = self.config.retry_delay * (2 ** attempt)
                attempt += 1
                logger.warning(
                    f"同步失败 ({e.reason}), {delay:.1f} 秒后第 {attempt} 次重试: {destination}"
                )
                time.sleep(delay)

    def sync_one(
        self,
        raw: str,
        overrides: Optional[Overrides] = None,
        skip_existing: Optional[bool] = None,
        dry_run: Optional[bool] = None,
    ) -> SyncOutcome:
        """
        同步单个镜像, 所有错误都转换为失败结果

        Args:
            raw: 镜像名
            overrides: 显式指定的 tag/arch/platform
            skip_existing: 目标已存在时跳过, 默认使用配置
            dry_run: 只打印命令, 默认使用配置

        Returns:
            SyncOutcome: 同步结果
        """
        overrides = overrides or Overrides()
        skip_existing = self.config.skip_existing if skip_existing is None else skip_existing
        dry_run = self.config.dry_run if dry_run is None else dry_run
        arch = overrides.arch or self.config.arch

        ref = parse(raw, overrides, self.config.default_platform, self.config.default_tag)
        destination = map_destination(ref, self.config.registry, self.config.org, self.config.project)
        logger.info(f"源镜像: {ref}  目标镜像: {destination}  架构: {arch}")

        try:
            if skip_existing and not dry_run and self.oracle.exists(destination):
                logger.info(f"⊘ 镜像已存在, 跳过: {destination}")
                return SyncOutcome.skipped(raw, destination.reference)
            plan = self._copy(ref, destination, arch, dry_run)
        except CopyError as e:
            logger.error(f"✗ 同步失败: {raw} -> {destination} ({e.reason})")
            return SyncOutcome.failed(raw, destination.reference, e.reason)
        except Exception as e:
            logger.exception(f"✗ 同步异常: {raw} -> {destination}")
            return SyncOutcome.failed(raw, destination.reference, f"{type(e).__name__}: {e}")

        logger.info(f"✓ 同步完成: {destination}")
        return SyncOutcome.success(raw, destination.reference, plan)

    def run(
        self,
        references: Iterable[str],
        concurrency: Optional[int] = None,
        skip_existing: Optional[bool] = None,
        dry_run: Optional[bool] = None,
        overrides: Optional[Overrides] = None,
        source: str = "",
    ) -> RunSummary:
        """
        批量同步

        Args:
            references: 镜像列表, 空行和 # 开头的行会被忽略
            concurrency: 并行数量, 默认使用配置
            skip_existing: 目标已存在时跳过
            dry_run: 只打印命令
            overrides: 对所有镜像生效的 tag/arch/platform
            source: 镜像列表来源, 写入报告

        Returns:
            RunSummary: 所有镜像处理完成后的汇总

        Raises:
            ConfigurationMissing: 并行数量小于 1
        """
        overrides = overrides or Overrides()
        concurrency = self.config.concurrency if concurrency is None else concurrency
        if concurrency < 1:
            raise ConfigurationMissing(f"并行数量必须大于 0: {concurrency}")
        summary = RunSummary(arch=overrides.arch or self.config.arch, source=source)
        items = clean_references(references)
        total = len(items)

        if not items:
            logger.warning("镜像列表无有效内容, 跳过")
            return summary.finish()

        logger.info(f"开始同步 {total} 个镜像, 并行数: {concurrency}")
        with ThreadPoolExecutor(max_workers=min(concurrency, total)) as pool:
            futures = {
                pool.submit(self.sync_one, raw, overrides, skip_existing, dry_run): raw
                for raw in items
            }
            # 结果只在当前线程汇总, worker 之间不共享状态
            for future in as_completed(futures):
                raw = futures[future]
                try:
                    outcome = future.result()
                except Exception as e:
                    logger.error(f"✗ 同步异常: {raw} ({e})")
                    outcome = SyncOutcome.failed(raw, "", f"{type(e).__name__}: {e}")
                summary.add(outcome)
                logger.info(f"[{summary.total}/{total}] {outcome.status.value}: {raw}")

        summary.finish()
        logger.info(
            f"同步完成: 总计 {summary.total}, 成功 {len(summary.success)}, "
            f"跳过 {len(summary.skipped)}, 失败 {len(summary.failed)}"
        )
        return summary
