"""
镜像复制

优先使用 skopeo 在仓库之间直接复制 (不占用本地存储),
没有 skopeo 时退回 docker pull -> tag -> push, 推送后清理本地镜像。
"""

import logging
from typing import List, Optional, Tuple

from .cache import SyncCache
from .config import Credentials
from .errors import CopyError, classify_copy_failure
from .reference import Destination, ImageReference
from .runner import CommandRunner, format_command

logger = logging.getLogger(__name__)

SKOPEO = "skopeo"
DOCKER = "docker"


def split_arch(arch: str) -> Tuple[str, Optional[str]]:
    """arm64/v8 -> (arm64, v8)"""
    name, _, variant = arch.partition("/")
    return name, variant or None


def detect_copy_tool(runner: CommandRunner, preferred: Optional[str] = None) -> str:
    if preferred:
        return preferred
    return SKOPEO if runner.which(SKOPEO) else DOCKER


class CopyExecutor:
    def __init__(
        self,
        runner: CommandRunner,
        cache: Optional[SyncCache] = None,
        credentials: Optional[Credentials] = None,
        tool: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """
        初始化

        Args:
            runner: 命令执行器
            cache: 同步成功后写入的缓存, 为 None 时不记录
            credentials: 默认认证信息
            tool: 复制工具 skopeo/docker, 为 None 时自动检测
            timeout: 单条命令超时时间 (秒)
        """
        self.runner = runner
        self.cache = cache
        self.credentials = credentials or Credentials()
        self.tool = detect_copy_tool(runner, tool)
        self.timeout = timeout
        if self.tool not in (SKOPEO, DOCKER):
            raise ValueError(f"不支持的复制工具: {self.tool}")

    def skopeo_command(
        self, source: ImageReference, destination: Destination, arch: str, credentials: Credentials
    ) -> List[str]:
        arch_name, variant = split_arch(arch)
        cmd = [SKOPEO, "copy", "--override-arch", arch_name]
        if variant:
            cmd += ["--override-variant", variant]
        if credentials.has_source:
            cmd += ["--src-creds", f"{credentials.source_username}:{credentials.source_password}"]
        if credentials.has_dest:
            cmd += ["--dest-creds", f"{credentials.dest_username}:{credentials.dest_token}"]
        cmd += [f"docker://{source.source}", f"docker://{destination.reference}"]
        return cmd

    def docker_commands(
        self, source: ImageReference, destination: Destination, arch: str
    ) -> List[Tuple[str, List[str]]]:
        return [
            ("pull", [DOCKER, "pull", "--platform", f"linux/{arch}", source.source]),
            ("tag", [DOCKER, "tag", source.source, destination.reference]),
            ("push", [DOCKER, "push", destination.reference]),
        ]

    def plan(
        self,
        source: ImageReference,
        destination: Destination,
        arch: str,
        credentials: Optional[Credentials] = None,
    ) -> List[str]:
        """返回将要执行的命令 (已屏蔽密码)"""
        credentials = credentials or self.credentials
        secrets = credentials.secrets()
        if self.tool == SKOPEO:
            return [format_command(self.skopeo_command(source, destination, arch, credentials), secrets)]
        return [format_command(cmd, secrets) for _, cmd in self.docker_commands(source, destination, arch)]

    def copy(
        self,
        source: ImageReference,
        destination: Destination,
        arch: str,
        credentials: Optional[Credentials] = None,
        dry_run: bool = False,
    ) -> List[str]:
        """
        复制单个镜像, 内部不做重试

        Args:
            source: 源镜像
            destination: 目标镜像
            arch: 架构, 如 amd64, arm64/v8
            credentials: 认证信息, 默认使用初始化时传入的
            dry_run: 只返回命令, 不执行

        Returns:
            List[str]: 执行 (或将要执行) 的命令

        Raises:
            CopyError: 复制失败
        """
        credentials = credentials or self.credentials
        commands = self.plan(source, destination, arch, credentials)
        if dry_run:
            logger.info(f"[DRY-RUN] {destination.reference}")
            for line in commands:
                logger.info(f"[DRY-RUN] {line}")
            return commands

        if self.tool == SKOPEO:
            self._copy_with_skopeo(source, destination, arch, credentials)
        else:
            self._copy_with_docker(source, destination, arch)

        if self.cache is not None:
            self.cache.record(destination.reference)
        return commands

    def _copy_with_skopeo(
        self, source: ImageReference, destination: Destination, arch: str, credentials: Credentials
    ) -> None:
        logger.info(f"使用 skopeo 复制镜像: {source} -> {destination}")
        result = self.runner.run(
            self.skopeo_command(source, destination, arch, credentials), timeout=self.timeout
        )
        if not result.ok:
            raise classify_copy_failure(result.stderr, step="copy")

    def _copy_with_docker(self, source: ImageReference, destination: Destination, arch: str) -> None:
        logger.info(f"使用 docker 同步镜像: {source} -> {destination}")
        try:
            for step, cmd in self.docker_commands(source, destination, arch):
                logger.info(f"步骤 {step}: {format_command(cmd)}")
                result = self.runner.run(cmd, timeout=self.timeout)
                if not result.ok:
                    raise classify_copy_failure(result.stderr, step=step)
        finally:
            self.cleanup(source, destination)

    def cleanup(self, source: ImageReference, destination: Destination) -> None:
        """清理本地镜像, 失败只记录日志"""
        for image in (source.source, destination.reference):
            try:
                result = self.runner.run([DOCKER, "rmi", image], timeout=self.timeout)
            except CopyError as e:
                logger.debug(f"清理本地镜像失败: {image} ({e})")
                continue
            if not result.ok:
                logger.debug(f"清理本地镜像失败: {image} ({result.stderr.strip()})")
