"""
同步配置

所有配置集中在 SyncConfig 中, 由调用方显式传给 SyncOrchestrator,
环境变量只在 SyncConfig.from_env 中读取一次。
"""

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import List, Mapping, Optional

from dotenv import load_dotenv

from .errors import ConfigurationMissing

# 项目根目录 (tools/image_sync 的上两级), 缓存文件和镜像列表都相对于它解析
PROJECT_DIR = Path(__file__).resolve().parent.parent.parent

DEFAULT_REGISTRY = "docker.cnb.cool"
DEFAULT_PLATFORM = "docker.io"
DEFAULT_TAG = "latest"
DEFAULT_ARCH = "amd64"
DEFAULT_CONCURRENCY = 3
DEFAULT_CACHE_FILE = ".sync-cache.txt"
DEFAULT_IMAGE_FILE = PROJECT_DIR / "docker-images.txt"
DEFAULT_LIBRARY_DIR = PROJECT_DIR / "library"


@dataclass(frozen=True)
class Credentials:
    """源仓库和目标仓库的认证信息, 不出现在 repr 和日志中"""

    source_username: Optional[str] = field(default=None, repr=False)
    source_password: Optional[str] = field(default=None, repr=False)
    dest_token: Optional[str] = field(default=None, repr=False)
    dest_username: str = "cnb"

    @property
    def has_source(self) -> bool:
        return bool(self.source_username and self.source_password)

    @property
    def has_dest(self) -> bool:
        return bool(self.dest_token)

    def secrets(self) -> List[str]:
        """需要在日志中屏蔽的值"""
        return [s for s in (self.source_password, self.dest_token) if s]


def resolve_cache_file(value: Optional[str]) -> Path:
    path = Path(value) if value else Path(DEFAULT_CACHE_FILE)
    if not path.is_absolute():
        path = PROJECT_DIR / path
    return path


@dataclass
class SyncConfig:
    registry: str = DEFAULT_REGISTRY
    org: Optional[str] = None
    project: Optional[str] = None
    default_platform: str = DEFAULT_PLATFORM
    default_tag: str = DEFAULT_TAG
    arch: str = DEFAULT_ARCH
    concurrency: int = DEFAULT_CONCURRENCY
    skip_existing: bool = False
    dry_run: bool = False
    cache_file: Path = field(default_factory=lambda: resolve_cache_file(None))
    probe_timeout: float = 10.0
    copy_timeout: float = 1800.0
    retries: int = 0
    retry_delay: float = 2.0
    # None 表示自动检测 (优先 skopeo)
    copy_tool: Optional[str] = None
    credentials: Credentials = field(default_factory=Credentials)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "SyncConfig":
        """
        从环境变量构建配置

        Args:
            environ: 环境变量映射, 默认使用 os.environ 并先加载项目根目录下的 .env
            **overrides: 直接覆盖的字段 (通常来自命令行参数)

        Returns:
            SyncConfig: 配置对象
        """
        if environ is None:
            load_dotenv(PROJECT_DIR / ".env", override=False)
            environ = os.environ

        org = environ.get("CNB_ORG") or None
        project = environ.get("CNB_PROJECT") or None
        # CNB 流水线中可以从仓库路径自动推断组织和项目
        slug = environ.get("CNB_REPO_SLUG", "")
        if slug and "/" in slug:
            slug_org, slug_project = slug.split("/", 1)
            org = org or slug_org or None
            project = project or slug_project or None

        config = cls(
            registry=environ.get("CNB_REGISTRY") or DEFAULT_REGISTRY,
            org=org,
            project=project,
            default_platform=environ.get("SYNC_DEFAULT_PLATFORM") or DEFAULT_PLATFORM,
            arch=environ.get("SYNC_ARCH") or DEFAULT_ARCH,
            concurrency=int(environ.get("SYNC_PARALLEL") or DEFAULT_CONCURRENCY),
            cache_file=resolve_cache_file(environ.get("SYNC_CACHE_FILE")),
            probe_timeout=float(environ.get("SYNC_PROBE_TIMEOUT") or 10.0),
            copy_timeout=float(environ.get("SYNC_COPY_TIMEOUT") or 1800.0),
            retries=int(environ.get("SYNC_RETRIES") or 0),
            copy_tool=environ.get("SYNC_COPY_TOOL") or None,
            credentials=Credentials(
                source_username=environ.get("SOURCE_USERNAME") or None,
                source_password=environ.get("SOURCE_PASSWORD") or None,
                dest_token=environ.get("CNB_TOKEN") or None,
            ),
        )
        overrides = {k: v for k, v in overrides.items() if v is not None}
        return replace(config, **overrides) if overrides else config

    def validate(self) -> None:
        """检查配置, 缺少目标组织/项目时抛出 ConfigurationMissing"""
        if not self.org or not self.project:
            raise ConfigurationMissing(
                "CNB_ORG 和 CNB_PROJECT 必须设置 (可通过环境变量设置, 或在 CNB 环境中由 CNB_REPO_SLUG 自动检测)"
            )
        if not self.registry:
            raise ConfigurationMissing("目标镜像仓库 CNB_REGISTRY 不能为空")
        if self.concurrency < 1:
            raise ConfigurationMissing(f"并行数量必须大于 0: {self.concurrency}")

    @property
    def destination_prefix(self) -> str:
        return f"{self.registry}/{self.org}/{self.project}/"
