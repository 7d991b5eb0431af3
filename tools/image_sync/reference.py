"""
镜像名称解析和目标路径转换

支持的输入格式:
    nginx                                   -> docker.io/nginx:latest
    mysql:8.0                               -> docker.io/mysql:8.0
    ghcr.io/graalvm/graalvm-ce:ol9-java11   -> ghcr.io/graalvm/graalvm-ce:ol9-java11
    localhost:5000/team/app                 -> localhost:5000/team/app:latest

目标路径格式:
    <registry>/<org>/<project>/<路径中的 / 替换为 ->:<tag>
"""

from dataclasses import dataclass
from typing import NamedTuple, Optional

from .config import DEFAULT_PLATFORM, DEFAULT_TAG

PATH_JOIN_CHAR = "-"


class Overrides(NamedTuple):
    """命令行等显式指定的值, 优先于从镜像名中解析出的值"""

    tag: Optional[str] = None
    arch: Optional[str] = None
    platform: Optional[str] = None


@dataclass(frozen=True)
class ImageReference:
    platform: str
    repository: str
    tag: str

    @property
    def source(self) -> str:
        return f"{self.platform}/{self.repository}:{self.tag}"

    def __str__(self) -> str:
        return self.source


@dataclass(frozen=True)
class Destination:
    registry: str
    org: str
    project: str
    basename: str
    tag: str

    @property
    def repository(self) -> str:
        """不含仓库地址和 tag 的路径, 用于 Registry API"""
        return f"{self.org}/{self.project}/{self.basename}"

    @property
    def reference(self) -> str:
        return f"{self.registry}/{self.repository}:{self.tag}"

    def __str__(self) -> str:
        return self.reference


def _looks_like_registry(segment: str) -> bool:
    # 域名包含 . , host:port 包含 :
    return "." in segment or ":" in segment


def parse(
    raw: str,
    overrides: Optional[Overrides] = None,
    default_platform: str = DEFAULT_PLATFORM,
    default_tag: str = DEFAULT_TAG,
) -> ImageReference:
    """
    解析镜像名称, 不会抛出异常

    Args:
        raw: 原始镜像名, 如 ghcr.io/graalvm/graalvm-ce:ol9-java11
        overrides: 显式指定的 tag/platform
        default_platform: 未指定源平台时使用的仓库
        default_tag: 未指定 tag 时使用的 tag

    Returns:
        ImageReference: 解析后的镜像信息
    """
    overrides = overrides or Overrides()
    name = (raw or "").strip()

    # 只有最后一个 / 之后的 : 才是 tag 分隔符
    parsed_tag = ""
    slash = name.rfind("/")
    colon = name.rfind(":")
    if colon > slash:
        name, parsed_tag = name[:colon], name[colon + 1:]

    parsed_platform = ""
    if "/" in name:
        first, rest = name.split("/", 1)
        if _looks_like_registry(first):
            parsed_platform, name = first, rest

    return ImageReference(
        platform=overrides.platform or parsed_platform or default_platform,
        repository=name.lstrip("/"),
        tag=overrides.tag or parsed_tag or default_tag,
    )


def flatten_repository(repository: str) -> str:
    return repository.replace("/", PATH_JOIN_CHAR)


def map_destination(ref: ImageReference, registry: str, org: str, project: str) -> Destination:
    """
    计算目标镜像路径

    Args:
        ref: 解析后的源镜像
        registry: 目标仓库地址, 如 docker.cnb.cool
        org: 目标组织
        project: 目标项目

    Returns:
        Destination: 目标镜像, 镜像名中不含 /
    """
    return Destination(
        registry=registry,
        org=org,
        project=project,
        basename=flatten_repository(ref.repository),
        tag=ref.tag,
    )
