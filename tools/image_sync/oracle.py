"""
目标镜像是否已存在的检查

按顺序尝试: 本地缓存 (无网络请求) -> Registry HEAD 请求 -> 复制工具检查 manifest。
每一步返回 存在/不存在/无法确定, 遇到明确结果即停止。
"""

import enum
import logging
import threading
from typing import List, Optional

import requests

from .cache import SyncCache
from .config import Credentials
from .errors import CopyError
from .executor import SKOPEO, DOCKER
from .reference import Destination
from .runner import CommandRunner

logger = logging.getLogger(__name__)

MANIFEST_ACCEPT = ", ".join(
    [
        "application/vnd.docker.distribution.manifest.v2+json",
        "application/vnd.docker.distribution.manifest.list.v2+json",
        "application/vnd.oci.image.manifest.v1+json",
        "application/vnd.oci.image.index.v1+json",
    ]
)


class Presence(enum.Enum):
    EXISTS = "exists"
    ABSENT = "absent"
    INCONCLUSIVE = "inconclusive"


class Probe:
    name = "probe"
    # 确认存在后是否写入缓存
    records = True

    def check(self, destination: Destination) -> Presence:
        raise NotImplementedError


class CacheProbe(Probe):
    name = "缓存"
    records = False

    def __init__(self, cache: SyncCache):
        self.cache = cache

    def check(self, destination: Destination) -> Presence:
        if self.cache.has(destination.reference):
            return Presence.EXISTS
        return Presence.INCONCLUSIVE


class RegistryHeadProbe(Probe):
    """只取 headers 的 manifest 请求, 不会产生下载统计"""

    name = "HEAD"

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        token: Optional[str] = None,
        timeout: float = 10.0,
        scheme: str = "https",
    ):
        self._session = session
        self._local = threading.local()
        self.token = token
        self.timeout = timeout
        self.scheme = scheme

    @property
    def session(self) -> requests.Session:
        """未指定会话时每个 worker 线程各自使用一个 requests.Session"""
        if self._session is not None:
            return self._session
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._local.session = requests.Session()
        return session

    def manifest_url(self, destination: Destination) -> str:
        return f"{self.scheme}://{destination.registry}/v2/{destination.repository}/manifests/{destination.tag}"

    def check(self, destination: Destination) -> Presence:
        headers = {"Accept": MANIFEST_ACCEPT}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        try:
            response = self.session.head(
                self.manifest_url(destination),
                headers=headers,
                timeout=self.timeout,
                allow_redirects=True,
            )
        except requests.exceptions.RequestException as e:
            logger.debug(f"HEAD 请求失败: {destination} ({e})")
            return Presence.INCONCLUSIVE
        if response.status_code == 200:
            return Presence.EXISTS
        logger.debug(f"HEAD 请求返回 {response.status_code}: {destination}")
        return Presence.INCONCLUSIVE


class ManifestInspectProbe(Probe):
    """使用复制工具本身检查 manifest"""

    name = "manifest"

    def __init__(
        self,
        runner: CommandRunner,
        tool: str,
        credentials: Optional[Credentials] = None,
        timeout: Optional[float] = None,
    ):
        self.runner = runner
        self.tool = tool
        self.credentials = credentials or Credentials()
        self.timeout = timeout

    def command(self, destination: Destination) -> List[str]:
        if self.tool == SKOPEO:
            cmd = [SKOPEO, "inspect", "--raw"]
            if self.credentials.has_dest:
                cmd += ["--creds", f"{self.credentials.dest_username}:{self.credentials.dest_token}"]
            return cmd + [f"docker://{destination.reference}"]
        return [DOCKER, "manifest", "inspect", destination.reference]

    def check(self, destination: Destination) -> Presence:
        try:
            result = self.runner.run(self.command(destination), timeout=self.timeout)
        except CopyError as e:
            logger.debug(f"manifest 检查失败: {destination} ({e})")
            return Presence.INCONCLUSIVE
        if result.ok:
            return Presence.EXISTS
        stderr = result.stderr.lower()
        if "manifest unknown" in stderr or "no such manifest" in stderr:
            return Presence.ABSENT
        return Presence.INCONCLUSIVE


class ExistenceOracle:
    def __init__(self, probes: List[Probe], cache: Optional[SyncCache] = None):
        self.probes = probes
        self.cache = cache

    def exists(self, destination: Destination) -> bool:
        """
        检查目标镜像是否已存在

        Args:
            destination: 目标镜像

        Returns:
            bool: 已存在返回 True; 不存在或无法确定都返回 False (需要同步)
        """
        for probe in self.probes:
            presence = probe.check(destination)
            if presence is Presence.EXISTS:
                logger.info(f"[{probe.name}] 镜像已存在: {destination}")
                if probe.records and self.cache is not None:
                    self.cache.record(destination.reference)
                return True
            if presence is Presence.ABSENT:
                logger.debug(f"[{probe.name}] 镜像不存在: {destination}")
                return False
        return False


def build_oracle(
    cache: SyncCache,
    runner: CommandRunner,
    tool: str,
    credentials: Credentials,
    timeout: float = 10.0,
    session: Optional[requests.Session] = None,
) -> ExistenceOracle:
    probes: List[Probe] = [
        CacheProbe(cache),
        RegistryHeadProbe(session=session, token=credentials.dest_token, timeout=timeout),
        ManifestInspectProbe(runner, tool, credentials=credentials, timeout=timeout),
    ]
    return ExistenceOracle(probes, cache=cache)
