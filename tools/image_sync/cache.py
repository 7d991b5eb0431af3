"""
已同步镜像缓存

每行一个目标镜像, 只追加不删除。缓存只用来减少网络请求,
缓存未命中时仍然会去仓库检查, 远端镜像被手动删除后缓存不会自动失效。
"""

import logging
import threading
from pathlib import Path
from typing import Set, Union

logger = logging.getLogger(__name__)


class SyncCache:
    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _entries(self) -> Set[str]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return {line.strip() for line in f if line.strip()}
        except FileNotFoundError:
            return set()
        except OSError as e:
            logger.warning(f"读取缓存失败: {self.path} ({e})")
            return set()

    def has(self, ref: str) -> bool:
        return ref in self._entries()

    def record(self, ref: str) -> None:
        """
        记录已同步的目标镜像, 重复记录无副作用

        Args:
            ref: 目标镜像, 如 docker.cnb.cool/org/project/nginx:latest
        """
        with self._lock:
            if ref in self._entries():
                return
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.path, "a", encoding="utf-8") as f:
                    f.write(f"{ref}\n")
            except OSError as e:
                logger.warning(f"写入缓存失败: {self.path} ({e})")
                return
        logger.debug(f"已写入缓存: {ref}")

    def __len__(self) -> int:
        return len(self._entries())
