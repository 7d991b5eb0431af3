"""
外部命令执行 (skopeo / docker)
"""

import logging
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from .errors import CopyError, CopyTimeout

logger = logging.getLogger(__name__)

MASK = "***"


@dataclass(frozen=True)
class CommandResult:
    cmd: Tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def mask_secrets(text: str, secrets: Iterable[str]) -> str:
    for secret in secrets:
        if secret:
            text = text.replace(secret, MASK)
    return text


def format_command(cmd: Sequence[str], secrets: Iterable[str] = ()) -> str:
    """把命令拼成可复制执行的字符串, 密码和 token 替换为 ***"""
    return mask_secrets(" ".join(shlex.quote(str(part)) for part in cmd), list(secrets))


class CommandRunner:
    def __init__(self, secrets: Optional[Iterable[str]] = None):
        self.secrets: List[str] = [s for s in (secrets or []) if s]

    def which(self, tool: str) -> Optional[str]:
        return shutil.which(tool)

    def run(self, cmd: Sequence[str], timeout: Optional[float] = None) -> CommandResult:
        """
        执行命令, 非零返回码不抛异常, 由调用方判断

        Args:
            cmd: 命令列表
            timeout: 超时时间 (秒)

        Returns:
            CommandResult: 执行结果

        Raises:
            CopyTimeout: 命令执行超时
            CopyError: 命令不存在
        """
        display = format_command(cmd, self.secrets)
        logger.debug(f"执行命令: {display}")
        try:
            result = subprocess.run(list(cmd), capture_output=True, text=True, timeout=timeout)
        except subprocess.TimeoutExpired:
            raise CopyTimeout(f"命令执行超时 ({timeout}s): {display}")
        except FileNotFoundError:
            raise CopyError(f"命令不存在: {cmd[0]}")

        if result.stdout:
            logger.debug(f"命令输出: {mask_secrets(result.stdout, self.secrets)}")
        if result.returncode != 0:
            logger.debug(f"命令执行失败: {display}")
            logger.debug(f"错误信息: {mask_secrets(result.stderr, self.secrets)}")
        return CommandResult(
            cmd=tuple(cmd),
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=mask_secrets(result.stderr, self.secrets),
        )
