"""
镜像同步错误类型

单个镜像的错误 (CopyError 及其子类) 会在批量同步中被转换成失败结果,
只有 ConfigurationMissing 会中止整个批次。
"""

import re
from typing import Optional


class SyncError(Exception):
    """镜像同步相关错误的基类"""


class ConfigurationMissing(SyncError):
    """目标组织/项目等必要配置缺失, 无法计算任何目标镜像"""


class CopyError(SyncError):
    """镜像复制失败"""

    kind = "CopyError"
    retryable = False

    def __init__(self, message: str, step: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.step = step

    @property
    def reason(self) -> str:
        return f"{self.kind}: {self.message}"


class AuthFailure(CopyError):
    kind = "AuthFailure"


class NetworkFailure(CopyError):
    kind = "NetworkFailure"
    retryable = True


class CopyTimeout(NetworkFailure):
    kind = "timeout"


class ArchUnavailable(CopyError):
    kind = "ArchUnavailable"


class DestinationRejected(CopyError):
    kind = "DestinationRejected"


_ARCH_PATTERNS = re.compile(
    r"no image found in (image index|manifest list) for architecture"
    r"|no matching manifest for"
    r"|does not match the specified platform"
    r"|choosing image instance",
    re.IGNORECASE,
)

def _status(codes: str) -> str:
    # 只匹配 HTTP 状态码上下文中的数字, digest / IP / 端口里的数字不算
    return (
        rf"(?:status(?:\s*code)?|http(?:/[\d.]+)?|code)\W{{0,3}}(?:{codes})\b"
        rf"|\b(?:{codes})\s+(?:unauthorized|forbidden|internal server error|bad gateway"
        rf"|service unavailable|gateway time-?out|not implemented)"
    )


_AUTH_PATTERNS = re.compile(
    r"unauthorized|authentication required|invalid username/password"
    r"|incorrect username or password|" + _status("401"),
    re.IGNORECASE,
)
_DENIED_PATTERNS = re.compile(
    r"\bdenied\b|\bforbidden\b|quota|name invalid|" + _status("403"), re.IGNORECASE
)
_DEST_WRITE_PATTERNS = re.compile(
    r"writing (blob|manifest)|uploading|trying to reuse blob|push", re.IGNORECASE
)
_NETWORK_PATTERNS = re.compile(
    r"timeout|timed out|connection refused|connection reset|no such host"
    r"|temporary failure in name resolution|tls handshake|\beof\b|network is unreachable"
    r"|too many requests|toomanyrequests|" + _status("50[0-4]|429"),
    re.IGNORECASE,
)


def classify_copy_failure(stderr: str, step: Optional[str] = None) -> CopyError:
    """
    根据复制工具的错误输出判断失败类型

    Args:
        stderr: 工具的错误输出
        step: 失败的步骤 (copy/pull/push 等), push 步骤的拒绝视为目标仓库拒绝

    Returns:
        CopyError: 对应子类的实例, 无法识别时返回通用 CopyError
    """
    text = (stderr or "").strip()
    message = text.splitlines()[-1] if text else "命令执行失败"

    if _ARCH_PATTERNS.search(text):
        return ArchUnavailable(message, step)
    if _DENIED_PATTERNS.search(text) and (step == "push" or _DEST_WRITE_PATTERNS.search(text)):
        return DestinationRejected(message, step)
    if _AUTH_PATTERNS.search(text):
        return AuthFailure(message, step)
    if _DENIED_PATTERNS.search(text):
        # 源仓库拒绝拉取一般是没有权限
        return AuthFailure(message, step)
    if _NETWORK_PATTERNS.search(text):
        return NetworkFailure(message, step)
    return CopyError(message, step)
