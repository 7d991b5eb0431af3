"""
CNB Issue 操作, 用于发布同步报告

Issue 相关的失败只记录日志, 不影响同步结果。
"""

import logging
import re
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.cnb.cool"


def parse_issue_number(payload: Any) -> Optional[str]:
    """
    从响应中解析 Issue 编号

    CNB 返回 "number": "1", 其他格式可能是 "iid": 1 或 "id": 1
    """
    if not isinstance(payload, dict):
        return None
    for key in ("iid", "number", "id"):
        value = payload.get(key)
        if value is None:
            continue
        if re.fullmatch(r"\d+", str(value)):
            return str(value)
    return None


class IssueClient:
    def __init__(
        self,
        repo_slug: str,
        token: Optional[str],
        api_url: str = DEFAULT_API_URL,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
    ):
        self.repo_slug = repo_slug.strip("/")
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.token and self.repo_slug)

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _request(self, method: str, url: str, **kwargs) -> Optional[requests.Response]:
        kwargs.setdefault("headers", self._headers())
        kwargs.setdefault("timeout", self.timeout)
        try:
            return self.session.request(method, url, **kwargs)
        except requests.exceptions.RequestException as e:
            logger.warning(f"[ISSUE] 请求失败: {method} {url} ({e})")
            return None

    def create(self, title: str, body: str = "") -> Optional[str]:
        """
        创建 Issue

        Args:
            title: 标题
            body: 内容 (Markdown)

        Returns:
            Optional[str]: Issue 编号, 失败返回 None
        """
        if not self.enabled:
            logger.warning("[ISSUE] CNB_TOKEN 未设置, 跳过 Issue 创建")
            return None

        logger.info(f"[ISSUE] 创建 Issue: {title} (仓库: {self.repo_slug})")
        attempts = [
            (f"{self.api_url}/{self.repo_slug}/issues", {"title": title, "body": body}),
            (f"{self.api_url}/{self.repo_slug}/-/issues", {"title": title, "description": body}),
        ]
        response = None
        for url, payload in attempts:
            response = self._request("POST", url, json=payload)
            if response is None or not response.ok:
                continue
            try:
                number = parse_issue_number(response.json())
            except ValueError:
                number = None
            if number:
                logger.info(f"[ISSUE] ✓ Issue #{number} 创建成功")
                return number

        status = response.status_code if response is not None else "-"
        text = response.text[:200] if response is not None else ""
        logger.warning(f"[ISSUE] ⚠️ Issue 创建失败 (HTTP {status}) {text}")
        return None

    def update(self, number: str, body: str) -> bool:
        if not self.enabled or not number:
            return False
        response = self._request(
            "PATCH", f"{self.api_url}/{self.repo_slug}/issues/{number}", json={"body": body}
        )
        if response is not None and response.ok:
            logger.info(f"[ISSUE] ✓ Issue #{number} 内容已更新")
            return True
        logger.warning(f"[ISSUE] ⚠️ Issue #{number} 更新失败")
        return False

    def close(self, number: str) -> bool:
        if not self.enabled or not number:
            return False
        response = self._request(
            "PATCH", f"{self.api_url}/{self.repo_slug}/issues/{number}", json={"state": "closed"}
        )
        if response is not None and response.ok:
            logger.info(f"[ISSUE] ✓ Issue #{number} 已关闭")
            return True
        logger.warning(f"[ISSUE] ⚠️ Issue #{number} 关闭失败")
        return False

    def comment(self, number: str, body: str) -> bool:
        if not self.enabled or not number:
            return False
        url = f"{self.api_url}/api/v4/projects/{quote(self.repo_slug, safe='')}/issues/{number}/notes"
        response = self._request(
            "POST",
            url,
            json={"body": body},
            headers={"PRIVATE-TOKEN": self.token, "Content-Type": "application/json"},
        )
        return response is not None and response.ok
