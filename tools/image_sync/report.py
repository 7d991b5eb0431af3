"""
同步报告 (Markdown), 可以直接作为 Issue 内容
"""

from datetime import datetime
from typing import List, Optional

from .summary import RunSummary, SyncOutcome

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def _format_time(value: Optional[datetime]) -> str:
    return value.strftime(TIME_FORMAT) if value else "-"


def _table(outcomes: List[SyncOutcome], with_reason: bool = False) -> List[str]:
    if with_reason:
        lines = ["| # | 镜像 | 原因 |", "|---|------|------|"]
    else:
        lines = ["| # | 镜像 |", "|---|------|"]
    for idx, outcome in enumerate(outcomes, 1):
        image = outcome.destination or outcome.reference
        if with_reason:
            reason = (outcome.reason or "").replace("|", "\\|").replace("\n", " ")
            lines.append(f"| {idx} | `{image}` | {reason} |")
        else:
            lines.append(f"| {idx} | `{image}` |")
    return lines


def _collapsed(title: str, outcomes: List[SyncOutcome]) -> List[str]:
    return [
        f"## {title} ({len(outcomes)} 个)",
        "",
        "<details><summary>点击展开查看</summary>",
        "",
        *_table(outcomes),
        "",
        "</details>",
        "",
    ]


def render(summary: RunSummary) -> str:
    """
    生成同步报告, 相同的 summary 总是得到相同的结果

    顺序: 任务信息 -> 统计 -> 失败 (展开) -> 成功 (折叠) -> 跳过 (折叠)
    """
    lines = [
        "# 🔄 Docker 镜像同步报告",
        "",
        "## 📋 任务信息",
        "",
        "| 项目 | 值 |",
        "|------|------|",
        f"| 📁 来源文件 | `{summary.source or '-'}` |",
        f"| 🏗️ 目标架构 | `{summary.arch}` |",
        f"| 🕐 开始时间 | {_format_time(summary.started_at)} |",
        f"| 🕐 结束时间 | {_format_time(summary.finished_at)} |",
        "",
        "---",
        "",
        "## 📊 同步统计",
        "",
        "| 状态 | 数量 | 说明 |",
        "|------|------|------|",
        f"| ✅ 成功 | **{len(summary.success)}** | 已推送到目标仓库 |",
        f"| ⊘ 跳过 | {len(summary.skipped)} | 已存在或未更新 |",
        f"| ❌ 失败 | {len(summary.failed)} | 同步失败需检查 |",
        f"| 📦 **总计** | **{summary.total}** | |",
        "",
        "---",
        "",
    ]

    # 失败列表始终展开
    if summary.failed:
        lines += [f"## ❌ 失败镜像 ({len(summary.failed)} 个)", ""]
        lines += _table(summary.failed, with_reason=True)
        lines += ["", "---", ""]

    if summary.success:
        lines += _collapsed("✅ 成功镜像", summary.success)
        lines += ["---", ""]

    if summary.skipped:
        lines += _collapsed("⊘ 跳过镜像", summary.skipped)
        lines += ["---", ""]

    lines.append("> 📌 本报告由 Docker 镜像同步工具自动生成")
    return "\n".join(lines) + "\n"


def issue_title(summary: RunSummary) -> str:
    status = "✅" if summary.ok else "❌"
    return (
        f"{status} 镜像同步报告 {_format_time(summary.started_at)} "
        f"(成功 {len(summary.success)} / 跳过 {len(summary.skipped)} / 失败 {len(summary.failed)})"
    )
