from datetime import datetime

from image_sync.report import issue_title, render
from image_sync.summary import RunSummary, SyncOutcome


def make_summary() -> RunSummary:
    summary = RunSummary(arch="amd64", source="docker-images.txt", started_at=datetime(2026, 1, 2, 3, 4, 5))
    summary.add(SyncOutcome.success("nginx", "docker.cnb.cool/o/p/nginx:latest"))
    summary.add(SyncOutcome.failed("mysql:8.0", "docker.cnb.cool/o/p/mysql:8.0", "AuthFailure: unauthorized"))
    summary.add(SyncOutcome.skipped("redis", "docker.cnb.cool/o/p/redis:latest"))
    summary.add(SyncOutcome.success("alpine", "docker.cnb.cool/o/p/alpine:latest"))
    return summary.finish(datetime(2026, 1, 2, 3, 10, 0))


def test_render_is_deterministic() -> None:
    summary = make_summary()
    assert render(summary) == render(summary)


def test_render_sections_in_stable_order() -> None:
    text = render(make_summary())

    positions = [
        text.index("任务信息"),
        text.index("同步统计"),
        text.index("失败镜像"),
        text.index("成功镜像"),
        text.index("跳过镜像"),
    ]
    assert positions == sorted(positions)
    assert "`docker-images.txt`" in text
    assert "`amd64`" in text
    assert "2026-01-02 03:04:05" in text
    assert "2026-01-02 03:10:00" in text
    assert "| 📦 **总计** | **4** | |" in text


def test_failed_section_is_expanded_and_others_collapsed() -> None:
    text = render(make_summary())
    failed = text[text.index("失败镜像"):text.index("成功镜像")]
    success = text[text.index("成功镜像"):text.index("跳过镜像")]

    assert "<details>" not in failed
    assert "| 1 | `docker.cnb.cool/o/p/mysql:8.0` | AuthFailure: unauthorized |" in failed
    assert "<details>" in success
    # 按记录顺序编号
    assert success.index("| 1 | `docker.cnb.cool/o/p/nginx:latest` |") < success.index(
        "| 2 | `docker.cnb.cool/o/p/alpine:latest` |"
    )


def test_empty_sections_are_omitted() -> None:
    summary = RunSummary(arch="arm64", started_at=datetime(2026, 1, 1)).finish(datetime(2026, 1, 1))
    text = render(summary)
    assert "失败镜像" not in text
    assert "成功镜像" not in text
    assert "| 📦 **总计** | **0** | |" in text


def test_issue_title_reflects_failures() -> None:
    assert issue_title(make_summary()).startswith("❌")
