"""
Docker 镜像同步工具

把任意源仓库的镜像同步到 CNB 镜像仓库:
    image-sync sync nginx:latest
    image-sync sync ghcr.io/graalvm/graalvm-ce:ol9-java11 --arch arm64
    image-sync sync-file docker-images.txt --parallel 3 --skip-existing
    image-sync sync-library openjdk --versions 5

环境变量:
    CNB_REGISTRY       目标镜像仓库 (默认: docker.cnb.cool)
    CNB_ORG            CNB 组织名 (必填或由 CNB_REPO_SLUG 自动检测)
    CNB_PROJECT        CNB 项目名 (必填或由 CNB_REPO_SLUG 自动检测)
    CNB_TOKEN          CNB 访问令牌 (推送镜像和创建 Issue)
    SOURCE_USERNAME    源仓库用户名 (私有镜像需要)
    SOURCE_PASSWORD    源仓库密码 (私有镜像需要)
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from .config import DEFAULT_IMAGE_FILE, DEFAULT_LIBRARY_DIR, SyncConfig
from .errors import ConfigurationMissing
from .issues import IssueClient
from .library import all_library_names, library_references
from .orchestrator import SyncOrchestrator
from .reference import Overrides
from .report import issue_title, render
from .sources import load_reference_file
from .summary import RunSummary

# 配置日志
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)

console = Console()


def print_summary(summary: RunSummary) -> None:
    table = Table(title="同步完成")
    table.add_column("状态")
    table.add_column("数量", justify="right")
    table.add_row("总计", str(summary.total))
    table.add_row("[green]成功[/green]", str(len(summary.success)))
    table.add_row("[yellow]跳过[/yellow]", str(len(summary.skipped)))
    table.add_row("[red]失败[/red]", str(len(summary.failed)))
    console.print(table)
    for outcome in summary.failed:
        console.print(f"[red]✗ {outcome.reference}[/red]: {outcome.reason}")
    for outcome in summary.success:
        for line in outcome.plan:
            console.print(line, markup=False, highlight=False, soft_wrap=True)


def publish(summary: RunSummary, config: SyncConfig, args) -> None:
    """写入报告文件, 按需创建 Issue"""
    if not getattr(args, "report", None) and not getattr(args, "create_issue", False):
        return
    text = render(summary)
    if args.report:
        Path(args.report).write_text(text, encoding="utf-8")
        logger.info(f"同步报告已写入: {args.report}")
    if args.create_issue:
        client = IssueClient(
            f"{config.org}/{config.project}",
            config.credentials.dest_token,
            api_url=args.api_url,
        )
        client.create(issue_title(summary), text)


def build_config(args) -> SyncConfig:
    return SyncConfig.from_env(
        arch=getattr(args, "arch", None),
        concurrency=getattr(args, "parallel", None),
        skip_existing=getattr(args, "skip_existing", None),
        dry_run=getattr(args, "dry_run", None),
        retries=getattr(args, "retries", None),
    )


def cmd_sync(args) -> int:
    config = build_config(args)
    orchestrator = SyncOrchestrator(config)
    overrides = Overrides(tag=args.tag, arch=args.arch, platform=args.platform)
    summary = orchestrator.run([args.image], concurrency=1, overrides=overrides, source=args.image)
    print_summary(summary)
    return summary.exit_code


def cmd_sync_file(args) -> int:
    image_file = Path(args.file) if args.file else DEFAULT_IMAGE_FILE
    try:
        references = load_reference_file(image_file)
    except FileNotFoundError:
        logger.warning(f"镜像列表文件不存在: {image_file}, 跳过")
        return 0
    # 没有镜像时不需要目标仓库配置
    if not references:
        logger.warning(f"镜像列表无有效内容: {image_file}, 跳过")
        return 0

    config = build_config(args)
    orchestrator = SyncOrchestrator(config)
    logger.info(f"镜像列表: {image_file}")
    logger.info(f"有效镜像: {len(references)} 个")
    logger.info(f"架构: {config.arch}  跳过已存在: {config.skip_existing}  DRY-RUN: {config.dry_run}")

    summary = orchestrator.run(references, source=image_file.name)
    print_summary(summary)
    publish(summary, config, args)
    return summary.exit_code


def cmd_sync_library(args) -> int:
    library_dir = Path(args.library_dir) if args.library_dir else DEFAULT_LIBRARY_DIR
    names = all_library_names(library_dir) if args.all else args.names
    if not names:
        logger.error("必须指定镜像名或使用 --all")
        return 1

    config = build_config(args)
    orchestrator = SyncOrchestrator(config)
    references = library_references(
        library_dir, names, config.arch, versions=args.versions, all_versions=args.all_versions
    )
    summary = orchestrator.run(references, source=str(library_dir))
    print_summary(summary)
    publish(summary, config, args)
    return summary.exit_code


def add_common_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('--arch', help='架构 (默认: amd64)')
    parser.add_argument('--dry-run', action='store_true', default=None,
                        help='仅打印命令, 不执行')
    parser.add_argument('--skip-existing', action='store_true', default=None,
                        help='如果目标镜像已存在则跳过 (增量同步)')
    parser.add_argument('--retries', type=int, help='网络错误重试次数 (默认: 0)')


def add_batch_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('--parallel', type=int, help='并行同步数量 (默认: 3)')
    parser.add_argument('--report', help='同步报告 (Markdown) 输出路径')
    parser.add_argument('--create-issue', action='store_true',
                        help='将同步报告发布为 CNB Issue')
    parser.add_argument('--api-url', default='https://api.cnb.cool', help='CNB API 地址')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='image-sync',
        description='同步 Docker 镜像到 CNB 仓库',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument('--debug', action='store_true', help='启用调试模式')
    subparsers = parser.add_subparsers(dest='command', required=True)

    sync = subparsers.add_parser('sync', help='同步单个镜像')
    sync.add_argument('image', help='镜像名, 如 nginx:latest 或 ghcr.io/graalvm/graalvm-ce:ol9-java11')
    sync.add_argument('--tag', help='镜像标签 (默认从镜像名解析, 否则 latest)')
    sync.add_argument('--platform', help='源平台 (默认: docker.io)')
    add_common_options(sync)
    sync.set_defaults(func=cmd_sync)

    sync_file = subparsers.add_parser('sync-file', help='从文件批量同步镜像')
    sync_file.add_argument('file', nargs='?', help='镜像列表文件 (默认: docker-images.txt)')
    add_common_options(sync_file)
    add_batch_options(sync_file)
    sync_file.set_defaults(func=cmd_sync_file)

    sync_library = subparsers.add_parser('sync-library', help='同步 library 目录中定义的官方镜像')
    sync_library.add_argument('names', nargs='*', help='镜像名 (library 目录下的文件名)')
    sync_library.add_argument('--all', action='store_true', help='同步所有镜像')
    sync_library.add_argument('--versions', type=int, default=5, help='同步最近 N 个主版本 (默认: 5)')
    sync_library.add_argument('--all-versions', action='store_true', help='同步所有版本')
    sync_library.add_argument('--library-dir', help='library 目录 (默认: 项目根目录下的 library)')
    add_common_options(sync_library)
    add_batch_options(sync_library)
    sync_library.set_defaults(func=cmd_sync_library)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    # 设置日志级别
    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        code = args.func(args)
    except ConfigurationMissing as e:
        logger.error(str(e))
        sys.exit(1)

    if code == 0:
        logger.info("所有镜像同步成功!")
    else:
        logger.error("部分镜像同步失败!")
    sys.exit(code)
