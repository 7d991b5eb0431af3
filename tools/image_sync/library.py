"""
从 library 目录 (Docker Official Images 定义文件) 中提取要同步的镜像版本

定义文件格式:
    Tags: 21.0.2-jdk, 21-jdk, 21
    Architectures: amd64, arm64v8
    GitCommit: ...

    Tags: 17.0.10-jdk, 17-jdk, 17
    ...
"""

import logging
import re
from pathlib import Path
from typing import Iterable, List, Union

logger = logging.getLogger(__name__)

_MAJOR = re.compile(r"^(\d+)")


def extract_tags(text: str, arch: str) -> List[str]:
    """
    提取支持指定架构的所有 tag, 跳过 windows 镜像

    Args:
        text: 定义文件内容
        arch: 架构, 如 amd64

    Returns:
        List[str]: tag 列表 (按文件中的顺序)
    """
    tags: List[str] = []
    current_tags: List[str] = []
    for line in text.splitlines():
        line = line.rstrip("\r")
        if line.startswith("Tags:"):
            current_tags = [t.strip() for t in line[len("Tags:"):].split(",") if t.strip()]
        elif line.startswith("Architectures:"):
            archs = line[len("Architectures:"):]
            if "windows" in archs:
                current_tags = []
            elif arch in archs:
                tags.extend(current_tags)
        elif not line.strip():
            current_tags = []
    return tags


def major_versions(tags: Iterable[str]) -> List[int]:
    """27-ea-7-jdk -> 27, 3.23.3 -> 3, latest 跳过; 去重后从大到小排序"""
    majors = {int(m.group(1)) for m in (_MAJOR.match(t) for t in tags) if m}
    return sorted(majors, reverse=True)


def select_tags(tags: List[str], versions: int = 5, all_versions: bool = False) -> List[str]:
    """
    每个主版本取第一个 tag (最具体的版本), 保留最近 N 个主版本, 最后加上 latest

    Args:
        tags: extract_tags 的结果
        versions: 保留的主版本数量
        all_versions: 保留所有主版本

    Returns:
        List[str]: 要同步的 tag
    """
    majors = major_versions(tags)
    if not all_versions:
        majors = majors[:versions]

    selected = []
    for major in majors:
        for tag in tags:
            m = _MAJOR.match(tag)
            # 主版本 2 不能匹配到 27-jdk
            if m and int(m.group(1)) == major:
                selected.append(tag)
                break
    if "latest" in tags:
        selected.append("latest")
    return selected


def library_references(
    library_dir: Union[str, Path],
    names: Iterable[str],
    arch: str,
    versions: int = 5,
    all_versions: bool = False,
) -> List[str]:
    """
    生成 name:tag 形式的镜像列表

    Args:
        library_dir: library 目录
        names: 镜像名, 对应 library 目录下的文件名
        arch: 架构
        versions: 每个镜像同步的主版本数量
        all_versions: 同步所有主版本

    Returns:
        List[str]: 镜像列表
    """
    library_dir = Path(library_dir)
    references = []
    for name in names:
        lib_file = library_dir / name
        if not lib_file.is_file():
            logger.error(f"library 文件不存在: {lib_file}")
            continue
        tags = extract_tags(lib_file.read_text(encoding="utf-8"), arch)
        if not tags:
            logger.warning(f"{name}: 未找到适用于 {arch} 架构的 tags")
            continue
        selected = select_tags(tags, versions=versions, all_versions=all_versions)
        logger.info(f"{name}: 选择 {len(selected)} 个版本 {selected}")
        references.extend(f"{name}:{tag}" for tag in selected)
    return references


def all_library_names(library_dir: Union[str, Path]) -> List[str]:
    library_dir = Path(library_dir)
    if not library_dir.is_dir():
        return []
    return sorted(p.name for p in library_dir.iterdir() if p.is_file() and not p.name.startswith("."))
