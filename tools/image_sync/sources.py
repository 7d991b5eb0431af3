"""
镜像列表文件读取

文件格式 (每行一个镜像):
    nginx:latest
    mysql:8.0
    ghcr.io/graalvm/graalvm-ce:ol9-java11
    # 注释行以 # 开头
"""

from pathlib import Path
from typing import Iterable, List, Union


def clean_references(lines: Iterable[str]) -> List[str]:
    """去除 CR 和首尾空白, 跳过空行和注释行"""
    references = []
    for line in lines:
        line = line.replace("\r", "").strip()
        if not line or line.startswith("#"):
            continue
        references.append(line)
    return references


def load_reference_file(path: Union[str, Path]) -> List[str]:
    """
    读取镜像列表文件

    Args:
        path: 文件路径

    Returns:
        List[str]: 有效的镜像名列表

    Raises:
        FileNotFoundError: 文件不存在
    """
    with open(path, "r", encoding="utf-8") as f:
        return clean_references(f)
