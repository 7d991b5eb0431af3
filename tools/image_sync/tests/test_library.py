from pathlib import Path

from image_sync.library import all_library_names, extract_tags, library_references, major_versions, select_tags

OPENJDK = """\
Maintainers: Example <example@example.com>
GitRepo: https://github.com/docker-library/openjdk.git

Tags: 27-ea-7-jdk, 27-ea-7, 27-ea-jdk, 27-ea
Architectures: amd64, arm64v8
GitCommit: abc

Tags: 26-jdk, 26
Architectures: amd64
GitCommit: abc

Tags: 26-jdk-windowsservercore, 26-windowsservercore
Architectures: windows-amd64
GitCommit: abc

Tags: 21.0.2-jdk, 21-jdk, 21
Architectures: arm64v8
GitCommit: abc

Tags: 2-legacy
Architectures: amd64

Tags: latest
Architectures: amd64, arm64v8
"""


def test_extract_tags_filters_arch_and_windows() -> None:
    tags = extract_tags(OPENJDK, "amd64")
    assert "26-jdk" in tags
    assert "21-jdk" not in tags
    assert not any("windows" in t for t in tags)
    assert "21-jdk" in extract_tags(OPENJDK, "arm64")


def test_major_versions_sorted_unique() -> None:
    assert major_versions(["3.23.3", "3.22", "27-ea", "latest", "10"]) == [27, 10, 3]


def test_select_tags_newest_majors_plus_latest() -> None:
    tags = extract_tags(OPENJDK, "amd64")
    assert select_tags(tags, versions=2) == ["27-ea-7-jdk", "26-jdk", "latest"]
    assert select_tags(tags, all_versions=True) == ["27-ea-7-jdk", "26-jdk", "2-legacy", "latest"]


def test_library_references(tmp_path: Path) -> None:
    (tmp_path / "openjdk").write_text(OPENJDK, encoding="utf-8")
    refs = library_references(tmp_path, ["openjdk", "missing"], "amd64", versions=1)
    assert refs == ["openjdk:27-ea-7-jdk", "openjdk:latest"]
    assert all_library_names(tmp_path) == ["openjdk"]
    assert all_library_names(tmp_path / "nope") == []
