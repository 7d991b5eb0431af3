from pathlib import Path

import pytest
import requests

from image_sync.config import Credentials, SyncConfig
from image_sync.tests.fakes import FakeSession


@pytest.fixture
def config(tmp_path: Path) -> SyncConfig:
    return SyncConfig(
        org="avwq",
        project="mirror",
        cache_file=tmp_path / ".sync-cache.txt",
        concurrency=3,
        copy_tool="skopeo",
        retry_delay=0,
        credentials=Credentials(dest_token="cnb-secret-token"),
    )


@pytest.fixture
def offline_session() -> FakeSession:
    return FakeSession(error=requests.exceptions.ConnectionError("offline"))
