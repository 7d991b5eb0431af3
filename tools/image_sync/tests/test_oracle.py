import threading

import requests

from image_sync.cache import SyncCache
from image_sync.config import Credentials
from image_sync.oracle import (
    CacheProbe,
    ExistenceOracle,
    ManifestInspectProbe,
    Presence,
    RegistryHeadProbe,
    build_oracle,
)
from image_sync.reference import map_destination, parse

from image_sync.tests.fakes import FakeRunner, FakeSession, result

DEST = map_destination(parse("bitnami/redis:7.2"), "docker.cnb.cool", "avwq", "mirror")


class StaticProbe:
    records = True

    def __init__(self, name, presence):
        self.name = name
        self.presence = presence
        self.calls = 0

    def check(self, destination):
        self.calls += 1
        return self.presence


def test_cache_hit_needs_no_network(tmp_path) -> None:
    cache = SyncCache(tmp_path / "c.txt")
    cache.record(DEST.reference)
    session = FakeSession(status_code=200)
    runner = FakeRunner()
    oracle = build_oracle(cache, runner, "skopeo", Credentials(), session=session)

    assert oracle.exists(DEST)
    assert session.requests == []
    assert runner.calls == []


def test_head_probe_hit_records_cache(tmp_path) -> None:
    cache = SyncCache(tmp_path / "c.txt")
    session = FakeSession(status_code=200)
    runner = FakeRunner()
    oracle = build_oracle(cache, runner, "skopeo", Credentials(dest_token="tok"), session=session)

    assert oracle.exists(DEST)
    assert cache.has(DEST.reference)
    assert runner.calls == []
    url, headers, timeout = session.requests[0]
    assert url == "https://docker.cnb.cool/v2/avwq/mirror/bitnami-redis/manifests/7.2"
    assert headers["Authorization"] == "Bearer tok"
    assert timeout == 10.0


def test_head_failure_falls_through_to_manifest_inspect(tmp_path, offline_session) -> None:
    cache = SyncCache(tmp_path / "c.txt")
    runner = FakeRunner()
    oracle = build_oracle(cache, runner, "skopeo", Credentials(dest_token="tok"), session=offline_session)

    assert oracle.exists(DEST)
    assert runner.calls[0][:3] == ["skopeo", "inspect", "--raw"]
    assert "--creds" in runner.calls[0]
    assert cache.has(DEST.reference)


def test_all_probes_negative_means_sync_needed(tmp_path) -> None:
    cache = SyncCache(tmp_path / "c.txt")
    runner = FakeRunner(handler=lambda cmd: result(cmd, 1, "manifest unknown"))
    oracle = build_oracle(cache, runner, "docker", Credentials(), session=FakeSession(404))

    assert not oracle.exists(DEST)
    assert runner.calls == [["docker", "manifest", "inspect", DEST.reference]]
    assert not cache.has(DEST.reference)


def test_head_non_success_is_inconclusive() -> None:
    assert RegistryHeadProbe(session=FakeSession(401)).check(DEST) is Presence.INCONCLUSIVE
    assert RegistryHeadProbe(session=FakeSession(404)).check(DEST) is Presence.INCONCLUSIVE
    error = FakeSession(error=requests.exceptions.Timeout("slow"))
    assert RegistryHeadProbe(session=error).check(DEST) is Presence.INCONCLUSIVE


def test_head_probe_uses_one_session_per_thread() -> None:
    probe = RegistryHeadProbe()
    main_session = probe.session
    assert probe.session is main_session

    seen = []
    worker = threading.Thread(target=lambda: seen.append(probe.session))
    worker.start()
    worker.join()

    assert isinstance(seen[0], requests.Session)
    assert seen[0] is not main_session


def test_head_probe_given_session_is_shared() -> None:
    session = FakeSession(200)
    probe = RegistryHeadProbe(session=session)
    seen = []
    worker = threading.Thread(target=lambda: seen.append(probe.session))
    worker.start()
    worker.join()

    assert seen == [session]


def test_manifest_probe_states() -> None:
    ok = ManifestInspectProbe(FakeRunner(), "docker")
    assert ok.check(DEST) is Presence.EXISTS

    absent = ManifestInspectProbe(FakeRunner(lambda cmd: result(cmd, 1, "manifest unknown")), "docker")
    assert absent.check(DEST) is Presence.ABSENT

    broken = ManifestInspectProbe(FakeRunner(lambda cmd: result(cmd, 1, "connection refused")), "docker")
    assert broken.check(DEST) is Presence.INCONCLUSIVE


def test_cascade_stops_at_first_confirmed_result() -> None:
    first = StaticProbe("a", Presence.INCONCLUSIVE)
    second = StaticProbe("b", Presence.ABSENT)
    third = StaticProbe("c", Presence.EXISTS)
    oracle = ExistenceOracle([first, second, third])

    assert not oracle.exists(DEST)
    assert (first.calls, second.calls, third.calls) == (1, 1, 0)


def test_cache_probe_does_not_rewrite_cache(tmp_path) -> None:
    path = tmp_path / "c.txt"
    cache = SyncCache(path)
    cache.record(DEST.reference)
    oracle = ExistenceOracle([CacheProbe(cache)], cache=cache)

    assert oracle.exists(DEST)
    assert path.read_text(encoding="utf-8").count(DEST.reference) == 1
