import json
from pathlib import Path

from rodovar.persistence.cache import LocalCache, SessionMarkers
from rodovar.persistence.offline_queue import OfflineQueue


def test_local_cache_writes_one_file_per_table(tmp_path: Path) -> None:
    cache = LocalCache(tmp_path)

    cache.put("shipments", "RODOVAR1234", {"code": "RODOVAR1234"})

    path = tmp_path / "cache" / "shipments.json"
    assert path.exists()
    assert json.loads(path.read_text(encoding="utf-8")) == {"RODOVAR1234": {"code": "RODOVAR1234"}}
    assert not (tmp_path / "cache" / "shipments.json.tmp").exists()


def test_local_cache_get_remove(tmp_path: Path) -> None:
    cache = LocalCache(tmp_path)
    cache.put("drivers", "d1", {"id": "d1"})

    assert cache.get("drivers", "d1") == {"id": "d1"}
    assert cache.get("drivers", "missing") is None
    assert cache.remove("drivers", "d1")
    assert not cache.remove("drivers", "d1")
    assert cache.all("drivers") == {}


def test_local_cache_survives_corrupt_file(tmp_path: Path) -> None:
    cache = LocalCache(tmp_path)
    (tmp_path / "cache" / "shipments.json").write_text("{not json", encoding="utf-8")

    assert cache.all("shipments") == {}
    cache.put("shipments", "A", {"code": "A"})
    assert cache.get("shipments", "A") == {"code": "A"}


def test_offline_queue_keeps_one_slot_per_code(tmp_path: Path) -> None:
    queue = OfflineQueue(LocalCache(tmp_path))

    queue.put("RODOVAR1234", {"version": 1})
    queue.put("RODOVAR1234", {"version": 2})
    queue.put("AXD5555", {"version": 7})

    assert queue.get("RODOVAR1234") == {"version": 2}
    assert queue.pending_codes() == ["AXD5555", "RODOVAR1234"]

    queue.discard("RODOVAR1234")
    assert not queue.has_pending("RODOVAR1234")
    assert queue.has_pending("AXD5555")


def test_session_markers(tmp_path: Path) -> None:
    markers = SessionMarkers(LocalCache(tmp_path))

    markers.mark_active("RODOVAR1234")
    markers.mark_active("AXD5555")
    markers.remember_driver_code("RODOVAR1234")
    markers.clear_active("AXD5555")

    reopened = SessionMarkers(LocalCache(tmp_path))
    assert reopened.active_codes() == ["RODOVAR1234"]
    assert reopened.is_active("RODOVAR1234")
    assert not reopened.is_active("AXD5555")
    assert reopened.driver_code() == "RODOVAR1234"

    reopened.forget_driver_code()
    assert reopened.driver_code() is None
