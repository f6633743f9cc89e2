import pytest

from deepfake_verdict.result import FEATURE_KEYS, DetectionResult
from deepfake_verdict.storage import (
    JsonFileResultSink,
    SQLiteResultSink,
    compute_stats,
    create_result_sink,
)


def _result(rid, verdict="real", confidence=80.0, timestamp=1000):
    real = 0.9 if verdict == "real" else (0.1 if verdict == "fake" else 0.5)
    return DetectionResult(
        id=rid,
        filename=f"{rid}.mp4",
        timestamp=timestamp,
        real_score=real,
        fake_score=1.0 - real,
        confidence=confidence,
        verdict=verdict,
        features={k: 12.5 for k in FEATURE_KEYS},
        detection_time=0.75,
        metadata={"fallbackMode": verdict == "uncertain", "predictionsCount": 3},
    )


@pytest.fixture(params=["json", "sqlite"])
def sink(request, tmp_path):
    if request.param == "json":
        store = JsonFileResultSink(str(tmp_path / "results.json"))
    else:
        store = SQLiteResultSink(str(tmp_path / "results.db"))
    yield store
    if isinstance(store, SQLiteResultSink):
        store.close()


class TestResultSink:
    def test_empty(self, sink):
        assert sink.list() == []
        assert sink.get("missing") is None
        assert sink.stats().total_analyzed == 0
        assert sink.stats().average_confidence == 0.0

    def test_save_and_get_round_trip(self, sink):
        original = _result("a1")
        assert sink.save(original) == "a1"
        assert sink.get("a1") == original

    def test_list_newest_first(self, sink):
        sink.save(_result("old", timestamp=1000))
        sink.save(_result("new", timestamp=2000))
        assert [r.id for r in sink.list()] == ["new", "old"]

    def test_save_same_id_replaces(self, sink):
        sink.save(_result("a1", confidence=60.0))
        sink.save(_result("a1", confidence=90.0))
        results = sink.list()
        assert len(results) == 1
        assert results[0].confidence == 90.0

    def test_owner_filter_and_delete(self, sink):
        sink.save(_result("a", timestamp=1), owner_id="alice")
        sink.save(_result("b", timestamp=2), owner_id="bob")
        sink.save(_result("c", timestamp=3), owner_id="alice")
        sink.save(_result("d", timestamp=4))

        assert [r.id for r in sink.list("alice")] == ["c", "a"]
        assert sink.delete_by_owner("alice") == 2
        assert sorted(r.id for r in sink.list()) == ["b", "d"]

    def test_stats(self, sink):
        sink.save(_result("r1", "real", 80.0, 1), owner_id="u")
        sink.save(_result("r2", "real", 100.0, 2), owner_id="u")
        sink.save(_result("f1", "fake", 90.0, 3))
        sink.save(_result("u1", "uncertain", 10.0, 4), owner_id="u")

        stats = sink.stats()
        assert stats.total_analyzed == 4
        assert (stats.real_detected, stats.fake_detected, stats.uncertain_detected) == (2, 1, 1)
        assert stats.average_confidence == pytest.approx(70.0)
        assert stats == compute_stats(sink.list())

        owner_stats = sink.stats("u")
        assert owner_stats.total_analyzed == 3
        assert owner_stats.average_confidence == pytest.approx(190.0 / 3)

    def test_clear(self, sink):
        sink.save(_result("a"))
        sink.clear()
        assert sink.list() == []


class TestJsonFileResultSink:
    def test_corrupt_file_reads_empty(self, tmp_path, caplog):
        path = tmp_path / "results.json"
        path.write_text("{not json", encoding="utf-8")

        sink = JsonFileResultSink(str(path))

        assert sink.list() == []
        assert "Failed to retrieve detection results" in caplog.text

    def test_non_list_file_reads_empty(self, tmp_path):
        path = tmp_path / "results.json"
        path.write_text('{"id": "x"}', encoding="utf-8")
        assert JsonFileResultSink(str(path)).list() == []

    def test_creates_parent_directory(self, tmp_path):
        sink = JsonFileResultSink(str(tmp_path / "nested" / "dir" / "results.json"))
        sink.save(_result("a"))
        assert (tmp_path / "nested" / "dir" / "results.json").exists()

    def test_file_uses_wire_shape(self, tmp_path):
        import json

        path = tmp_path / "results.json"
        JsonFileResultSink(str(path)).save(_result("a"), owner_id="alice")
        record = json.loads(path.read_text(encoding="utf-8"))[0]
        assert record["realScore"] == 0.9
        assert record["ownerId"] == "alice"


def test_create_result_sink(tmp_path):
    assert isinstance(create_result_sink("json", str(tmp_path / "r.json")), JsonFileResultSink)
    sqlite_sink = create_result_sink("sqlite", str(tmp_path / "r.db"))
    assert isinstance(sqlite_sink, SQLiteResultSink)
    sqlite_sink.close()
    with pytest.raises(ValueError, match="Unknown result store"):
        create_result_sink("postgres", "x")
