"""LeaderStateStore persistence."""

import json

from services.state_store import LeaderStateStore


class TestLoadAll:

    def test_missing_file_is_empty(self, tmp_path):
        store = LeaderStateStore(tmp_path / "state.json")
        assert store.load_all() == {}
        assert store.get_previous("MLA1") is None

    def test_corrupt_file_is_empty(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text('{"MLA1": "S1", ', encoding="utf-8")

        assert LeaderStateStore(path).load_all() == {}

    def test_non_object_is_empty(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text('["MLA1", "S1"]', encoding="utf-8")

        assert LeaderStateStore(path).load_all() == {}

    def test_non_string_values_ignored(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"MLA1": "S1", "MLA2": None, "MLA3": {"x": 1}}), encoding="utf-8")

        assert LeaderStateStore(path).load_all() == {"MLA1": "S1"}


class TestRecordLeader:

    def test_round_trip(self, tmp_path):
        store = LeaderStateStore(tmp_path / "state.json")

        store.record_leader("MLA1", "S1")

        assert store.load_all() == {"MLA1": "S1"}
        assert store.get_previous("MLA1") == "S1"

    def test_other_entries_preserved(self, tmp_path):
        store = LeaderStateStore(tmp_path / "state.json")
        store.record_leader("MLA1", "S1")
        store.record_leader("MLA2", "S2")

        store.record_leader("MLA1", "S9")

        assert store.load_all() == {"MLA1": "S9", "MLA2": "S2"}

    def test_file_is_valid_json_and_no_temp_left(self, tmp_path):
        path = tmp_path / "state.json"
        store = LeaderStateStore(path)

        store.record_leader("MLA1", "S1")

        assert json.loads(path.read_text(encoding="utf-8")) == {"MLA1": "S1"}
        assert [p.name for p in tmp_path.iterdir()] == ["state.json"]

    def test_recovers_from_corrupt_file(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("garbage", encoding="utf-8")
        store = LeaderStateStore(path)

        store.record_leader("MLA1", "S1")

        assert store.load_all() == {"MLA1": "S1"}

    def test_creates_parent_directory(self, tmp_path):
        store = LeaderStateStore(tmp_path / "data" / "state.json")
        store.record_leader("MLA1", "S1")
        assert store.load_all() == {"MLA1": "S1"}
