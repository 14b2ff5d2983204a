"""
Tests for the observation schema and the durable observation store.

These tests verify:
1. Persisted record layout (camelCase keys, optional noble)
2. Upsert by identities plus bonus counts
3. Persistence across store instances
4. Corrupt storage falls back to an empty store
"""

import json
import logging

import pytest

from calibration.data_loading import (
    Observation,
    ObservationStore,
    InMemoryStorage,
    JsonFileStorage,
    STORAGE_KEY,
)


def make_observation(child_id=0, s3=0, s2=0, symbol="○", noble=None) -> Observation:
    return Observation(child_id, 1, 2, 3, 4, 5, 6, s3=s3, s2=s2,
                       correct_symbol=symbol, noble=noble)


# =============================================================================
# SCHEMA TESTS
# =============================================================================

class TestObservationSchema:
    """Test the persisted record layout."""

    def test_to_dict_uses_persisted_keys(self):
        d = make_observation(symbol="◎").to_dict()
        assert d["childId"] == 0
        assert d["correctSymbol"] == "◎"
        assert "child_id" not in d
        assert "noble" not in d

    def test_noble_kept_when_set(self):
        assert make_observation(noble=12.0).to_dict()["noble"] == 12.0

    def test_from_dict_roundtrip(self):
        obs = make_observation(s3=2, s2=1, symbol="☆", noble=4.5)
        assert Observation.from_dict(obs.to_dict()) == obs

    def test_from_dict_snake_case(self):
        obs = Observation.from_dict({
            "child_id": 3, "f": 1, "ff": 2, "fm": 3, "m": 4, "mf": 5, "mm": 6,
            "s3": 1, "s2": 0, "correct_symbol": "△"
        })
        assert obs.child_id == 3
        assert obs.correct_symbol == "△"
        assert obs.noble is None

    def test_from_dict_missing_identity(self):
        obs = Observation.from_dict({
            "childId": 0, "f": None, "ff": "", "fm": 3, "m": 4, "mf": 5, "mm": 6,
            "correctSymbol": "×"
        })
        assert obs.f is None
        assert obs.ff is None
        assert obs.s3 == 0 and obs.s2 == 0
        assert not obs.is_complete()

    def test_from_dict_requires_label(self):
        with pytest.raises(KeyError):
            Observation.from_dict({"childId": 0, "f": 1, "ff": 2, "fm": 3, "m": 4, "mf": 5, "mm": 6})

    def test_key_excludes_label_and_noble(self):
        a = make_observation(symbol="○", noble=1.0)
        b = make_observation(symbol="×", noble=None)
        assert a.key == b.key
        assert make_observation(s3=1).key != a.key


# =============================================================================
# STORE TESTS
# =============================================================================

class TestObservationStore:
    """Test upsert, clear and persistence."""

    def test_empty_storage(self):
        store = ObservationStore(InMemoryStorage())
        assert len(store) == 0
        assert store.list() == []

    def test_add_appends_in_order(self):
        store = ObservationStore(InMemoryStorage())
        store.add(make_observation(child_id=0))
        store.add(make_observation(child_id=1))
        assert [obs.child_id for obs in store.list()] == [0, 1]

    def test_add_replaces_same_key(self):
        """Re-labeling a pairing keeps one record at its original position."""
        store = ObservationStore(InMemoryStorage())
        store.add(make_observation(child_id=0, symbol="○"))
        store.add(make_observation(child_id=1, symbol="△"))
        store.add(make_observation(child_id=0, symbol="☆"))

        records = store.list()
        assert len(records) == 2
        assert records[0].correct_symbol == "☆"
        assert records[1].correct_symbol == "△"

    def test_different_bonus_is_distinct(self):
        store = ObservationStore(InMemoryStorage())
        store.add(make_observation(s2=0))
        store.add(make_observation(s2=1))
        assert len(store) == 2

    def test_add_many(self):
        storage = InMemoryStorage()
        store = ObservationStore(storage)
        store.add_many([
            make_observation(child_id=0, symbol="○"),
            make_observation(child_id=1),
            make_observation(child_id=0, symbol="×"),
        ])
        assert len(store) == 2
        assert store.list()[0].correct_symbol == "×"
        assert len(json.loads(storage.items[STORAGE_KEY])) == 2

    def test_list_is_a_copy(self):
        store = ObservationStore(InMemoryStorage())
        store.add(make_observation())
        store.list().clear()
        assert len(store) == 1

    def test_saved_immediately(self):
        storage = InMemoryStorage()
        store = ObservationStore(storage)
        store.add(make_observation(symbol="◎"))
        records = json.loads(storage.items[STORAGE_KEY])
        assert records == [make_observation(symbol="◎").to_dict()]

    def test_clear(self):
        storage = InMemoryStorage()
        store = ObservationStore(storage)
        store.add(make_observation())
        store.clear()
        assert len(store) == 0
        assert json.loads(storage.items[STORAGE_KEY]) == []

    def test_custom_key(self):
        storage = InMemoryStorage()
        ObservationStore(storage, key="other").add(make_observation())
        assert "other" in storage.items
        assert STORAGE_KEY not in storage.items

    def test_persists_to_file(self, tmp_path):
        path = tmp_path / "nested" / "observations.json"
        store = ObservationStore(JsonFileStorage(str(path)))
        store.add(make_observation(child_id=2, symbol="👑", noble=3.0))

        reopened = ObservationStore(JsonFileStorage(str(path)))
        assert reopened.list() == [make_observation(child_id=2, symbol="👑", noble=3.0)]

    def test_file_keeps_other_keys(self, tmp_path):
        path = tmp_path / "storage.json"
        path.write_text(json.dumps({"unrelated": "value"}), encoding="utf-8")
        ObservationStore(JsonFileStorage(str(path))).add(make_observation())

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["unrelated"] == "value"
        assert STORAGE_KEY in data


class TestCorruptStorage:
    """Unreadable storage is logged and treated as empty."""

    def test_invalid_json(self, caplog):
        storage = InMemoryStorage({STORAGE_KEY: "{not json"})
        with caplog.at_level(logging.ERROR):
            store = ObservationStore(storage)
        assert len(store) == 0
        assert "Failed to load observation data" in caplog.text

    def test_malformed_record(self, caplog):
        storage = InMemoryStorage({STORAGE_KEY: json.dumps([{"childId": 0}])})
        with caplog.at_level(logging.ERROR):
            store = ObservationStore(storage)
        assert len(store) == 0
        assert "Failed to load observation data" in caplog.text

    def test_non_object_file(self, tmp_path, caplog):
        path = tmp_path / "storage.json"
        path.write_text("[1, 2, 3]", encoding="utf-8")
        with caplog.at_level(logging.ERROR):
            store = ObservationStore(JsonFileStorage(str(path)))
        assert len(store) == 0
        assert "Failed to load observation data" in caplog.text

    def test_store_usable_after_failure(self):
        storage = InMemoryStorage({STORAGE_KEY: "garbage"})
        store = ObservationStore(storage)
        store.add(make_observation())
        assert len(ObservationStore(storage)) == 1

    @pytest.mark.parametrize("payload", ['{"a": 1}', '"abc"', "[1, 2]", "5"])
    def test_payload_not_a_record_list(self, payload, caplog):
        storage = InMemoryStorage({STORAGE_KEY: payload})
        with caplog.at_level(logging.ERROR):
            store = ObservationStore(storage)
        assert len(store) == 0
        assert "Failed to load observation data" in caplog.text

    @pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]"])
    def test_file_store_usable_after_failure(self, tmp_path, content):
        path = tmp_path / "storage.json"
        path.write_text(content, encoding="utf-8")
        store = ObservationStore(JsonFileStorage(str(path)))
        assert len(store) == 0

        store.add(make_observation())

        reopened = ObservationStore(JsonFileStorage(str(path)))
        assert reopened.list() == [make_observation()]
