import json

import pytest

from conftest import make_config
from preset_store import JsonFileStorage, MemoryStorage, PresetStore


def test_save_assigns_default_names_in_order(store):
    first = store.save(None, make_config(colors=(0,)))
    second = store.save("", make_config(colors=(1,)))
    named = store.save("Party", make_config(colors=(2,)))
    assert [p.name for p in store.list()] == ["Preset 1", "Preset 2", "Party"]
    assert len({first.id, second.id, named.id}) == 3


def test_save_then_find_matching_returns_saved_preset(store):
    store.save(None, make_config(colors=(0,)))
    configuration = make_config(colors=(3, 9), num_sparkles=12, sparkle_size=5, speed=300)
    preset = store.save(None, configuration)
    assert store.find_matching(configuration) == preset
    assert store.find_matching(make_config(colors=(11,))) is None
    assert store.find_matching(None) is None


def test_find_matching_prefers_first_duplicate(store):
    configuration = make_config(colors=(4,))
    first = store.save("A", configuration)
    store.save("B", configuration)
    assert store.find_matching(configuration) == first


def test_delete_is_idempotent(store):
    keep = store.save(None, make_config(colors=(0,)))
    gone = store.save(None, make_config(colors=(1,)))
    store.delete(gone.id)
    store.delete(gone.id)
    store.delete(12345)
    assert [p.id for p in store.list()] == [keep.id]
    assert store.get(gone.id) is None


def test_ids_stay_unique_with_a_frozen_clock():
    store = PresetStore(MemoryStorage(), clock=lambda: 1000.0)
    ids = [store.save(None, make_config()).id for _ in range(3)]
    assert ids == [1_000_000, 1_000_001, 1_000_002]


def test_presets_persist_across_instances(tmp_path):
    path = tmp_path / "presets.json"
    store = PresetStore(JsonFileStorage(str(path)))
    saved = store.save("Night", make_config(colors=(5, 6), speed=250))
    doomed = store.save(None, make_config())
    store.delete(doomed.id)

    reloaded = PresetStore(JsonFileStorage(str(path)))
    assert reloaded.list() == (saved,)

    stored = json.loads(json.loads(path.read_text())["sparklePresets"])
    assert stored[0]["name"] == "Night"
    assert stored[0]["speed"] == 250


def test_storage_keeps_other_keys(tmp_path):
    path = tmp_path / "store.json"
    storage = JsonFileStorage(str(path))
    storage.set("other", "value")
    PresetStore(storage).save(None, make_config())
    assert storage.get("other") == "value"


def test_corrupt_storage_starts_empty(tmp_path):
    path = tmp_path / "presets.json"
    path.write_text("{not json")
    assert PresetStore(JsonFileStorage(str(path))).list() == ()

    storage = MemoryStorage({"sparklePresets": "{\"a\": 1}"})
    assert PresetStore(storage).list() == ()


def test_unreadable_records_are_skipped():
    good = {"id": 1, "name": "ok", "activeColors": [True] + [False] * 11,
            "numSparkles": 3, "sparkleSize": 1, "speed": 20}
    bad = {"id": 2, "name": "broken", "activeColors": [True]}
    storage = MemoryStorage({"sparklePresets": json.dumps([good, bad])})
    presets = PresetStore(storage).list()
    assert [p.name for p in presets] == ["ok"]


def test_interrupted_write_keeps_previous_file(tmp_path, monkeypatch):
    path = tmp_path / "presets.json"
    store = PresetStore(JsonFileStorage(str(path)))
    kept = store.save("Keep", make_config(colors=(2,)))

    def broken_dump(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(json, "dump", broken_dump)
    with pytest.raises(OSError):
        store.save("Lost", make_config(colors=(3,)))
    monkeypatch.undo()

    assert PresetStore(JsonFileStorage(str(path))).list() == (kept,)
    assert [p.name for p in tmp_path.iterdir()] == ["presets.json"]
