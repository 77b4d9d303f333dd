"""
Named preset persistence.

Presets live under one key of a string key-value storage as a JSON array.
The array is read once when the store is created and rewritten in full on
every save or delete.
"""

import json
import logging
import os
import tempfile
import time
from typing import Optional, Tuple

import config
from models import Configuration, InvalidConfiguration, Preset

logger = logging.getLogger("sparkle_matrix.presets")


class MemoryStorage:
    """Non-durable storage, for tests and throwaway sessions."""

    def __init__(self, initial=None):
        self.values = dict(initial or {})

    def get(self, key):
        return self.values.get(key)

    def set(self, key, value):
        self.values[key] = value


class JsonFileStorage:
    """Durable string key-value storage kept in a single JSON file."""

    def __init__(self, path=config.PRESETS_FILE):
        self.path = path

    def _read_all(self):
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"[Storage] Could not read {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"[Storage] {self.path} does not hold a JSON object, ignoring it")
            return {}
        return data

    def get(self, key):
        value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set(self, key, value):
        data = self._read_all()
        data[key] = value
        # Replace atomically; a failed write leaves the old file intact
        directory = os.path.dirname(os.path.abspath(self.path))
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".presets-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise


class PresetStore:
    """Ordered collection of named Configuration snapshots."""

    def __init__(self, storage, key=config.PRESETS_KEY, clock=time.time):
        self.storage = storage
        self.key = key
        self.clock = clock
        self._presets = self._load()

    def _load(self):
        raw = self.storage.get(self.key)
        if not raw:
            return []
        try:
            records = json.loads(raw)
        except ValueError as e:
            logger.warning(f"[Presets] Stored presets are not valid JSON, starting empty: {e}")
            return []
        if not isinstance(records, list):
            logger.warning("[Presets] Stored presets are not a list, starting empty")
            return []

        presets = []
        for record in records:
            try:
                presets.append(Preset.from_record(record))
            except InvalidConfiguration as e:
                logger.warning(f"[Presets] Skipping unreadable preset {record!r}: {e}")
        logger.info(f"[Presets] Loaded {len(presets)} preset(s)")
        return presets

    def _persist(self):
        self.storage.set(self.key, json.dumps([p.to_record() for p in self._presets]))

    def _new_id(self):
        preset_id = int(self.clock() * 1000)
        taken = {p.id for p in self._presets}
        while preset_id in taken:
            preset_id += 1
        return preset_id

    def list(self) -> Tuple[Preset, ...]:
        return tuple(self._presets)

    def get(self, preset_id) -> Optional[Preset]:
        for preset in self._presets:
            if preset.id == preset_id:
                return preset
        return None

    def save(self, name: Optional[str], configuration: Configuration) -> Preset:
        """Append a preset; without a name it becomes "Preset {count+1}"."""
        if not name:
            name = f"Preset {len(self._presets) + 1}"
        preset = Preset(id=self._new_id(), name=name, configuration=configuration)
        self._presets.append(preset)
        self._persist()
        logger.info(f"[Presets] Saved '{preset.name}' ({preset.id})")
        return preset

    def delete(self, preset_id):
        """Remove a preset. Unknown ids are ignored."""
        remaining = [p for p in self._presets if p.id != preset_id]
        if len(remaining) == len(self._presets):
            return
        self._presets = remaining
        self._persist()
        logger.info(f"[Presets] Deleted preset {preset_id}")

    def find_matching(self, configuration: Configuration) -> Optional[Preset]:
        """First preset (in list order) whose configuration matches."""
        return find_matching(self._presets, configuration)


def find_matching(presets, configuration) -> Optional[Preset]:
    if configuration is None:
        return None
    for preset in presets:
        if preset.configuration.matches(configuration):
            return preset
    return None
