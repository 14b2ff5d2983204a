"""
Durable observation store.

Observations are kept as a JSON array under a single key of a key-value
storage backend. Adding an observation whose identities and bonus counts
match an existing one replaces it (last write wins). Every change is
saved immediately.

Load failures never propagate: a missing, unreadable or corrupt record is
logged and the store starts empty.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

from .schema import Observation

logger = logging.getLogger(__name__)

STORAGE_KEY = "solver_observations"


class KeyValueStorage:
    """Minimal string key-value storage interface."""

    def get_item(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError


class InMemoryStorage(KeyValueStorage):
    """Storage held in a dictionary, for tests and throwaway sessions."""

    def __init__(self, items: Optional[Dict[str, str]] = None):
        self.items = dict(items or {})

    def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value


class JsonFileStorage(KeyValueStorage):
    """
    Storage backed by one JSON object on disk.

    Each key maps to a string value. The file is rewritten on every
    set_item call.
    """

    def __init__(self, filepath: str):
        self.path = Path(filepath)

    def _read_all(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Storage file does not hold a JSON object: {self.path}")
        return data

    def get_item(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        try:
            data = self._read_all()
        except (OSError, ValueError) as e:
            logger.warning(f"Overwriting unreadable storage file {self.path}: {e}")
            data = {}
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)


class ObservationStore:
    """
    List of labeled observations persisted in a key-value storage.

    Attributes:
        storage: Backend holding the serialized observations
        key: Storage key the observations live under
    """

    def __init__(self, storage: KeyValueStorage, key: str = STORAGE_KEY):
        self.storage = storage
        self.key = key
        self._observations: List[Observation] = []
        self.load()

    def __len__(self) -> int:
        return len(self._observations)

    def add(self, observation: Observation) -> None:
        """Insert an observation, replacing any with the same key."""
        for i, existing in enumerate(self._observations):
            if existing.key == observation.key:
                self._observations[i] = observation
                break
        else:
            self._observations.append(observation)
        self.save()

    def add_many(self, observations) -> None:
        """Insert several observations with a single save."""
        index = {obs.key: i for i, obs in enumerate(self._observations)}
        for observation in observations:
            if observation.key in index:
                self._observations[index[observation.key]] = observation
            else:
                index[observation.key] = len(self._observations)
                self._observations.append(observation)
        self.save()

    def list(self) -> List[Observation]:
        """Return a copy of the stored observations in insertion order."""
        return list(self._observations)

    def clear(self) -> None:
        """Remove all observations."""
        self._observations = []
        self.save()

    def save(self) -> None:
        """Write all observations to storage."""
        payload = json.dumps([obs.to_dict() for obs in self._observations], ensure_ascii=False)
        self.storage.set_item(self.key, payload)

    def load(self) -> None:
        """Read observations from storage, falling back to an empty list."""
        try:
            data = self.storage.get_item(self.key)
            if data:
                records = json.loads(data)
                if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
                    raise ValueError("Stored observations are not a list of records")
                self._observations = [Observation.from_dict(r) for r in records]
                logger.info(f"Loaded {len(self._observations)} observations from storage.")
            else:
                logger.info("No data found in storage.")
                self._observations = []
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.error(f"Failed to load observation data: {e}")
            self._observations = []
