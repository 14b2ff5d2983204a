"""Observation schema, storage and file loaders."""

from .schema import Observation, IDENTITY_FIELDS
from .store import ObservationStore, KeyValueStorage, InMemoryStorage, JsonFileStorage, STORAGE_KEY
from .loaders import load_matrix, save_matrix, load_observations_csv

__all__ = [
    "Observation",
    "IDENTITY_FIELDS",
    "ObservationStore",
    "KeyValueStorage",
    "InMemoryStorage",
    "JsonFileStorage",
    "STORAGE_KEY",
    "load_matrix",
    "save_matrix",
    "load_observations_csv",
]
