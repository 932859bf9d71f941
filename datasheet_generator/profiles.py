"""
Profile Store Module
====================
Named snapshots of a whole workspace state ("project profiles").

All profiles live together under one storage key as
``{name: {"name": ..., "updatedAt": ..., "state": {...}}}``.  A single
profile can be exported as a standalone JSON document with the same
``{name, updatedAt, state}`` shape and imported again later.
"""

import copy
import datetime
import json
import logging

from .errors import (
    DuplicateProfileError,
    InvalidProfileFormatError,
    ProfileNotFoundError,
)
from .storage import PROFILES_KEY

logger = logging.getLogger(__name__)


def _now():
    return datetime.datetime.now(datetime.timezone.utc).isoformat(timespec="seconds")


def _clean_name(name):
    name = str(name or "").strip()
    if not name:
        raise InvalidProfileFormatError("Profile name must not be empty")
    return name


class ProfileStore:
    """CRUD plus export/import for named profiles backed by a :class:`JsonStore`."""

    def __init__(self, store):
        self.store = store

    def _read_all(self):
        profiles = self.store.load(PROFILES_KEY)
        if not isinstance(profiles, dict):
            return {}
        return profiles

    def _write_all(self, profiles):
        self.store.save(PROFILES_KEY, profiles)

    def exists(self, name):
        return str(name or "").strip() in self._read_all()

    def list_profiles(self):
        """Return ``[(name, updatedAt)]`` sorted by name."""
        profiles = self._read_all()
        return [(n, profiles[n].get("updatedAt")) for n in sorted(profiles)]

    def save(self, name, state):
        """Store a new profile; raises DuplicateProfileError if *name* is taken."""
        name = _clean_name(name)
        profiles = self._read_all()
        if name in profiles:
            raise DuplicateProfileError(f"Profile '{name}' already exists")
        return self._put(profiles, name, state)

    def overwrite(self, name, state):
        """Store a profile, replacing any existing one with the same name."""
        name = _clean_name(name)
        return self._put(self._read_all(), name, state)

    def _put(self, profiles, name, state):
        record = {"name": name, "updatedAt": _now(), "state": copy.deepcopy(state)}
        profiles[name] = record
        self._write_all(profiles)
        logger.info(f"Saved profile '{name}'")
        return record

    def get(self, name):
        """Return the full ``{name, updatedAt, state}`` record."""
        name = str(name or "").strip()
        record = self._read_all().get(name)
        if record is None:
            raise ProfileNotFoundError(f"Profile '{name}' not found")
        return record

    def load(self, name):
        return copy.deepcopy(self.get(name).get("state") or {})

    def delete(self, name):
        name = str(name or "").strip()
        profiles = self._read_all()
        if name not in profiles:
            raise ProfileNotFoundError(f"Profile '{name}' not found")
        del profiles[name]
        self._write_all(profiles)
        logger.info(f"Deleted profile '{name}'")

    def export_document(self, name):
        """Serialize one profile as UTF-8 JSON bytes."""
        record = self.get(name)
        doc = {
            "name": record.get("name", name),
            "updatedAt": record.get("updatedAt"),
            "state": record.get("state") or {},
        }
        return json.dumps(doc, ensure_ascii=False, indent=2).encode("utf-8")

    @staticmethod
    def import_document(data):
        """Parse an exported profile document into ``(name, state)``.

        Nothing is stored; call :meth:`save` or :meth:`overwrite` with the
        result.
        """
        if isinstance(data, (bytes, bytearray)):
            try:
                data = data.decode("utf-8")
            except UnicodeDecodeError as e:
                raise InvalidProfileFormatError(f"Profile document is not UTF-8: {e}") from e
        try:
            doc = json.loads(data)
        except ValueError as e:
            raise InvalidProfileFormatError(f"Profile document is not valid JSON: {e}") from e

        if not isinstance(doc, dict) or "name" not in doc or "state" not in doc:
            raise InvalidProfileFormatError("Profile document needs 'name' and 'state' fields")
        if not isinstance(doc["state"], dict):
            raise InvalidProfileFormatError("Profile 'state' must be an object")
        return _clean_name(doc["name"]), doc["state"]
