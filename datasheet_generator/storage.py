"""
Local key-value storage for JSON blobs.

Each key is one ``<key>.json`` file inside the state directory.  The
workspace lives under :data:`STATE_KEY` and the named profiles under
:data:`PROFILES_KEY`.
"""

import json
import logging
import os

logger = logging.getLogger(__name__)

STATE_KEY = "dsgen_state_v1"
PROFILES_KEY = "dsgen_profiles_v1"


class JsonStore:
    """Save, load and remove JSON-serializable blobs by key."""

    def __init__(self, state_dir):
        self.state_dir = state_dir

    def _path(self, key):
        return os.path.join(self.state_dir, f"{key}.json")

    def load(self, key):
        """Return the stored object, or None when absent or unreadable."""
        path = self._path(key)
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable state file {path}: {e}")
            return None

    def save(self, key, obj):
        os.makedirs(self.state_dir, exist_ok=True)
        path = self._path(key)
        tmp = f"{path}.tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(obj, f, ensure_ascii=False, indent=2)
        os.replace(tmp, path)

    def remove(self, key):
        path = self._path(key)
        if os.path.exists(path):
            os.remove(path)


def load_workspace(store, workspace):
    """Restore *workspace* from *store*; returns True if saved state existed."""
    state = store.load(STATE_KEY)
    if state is None:
        return False
    if not isinstance(state, dict):
        logger.warning(f"Ignoring saved workspace state of type {type(state).__name__}")
        return False
    workspace.load_state(state)
    return True


def save_workspace(store, workspace):
    store.save(STATE_KEY, workspace.to_state())
