"""
Workspace Module
================
One :class:`Workspace` per open template.  It owns the binding store, the
value-list editor, the relocation state machine, the file-naming rule, the
key field and the display preferences, and it is the single place where
that state is converted to and from its persisted JSON shape::

    {
      "globalEdits":      {sheet: {addr: value}},
      "variableMappings": {key: [{"sheetName": ..., "addr": ...}]},
      "variableValues":   {key: [str, ...]},
      "fileNamePrefix": str, "fileNameSuffix": str, "fileNameField": str,
      "previewMaxR": int, "previewMaxC": int, "splitLeftPx": int | None
    }

Every field is optional when loading.
"""

import logging
from dataclasses import dataclass

from .bindings import BindingStore
from .relocation import RelocationProtocol
from .value_list import ValueListEditor

logger = logging.getLogger(__name__)

DEFAULT_KEY_FIELD = "ItemNo"
DEFAULT_PREFIX = "PROJECT_"
DEFAULT_SUFFIX = "_Datasheet"
DEFAULT_PREVIEW_MAX_ROWS = 120
DEFAULT_PREVIEW_MAX_COLS = 40

PREVIEW_ROW_LIMITS = (10, 2000)
PREVIEW_COL_LIMITS = (5, 500)


@dataclass
class FileNamingRule:
    prefix: str = DEFAULT_PREFIX
    suffix: str = DEFAULT_SUFFIX


def _clamp(value, limits):
    lo, hi = limits
    return max(lo, min(hi, int(value)))


def _saved_limit(state, name, limits, default):
    value = state.get(name)
    if value is None:
        return default
    try:
        return _clamp(value, limits)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring unreadable {name}={value!r} in saved state")
        return default


class Workspace:
    """All editable state for one template."""

    def __init__(self, default_key_field=DEFAULT_KEY_FIELD,
                 default_prefix=DEFAULT_PREFIX, default_suffix=DEFAULT_SUFFIX):
        self.default_key_field = default_key_field
        self.default_prefix = default_prefix
        self.default_suffix = default_suffix
        self._init_state(BindingStore())

    def _init_state(self, store):
        self.bindings = store
        self.values = ValueListEditor(store)
        self.relocation = RelocationProtocol(store)
        self.naming = FileNamingRule(self.default_prefix, self.default_suffix)
        self.key_field = self.default_key_field
        self.preview_max_rows = DEFAULT_PREVIEW_MAX_ROWS
        self.preview_max_cols = DEFAULT_PREVIEW_MAX_COLS
        self.split_left_px = None

    def reset(self):
        """Drop every binding, value and preference back to the defaults."""
        self._init_state(BindingStore())

    # ---- key field ----

    def set_key_field(self, key):
        """Name the field whose values become file names.

        A key that names no existing field falls back to the default.
        """
        if key and not self.bindings.has_field(key):
            logger.warning(f"No variable field '{key}', using '{self.default_key_field}'")
            key = None
        self.key_field = key or self.default_key_field

    def _fix_key_field(self):
        if not self.bindings.has_field(self.key_field):
            self.key_field = self.default_key_field

    # ---- binding operations that touch the key field ----

    def bind_variable(self, key, address):
        """Register a VARIABLE mapping.

        If the current key field does not name an existing field, the newly
        registered key becomes the key field.
        """
        self.bindings.bind_variable(key, address)
        if not self.bindings.has_field(self.key_field):
            self.key_field = key

    def unbind_variable(self, key, address):
        removed = self.bindings.unbind_variable(key, address)
        self._fix_key_field()
        return removed

    def unbind_variable_everywhere(self, address):
        removed = self.bindings.unbind_variable_everywhere(address)
        self._fix_key_field()
        return removed

    def delete_field(self, key):
        self.bindings.delete_field(key)
        if self.key_field == key:
            self.key_field = self.default_key_field

    # ---- display preferences ----

    def set_preview_limits(self, max_rows=None, max_cols=None):
        if max_rows is not None:
            self.preview_max_rows = _clamp(max_rows, PREVIEW_ROW_LIMITS)
        if max_cols is not None:
            self.preview_max_cols = _clamp(max_cols, PREVIEW_COL_LIMITS)

    def fit_preview_to(self, used_range):
        """Show the whole used range (within the preview limits)."""
        if not used_range.rows or not used_range.cols:
            return
        self.preview_max_rows = min(PREVIEW_ROW_LIMITS[1], used_range.rows)
        self.preview_max_cols = min(PREVIEW_COL_LIMITS[1], used_range.cols)

    # ---- persistence ----

    def to_state(self):
        state = self.bindings.to_state()
        state.update({
            "fileNamePrefix": self.naming.prefix,
            "fileNameSuffix": self.naming.suffix,
            "fileNameField": self.key_field,
            "previewMaxR": self.preview_max_rows,
            "previewMaxC": self.preview_max_cols,
            "splitLeftPx": self.split_left_px,
        })
        return state

    def load_state(self, state):
        """Replace this workspace's contents with *state*.

        The new state is fully built before anything is replaced, so a bad
        state leaves the workspace unchanged.
        """
        state = state or {}
        store = BindingStore.from_state(state)
        prefix = state.get("fileNamePrefix")
        suffix = state.get("fileNameSuffix")
        naming = FileNamingRule(
            self.default_prefix if prefix is None else str(prefix),
            self.default_suffix if suffix is None else str(suffix),
        )
        key_field = state.get("fileNameField") or self.default_key_field
        max_r = _saved_limit(state, "previewMaxR", PREVIEW_ROW_LIMITS, DEFAULT_PREVIEW_MAX_ROWS)
        max_c = _saved_limit(state, "previewMaxC", PREVIEW_COL_LIMITS, DEFAULT_PREVIEW_MAX_COLS)

        self._init_state(store)
        self.naming = naming
        self.key_field = key_field
        self.preview_max_rows = max_r
        self.preview_max_cols = max_c
        self.split_left_px = state.get("splitLeftPx")
        logger.debug(
            f"Loaded workspace state: {len(store.field_keys())} variable field(s), "
            f"{len(store.flatten_globals())} global(s)"
        )

    @classmethod
    def from_state(cls, state, **defaults):
        ws = cls(**defaults)
        ws.load_state(state)
        return ws
