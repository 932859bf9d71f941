"""
Per-field value lists for VARIABLE bindings, and the parser that turns a
pasted spreadsheet range into an ordered list of values.
"""

import logging
import re

from .errors import EmptyPasteError, EmptyValueError

logger = logging.getLogger(__name__)

# Any run of newline, tab, comma or semicolon separates two values.
_SEPARATORS_RE = re.compile(r"[\n\t,;]+")


def parse_bulk_values(text):
    """Split pasted text into trimmed, non-empty values in reading order.

    >>> parse_bulk_values("A\\tB\\nC,D;E")
    ['A', 'B', 'C', 'D', 'E']
    """
    if not text:
        return []
    normalized = str(text).replace("\r\n", "\n").replace("\r", "\n")
    return [tok.strip() for tok in _SEPARATORS_RE.split(normalized) if tok.strip()]


class ValueListEditor:
    """Edits the ``values`` list of VARIABLE fields in a :class:`BindingStore`."""

    def __init__(self, store):
        self.store = store

    def append(self, key, value):
        v = str(value if value is not None else "").strip()
        if not v:
            raise EmptyValueError(f"Refusing to add an empty value to '{key}'")
        self.store.ensure_field(key)
        self.store.variable_values[key].append(v)

    def bulk_append(self, key, text):
        """Append every value parsed from *text*; returns the added values."""
        parsed = parse_bulk_values(text)
        if not parsed:
            raise EmptyPasteError(f"Nothing to add to '{key}': pasted text has no values")
        self.store.ensure_field(key)
        self.store.variable_values[key].extend(parsed)
        logger.info(f"Added {len(parsed)} value(s) to '{key}'")
        return parsed

    def delete_at(self, key, index):
        vals = self.store.variable_values.get(key)
        if vals is None or not 0 <= index < len(vals):
            return
        del vals[index]

    def clear_all(self, key):
        if key in self.store.variable_values:
            self.store.variable_values[key] = []
