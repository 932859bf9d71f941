"""
Binding Store Module
====================
Records which template cells are bound to which kind of value:

  * **GLOBAL** - one fixed value per address, written into every output.
  * **VARIABLE** - a named field owning an ordered list of addresses and an
    independent, ordered list of values.  Output *i* uses value *i*.

Overlapping bindings are allowed.  At generation time GLOBAL values are
written first and VARIABLE values second, so on a shared address the
VARIABLE value ends up in the output.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Optional

from .address_space import Address, is_valid_cell_ref
from .errors import InvalidAddressError, InvalidFieldKeyError

logger = logging.getLogger(__name__)


class BindingKind(enum.Enum):
    NONE = "none"
    GLOBAL = "global"
    VARIABLE = "variable"


@dataclass(frozen=True)
class BindingHit:
    """Result of :meth:`BindingStore.lookup`."""
    kind: BindingKind
    key: Optional[str] = None


_NO_BINDING = BindingHit(BindingKind.NONE)


def _check_key(key):
    if not isinstance(key, str) or not key.strip():
        raise InvalidFieldKeyError("Variable field key must be a non-empty string")


def _check_address(address):
    if not address.sheet_name or not is_valid_cell_ref(address.cell_ref):
        raise InvalidAddressError(f"Not a cell address: {address}")


def _saved_section(state, name):
    section = state.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        logger.warning(f"Ignoring unreadable '{name}' in saved state")
        return {}
    return section


class BindingStore:
    """GLOBAL and VARIABLE binding tables.

    ``global_edits`` is ``{sheet: {addr: value}}``; ``variable_mappings`` is
    ``{key: [Address, ...]}`` and ``variable_values`` is ``{key: [str, ...]}``.
    Dict insertion order is the field registration order.
    """

    def __init__(self):
        self.global_edits = {}
        self.variable_mappings = {}
        self.variable_values = {}

    # ---- GLOBAL ----

    def bind_global(self, address: Address, value):
        _check_address(address)
        self.global_edits.setdefault(address.sheet_name, {})[address.cell_ref] = str(value)

    def unbind_global(self, address: Address):
        cells = self.global_edits.get(address.sheet_name)
        if not cells or address.cell_ref not in cells:
            return
        del cells[address.cell_ref]
        if not cells:
            del self.global_edits[address.sheet_name]

    def global_value(self, address: Address):
        return self.global_edits.get(address.sheet_name, {}).get(address.cell_ref)

    def has_global(self, address: Address) -> bool:
        return self.global_value(address) is not None

    def clear_all_global(self):
        self.global_edits = {}

    def iter_globals(self):
        """Yield ``(Address, value)`` in insertion order."""
        for sheet, cells in self.global_edits.items():
            for addr, value in cells.items():
                yield Address(sheet, addr), value

    def flatten_globals(self):
        """Return ``[(sheet, addr, value)]`` sorted by sheet then address."""
        out = [(a.sheet_name, a.cell_ref, v) for a, v in self.iter_globals()]
        out.sort(key=lambda x: (x[0], x[1]))
        return out

    # ---- VARIABLE ----

    def ensure_field(self, key: str):
        _check_key(key)
        self.variable_mappings.setdefault(key, [])
        self.variable_values.setdefault(key, [])

    def has_field(self, key: str) -> bool:
        return key in self.variable_mappings

    def field_keys(self):
        return list(self.variable_mappings.keys())

    def mappings(self, key: str):
        return list(self.variable_mappings.get(key, []))

    def values(self, key: str):
        return list(self.variable_values.get(key, []))

    def has_mapping(self, key: str, address: Address) -> bool:
        return address in self.variable_mappings.get(key, [])

    def bind_variable(self, key: str, address: Address):
        """Map *address* to field *key*; a repeat registration is ignored."""
        _check_address(address)
        self.ensure_field(key)
        maps = self.variable_mappings[key]
        if address not in maps:
            maps.append(address)

    def unbind_variable(self, key: str, address: Address) -> bool:
        """Remove one mapping.  Drops the field (and its values) once empty.

        Returns True if a mapping was removed.
        """
        maps = self.variable_mappings.get(key)
        if not maps or address not in maps:
            return False
        maps.remove(address)
        if not maps:
            self.delete_field(key)
        return True

    def unbind_variable_everywhere(self, address: Address) -> bool:
        """Remove *address* from every field that maps it."""
        removed = False
        for key in self.field_keys():
            if self.unbind_variable(key, address):
                removed = True
        return removed

    def delete_field(self, key: str):
        self.variable_mappings.pop(key, None)
        self.variable_values.pop(key, None)

    # ---- lookup ----

    def lookup(self, address: Address) -> BindingHit:
        """Which binding an address shows as: VARIABLE fields first, then GLOBAL."""
        for key, maps in self.variable_mappings.items():
            if address in maps:
                return BindingHit(BindingKind.VARIABLE, key)
        if self.has_global(address):
            return BindingHit(BindingKind.GLOBAL)
        return _NO_BINDING

    # ---- persistence shape ----

    def to_state(self):
        return {
            "globalEdits": {s: dict(cells) for s, cells in self.global_edits.items()},
            "variableMappings": {
                k: [a.to_dict() for a in maps] for k, maps in self.variable_mappings.items()
            },
            "variableValues": {k: list(v) for k, v in self.variable_values.items()},
        }

    @classmethod
    def from_state(cls, state):
        """Build a store from saved state, skipping entries that cannot be read."""
        store = cls()
        for sheet, cells in _saved_section(state, "globalEdits").items():
            if not isinstance(cells, dict):
                logger.warning(f"Ignoring unreadable GLOBAL bindings for sheet '{sheet}'")
                continue
            for addr, value in cells.items():
                try:
                    store.bind_global(Address(sheet, addr), value)
                except InvalidAddressError as e:
                    logger.warning(f"Ignoring saved GLOBAL binding: {e}")

        for key, maps in _saved_section(state, "variableMappings").items():
            if not key.strip():
                logger.warning("Ignoring variable field with an empty key in saved state")
                continue
            store.ensure_field(key)
            if not isinstance(maps, list):
                logger.warning(f"Ignoring unreadable mappings for '{key}'")
                continue
            for m in maps:
                if not isinstance(m, dict):
                    logger.warning(f"Ignoring unreadable mapping {m!r} for '{key}'")
                    continue
                try:
                    store.bind_variable(key, Address.from_dict(m))
                except InvalidAddressError as e:
                    logger.warning(f"Ignoring saved mapping for '{key}': {e}")

        for key, vals in _saved_section(state, "variableValues").items():
            if not key.strip():
                continue
            store.ensure_field(key)
            if not isinstance(vals, list):
                logger.warning(f"Ignoring unreadable values for '{key}'")
                continue
            store.variable_values[key] = [str(v) for v in vals]
        return store
