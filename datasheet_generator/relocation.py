"""
Relocation Module
=================
Two-phase "move" of a binding to another cell: :meth:`RelocationProtocol.arm`
picks the binding, :meth:`RelocationProtocol.commit` moves it onto a target
address.  Values are never altered by a move.

Only one relocation can be armed at a time; arming again replaces the
previous one.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .address_space import Address
from .bindings import BindingKind
from .errors import RelocationNotArmedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BindingRef:
    """Points at one GLOBAL entry or one (field, address) VARIABLE mapping."""
    kind: BindingKind
    address: Address
    key: Optional[str] = None

    @classmethod
    def global_(cls, address):
        return cls(BindingKind.GLOBAL, address)

    @classmethod
    def variable(cls, key, address):
        return cls(BindingKind.VARIABLE, address, key)

    def __str__(self):
        if self.kind is BindingKind.VARIABLE:
            return f"VARIABLE '{self.key}' @ {self.address}"
        return f"GLOBAL @ {self.address}"


class RelocationProtocol:
    """State machine with two states: idle (``armed is None``) and armed."""

    def __init__(self, store):
        self.store = store
        self.armed = None

    @property
    def is_armed(self):
        return self.armed is not None

    def _exists(self, ref):
        if ref.kind is BindingKind.GLOBAL:
            return self.store.has_global(ref.address)
        if ref.kind is BindingKind.VARIABLE:
            return self.store.has_mapping(ref.key, ref.address)
        return False

    def arm(self, ref: BindingRef) -> bool:
        """Arm *ref* for relocation.  Unknown bindings leave the state untouched."""
        if not self._exists(ref):
            logger.debug(f"Not arming missing binding: {ref}")
            return False
        if self.armed is not None and self.armed != ref:
            logger.debug(f"Replacing armed relocation {self.armed} with {ref}")
        self.armed = ref
        return True

    def cancel(self):
        self.armed = None

    def commit(self, target: Address) -> bool:
        """Move the armed binding onto *target* and return to idle.

        Returns True if anything moved.  Committing onto the source address,
        or after the armed binding was removed, is the same as :meth:`cancel`.

        Raises:
            RelocationNotArmedError: if nothing is armed.
        """
        ref = self.armed
        if ref is None:
            raise RelocationNotArmedError("No binding is armed for relocation")

        try:
            if not self._exists(ref):
                logger.warning(f"Armed binding no longer exists, nothing moved: {ref}")
                return False
            if target == ref.address:
                return False
            if ref.kind is BindingKind.GLOBAL:
                self._move_global(ref.address, target)
            else:
                self._move_variable(ref.key, ref.address, target)
            logger.info(f"Moved {ref} -> {target}")
            return True
        finally:
            self.armed = None

    def _move_global(self, source, target):
        value = self.store.global_value(source)
        self.store.bind_global(target, value)
        self.store.unbind_global(source)

    def _move_variable(self, key, source, target):
        maps = self.store.variable_mappings[key]
        if target in maps:
            # target already mapped for this key: the move collapses into it
            maps.remove(source)
            logger.info(f"'{key}': {target} already mapped, merged {source} into it")
            return
        self.store.bind_variable(key, target)  # validates target before mutating
        maps.remove(target)
        maps[maps.index(source)] = target
