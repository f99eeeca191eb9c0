"""Shell variable storage with export flags."""

from dataclasses import dataclass

from shellscope.errors import ShellFailure


@dataclass
class VariableSlot:
    """The value of one shell variable and whether it is exported."""

    value: str
    exported: bool = False

    def __post_init__(self) -> None:
        if self.value is None:
            raise ShellFailure("null value")


class VariableStore:
    """Mapping from variable name to VariableSlot.

    An unset variable has no entry at all; a variable set to "" has an
    entry with an empty value.
    """

    def __init__(self, slots: dict[str, VariableSlot] | None = None) -> None:
        self._slots: dict[str, VariableSlot] = slots if slots is not None else {}

    def copy(self) -> "VariableStore":
        """Deep copy: the copy and the original never share a slot."""
        return VariableStore(
            {name: VariableSlot(slot.value, slot.exported) for name, slot in self._slots.items()}
        )

    def set(self, name: str, value: str) -> None:
        """Implement NAME=VALUE. New variables start out unexported."""
        if value is None:
            raise ShellFailure("null value")
        slot = self._slots.get(name)
        if slot is None:
            self._slots[name] = VariableSlot(value)
        else:
            slot.value = value

    def unset(self, name: str) -> None:
        self._slots.pop(name, None)

    def set_exported(self, name: str, exported: bool) -> None:
        """Implement 'export NAME'. Exporting an unset name creates it empty."""
        slot = self._slots.get(name)
        if slot is None:
            if exported:
                self._slots[name] = VariableSlot("", True)
        else:
            slot.exported = exported

    def is_set(self, name: str) -> bool:
        return name in self._slots

    def is_exported(self, name: str) -> bool:
        slot = self._slots.get(name)
        return slot is not None and slot.exported

    def lookup(self, name: str) -> str | None:
        slot = self._slots.get(name)
        return slot.value if slot is not None else None

    def exported(self) -> dict[str, str]:
        return {name: slot.value for name, slot in self._slots.items() if slot.exported}

    def names(self) -> list[str]:
        return sorted(self._slots)

    def __contains__(self, name: str) -> bool:
        return name in self._slots

    def __len__(self) -> int:
        return len(self._slots)
