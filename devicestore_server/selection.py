"""Selection state for one device configuration session."""

from types import MappingProxyType
from typing import Mapping

from .models import Option


class SelectionState:
    """
    The user's in-progress choices for a single device.

    Holds at most one option per customization group (keyed by group name) and
    an on/off flag per add-on ID. Nothing here is checked against the catalog;
    callers are trusted to pass options and add-ons of the right device.
    """

    def __init__(self) -> None:
        self._options: dict[str, Option] = {}
        self._add_ons: dict[int, bool] = {}

    @property
    def selected_options(self) -> Mapping[str, Option]:
        """Read-only view of group name → chosen option."""
        return MappingProxyType(self._options)

    @property
    def selected_add_on_ids(self) -> list[int]:
        """IDs of add-ons currently switched on, in first-toggle order."""
        return [add_on_id for add_on_id, selected in self._add_ons.items() if selected]

    def select_option(self, group_name: str, option: Option) -> None:
        """Choose an option for a group, replacing any earlier choice."""
        self._options[group_name] = option

    def clear_option(self, group_name: str) -> None:
        """Return a group to the unselected state."""
        self._options.pop(group_name, None)

    def set_add_on(self, add_on_id: int, selected: bool) -> None:
        self._add_ons[add_on_id] = selected

    def toggle_add_on(self, add_on_id: int) -> bool:
        """Flip an add-on and return its new state."""
        selected = not self._add_ons.get(add_on_id, False)
        self._add_ons[add_on_id] = selected
        return selected

    def is_add_on_selected(self, add_on_id: int) -> bool:
        return self._add_ons.get(add_on_id, False)

    def clear(self) -> None:
        """Discard every choice."""
        self._options.clear()
        self._add_ons.clear()

    def __repr__(self) -> str:
        options = {name: option.id for name, option in self._options.items()}
        return f"SelectionState(options={options}, add_ons={self.selected_add_on_ids})"
