from __future__ import annotations

from typing import Dict, Iterable, Iterator, List

from .models import (
    Choice,
    MissingRequiredOptionError,
    Option,
    OptionSelection,
    SelectedChoice,
    SelectionSet,
    SelectionType,
)
from .utils import _trace, trace_enabled


_SINGLE_TYPES = {SelectionType.EXACTLY_ONE, SelectionType.AT_MOST_ONE}


def _check_owner(option: Option, choice: Choice) -> None:
    if choice.owner_option_id != option.id:
        raise ValueError(f"choice '{choice.id}' does not belong to option '{option.id}'")


def _selected(choice: Choice) -> SelectedChoice:
    return SelectedChoice(
        choice_id=choice.id,
        choice_name=choice.name,
        additional_price=choice.additional_price,
    )


def _with_choices(selection: SelectionSet, option: Option, choices: List[SelectedChoice]) -> SelectionSet:
    # Replacing an existing key keeps its position in the dict.
    options: Dict[str, OptionSelection] = dict(selection.options)
    options[option.id] = OptionSelection(option_id=option.id, option_label=option.label, choices=choices)
    return SelectionSet(options=options)


def _current(selection: SelectionSet, option_id: str) -> List[SelectedChoice]:
    entry = selection.options.get(option_id)
    return list(entry.choices) if entry else []


def selection_count(selection: SelectionSet, option_id: str) -> int:
    return len(_current(selection, option_id))


def is_selected(selection: SelectionSet, option_id: str, choice_id: str) -> bool:
    return any(c.choice_id == choice_id for c in _current(selection, option_id))


def is_choice_selectable(selection: SelectionSet, option: Option, choice: Choice) -> bool:
    """
    Whether the UI should offer this choice.

    Single-choice options always accept a new pick (it replaces the old one).
    UP_TO_N options accept a pick while under the cap; already-selected
    choices stay selectable so they can be toggled off.
    """
    if not choice.is_available:
        return False
    if option.selection_type in _SINGLE_TYPES:
        return True
    if is_selected(selection, option.id, choice.id):
        return True
    return selection_count(selection, option.id) < option.cap


def select(selection: SelectionSet, option: Option, choice: Choice, *, debug: bool = False) -> SelectionSet:
    """Return a new SelectionSet with `choice` picked for `option`."""
    _check_owner(option, choice)
    trace = trace_enabled(debug)

    if not choice.is_available:
        _trace(trace, "selection.select_noop", {"option_id": option.id, "choice_id": choice.id, "reason": "unavailable"})
        return selection

    if option.selection_type in _SINGLE_TYPES:
        # Last click wins.
        return _with_choices(selection, option, [_selected(choice)])

    current = _current(selection, option.id)
    if any(c.choice_id == choice.id for c in current):
        return selection
    if len(current) >= option.cap:
        _trace(
            trace,
            "selection.select_noop",
            {"option_id": option.id, "choice_id": choice.id, "reason": "cap_reached", "cap": option.cap},
        )
        return selection

    return _with_choices(selection, option, current + [_selected(choice)])


def deselect(selection: SelectionSet, option: Option, choice: Choice) -> SelectionSet:
    """
    Return a new SelectionSet without `choice`.

    Requiredness is not enforced here: deselecting the only choice of a
    required option leaves it empty until validate_required runs.
    """
    _check_owner(option, choice)
    current = _current(selection, option.id)
    remaining = [c for c in current if c.choice_id != choice.id]
    if len(remaining) == len(current):
        return selection
    return _with_choices(selection, option, remaining)


def toggle(selection: SelectionSet, option: Option, choice: Choice, *, debug: bool = False) -> SelectionSet:
    if is_selected(selection, option.id, choice.id):
        return deselect(selection, option, choice)
    return select(selection, option, choice, debug=debug)


def missing_required(selection: SelectionSet, options: Iterable[Option]) -> List[Option]:
    return [o for o in options if o.is_required and not _current(selection, o.id)]


def validate_required(selection: SelectionSet, options: Iterable[Option]) -> None:
    """Raise MissingRequiredOptionError if any required option is empty. Call at submission time."""
    missing = missing_required(selection, options)
    if missing:
        raise MissingRequiredOptionError(missing)


def default_selection(options: Iterable[Option]) -> SelectionSet:
    """
    Initial state for a freshly opened item: every option, whatever its
    selection type, starts with its first available choice picked.
    """
    selection = SelectionSet()
    for option in options:
        first = next((c for c in option.choices if c.is_available), None)
        if first is not None:
            selection = select(selection, option, first)
    return selection


def selected_choices(selection: SelectionSet) -> Iterator[SelectedChoice]:
    for entry in selection.options.values():
        yield from entry.choices
