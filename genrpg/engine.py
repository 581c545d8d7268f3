"""Consequence engine: applies a chosen option to the game state.

The engine is a pure state transition. It deep-copies the incoming state,
applies consequences strictly in list order, and returns the copy together
with any warnings. The same (state, option) always produces the same result.

Data problems inside a single consequence (a gainGold with no amount, a
changeLocation with no location) are skipped and reported as warnings; the
rest of the option still applies. Choosing an option that does not belong
to the event being resolved is a caller bug and raises IntegrationError.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from pydantic import BaseModel

from genrpg.models import Consequence, EventOption, GameEvent, GameState, Quest

logger = logging.getLogger(__name__)


class IntegrationError(RuntimeError):
    """Raised when the caller resolves an option outside the current event."""


class ConsequenceWarning(BaseModel):
    """A consequence (or quest action) that was skipped."""

    index: int | None = None
    type: str | None = None
    reason: str


class Resolution(BaseModel):
    state: GameState
    warnings: list[ConsequenceWarning] = []
    levels_gained: int = 0


# ---------------------------------------------------------------------------
# Per-type effects
# ---------------------------------------------------------------------------

def _gain_xp(state: GameState, c: Consequence) -> None:
    state.character.gain_xp(c.amount)


def _lose_xp(state: GameState, c: Consequence) -> None:
    state.character.lose_xp(c.amount)


def _gain_gold(state: GameState, c: Consequence) -> None:
    state.character.gain_gold(c.amount)


def _lose_gold(state: GameState, c: Consequence) -> None:
    state.character.lose_gold(c.amount)


def _gain_item(state: GameState, c: Consequence) -> None:
    state.character.add_item(c.item)


def _lose_item(state: GameState, c: Consequence) -> None:
    if not state.character.remove_item(c.item):
        logger.debug("loseItem: %s not in inventory", c.item.name)


def _change_health(state: GameState, c: Consequence) -> None:
    state.character.change_health(c.amount)


def _change_location(state: GameState, c: Consequence) -> None:
    location = c.location
    if state.location(location.id) is None:
        state.locations.append(location)
    state.current_location_id = location.id
    state.visited_location_ids.add(location.id)


def _nothing(state: GameState, c: Consequence) -> None:
    pass


_HANDLERS: dict[str, Callable[[GameState, Consequence], None]] = {
    "gainXP": _gain_xp,
    "loseXP": _lose_xp,
    "gainGold": _gain_gold,
    "loseGold": _lose_gold,
    "gainItem": _gain_item,
    "loseItem": _lose_item,
    "changeHealth": _change_health,
    "changeLocation": _change_location,
    "none": _nothing,
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def apply_consequences(
    state: GameState, consequences: Iterable[Consequence]
) -> Resolution:
    """Apply consequences in order to a copy of state."""
    new_state = state.model_copy(deep=True)
    start_level = new_state.character.level
    warnings: list[ConsequenceWarning] = []

    for index, consequence in enumerate(consequences):
        missing = consequence.missing_payload()
        if missing is not None:
            warning = ConsequenceWarning(
                index=index, type=consequence.type,
                reason=f"{consequence.type} without {missing}",
            )
            logger.warning("Skipped consequence #%d: %s", index, warning.reason)
            warnings.append(warning)
            continue
        _HANDLERS[consequence.type](new_state, consequence)

    # a loaded save may already sit above its threshold
    new_state.character.resolve_level_ups()

    return Resolution(
        state=new_state,
        warnings=warnings,
        levels_gained=new_state.character.level - start_level,
    )


def apply_option(state: GameState, event: GameEvent, option: EventOption) -> Resolution:
    """Resolve the player's choice of option on event."""
    if option not in event.options:
        raise IntegrationError(
            f"Option {option.id} is not part of event {event.id}"
        )
    resolution = apply_consequences(state, option.consequences)
    logger.info(
        "Resolved option %r: %d consequences, %d skipped, %d levels gained",
        option.text, len(option.consequences),
        len(resolution.warnings), resolution.levels_gained,
    )
    return resolution


def start_quest(state: GameState, quest: Quest) -> GameState:
    """Return a copy of state with quest added to the quest log."""
    new_state = state.model_copy(deep=True)
    if new_state.quest(quest.id) is None:
        new_state.active_quests.append(
            quest.model_copy(update={"is_active": True, "is_completed": False})
        )
    return new_state


def complete_quest(state: GameState, quest_id: str) -> Resolution:
    """Mark a quest completed and pay out its reward consequences."""
    quest = state.quest(quest_id)
    if quest is None or quest.is_completed:
        reason = "unknown quest" if quest is None else "quest already completed"
        logger.warning("Cannot complete quest %s: %s", quest_id, reason)
        return Resolution(
            state=state.model_copy(deep=True),
            warnings=[ConsequenceWarning(reason=reason)],
        )

    resolution = apply_consequences(state, quest.reward)
    completed = resolution.state.quest(quest_id)
    completed.is_active = False
    completed.is_completed = True
    return resolution
