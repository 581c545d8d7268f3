import pytest

from genrpg.models import Character, GameState, Item, ItemEffect, Location
from genrpg.session import initial_state
from genrpg.storage import MemoryStore


@pytest.fixture
def sword() -> Item:
    return Item(
        name="Wooden Sword",
        description="A weather beaten and chipped wooden sword.",
        value=5,
        type="weapon",
        effect=ItemEffect(type="damage", value=10),
    )


@pytest.fixture
def cave() -> Location:
    return Location(
        name="Whispering Cave",
        description="Water drips somewhere in the dark.",
        type="wilderness",
    )


@pytest.fixture
def state() -> GameState:
    """Fresh game: level 1, 100 gold, 100/100 health, empty inventory."""
    return initial_state("Hero")


@pytest.fixture
def character(state: GameState) -> Character:
    return state.character


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def goblin_event_dict() -> dict:
    """A hand-written generator response in the wire shape."""
    return {
        "description": "A goblin rushes out of the shadows with a large cleaver!",
        "options": [
            {
                "id": "5b0e7c1e-3f0c-4c55-9d1a-0c8f2f0a1b11",
                "text": "Fight",
                "consequences": [
                    {"type": "changeHealth", "amount": -8},
                    {"type": "gainXP", "amount": 10},
                ],
            },
            {
                "text": "Run",
                "consequences": [{"type": "loseXP", "amount": 4}],
            },
        ],
    }
