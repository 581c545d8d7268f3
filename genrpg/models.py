"""Core domain models.

Every stage (codec, generator, engine, storage) operates on these types.
Pydantic is used for validation and serialisation at every data boundary.

Identified entities (items, locations, quests, options, events) compare and
hash by `id` alone, so two copies of the same sword are the same sword even
if a later generation describes it differently.
"""

from __future__ import annotations

from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator

ItemType = Literal["weapon", "armor", "potion", "quest", "treasure"]

EffectType = Literal["healing", "damage", "protection"]

LocationType = Literal["room", "village", "city", "road", "shop", "wilderness"]

ConsequenceType = Literal[
    "gainXP",
    "loseXP",
    "gainGold",
    "loseGold",
    "gainItem",
    "loseItem",
    "changeHealth",
    "changeLocation",
    "none",
]

# Field a consequence must carry for its type to have any effect.
PAYLOAD_FIELDS: dict[str, str | None] = {
    "gainXP": "amount",
    "loseXP": "amount",
    "gainGold": "amount",
    "loseGold": "amount",
    "gainItem": "item",
    "loseItem": "item",
    "changeHealth": "amount",
    "changeLocation": "location",
    "none": None,
}


def new_id() -> str:
    return str(uuid4())


class Identified(BaseModel):
    """Base for entities whose equality is their identity."""

    id: str = Field(default_factory=new_id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Identified) or type(other) is not type(self):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.id))


# ---------------------------------------------------------------------------
# Generated content (immutable)
# ---------------------------------------------------------------------------

class ItemEffect(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: EffectType
    value: int


class Item(Identified):
    """Something a character can carry. Treated as a value once generated."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    value: int
    type: ItemType
    effect: ItemEffect


class Location(Identified):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    type: LocationType


class Consequence(BaseModel):
    """A single typed effect attached to an event option.

    Payload fields are optional at the type level so that a generator can
    hand us a consequence with its payload missing; the engine skips those.
    """

    model_config = ConfigDict(frozen=True)

    type: ConsequenceType
    amount: int | None = None
    item: Item | None = None
    location: Location | None = None

    def missing_payload(self) -> str | None:
        """Name of the required field this consequence lacks, if any."""
        required = PAYLOAD_FIELDS[self.type]
        if required is not None and getattr(self, required) is None:
            return required
        return None


class EventOption(Identified):
    model_config = ConfigDict(frozen=True)

    text: str
    consequences: list[Consequence]


class GameEvent(Identified):
    """A generated narrative beat with the options the player can pick."""

    model_config = ConfigDict(frozen=True)

    description: str
    options: list[EventOption] = Field(min_length=1)

    def option(self, option_id: str) -> EventOption | None:
        for option in self.options:
            if option.id == option_id:
                return option
        return None


# ---------------------------------------------------------------------------
# Player state (mutable)
# ---------------------------------------------------------------------------

class Character(BaseModel):
    name: str
    level: int = Field(default=1, ge=1)
    xp: int = Field(default=0, ge=0)
    xp_to_next_level: int = 100  # always level * 100
    gold: int = Field(default=100, ge=0)
    health: int = Field(default=100, ge=0)
    max_health: int = Field(default=100, ge=1)
    strength: int = 10
    intelligence: int = 10
    charisma: int = 10
    inventory: list[Item] = Field(default_factory=list)

    @property
    def is_defeated(self) -> bool:
        return self.health == 0

    def level_up(self) -> None:
        self.level += 1
        self.xp_to_next_level = self.level * 100
        self.max_health += 10
        self.strength += 2
        self.intelligence += 2
        self.charisma += 2
        self.health = self.max_health

    def resolve_level_ups(self) -> int:
        """Run the level-up cascade; returns how many levels were gained."""
        gained = 0
        while self.xp >= self.xp_to_next_level:
            self.xp -= self.xp_to_next_level
            self.level_up()
            gained += 1
        return gained

    def gain_xp(self, amount: int) -> int:
        self.xp = max(0, self.xp + amount)
        return self.resolve_level_ups()

    def lose_xp(self, amount: int) -> None:
        # levels never go down
        self.xp = max(0, self.xp - abs(amount))

    def gain_gold(self, amount: int) -> None:
        self.gold = max(0, self.gold + amount)

    def lose_gold(self, amount: int) -> None:
        self.gold = max(0, self.gold - abs(amount))

    def add_item(self, item: Item) -> None:
        self.inventory.append(item)

    def remove_item(self, item: Item) -> bool:
        """Remove the first inventory entry with the item's identity."""
        for i, owned in enumerate(self.inventory):
            if owned.id == item.id:
                del self.inventory[i]
                return True
        return False

    def change_health(self, amount: int) -> None:
        self.health = min(self.max_health, max(0, self.health + amount))


class Quest(Identified):
    name: str
    description: str
    is_active: bool = True
    is_completed: bool = False
    reward: list[Consequence] = Field(default_factory=list)


class GameProgress(BaseModel):
    act: int = Field(default=1, ge=1)
    chapter: int = Field(default=1, ge=1)


class GameState(BaseModel):
    """Root aggregate: the one character and the world they have seen."""

    character: Character
    current_location_id: str
    locations: list[Location]
    game_progress: GameProgress = Field(default_factory=GameProgress)
    visited_location_ids: set[str] = Field(default_factory=set)
    active_quests: list[Quest] = Field(default_factory=list)

    @model_validator(mode="after")
    def _current_location_known(self) -> GameState:
        if self.location(self.current_location_id) is None:
            raise ValueError(
                f"current_location_id {self.current_location_id!r} is not a known location"
            )
        return self

    @field_serializer("visited_location_ids")
    def _sorted_visits(self, value: set[str]) -> list[str]:
        return sorted(value)

    def location(self, location_id: str) -> Location | None:
        for location in self.locations:
            if location.id == location_id:
                return location
        return None

    @property
    def current_location(self) -> Location:
        location = self.location(self.current_location_id)
        assert location is not None
        return location

    def quest(self, quest_id: str) -> Quest | None:
        for quest in self.active_quests:
            if quest.id == quest_id:
                return quest
        return None
