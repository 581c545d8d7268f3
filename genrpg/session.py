"""Game session — runs the turn loop for the single active game.

Turn flow:
  1. start(): load the saved state, or create and save a fresh one.
  2. generate_event(): ask the generator for an event at the current
     location. On success the event is visible immediately and its picture
     is requested in a background task. On failure `error` is set and the
     state is left exactly as it was.
  3. choose(option_id): resolve the option with the engine, save the whole
     new state, and only then generate the next event.

Only one generation may be in flight at a time. A character at 0 health is
defeated: the state is saved, the phase becomes "game-over", and the session
refuses further turns until new_game().
"""

from __future__ import annotations

import asyncio
import logging
from typing import Literal

from genrpg.engine import IntegrationError, Resolution, apply_option
from genrpg.generator import EventGenerator, GenerationError
from genrpg.images import ImageGenerator
from genrpg.llm import LLM
from genrpg.models import Character, GameEvent, GameProgress, GameState, Location
from genrpg.storage import Store, StorageError, deserialize_state, serialize_state

logger = logging.getLogger(__name__)

SessionPhase = Literal[
    "idle",
    "generating",
    "pending-choice",
    "resolving",
    "resolved",
    "game-over",
]

GENERATION_FAILED = "Could not generate a scene, try again."


class GenerationInProgress(RuntimeError):
    """Raised when an event is requested while another is being generated."""


class GameOver(RuntimeError):
    """Raised when a defeated character is asked to keep playing."""


def initial_state(player_name: str = "Hero") -> GameState:
    start = Location(
        name="Lake Village",
        description="A quaint village with cobblestone paths and friendly faces.",
        type="village",
    )
    return GameState(
        character=Character(name=player_name),
        current_location_id=start.id,
        locations=[start],
        game_progress=GameProgress(act=1, chapter=1),
    )


class GameSession:
    def __init__(
        self,
        llm: LLM,
        store: Store,
        images: ImageGenerator | None = None,
        *,
        player_name: str = "Hero",
    ) -> None:
        self._generator = EventGenerator(llm, images)
        self._store = store
        self._player_name = player_name
        self._lock = asyncio.Lock()
        self._image_task: asyncio.Task | None = None

        self.state: GameState | None = None
        self.current_event: GameEvent | None = None
        self.image: bytes | None = None
        self.error: str | None = None
        self.last_failure: GenerationError | None = None
        self.phase: SessionPhase = "idle"

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> GameEvent | None:
        """Load or create the game, then generate the first event."""
        self.state = self._load_or_init()
        if self.state.character.is_defeated:
            self.phase = "game-over"
            return None
        return await self.generate_event()

    async def new_game(self) -> GameEvent | None:
        """Discard the current game and start over."""
        self._drop_event()
        self.state = initial_state(self._player_name)
        self._persist()
        self.phase = "idle"
        return await self.generate_event()

    def _load_or_init(self) -> GameState:
        blob = self._store.load()
        if blob is not None:
            try:
                state = deserialize_state(blob)
                logger.info("Loaded saved game for %s", state.character.name)
                return state
            except StorageError as e:
                logger.warning("Starting a new game: %s", e)
        state = initial_state(self._player_name)
        self._store.save(serialize_state(state))
        return state

    def _persist(self) -> None:
        assert self.state is not None
        self._store.save(serialize_state(self.state))

    # ------------------------------------------------------------------
    # Event generation
    # ------------------------------------------------------------------

    def _drop_event(self) -> None:
        if self._image_task is not None and not self._image_task.done():
            self._image_task.cancel()
        self._image_task = None
        self.current_event = None
        self.image = None

    async def generate_event(self) -> GameEvent | None:
        """Generate the next event; returns None (and sets error) on failure."""
        if self.state is None:
            raise IntegrationError("Session has not been started")
        if self.state.character.is_defeated:
            raise GameOver(f"{self.state.character.name} has been defeated")
        if self._lock.locked():
            raise GenerationInProgress("An event is already being generated")

        async with self._lock:
            self._drop_event()
            self.error = None
            self.last_failure = None
            self.phase = "generating"

            result = await self._generator.generate(
                self.state.character, self.state.current_location
            )
            if isinstance(result, GenerationError):
                self.error = GENERATION_FAILED
                self.last_failure = result
                self.phase = "idle"
                return None

            self.current_event = result
            self.phase = "pending-choice"
            self._image_task = asyncio.create_task(self._fill_image(result))
            return result

    async def _fill_image(self, event: GameEvent) -> None:
        image = await self._generator.illustrate(event)
        # a newer event may have replaced this one meanwhile
        if self.current_event is not None and self.current_event.id == event.id:
            self.image = image

    async def wait_for_image(self) -> bytes | None:
        task = self._image_task
        if task is not None and not task.cancelled():
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                # only the image task was dropped, not this waiter
                if not task.cancelled():
                    raise
        return self.image

    # ------------------------------------------------------------------
    # Choices
    # ------------------------------------------------------------------

    async def choose(self, option_id: str) -> Resolution:
        """Resolve an option of the current event and move to the next one."""
        if self.phase == "game-over":
            raise GameOver("The game is over; start a new game")
        event = self.current_event
        if event is None or self.phase != "pending-choice":
            raise IntegrationError("No event is waiting for a choice")
        option = event.option(option_id)
        if option is None:
            raise IntegrationError(f"Option {option_id} is not part of event {event.id}")

        self.phase = "resolving"
        try:
            resolution = apply_option(self.state, event, option)
            self._store.save(serialize_state(resolution.state))
        except Exception:
            # nothing applied; the same choice can be made again
            self.phase = "pending-choice"
            raise
        self.state = resolution.state
        self._drop_event()
        self.phase = "resolved"

        if self.state.character.is_defeated:
            logger.info("%s has been defeated", self.state.character.name)
            self.phase = "game-over"
            return resolution

        await self.generate_event()
        return resolution
