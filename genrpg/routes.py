"""FastAPI endpoints under /api for the single game session.

The session lives on app.state; every endpoint goes through get_session().
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response
from pydantic import BaseModel

from genrpg.engine import ConsequenceWarning, IntegrationError
from genrpg.models import GameEvent, GameState
from genrpg.session import GameOver, GameSession, GenerationInProgress

router = APIRouter()


class ChooseBody(BaseModel):
    option_id: str


class GameView(BaseModel):
    phase: str
    state: GameState | None
    event: GameEvent | None
    error: str | None
    has_image: bool


class ChoiceResult(BaseModel):
    game: GameView
    warnings: list[ConsequenceWarning]
    levels_gained: int


def get_session(request: Request) -> GameSession:
    return request.app.state.session


def _view(session: GameSession) -> GameView:
    return GameView(
        phase=session.phase,
        state=session.state,
        event=session.current_event,
        error=session.error,
        has_image=session.image is not None,
    )


async def _generate(session: GameSession) -> GameView:
    try:
        await session.generate_event()
    except GenerationInProgress as e:
        raise HTTPException(409, str(e))
    except GameOver as e:
        raise HTTPException(410, str(e))
    except IntegrationError as e:
        raise HTTPException(409, str(e))
    return _view(session)


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/game")
async def get_game(session: GameSession = Depends(get_session)) -> GameView:
    """Current state, event, phase and error message."""
    return _view(session)


@router.post("/game/start")
async def start_game(session: GameSession = Depends(get_session)) -> GameView:
    """Load the saved game (or create one) and generate the first event."""
    if session.state is not None:
        return _view(session)
    try:
        await session.start()
    except GenerationInProgress as e:
        raise HTTPException(409, str(e))
    return _view(session)


@router.post("/game/event")
async def regenerate_event(session: GameSession = Depends(get_session)) -> GameView:
    """Try generating an event again, e.g. after a failed attempt."""
    return await _generate(session)


@router.post("/game/choose")
async def choose(body: ChooseBody, session: GameSession = Depends(get_session)) -> ChoiceResult:
    """Resolve one option of the current event."""
    try:
        resolution = await session.choose(body.option_id)
    except GameOver as e:
        raise HTTPException(410, str(e))
    except (IntegrationError, GenerationInProgress) as e:
        raise HTTPException(409, str(e))
    return ChoiceResult(
        game=_view(session),
        warnings=resolution.warnings,
        levels_gained=resolution.levels_gained,
    )


@router.post("/game/new")
async def new_game(session: GameSession = Depends(get_session)) -> GameView:
    """Throw away the current game and start a fresh one."""
    try:
        await session.new_game()
    except GenerationInProgress as e:
        raise HTTPException(409, str(e))
    return _view(session)


@router.get("/game/image")
async def get_image(session: GameSession = Depends(get_session)):
    """Picture for the current event, once it is ready."""
    if session.image is None:
        raise HTTPException(404, "No image available")
    return Response(content=session.image, media_type="image/png")
