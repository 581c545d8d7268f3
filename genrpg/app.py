from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from genrpg.config import Settings, load_settings
from genrpg.images import HttpImageGenerator
from genrpg.llm import HttpLLM
from genrpg.routes import router
from genrpg.session import GameSession
from genrpg.storage import FileStore

load_dotenv(Path(__file__).parent.parent / ".env")


def build_session(settings: Settings) -> GameSession:
    """Wire real HTTP backends and the save file into a session."""
    llm = HttpLLM(
        provider_url=settings.provider_url,
        api_key=settings.api_key,
        provider_format=settings.provider_format,
        model=settings.model,
        timeout=settings.timeout,
    )
    images = None
    if settings.image_url:
        images = HttpImageGenerator(
            provider_url=settings.image_url,
            api_key=settings.api_key,
            model=settings.image_model,
        )
    return GameSession(
        llm, FileStore(settings.save_path), images,
        player_name=settings.player_name,
    )


def create_app(
    settings: Settings | None = None, session: GameSession | None = None
) -> FastAPI:
    if session is None:
        session = build_session(settings or load_settings())

    app = FastAPI(title="GenRPG")
    app.state.session = session
    app.include_router(router, prefix="/api")
    return app


# Default app instance for uvicorn (uses env settings)
app = create_app()
