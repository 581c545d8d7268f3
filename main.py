"""GenRPG — launcher. Serves the game API with uvicorn."""

import argparse
import logging
import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from genrpg.config import ConfigError, load_settings

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "13013"))


def main():
    parser = argparse.ArgumentParser(description="GenRPG server")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Save file directory (default: ./data)")
    parser.add_argument("--host", default=HOST)
    parser.add_argument("--port", type=int, default=PORT)
    parser.add_argument("--reload", action="store_true",
                        help="Restart on code changes")
    args = parser.parse_args()

    # The app reads DATA_DIR when uvicorn imports it
    if args.data_dir:
        os.environ["DATA_DIR"] = str(args.data_dir.resolve())

    try:
        settings = load_settings()
    except ConfigError as e:
        parser.error(str(e))

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if not settings.api_key:
        logging.getLogger(__name__).warning("GENRPG_API_KEY is not set")

    print(f"Starting GenRPG on http://localhost:{args.port} ...")
    uvicorn.run("genrpg.app:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
