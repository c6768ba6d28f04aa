from __future__ import annotations

import logging
import os

import uvicorn
from dotenv import load_dotenv

# Load .env from backend dir (where server.py runs) before settings are read.
load_dotenv(os.path.join(os.path.dirname(__file__), ".env"))

from app.config import Settings  # noqa: E402
from app.main import create_app  # noqa: E402


def main() -> None:
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = create_app(settings)
    logging.getLogger(__name__).info("Dual relay listening on %s:%d", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
