"""
AlgeNova — Entry point.

Launch the HTTP API with uvicorn.
"""

import logging

import uvicorn
from dotenv import load_dotenv

from algenova.settings import ensure_settings_file, get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def main() -> None:
    load_dotenv()
    created = ensure_settings_file()
    settings = get_settings()
    logging.basicConfig(level=str(settings["log_level"]).upper(), format=LOG_FORMAT)
    logger = logging.getLogger(__name__)
    if created:
        logger.info("Wrote default settings file")
    logger.info("Starting AlgeNova API on %s:%s", settings["host"], settings["port"])
    uvicorn.run("backend.app.main:app", host=settings["host"], port=int(settings["port"]))


if __name__ == "__main__":
    main()
