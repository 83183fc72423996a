"""Application entrypoint to run the Daily Tracker API."""

from __future__ import annotations

import logging
import os

import uvicorn

from dailytracker.app import app
from dailytracker.config import LOG_LEVEL

__all__ = ["app"]


BACKEND_HOST = os.getenv("HOST", "0.0.0.0")
BACKEND_PORT = int(os.getenv("PORT", 8000))


def main() -> None:
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        print(f"⚙️  Starting Daily Tracker API at http://localhost:{BACKEND_PORT}")
        uvicorn.run(
            "dailytracker.app:app",
            host=BACKEND_HOST,
            port=BACKEND_PORT,
            reload=os.getenv("RELOAD", "false").lower() == "true",
        )
    except KeyboardInterrupt:
        print("\n🛑 Shutdown requested by user.")
    finally:
        print("✨ All services stopped.")


if __name__ == "__main__":
    main()
