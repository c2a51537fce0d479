#!/usr/bin/env python3
"""
Livescore server.
Usage: livescore   (or: python -m livescore.main)
"""

import logging
import os

import uvicorn

from livescore.config import get_settings
from livescore.web import create_app


def main():
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # PaaS hosts hand the port over in plain PORT
    port = int(os.environ.get("PORT", settings.port))

    print(f"🚀 Starting Scoreboard Server on {settings.host}:{port}...")
    try:
        uvicorn.run(create_app(settings), host=settings.host, port=port, log_level="warning")
    except KeyboardInterrupt:
        print("\n👋 Exiting...")


if __name__ == "__main__":
    main()
