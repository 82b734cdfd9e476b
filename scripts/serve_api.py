"""
Run the lookup API with uvicorn using API_HOST / API_PORT from settings.

Usage:
    python scripts/serve_api.py
"""

import sys
from pathlib import Path

import uvicorn

# Add src to path
sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from nbn_lookup.config import settings
from nbn_lookup.logging_config import setup_logging


def main() -> None:
    settings.setup()
    setup_logging(settings.logging.level, settings.logging.file)
    uvicorn.run("nbn_lookup.api.main:app", host=settings.api.host, port=settings.api.port)


if __name__ == "__main__":
    main()
