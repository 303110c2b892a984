"""
HotelDesk - API entry point.

    python -m hoteldesk.main
"""

from __future__ import annotations

import uvicorn

from hoteldesk.api.app import create_app
from hoteldesk.config import get_settings


def main():
    settings = get_settings()
    uvicorn.run(
        create_app(settings),
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
