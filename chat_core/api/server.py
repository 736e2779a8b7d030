"""Run the HTTP server with uvicorn."""

import uvicorn

from chat_core.api.app import create_app
from chat_core.config.settings import settings


def main() -> None:
    uvicorn.run(create_app(), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
