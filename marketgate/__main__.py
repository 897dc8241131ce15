"""Run the gateway with uvicorn: ``python -m marketgate``."""

import uvicorn

from marketgate.app.core.config import settings


def main() -> None:
    uvicorn.run(
        "marketgate.app.main:app",
        host=settings.host,
        port=settings.port,
        log_config=None,  # logging is configured by create_app()
    )


if __name__ == "__main__":
    main()
