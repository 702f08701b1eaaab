"""
Main entrypoint: QuasarFlow API server.

Settings come from the environment / .env (see backend_quasarflow.config.settings):
API_HOST, API_PORT, DATABASE_URL, STELLAR_NETWORK, JWT_SECRET, ENCRYPTION_KEY, etc.

Equivalent: uvicorn backend_quasarflow.api_server.app:app --host 0.0.0.0 --port 8080
"""

import uvicorn

# Configure structured JSON logging before other imports that may log
from backend_quasarflow.logging import get_logger

logger = get_logger("main")


def main() -> None:
    """Build the app from settings and serve it with uvicorn in the main thread."""
    from backend_quasarflow.api_server.server import create_app
    from backend_quasarflow.config import get_settings
    from backend_quasarflow.config.env import load_quasarflow_env

    load_quasarflow_env()
    settings = get_settings()
    app = create_app(settings)
    logger.info(
        "main_server_starting",
        host=settings.api_host,
        port=settings.api_port,
        env=settings.env,
        network=settings.stellar_network,
    )
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
        server_header=False,
        timeout_graceful_shutdown=30,
    )


if __name__ == "__main__":
    main()
