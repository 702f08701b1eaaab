"""
FastAPI server: Stellar wallet gateway.

create_app() wires settings, services, the middleware pipeline, exception
handlers and routers. The lifespan creates database tables and owns the rate
limiter's sweep thread.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Mapping

from fastapi import Depends, FastAPI

from backend_quasarflow import __version__
from backend_quasarflow.api_server import responses
from backend_quasarflow.api_server.accounts import router as accounts_router
from backend_quasarflow.api_server.auth_routes import router as auth_router
from backend_quasarflow.api_server.dependencies import Services, get_services
from backend_quasarflow.api_server.errors import install_exception_handlers
from backend_quasarflow.api_server.middleware import install_middleware
from backend_quasarflow.api_server.wallets import router as wallets_router
from backend_quasarflow.auth import CredentialStore, RateLimiter, TokenService
from backend_quasarflow.config import Settings, get_settings
from backend_quasarflow.config.env import NETWORKS, horizon_url_for, passphrase_for
from backend_quasarflow.crypto import AESEncryptor
from backend_quasarflow.database import Database, WalletRepository
from backend_quasarflow.logging import configure_structlog, get_logger
from backend_quasarflow.ownership import ChallengeGenerator, ChallengeStore, OwnershipService
from backend_quasarflow.stellar import HorizonClient
from backend_quasarflow.wallets import WalletService

logger = get_logger(__name__)


def build_horizons(settings: Settings) -> dict[str, HorizonClient]:
    """One client per network; the configured network honours STELLAR_HORIZON_URL."""
    clients = {}
    for network in NETWORKS:
        override = settings.stellar_horizon_url if network == settings.stellar_network else None
        clients[network] = HorizonClient(
            horizon_url_for(network, override),
            passphrase_for(network),
            timeout_sec=settings.horizon_timeout,
        )
    return clients


def build_services(settings: Settings, horizons: Mapping[str, HorizonClient] | None = None) -> Services:
    horizons = horizons or build_horizons(settings)
    database = Database(settings.database_url)
    store = (
        ChallengeStore(settings.challenge_ttl, max_entries=settings.challenge_max_entries)
        if settings.challenge_strict_mode
        else None
    )
    challenges = ChallengeGenerator(settings.resolved_challenge_domain(), store=store)
    ownership = OwnershipService(
        horizons[settings.stellar_network],
        challenges=store,
        strict_challenges=settings.challenge_strict_mode,
    )
    wallets = WalletService(
        WalletRepository(database),
        AESEncryptor(settings.encryption_key),
        horizons,
        settings.friendbot,
    )
    return Services(
        settings=settings,
        database=database,
        tokens=TokenService(settings.jwt_secret, settings.jwt_issuer, settings.jwt_expiration),
        credentials=CredentialStore(settings.auth_user_entries()),
        rate_limiter=RateLimiter(
            settings.rate_limit_requests_per_second,
            settings.rate_limit_burst,
            settings.rate_limit_cleanup_interval,
        ),
        challenges=challenges,
        ownership=ownership,
        horizons=horizons,
        wallets=wallets,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and start the rate limiter sweep; stop it on shutdown."""
    services: Services = app.state.services
    services.database.init_db()
    services.rate_limiter.start()
    logger.info(
        "api_started",
        network=services.settings.stellar_network,
        horizon_url=services.horizon.horizon_url,
        strict_challenges=services.settings.challenge_strict_mode,
    )

    yield

    services.rate_limiter.close()
    services.database.dispose()
    logger.info("api_stopped")


def health(services: Services = Depends(get_services)):
    """Liveness plus database reachability. 503 when the database does not answer."""
    if not services.database.ping():
        return responses.error(503, "Database connection failed", type_="DATABASE_ERROR")
    return responses.success(
        {
            "status": "healthy",
            "database": "healthy",
            "version": __version__,
            "rate_limiter": services.rate_limiter.stats(),
        }
    )


def create_app(
    settings: Settings | None = None,
    horizons: Mapping[str, HorizonClient] | None = None,
) -> FastAPI:
    settings = settings.ensure_secrets() if settings is not None else get_settings()
    configure_structlog(settings.log_level, settings.log_format)
    services = build_services(settings, horizons)

    app = FastAPI(
        title="QuasarFlow API",
        description="REST gateway for Stellar wallets with ownership verification.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = services

    install_middleware(app, settings, services.rate_limiter)
    install_exception_handlers(app)

    app.add_api_route("/health", health, methods=["GET"], tags=["health"])
    app.include_router(auth_router)
    app.include_router(accounts_router)
    app.include_router(wallets_router)
    return app
