"""FastAPI application factory."""

import logging
from collections import OrderedDict
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from switchlyswap import __version__
from switchlyswap.config import get_settings
from switchlyswap.routing.switchly import SwitchlyQuoteProvider
from switchlyswap.settlement.correlator import SettlementCorrelator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    yield
    # Shutdown
    logger.info(f"Shutting down, cancelling {len(app.state.sessions)} settlement sessions")
    for session in list(app.state.sessions.values()):
        session.cancel()
    app.state.sessions.clear()
    app.state.finished.clear()
    await app.state.provider.close()


def create_app(
    provider: Optional[SwitchlyQuoteProvider] = None,
    correlator: Optional[SettlementCorrelator] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Switchly Swap API",
        description="Cross-chain swap quotes and settlement tracking",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )

    app.state.provider = provider or SwitchlyQuoteProvider()
    app.state.correlator = correlator or SettlementCorrelator()
    app.state.sessions = {}
    app.state.finished = OrderedDict()

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routes
    from switchlyswap.api.routes import health, quotes, settlements

    app.include_router(health.router, tags=["Health"])
    app.include_router(quotes.router, prefix="/api/v1", tags=["Quotes"])
    app.include_router(settlements.router, prefix="/api/v1", tags=["Settlements"])

    return app
