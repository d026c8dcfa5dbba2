from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI

from vn_txn_parser.api.routes import parse, training
from vn_txn_parser.core import settings
from vn_txn_parser.integration.history import InMemoryTransactionHistory
from vn_txn_parser.logger import get_logger, setup_logging
from vn_txn_parser.persistence.store import FileKeyValueStore
from vn_txn_parser.services.parsing import ParsingService

logger = get_logger(__name__)


def build_default_service() -> ParsingService:
    return ParsingService(
        store=FileKeyValueStore(settings.DATA_DIR),
        history=InMemoryTransactionHistory(),
    )


def create_app(service_factory: Callable[[], ParsingService] = build_default_service) -> FastAPI:
    setup_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Initializing services...")
        settings.log_environment()

        service = service_factory()
        # Models load or bootstrap in the background; requests meanwhile get fallbacks.
        service.start()
        app.state.service = service

        logger.info("Services initialized.")
        yield
        await service.aclose()
        logger.info("Service shutting down.")

    app = FastAPI(title="Vietnamese Transaction Parser", lifespan=lifespan)

    app.include_router(parse.router)
    app.include_router(training.router)

    return app


app = create_app()
