"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from harvester.config import settings
from harvester.database import check_connection, create_db_and_tables
from harvester.utils.logging import setup_logging
from harvester.api import fills, trades, system


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    setup_logging()
    # An unreachable database aborts startup before any job is scheduled
    check_connection()
    create_db_and_tables()
    from harvester.engine.scheduler import start_scheduler, stop_scheduler
    start_scheduler()

    yield

    stop_scheduler()


app = FastAPI(
    title="Fill Harvester",
    description="Hyperliquid fill harvesting and completed-trade reconstruction",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(fills.router)
app.include_router(trades.router)
app.include_router(system.router)
