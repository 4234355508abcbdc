"""ordtree FastAPI application entry point."""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from ordtree.db.connection import Database
from ordtree.nodes.router import get_forest_service
from ordtree.nodes.router import router as nodes_router
from ordtree.nodes.service import ForestService
from ordtree.repository.sqlite import SqliteNodeRepository


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage database lifecycle and service wiring."""
    load_dotenv(Path(__file__).resolve().parent.parent / ".env")

    db = await Database.connect(os.environ.get("ORDTREE_DB_PATH", "ordtree.db"))

    service = ForestService(SqliteNodeRepository(db))
    app.dependency_overrides[get_forest_service] = lambda: service

    app.state.db = db
    yield

    await db.close()


app = FastAPI(
    title="ordtree",
    description="Ordered forest with dense sibling positions",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(nodes_router)


@app.get("/api/health")
async def health() -> dict:
    return {"status": "ok", "version": "0.1.0"}
