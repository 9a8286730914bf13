"""FastAPI application exposing range analysis over HTTP."""

import sqlite3

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .events.categories import load_category_rules, set_category_rules
from .events.store import ActivityWatchDB
from .logging_config import get_logger
from .routes import analysis_router

logger = get_logger(__name__, namespace='api')

app = FastAPI(title="ActivityWatch Range Analyzer")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.include_router(analysis_router)


@app.on_event("startup")
async def startup_event():
    """Load category rules and open the ActivityWatch database."""
    set_category_rules(load_category_rules())

    db = ActivityWatchDB()
    try:
        db.open()
    except sqlite3.Error as e:
        logger.warning(f"ActivityWatch database unavailable at {db.path}: {e}")
        db = None
    app.state.db = db


@app.on_event("shutdown")
async def shutdown_event():
    """Close the ActivityWatch database."""
    db = getattr(app.state, 'db', None)
    if db is not None:
        db.close()
    app.state.db = None
