import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from momentum_journal.core.config import CORS_ORIGINS, LOG_LEVEL
from momentum_journal.core.database import Base, engine
from momentum_journal.core.errors import register_exception_handlers
from momentum_journal.goals import routes as goals_router
from momentum_journal.journals import routes as journals_router
from momentum_journal.dashboard import routes as dashboard_router
from momentum_journal.analysis import routes as analysis_router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

app = FastAPI(
    title="Momentum Journal API",
    version="1.0.0",
    description="Backend for Momentum Journal: goals, journaling, dashboards and AI insights.",
)

# CORS config
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Error envelope
register_exception_handlers(app)

# Routers
app.include_router(goals_router.router)
app.include_router(journals_router.router)
app.include_router(dashboard_router.router)
app.include_router(analysis_router.router)


# DB Tables
@app.on_event("startup")
def create_tables():
    Base.metadata.create_all(bind=engine)
