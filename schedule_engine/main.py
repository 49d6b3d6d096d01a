from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from schedule_engine.api.routers import dictionary, schedule
from schedule_engine.core.config import settings
from schedule_engine.core.database import init_db
from schedule_engine.core.logging_config import RequestIdMiddleware, setup_logging_from_settings
from schedule_engine.core.monitoring import MetricsMiddleware, get_metrics

setup_logging_from_settings(settings)

tags_metadata = [
    {"name": "schedule", "description": "Cycled and calendar schedules: items, conflicts, date projection, export"},
    {"name": "dictionary", "description": "Groups, teachers and cabinets referenced by schedule items"},
]

app = FastAPI(
    title="Schedule Engine API",
    description="Lesson slot assignment and validation for student groups",
    openapi_tags=tags_metadata,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestIdMiddleware)
app.add_middleware(MetricsMiddleware)

init_db()

app.include_router(schedule.router)
app.include_router(dictionary.router)


@app.get("/")
async def root():
    return {"message": "Welcome to the Schedule Engine API"}


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return get_metrics()
