from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import settings
from core.database import init_db
from core.exceptions import register_exception_handlers
from app.startup import configure_startup_logging, run_startup_checks

# ========== Seating ==========
from modules.seating.routers.seating_router import router as seating_router

configure_startup_logging()

app = FastAPI(
    title="Tableside - Restaurant Seating API",
    description="""
    Table assignment and conflict resolution for the host stand.

    ## Features

    * **Table Status** - Occupancy, upcoming reservations and next availability per table
    * **Booking Queues** - Waiting, dining and arrivals grouped by shift and urgency
    * **Swap Options** - Ranked, explained table reassignment strategies
    * **Assignments** - Assign, swap and check-in with commit-time re-validation
    * **Walk-ins** - Conflict-gated walk-in intake with displacement tracking
    """,
    version="1.0.0",
    debug=settings.debug,
)

# Register exception handlers for consistent error responses
register_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(seating_router, prefix=settings.api_prefix)


@app.on_event("startup")
async def startup_event():
    """Initialize services on application startup"""
    init_db()
    run_startup_checks()


@app.get("/health")
def health_check():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=settings.is_development)
