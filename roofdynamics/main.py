"""FastAPI application entry point."""

import logging
import os
import threading

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

from roofdynamics import __version__
from roofdynamics.config import settings
from roofdynamics.routes import functions, runs

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Roof Dynamics",
    description="Address-to-roof-inspection report pipeline",
    version=__version__,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(runs.router)
app.include_router(functions.router)

# Worker thread management
worker_thread = None
worker_stop_event = threading.Event()


def run_worker_loop():
    """Run the worker loop in a background thread."""
    from roofdynamics.worker import worker_loop
    logger.info("Starting background worker thread")
    worker_loop(worker_stop_event)


def prepare_database():
    """Run migrations when the tables are missing, else leave the schema alone."""
    import sqlalchemy

    from roofdynamics.database import engine, init_db

    try:
        table_exists = sqlalchemy.inspect(engine).has_table("analysis_runs")
        if table_exists:
            logger.info("Database tables already exist, skipping migrations")
            return

        logger.info("Running database migrations...")
        from alembic import command
        from alembic.config import Config

        alembic_cfg = Config(os.path.join(os.path.dirname(os.path.dirname(__file__)), "alembic.ini"))
        alembic_cfg.set_main_option("sqlalchemy.url", settings.DATABASE_URL)
        command.upgrade(alembic_cfg, "head")
        logger.info("Database migrations completed successfully")
    except Exception as e:
        logger.error(f"Startup database check/migration error: {e}")
        logger.info("Creating tables from models instead")
        init_db()


@app.on_event("startup")
async def startup_event():
    """Prepare the database and start the background worker when configured."""
    global worker_thread
    logger.info("Starting application...")

    prepare_database()

    if settings.PIPELINE_DISPATCH == "worker":
        logger.info("Starting background worker thread...")
        worker_thread = threading.Thread(target=run_worker_loop, daemon=True)
        worker_thread.start()
        logger.info("Background worker thread started")


@app.on_event("shutdown")
async def shutdown_event():
    """Stop the background worker when the app shuts down."""
    logger.info("Shutting down application...")

    # Signal worker to stop
    worker_stop_event.set()

    # Wait for worker thread to finish (with timeout)
    if worker_thread and worker_thread.is_alive():
        worker_thread.join(timeout=10)
        logger.info("Background worker thread stopped")


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "healthy"}


# Report artifacts written by the local artifact store
if settings.ARTIFACT_BACKEND == "local":
    os.makedirs(settings.ARTIFACT_DIR, exist_ok=True)
    app.mount("/artifacts", StaticFiles(directory=settings.ARTIFACT_DIR), name="artifacts")

# Serve static files (dashboard)
static_dir = os.path.join(os.path.dirname(__file__), "static")
if os.path.exists(static_dir):
    app.mount("/static", StaticFiles(directory=static_dir), name="static")

    @app.get("/")
    def serve_frontend():
        """Serve dashboard HTML."""
        return FileResponse(os.path.join(static_dir, "index.html"))
else:
    @app.get("/")
    def root():
        """Root endpoint when no dashboard is bundled."""
        return {
            "name": "Roof Dynamics",
            "version": __version__,
            "status": "running",
        }
