import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional
import uvicorn
from fastapi import FastAPI
from sqlalchemy import text
from sqlalchemy.engine import Engine
from alembic.config import Config
from alembic import command
import cmskit
from cmskit.core.config import Settings, settings as default_settings
from cmskit.core.logging import configure_logging
from cmskit.api.routes import admin_router, router as api_router
from cmskit.db.session import create_db_engine, make_session_factory
from cmskit.modules.loader import boot_modules, load_modules_file
from cmskit.modules.registry import ModuleRegistry
from cmskit.modules.routes import admin_prefix

configure_logging()
log = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def wait_for_database(engine: Engine, max_retries: int = 30, retry_delay: float = 1.0) -> None:
    """Wait for the database to be available."""
    for attempt in range(max_retries):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            log.info("Database connection successful")
            return
        except Exception as e:
            if attempt < max_retries - 1:
                log.warning("Database not ready, retrying in %s seconds (attempt %d/%d): %s",
                            retry_delay, attempt + 1, max_retries, e)
                time.sleep(retry_delay)
            else:
                log.error("Database connection failed after %d attempts", max_retries)
                raise


def run_migrations(engine: Engine) -> None:
    """Run Alembic migrations to head on the app's engine."""
    try:
        log.info("Running database migrations...")
        alembic_cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
        alembic_cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
        with engine.begin() as connection:
            alembic_cfg.attributes["connection"] = connection
            command.upgrade(alembic_cfg, "head")
        log.info("Database migrations completed successfully")
    except Exception as e:
        log.error("Database migration failed: %s", e, exc_info=True)
        raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    log.info("Starting API server...")
    try:
        wait_for_database(app.state.engine)
        run_migrations(app.state.engine)
        modules_file = app.state.settings.modules_file
        if modules_file:
            boot_modules(app, load_modules_file(Path(modules_file)))
        log.info("API server startup complete")
    except Exception as e:
        log.error("API startup failed: %s", e, exc_info=True)
        raise
    yield
    log.info("Shutting down API server...")


def create_app(settings: Optional[Settings] = None, engine: Optional[Engine] = None) -> FastAPI:
    settings = settings or default_settings
    engine = engine or create_db_engine(settings.database_url)

    app = FastAPI(title=settings.app_name, version=cmskit.__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = make_session_factory(engine)
    app.state.registry = ModuleRegistry()

    app.include_router(api_router)
    app.include_router(admin_router, prefix=admin_prefix(settings.admin_app_path))
    return app


app = create_app()


def run() -> None:
    uvicorn.run(app, host=default_settings.api_host, port=default_settings.api_port)
