"""FastAPI server for FloWorx client configuration and mailbox provisioning"""

from __future__ import annotations

import os

from dotenv import load_dotenv
from fastapi import FastAPI

from floworx.api.errors import register_exception_handlers
from floworx.api.middleware.csrf import CSRFMiddleware
from floworx.api.routes.auth import router as auth_router
from floworx.api.routes.clients import router as clients_router
from floworx.api.routes.health import router as health_router
from floworx.api.routes.mailbox import router as mailbox_router
from floworx.config import APP_NAME, APP_VERSION, Settings
from floworx.infrastructure.database import init_database
from floworx.observability.logging import get_logger
from floworx.observability.telemetry import log_event
from floworx.workflows.selector import TemplateSelector

# Load environment variables from .env file
load_dotenv()

logger = get_logger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build the API application.

    Side Effects:
        - Creates the SQLite schema if missing
        - Stores ``settings`` and the template selector on ``app.state``
    """
    settings = settings or Settings.from_env()

    init_database()

    app = FastAPI(title=APP_NAME, version=APP_VERSION)
    app.state.settings = settings
    app.state.template_selector = TemplateSelector(settings.templates_dir)

    register_exception_handlers(app)
    app.add_middleware(
        CSRFMiddleware,
        cookie_name=settings.csrf_cookie_name,
        header_name=settings.csrf_header_name,
    )

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(clients_router)
    app.include_router(mailbox_router)

    log_event("api.started", env=settings.env, version=APP_VERSION)
    logger.info("%s %s ready (env=%s)", APP_NAME, APP_VERSION, settings.env)
    return app


def main() -> None:
    import uvicorn

    uvicorn.run(
        "floworx.api.app:create_app",
        factory=True,
        host=os.getenv("FLOWORX_HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )


if __name__ == "__main__":
    main()
