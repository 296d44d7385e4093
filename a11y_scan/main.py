from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from a11y_scan.api_routers.v1 import api_router
from a11y_scan.features.health.routes.health import router as health_router
from a11y_scan.platform.config import get_settings
from a11y_scan.platform.exceptions import add_exception_handlers
from a11y_scan.platform.logger import configure_logging


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.APP_NAME,
        description="On-demand website accessibility scans with AI explanations",
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
    )

    # Root endpoint for basic info
    @app.get("/", tags=["Info"])
    def root():
        return {
            "app_name": settings.APP_NAME,
            "description": "Scans a public page with axe-core and explains the findings in plain language.",
            "version": settings.APP_VERSION,
            "docs_url": "/docs",
            "api_base": settings.API_V1_PREFIX,
        }

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    add_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    return app


app = create_app()
