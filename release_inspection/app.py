from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .errors import InvalidNameError, NotFoundError, ReleaseInspectionError
from .logging_utils import logger
from .routes import router as aro_hcp_router


APP_NAME = "release-inspection"


def create_app(accessor) -> FastAPI:
    """Build the API around an accessor (ReleaseAccessor or CachingReleaseAccessor)."""
    app = FastAPI(title=APP_NAME)
    app.state.accessor = accessor

    # CORS for a local UI
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:8000",
            "http://127.0.0.1:8000",
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ],
        allow_credentials=False,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(NotFoundError)
    async def not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(InvalidNameError)
    async def invalid_name(request: Request, exc: InvalidNameError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(ReleaseInspectionError)
    async def internal_error(request: Request, exc: ReleaseInspectionError) -> JSONResponse:
        logger.error("request_failed", path=request.url.path, error=str(exc), error_type=type(exc).__name__)
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    @app.get("/api/health")
    def health() -> Dict[str, Any]:
        return {"ok": True, "service": APP_NAME}

    app.include_router(aro_hcp_router)
    return app
