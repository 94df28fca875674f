"""
api/app.py
FastAPI application entry point.
Run with:  uvicorn api.app:app --port 8000
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config.settings import settings


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description=(
            "Tariff and dynamic pricing engine for postal shipments. "
            "Prices shipments from tariffs, surcharges, priority-ordered pricing rules "
            "and tax; records payments and generates invoices."
        ),
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def _global_handler(request: Request, exc: Exception) -> JSONResponse:
        from api.models import ErrorResponse
        from monitoring import get_logger
        get_logger(__name__).error("Unhandled error", path=request.url.path, error=str(exc))
        body = ErrorResponse(error="Internal server error", detail=str(exc))
        return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))

    from api.routes import router
    app.include_router(router, prefix="/api/v1", tags=["Postal Pricing"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.app:app", host=settings.api_host, port=settings.api_port, log_level="info")
