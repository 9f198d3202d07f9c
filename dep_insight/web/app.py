"""FastAPI application factory."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from dep_insight import __version__
from dep_insight.ai.client import LLMError
from dep_insight.pipeline import AnalysisError
from dep_insight.web.api import router

logger = logging.getLogger(__name__)


def _error_response(request: Request, status_code: int, error: dict) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "requestId": getattr(request.state, "request_id", ""),
            "error": error,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


def create_app() -> FastAPI:
    app = FastAPI(title="dep-insight", version=__version__)

    @app.middleware("http")
    async def request_id(request: Request, call_next):
        request.state.request_id = uuid.uuid4().hex
        response: Response = await call_next(request)
        response.headers["X-Request-ID"] = request.state.request_id
        return response

    @app.exception_handler(AnalysisError)
    async def analysis_error_handler(request: Request, exc: AnalysisError):
        logger.warning(
            "analysis error [%s] %s (%s)",
            getattr(request.state, "request_id", "-"), exc.message, exc.code,
        )
        return _error_response(request, exc.status_code, exc.to_dict())

    @app.exception_handler(LLMError)
    async def llm_error_handler(request: Request, exc: LLMError):
        logger.warning(
            "LLM error [%s] %s (%s)",
            getattr(request.state, "request_id", "-"), exc.message, exc.code,
        )
        return _error_response(
            request, 502, {"message": exc.message, "code": exc.code, "statusCode": 502},
        )

    app.include_router(router)
    return app
