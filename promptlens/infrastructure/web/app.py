"""HTTP entry point for prompt analysis.

Routes:
    POST /api/analyze        {prompt}                          -> aggregate payload
    POST /api/analyze/chunk  {content, isChunked, isBegin,
                              isEnd, chunkIndex, totalChunks}  -> {Evaluation, Optimization}
    OPTIONS on both          -> 204 preflight
    GET /health              -> liveness

Only POST carries work; other methods get 405. Requests without a bearer
``Authorization`` header get 401. ``Access-Control-Allow-Origin`` is echoed
back only for allow-listed origins.
"""

import logging
import re
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from promptlens.core.message_handler import error_envelope
from promptlens.core.services.analysis_service import PromptAnalysisService
from promptlens.domain.exceptions import (
    InputError,
    LimitExceeded,
    PromptLensError,
    RateLimited,
    UpstreamError,
)
from promptlens.infrastructure.config.settings import AnalysisSettings
from promptlens.infrastructure.optimization.prompt_composer import position_from_flags

logger = logging.getLogger(__name__)

ANALYZE_PATH = "/api/analyze"
CHUNK_PATH = "/api/analyze/chunk"
UNSUPPORTED_METHODS = ["GET", "PUT", "PATCH", "DELETE"]

ERROR_STATUS = {
    InputError: status.HTTP_400_BAD_REQUEST,
    RateLimited: status.HTTP_429_TOO_MANY_REQUESTS,
    LimitExceeded: status.HTTP_413_CONTENT_TOO_LARGE,
    UpstreamError: status.HTTP_502_BAD_GATEWAY,
}


class AnalyzeRequest(BaseModel):
    prompt: Optional[str] = None


class ChunkAnalyzeRequest(BaseModel):
    content: str = ""
    isChunked: bool = False
    isBegin: bool = False
    isEnd: bool = False
    chunkIndex: int = 0
    totalChunks: int = 1


class Unauthorized(Exception):
    pass


def status_for(error: Exception) -> int:
    for error_type, code in ERROR_STATUS.items():
        if isinstance(error, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def cors_headers(origin: Optional[str], settings: AnalysisSettings) -> Dict[str, str]:
    headers = {
        "Access-Control-Allow-Methods": "POST",
        "Access-Control-Allow-Headers": "Authorization, Content-Type",
    }
    if origin and (
        origin in settings.allowed_origins
        or (settings.allowed_origin_regex and re.match(settings.allowed_origin_regex, origin))
    ):
        headers["Access-Control-Allow-Origin"] = origin
        headers["Vary"] = "Origin"
    return headers


def caller_of(request: Request) -> str:
    origin = request.headers.get("origin")
    if origin:
        return origin
    return request.client.host if request.client else "unknown"


def require_bearer_token(request: Request) -> str:
    """Checks that a bearer token is present; the token itself is not verified."""
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthorized()
    return token.strip()


def _service(request: Request) -> PromptAnalysisService:
    return request.app.state.dependencies["analysis_service"]


def _failure(error: Exception, start_time: float) -> JSONResponse:
    token_count = error.token_count if isinstance(error, PromptLensError) else None
    if isinstance(error, PromptLensError):
        logger.error(f"Analysis Error: {error}")
    else:
        logger.error(f"Unexpected analysis failure: {error}", exc_info=True)
    return JSONResponse(status_code=status_for(error), content=error_envelope(error, token_count, start_time))


def create_app(dependencies: Dict[str, Any]) -> FastAPI:
    """Builds the FastAPI app around an already wired dependency dict."""
    settings: AnalysisSettings = dependencies["settings"]

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        dependencies["encoder_pool"].shutdown()

    app = FastAPI(title="PromptLens", version="1.0.0", lifespan=lifespan)
    app.state.dependencies = dependencies

    @app.middleware("http")
    async def apply_cors(request: Request, call_next):
        response = await call_next(request)
        response.headers.update(cors_headers(request.headers.get("origin"), settings))
        return response

    @app.exception_handler(Unauthorized)
    async def unauthorized_handler(request: Request, exc: Unauthorized):
        return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"error": "Unauthorized"})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
            return JSONResponse(status_code=exc.status_code, content={"error": "Method not allowed"})
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Rejected malformed request body: {exc.errors()}")
        error = InputError("Invalid request body")
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=error_envelope(error, None, time.perf_counter()))

    @app.get("/health")
    async def health() -> Dict[str, str]:
        return {"status": "ok"}

    @app.options(ANALYZE_PATH)
    @app.options(CHUNK_PATH)
    async def preflight() -> Response:
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.api_route(ANALYZE_PATH, methods=UNSUPPORTED_METHODS)
    @app.api_route(CHUNK_PATH, methods=UNSUPPORTED_METHODS)
    async def method_not_allowed() -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_405_METHOD_NOT_ALLOWED, content={"error": "Method not allowed"})

    @app.post(ANALYZE_PATH)
    async def analyze_prompt(
        body: AnalyzeRequest, request: Request, _token: str = Depends(require_bearer_token)
    ):
        start_time = time.perf_counter()
        try:
            outcome = await _service(request).analyze_prompt(body.prompt or "", caller_id=caller_of(request))
        except Exception as e:
            return _failure(e, start_time)
        return outcome.to_payload()

    @app.post(CHUNK_PATH)
    async def analyze_chunk(
        body: ChunkAnalyzeRequest, request: Request, response: Response,
        _token: str = Depends(require_bearer_token),
    ):
        start_time = time.perf_counter()
        try:
            position = position_from_flags(
                body.isChunked, body.isBegin, body.isEnd, body.chunkIndex, body.totalChunks
            )
            outcome = await _service(request).analyze_chunk(
                body.content, position, body.chunkIndex, body.totalChunks, caller_id=caller_of(request)
            )
        except Exception as e:
            return _failure(e, start_time)
        response.headers["X-Chunk-Degraded"] = "true" if outcome.degraded else "false"
        return outcome.result.to_payload()

    return app


def create_default_app() -> FastAPI:
    """uvicorn factory: wires dependencies from configuration."""
    from promptlens.main import create_dependencies

    return create_app(create_dependencies())
