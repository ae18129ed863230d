# topic_quiz/app.py

import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_429_TOO_MANY_REQUESTS,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_501_NOT_IMPLEMENTED,
    HTTP_502_BAD_GATEWAY,
)

from topic_quiz.core.config import Settings, get_settings
from topic_quiz.core.errors import ConfigurationError, ParseError, ProviderUnavailable
from topic_quiz.core.openai_qg import generate_quiz, list_models, redact
from topic_quiz.core.rate_limit import SlidingWindowRateLimiter
from topic_quiz.core.schemas import GenerateQuizRequest, GenerateQuizResponse, ListModelsResponse

MIN_TOPIC_CHARS = 3
MAX_COUNT = 20

logger = logging.getLogger("quiz")

# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------
def _error(status_code: int, error: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, **extra})

def _valid_count(count) -> int | None:
    """JSON integers (and integral floats) in [1, MAX_COUNT]; bools are not counts."""
    if isinstance(count, bool):
        return None
    if isinstance(count, float) and count.is_integer():
        count = int(count)
    if isinstance(count, int) and 1 <= count <= MAX_COUNT:
        return count
    return None

def _client_key(request: Request) -> str:
    return request.client.host if request.client else "global"

def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may hold exception instances that JSONResponse cannot encode
    return [{k: v for k, v in err.items() if k in ("loc", "msg", "type")} for err in exc.errors()]

# Middleware to log requests
class LogRequestMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        logger.info(f"Incoming {request.method} {request.url.path} from {_client_key(request)}")
        return await call_next(request)

# Middleware to throttle generation, before the body is even parsed
class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, limiter: SlidingWindowRateLimiter, paths: tuple):
        super().__init__(app)
        self.limiter = limiter
        self.paths = paths

    async def dispatch(self, request: Request, call_next):
        if request.method == "POST" and request.url.path in self.paths:
            client = _client_key(request)
            if not self.limiter.check(client):
                logger.warning(f"Rate limit hit by {client} on {request.url.path}")
                return _error(HTTP_429_TOO_MANY_REQUESTS, "Too many requests, slow down.")
        return await call_next(request)

# ------------------------------------------------------------
# Application factory
# ------------------------------------------------------------
def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level)

    app = FastAPI(title="Topic Quiz API")
    app.state.settings = settings
    app.state.rate_limiter = SlidingWindowRateLimiter(
        limit=settings.rate_limit, window=settings.rate_window_seconds
    )

    app.add_middleware(
        RateLimitMiddleware,
        limiter=app.state.rate_limiter,
        paths=("/generate-quiz",),
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origin_list),
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LogRequestMiddleware)

    # --------------------------------------------------------
    # Exception handlers
    # --------------------------------------------------------
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error: {exc.errors()}")
        return _error(HTTP_400_BAD_REQUEST, "Invalid request body.", detail=jsonable_errors(exc))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return _error(
            HTTP_500_INTERNAL_SERVER_ERROR,
            "Server error",
            details=redact(str(exc), settings.openai_api_key),
        )

    # --------------------------------------------------------
    # Routes
    # --------------------------------------------------------
    @app.post("/generate-quiz", response_model=GenerateQuizResponse)
    async def generate_quiz_route(req: GenerateQuizRequest):
        topic = (req.topic or "").strip()
        if len(topic) < MIN_TOPIC_CHARS:
            return _error(HTTP_400_BAD_REQUEST, f"Invalid topic (min {MIN_TOPIC_CHARS} chars).")
        count = _valid_count(req.count)
        if count is None:
            return _error(HTTP_400_BAD_REQUEST, f"Count must be integer between 1 and {MAX_COUNT}.")
        if not settings.openai_api_key:
            return _error(HTTP_500_INTERNAL_SERVER_ERROR, "Server not configured with OPENAI_API_KEY.")

        try:
            questions = await generate_quiz(
                topic=topic,
                count=count,
                used_questions_text=req.usedQuestionsText or "",
                settings=settings,
            )
        except ProviderUnavailable as e:
            logger.error(f"No model available: {e.tried_models}")
            return _error(
                HTTP_502_BAD_GATEWAY,
                "No supported models available",
                details=redact(e.message, settings.openai_api_key),
                tried_models=e.tried_models,
                configured_model=settings.model,
            )
        except ParseError as e:
            return _error(HTTP_502_BAD_GATEWAY, "Failed to parse model output.", details=e.message, raw=e.raw)
        except ConfigurationError as e:
            return _error(HTTP_500_INTERNAL_SERVER_ERROR, "Server not configured with OPENAI_API_KEY.", details=e.message)
        except Exception as e:
            logger.error("Server error in /generate-quiz", exc_info=True)
            return _error(
                HTTP_500_INTERNAL_SERVER_ERROR,
                "Server error",
                details=redact(str(e), settings.openai_api_key),
            )

        return {"status": "ok", "questions": [q.to_payload() for q in questions]}

    @app.get("/list-models", response_model=ListModelsResponse)
    async def list_models_route():
        try:
            models = await list_models(settings)
        except NotImplementedError as e:
            return _error(HTTP_501_NOT_IMPLEMENTED, str(e))
        except Exception as e:
            logger.error("Error in /list-models", exc_info=True)
            return _error(
                HTTP_500_INTERNAL_SERVER_ERROR,
                "Failed to list models",
                details=redact(str(e), settings.openai_api_key),
            )
        return {"status": "ok", "models": models}

    @app.get("/healthz")
    def healthz():
        return {"ok": True}

    return app

app = create_app()
