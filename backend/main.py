# main.py
# ─────────────────────────────────────────────────────
# Entry point for the Medicare chatbot FastAPI backend.
# Creates the app, configures logging and CORS, renders
# API errors and registers routes.
# Run with: uvicorn main:app --reload
# ─────────────────────────────────────────────────────

import asyncio
import contextlib
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request  # type: ignore[reportMissingImports]
from fastapi.exceptions import RequestValidationError  # type: ignore[reportMissingImports]
from fastapi.middleware.cors import CORSMiddleware  # type: ignore[reportMissingImports]
from fastapi.responses import JSONResponse  # type: ignore[reportMissingImports]
from starlette.exceptions import HTTPException as StarletteHTTPException  # type: ignore[reportMissingImports]

from config import ENVIRONMENT, FRONTEND_URL, LOG_LEVEL, SESSION_CLEANUP_INTERVAL_SECONDS, validate_config
from chatbot.store import session_store, sweep_forever
from routes.chatbot import ApiError, router as chatbot_router
from routes.personas import router as personas_router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan ──────────────────────────────────────────
# Everything before `yield` = startup. Everything after = shutdown.
# The session sweep runs for the whole life of the server.
@asynccontextmanager
async def lifespan(app: FastAPI):
    # ── Startup ───────────────────────────────────────
    logger.info("Medicare chatbot backend starting")
    validate_config()
    logger.info("Environment: %s, allowed origin: %s", ENVIRONMENT, FRONTEND_URL)
    sweeper = asyncio.create_task(sweep_forever(session_store, SESSION_CLEANUP_INTERVAL_SECONDS))
    yield
    # ── Shutdown ──────────────────────────────────────
    sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweeper
    logger.info("Medicare chatbot backend shutting down")


app = FastAPI(
    title="Medicare Chatbot API",
    description="Answers Medicare beneficiaries' questions about drug prices, providers and plans",
    version="1.0.0",
    lifespan=lifespan,
)


# ── CORS Middleware ───────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=[FRONTEND_URL, "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


# ── Request logging ───────────────────────────────────
# Only slow requests (>1s) and errors are logged
@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.monotonic()
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(
            "%s %s - ERROR: %s - %.2fs",
            request.method, request.url.path, e, time.monotonic() - started,
        )
        raise
    elapsed = time.monotonic() - started
    if elapsed > 1.0 or response.status_code >= 400:
        logger.info(
            "%s %s - %d - %.2fs",
            request.method, request.url.path, response.status_code, elapsed,
        )
    return response


# ── Error bodies ──────────────────────────────────────
# Every error leaves as {"success": false, "error": ..., "code": ...}
def error_json(error: str, code: str, status: int, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content={"success": False, "error": error, "code": code},
        headers=headers,
    )


# Routing errors raised by Starlette itself (unknown path, wrong method)
HTTP_ERROR_CODES = {
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    return error_json(exc.detail, exc.code, exc.status_code)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    code = HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
    return error_json(str(exc.detail), code, exc.status_code, getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    fields = ", ".join(".".join(str(p) for p in err["loc"] if p != "body") for err in exc.errors())
    return error_json(f"Invalid request - check {fields}", "VALIDATION_ERROR", 400)


@app.exception_handler(Exception)
async def server_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception in %s %s: %s", request.method, request.url.path, exc, exc_info=True)
    return error_json("Internal server error", "SERVER_ERROR", 500)


# ── Routes ────────────────────────────────────────────
app.include_router(chatbot_router,  prefix="/api/chatbot",  tags=["Chatbot"])
app.include_router(personas_router, prefix="/api/personas", tags=["Personas"])


# ── Health check ──────────────────────────────────────
@app.get("/health")
def health():
    return {
        "status":          "ok",
        "service":         "Medicare Chatbot API",
        "environment":     ENVIRONMENT,
        "active_sessions": session_store.active_count(),
        "version":         "1.0.0",
    }


# ── Root ──────────────────────────────────────────────
@app.get("/")
def root():
    return {
        "message": "Medicare Chatbot API",
        "docs":    "http://localhost:8000/docs",
        "health":  "http://localhost:8000/health",
    }


# ── Start ─────────────────────────────────────────────
if __name__ == "__main__":
    import os
    import uvicorn  # type: ignore[reportMissingImports]
    port = int(os.getenv("PORT", 8000))
    uvicorn.run("main:app", host="0.0.0.0", port=port)
