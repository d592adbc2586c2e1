"""
Clinic FAQ chatbot — FastAPI entry point.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from faqbot.config import settings, validate_config
from faqbot.integrations.meta_messenger import MessageSender
from faqbot.knowledge.store import KnowledgeRegistry
from faqbot.logging_config import setup_logging
from faqbot.middleware.error_handler import global_exception_handler, validation_exception_handler
from faqbot.middleware.logging_middleware import logging_middleware
from faqbot.middleware.rate_limit import limiter
from faqbot.middleware.security import security_headers
from faqbot.services.gpt_service import GPTService
from faqbot.services.monitoring import monitor
from faqbot.services.session_service import SessionStore

# ── Routes ───────────────────────────────────────────────
from faqbot.routes.chat import router as chat_router
from faqbot.routes.knowledge import router as knowledge_router
from faqbot.integrations.meta_webhook import router as webhook_router


async def _session_cleanup_loop(sessions: SessionStore, interval: int):
    while True:
        await asyncio.sleep(interval)
        sessions.cleanup_expired()


# ── Lifespan ─────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    validate_config()

    app.state.knowledge = KnowledgeRegistry.from_settings(settings)
    app.state.knowledge.reload_all()
    app.state.gpt = GPTService()
    app.state.sessions = SessionStore()
    app.state.sender = MessageSender()

    cleanup = asyncio.create_task(
        _session_cleanup_loop(app.state.sessions, settings.SESSION_CLEANUP_INTERVAL_SECONDS)
    )
    logger.info(f"Knowledge bases loaded: {', '.join(app.state.knowledge.locales())}")
    yield

    cleanup.cancel()
    await app.state.sender.aclose()
    logger.info("Shutting down")


# ── App ──────────────────────────────────────────────────
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="FAQ-first clinic chatbot for the web widget and Meta messaging",
    lifespan=lifespan,
)

# ── Rate Limiter ─────────────────────────────────────────
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)

# ── CORS ─────────────────────────────────────────────────
origins = settings.CORS_ORIGINS.split(",") if settings.CORS_ORIGINS != "*" else ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=origins != ["*"],
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# ── Custom Middleware ────────────────────────────────────
app.middleware("http")(security_headers)
app.middleware("http")(global_exception_handler)
app.middleware("http")(logging_middleware)

# ── Register Routers ────────────────────────────────────
app.include_router(chat_router)
app.include_router(knowledge_router)
app.include_router(webhook_router)


# ── Health / Status ──────────────────────────────────────
@app.get("/api/health", tags=["health"])
async def health(request: Request):
    knowledge = {
        locale: "loaded" if request.app.state.knowledge.get(locale).stats()["total_faq"] else "empty"
        for locale in request.app.state.knowledge.locales()
    }
    return {
        "status": "ok",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {
            "knowledge_base": knowledge,
            "openai": "configured" if request.app.state.gpt.is_configured else "fallback",
            "meta": "configured" if request.app.state.sender.is_configured else "disabled",
        },
    }


@app.get("/api/status", tags=["health"])
async def status():
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "metrics": monitor.snapshot(),
    }


# ── Run ──────────────────────────────────────────────────
def run():
    import uvicorn
    uvicorn.run(
        "faqbot.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info",
    )


if __name__ == "__main__":
    run()
