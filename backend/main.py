"""
Relay - live chat relay between the eShop assistant bot and human agents
FastAPI Backend with WebSockets
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import DEFAULT_JWT_SECRET, runtime_config
from logging_config import setup_logging
from routers import chat
from services.llm_client import close_llm_client
from services.redis_client import close_redis, get_redis
from services.sentiment_client import close_sentiment_client

setup_logging()
logger = logging.getLogger(__name__)


def check_config() -> None:
    """Refuse to start with settings that are unsafe for the current environment."""
    if runtime_config.is_production and runtime_config.jwt_secret == DEFAULT_JWT_SECRET:
        raise RuntimeError("RELAY_JWT_SECRET must be set in production")
    if not runtime_config.llm_enabled:
        logger.warning("LLM disabled - bot replies come from the keyword fallback")
    if not runtime_config.sentiment_url:
        logger.info("No sentiment oracle configured - emotion checks use critical phrases and repeat detection only")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown events"""
    # Startup
    check_config()

    redis = await get_redis()
    logger.info(f"Rate limiting backend: {'redis' if redis.available else 'none (fallback)'}")

    chat.get_chat_router()
    logger.info(f"Relay started ({runtime_config.relay_env})")

    yield

    # Shutdown
    await chat.get_chat_router().shutdown()

    await close_redis()
    logger.info("Redis connection closed")

    await close_llm_client()
    await close_sentiment_client()

    logger.info("Relay signing off")


app = FastAPI(
    title="Relay",
    description="Live chat routing and human handoff for eShop",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=runtime_config.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Chat router is mounted WITHOUT /api prefix so WebSocket is at /ws/chat
app.include_router(chat.router, tags=["chat"])


@app.get("/api/health")
async def health():
    """Health check - pings dependencies and reports chat load."""
    checks = {}

    chat_router = chat.get_chat_router()
    llm = chat_router.responder.llm_client
    if llm is None:
        checks["llm"] = "disabled"
    else:
        checks["llm"] = "ok" if await llm.is_healthy() else "down"

    redis = await get_redis()
    redis_health = await redis.health_check()
    checks["redis"] = "ok" if redis_health.get("status") in ("connected", "fallback") else "down"

    all_ok = all(v in ("ok", "disabled") for v in checks.values())
    return {
        "status": "healthy" if all_ok else "degraded",
        "service": "relay",
        "checks": checks,
        "chat": {
            **chat_router.hub.stats(),
            **chat_router.store.stats(),
            "pending_tasks": chat_router.pending_tasks,
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000, ws_max_size=1048576)  # 1MB WS frame limit
