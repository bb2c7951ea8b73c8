"""
veABX Holders - On-chain holder leaderboard API
FastAPI backend that walks every veABX lock, attributes vaulted locks to
their depositors and serves a ranked, searchable leaderboard
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.holders_router import router as holders_router
from api.metrics_router import router as metrics_router
from config.holders import LeaderboardSettings
from data_sources.onchain import ChainReader
from services.holders_cache import build_holders_service
from services.wallet_display import WalletDisplayResolver

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("veABX")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # One reader, one cache, one resolver per process
    settings = LeaderboardSettings.from_env()
    reader = ChainReader(ve_address=settings.ve_address)

    app.state.settings = settings
    app.state.holders_cache = build_holders_service(settings, reader)
    app.state.wallet_resolver = WalletDisplayResolver(foundation_addresses=settings.foundation_addresses)
    logger.info(
        f"Holders service ready (batch={settings.batch_size}, "
        f"fan-out={settings.window_concurrency}, ttl={settings.cache_ttl_seconds:.0f}s)"
    )

    yield

    await app.state.wallet_resolver.close()


app = FastAPI(
    title="veABX Holders API",
    description="On-chain veABX holder leaderboard with vault attribution",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(holders_router)
app.include_router(metrics_router)

# CORS - Hardened for production (update origins as needed)
ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "https://aborean.finance",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS if os.environ.get("PRODUCTION") else ["*"],
    allow_credentials=True,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["Content-Type", "X-Request-ID"],
)


@app.get("/health")
async def health():
    return {"status": "ok"}


# ============================================
# RUN
# ============================================

if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
