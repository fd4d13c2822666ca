"""
VIKAS Shopping Assistant - Backend Layer

Entry point for the backend server.  The LLM is optional: without it
every agent answers from its keyword and catalog fallbacks, so startup
only reports the model's state and never blocks on it.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.app.llm.llm_client import ChatClient
from backend.app.routes.ai.query_route import router as ai_router
from backend.app.settings import get_settings

_settings = get_settings()

# Logging
logging.basicConfig(
    level=_settings.log_level,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)

logger = logging.getLogger(__name__)

# Same instance the orchestrator uses, so /health reflects what agents see.
_llm = ChatClient.from_settings(_settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Report LLM readiness on startup; the server starts either way."""
    logger.info("VIKAS assistant starting (model=%s).", _llm.model)
    try:
        _llm.check_ready()
    except RuntimeError as exc:
        logger.warning(
            "Starting in fallback mode; answers will use keyword rules "
            "until the model responds (rechecked every %.0fs): %s",
            _llm.recheck_seconds,
            exc,
        )
    else:
        logger.info("Model ready; LLM-backed answers enabled.")

    yield

    logger.info("VIKAS assistant stopped.")


app = FastAPI(
    title="VIKAS Shopping Assistant",
    description="AI shopping assistant for the VIKAS omnichannel storefront",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ai_router)


@app.get("/health")
async def health_check():
    """Liveness check.  ``degraded`` means the server is up but running
    on keyword fallbacks."""
    model_ready = _llm.is_available()

    return {
        "status": "healthy" if model_ready else "degraded",
        "llm_enabled": _llm.enabled,
        "ollama_connected": model_ready,
        "model": _llm.model,
    }
