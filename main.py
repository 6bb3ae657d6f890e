"""
Totem Relay: FastAPI Application
==================================
The 3D scene talks directly to us. We forward each visitor message to
the completion API in the totem's voice, pick the animation clip from
the reply's [state: ...] tag, log the exchange, and hand both back.
"""

import logging
import os
import re
import sys
import time
from contextlib import asynccontextmanager

from dotenv import load_dotenv
load_dotenv()  # Must run BEFORE RelayConfig.from_env()

from fastapi import FastAPI, Header, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from models import ChatRequest, ChatResponse, InteractionRecord
from services.completion_ops import generate_reply
from services.config import RelayConfig
from services.exceptions import CompletionServiceError, InteractionLogNotFoundError
from services.interaction_log import DEFAULT_LIMIT, InteractionLog
from services.state_normalizer import normalize_state

# ── Logging setup ──────────────────────────────────────────────────────
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%H:%M:%S",
    stream=sys.stdout,
)

# Quiet noisy third-party loggers
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("openai").setLevel(logging.WARNING)

logger = logging.getLogger("totem")

EXPORT_FILENAME = "messages.jsonl"


# ── App lifespan (startup / shutdown) ──────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    config: RelayConfig = app.state.config
    logger.info(
        "Totem relay starting: port=%d, model=%s, mock=%s, admin_export=%s, log_file=%s",
        config.port, config.openai_model, config.mock_mode,
        "on" if config.admin_key else "off", config.log_file,
    )
    yield


app = FastAPI(
    title="Totem Relay",
    description="Chat relay between the totem scene and the completion API",
    version="0.1.0",
    lifespan=lifespan,
)

app.state.config = RelayConfig.from_env()
app.state.interaction_log = InteractionLog(app.state.config.log_file)

# CORS: the scene is served from another origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    if not request.url.path.startswith("/api/"):
        return await call_next(request)
    t0 = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "%s %s → %d (%.0f ms)",
        request.method, request.url.path, response.status_code,
        (time.perf_counter() - t0) * 1000,
    )
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    # Scene clients expect 400, not FastAPI's default 422
    logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc.errors()[:1])
    return JSONResponse(status_code=400, content={"detail": "message is required (string)"})


# ── Health ─────────────────────────────────────────────────────────────

@app.get("/health")
async def health():
    """Quick connectivity check."""
    return {"status": "ok", "service": "totem-relay"}


# ── Chat ───────────────────────────────────────────────────────────────

@app.post("/api/chat", response_model=ChatResponse)
async def chat(req: ChatRequest, request: Request) -> ChatResponse:
    """
    Message in → completion → state tag → log → reply out.

    A record is written only after the completion call succeeds. A log
    write failure does not fail the request.
    """
    config: RelayConfig = request.app.state.config
    interaction_log: InteractionLog = request.app.state.interaction_log

    try:
        reply_text = await generate_reply(req.message, config)
    except CompletionServiceError as e:
        logger.error("Completion FAILED: %s", e)
        raise HTTPException(status_code=500, detail="server error")
    except Exception:
        logger.exception("API /api/chat error")
        raise HTTPException(status_code=500, detail="server error")

    state = normalize_state(reply_text)

    interaction_log.append(
        InteractionRecord(
            timestamp=int(time.time() * 1000),
            playerId=req.playerId,
            message=req.message,
            reply=reply_text,
            state=state,
        )
    )

    return ChatResponse(reply=reply_text, state=state)


# ── Log readers ────────────────────────────────────────────────────────

_LEADING_INT = re.compile(r"\s*[+-]?\d+")


def _parse_limit(raw: str | None) -> int:
    """
    Query-string limit → int, reading leading digits only ("5abc" → 5, "3.7" → 3).

    Missing or blank means the default. No leading digits means 0, so
    nothing is returned.
    """
    if raw is None or not raw.strip():
        return DEFAULT_LIMIT
    match = _LEADING_INT.match(raw)
    if match is None:
        return 0
    return int(match.group(0))


@app.get("/api/recent", response_model=list[InteractionRecord])
async def recent(request: Request, limit: str | None = None, player: str | None = None):
    """Recent exchanges for the scene's history panel, oldest first."""
    interaction_log: InteractionLog = request.app.state.interaction_log
    player_filter = (player or "").strip() or None
    rows = interaction_log.read_recent(limit=_parse_limit(limit), player=player_filter)
    # read_recent is newest-first; the scene renders top-down
    return list(reversed(rows))


@app.get("/api/logs")
async def download_logs(request: Request, x_admin_key: str | None = Header(default=None)):
    """Admin-only raw JSONL download for archiving."""
    config: RelayConfig = request.app.state.config
    interaction_log: InteractionLog = request.app.state.interaction_log

    if not config.admin_key or x_admin_key != config.admin_key:
        raise HTTPException(status_code=401, detail="unauthorized")

    try:
        chunks = interaction_log.iter_raw()
    except InteractionLogNotFoundError:
        raise HTTPException(status_code=404, detail="no log yet")

    return StreamingResponse(
        chunks,
        media_type="application/x-ndjson",
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
    )


# ── Run with uvicorn ───────────────────────────────────────────────────
if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=app.state.config.port)
