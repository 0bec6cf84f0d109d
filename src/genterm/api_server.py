"""
FastAPI backend for the GenTerm terminal.

Exposes POST /api/session, POST /api/chat and GET /metrics.

Run with:
    genterm-server
or:
    uvicorn genterm.api_server:app --host 0.0.0.0 --port 8080
"""
from __future__ import annotations

import sys
import time
from contextlib import asynccontextmanager
from typing import Any, Literal

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from .config import CORS_ALLOW_ORIGINS, HOST, LLM_MODEL, PORT, SERVER_RELOAD, check_server_config, console
from .llm_client import LLMClient
from .metrics import metrics_collector
from .observability import get_logger
from .session_manager import SessionManager

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Pydantic request / response models
# ---------------------------------------------------------------------------

class ImageURL(BaseModel):
    url: str


class MessageContentItem(BaseModel):
    type: Literal["text", "image_url"]
    text: str | None = None
    image_url: ImageURL | None = None

    def to_payload(self) -> dict[str, Any]:
        if self.type == "image_url":
            return {"type": "image_url", "image_url": {"url": self.image_url.url if self.image_url else ""}}
        return {"type": "text", "text": self.text or ""}


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(..., alias="sessionId")
    query: str
    context: list[str] = Field(default_factory=list)
    message_content: list[MessageContentItem] = Field(default_factory=list, alias="messageContent")


class ChatResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(..., alias="sessionId")
    response: str


class SessionRequest(BaseModel):
    action: str
    id: str | None = None


# ---------------------------------------------------------------------------
# Application state populated at startup
# ---------------------------------------------------------------------------

_state: dict[str, Any] = {}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Creates the session store and LLM client once; pre-seeded entries are kept."""
    _state.setdefault("sessions", SessionManager())
    _state.setdefault("llm", LLMClient())
    logger.info("server_started", model=LLM_MODEL)

    yield  # Application is running.

    _state.clear()


# ---------------------------------------------------------------------------
# FastAPI application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="GenTerm API",
    description="Session and chat backend for the GenTerm terminal",
    version="1.0.0",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.exception_handler(RequestValidationError)
async def invalid_request_handler(_request: Request, exc: RequestValidationError):
    logger.warning("invalid_request", errors=len(exc.errors()))
    return JSONResponse(status_code=400, content={"detail": "Invalid request"})


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@app.post("/api/session")
async def session_endpoint(request: SessionRequest):
    sessions: SessionManager = _state["sessions"]

    if request.action == "create":
        session = sessions.new_session()
        return {"id": session.id}

    if request.action == "get":
        session = sessions.get_session(request.id)
        if session is None:
            return JSONResponse(status_code=404, content={"error": "Session not found"})
        return {"id": session.id, "messages": session.to_dict()["messages"]}

    raise HTTPException(status_code=400, detail="Invalid action")


@app.post("/api/chat", response_model=ChatResponse, response_model_by_alias=True)
async def chat_endpoint(request: ChatRequest):
    sessions: SessionManager = _state["sessions"]
    llm: LLMClient = _state["llm"]

    session = sessions.get_session(request.session_id)
    if session is None:
        raise HTTPException(status_code=400, detail="Invalid session")

    history = session.messages
    is_image = bool(request.message_content)
    route = "image" if is_image else "text"
    start = time.perf_counter()

    try:
        if is_image:
            sessions.add_message(session.id, "user", f"{request.query} [with image]")
            content = [item.to_payload() for item in request.message_content]
            response = await llm.generate_multimodal_with_history(history, content, request.context)
        else:
            sessions.add_message(session.id, "user", request.query)
            response = await llm.generate_with_history(history, request.query, request.context)
    except Exception as exc:
        latency_ms = (time.perf_counter() - start) * 1000.0
        metrics_collector.record_request(latency_ms, success=False, route=route, context_items=len(request.context))
        logger.error("chat_generation_failed", session_id=session.id, route=route, error=str(exc))
        raise HTTPException(status_code=500, detail=f"Error generating response: {exc}") from exc

    sessions.add_message(session.id, "assistant", response)
    latency_ms = (time.perf_counter() - start) * 1000.0
    metrics_collector.record_request(latency_ms, success=True, route=route, context_items=len(request.context))
    logger.info("chat_completed", session_id=session.id, route=route, latency_ms=round(latency_ms, 2))

    return ChatResponse(session_id=session.id, response=response)


@app.get("/metrics")
async def metrics_endpoint():
    """Return aggregated service metrics."""
    return metrics_collector.get_summary()


def run():
    """Console entry point: validates configuration, then serves with uvicorn."""
    import uvicorn

    ok, errors = check_server_config()
    if not ok:
        for error in errors:
            console.print(f"[bold red]{error}[/bold red]")
        sys.exit(1)
    console.print(f"[green]Starting server on {HOST}:{PORT}[/green]")
    console.print(f"[green]MODEL: {LLM_MODEL}[/green]")
    uvicorn.run("genterm.api_server:app", host=HOST, port=PORT, reload=SERVER_RELOAD)


if __name__ == "__main__":
    run()
