"""Project Devi — FastAPI server answering clinical questions from live web sources.

The server is stateless: every question is searched, summarised and
rendered within its own request.  History and exports live in the
browser; the optional webhook receives a copy of each answer.

Endpoints
---------
- ``GET  /health``            — health check and provider configuration
- ``POST /api/answer``        — answer a question (``{question, mode?}``)
- ``POST /api/feedback``      — forward thumbs-up/down feedback to the webhook
- ``GET  /api/search-check``  — search provider connectivity probe
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Literal

import uvicorn
from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from devi.config import load_config
from devi.feedback import FeedbackClient, answer_log_payload, feedback_payload
from devi.models import AnswerResult
from devi.pipeline import AnswerPipeline, InvalidQuestionError, create_pipeline

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
)
for _name in ("httpx", "openai"):
    logging.getLogger(_name).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Global state (initialised in lifespan)
# ---------------------------------------------------------------------------

config = load_config()
pipeline: AnswerPipeline | None = None
feedback_client: FeedbackClient | None = None


# ---------------------------------------------------------------------------
# FastAPI lifespan — wire providers on startup
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the pipeline and webhook client on startup."""
    global pipeline, feedback_client

    logger.info("[DEVI] Server starting up...")
    pipeline = create_pipeline(config)
    feedback_client = FeedbackClient(config)
    logger.info("[DEVI] Pipeline ready (webhook=%s).", feedback_client.configured)

    yield

    logger.info("[DEVI] Server shutting down...")


app = FastAPI(
    title="Project Devi",
    description="Search-grounded, citation-annotated answers for radiology, emergency and ortho questions",
    version="0.1.0",
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# Request / Response models
# ---------------------------------------------------------------------------

class AnswerRequest(BaseModel):
    """Request model for /api/answer."""
    question: str | None = None
    mode: str | None = None


class SourceOut(BaseModel):
    id: int
    title: str
    url: str


class ConfidenceOut(BaseModel):
    band: str
    pct: int


class AnswerResponse(BaseModel):
    answer: str
    sources: list[SourceOut]
    mode: str
    confidence: ConfidenceOut
    follow_ups: list[str] = []


class ErrorResponse(BaseModel):
    error: str


class FeedbackRequest(BaseModel):
    """Request model for /api/feedback."""
    question: str = Field(min_length=1)
    rating: Literal["up", "down"]
    mode: str | None = None
    comment: str | None = None
    answer: str = ""
    sources: list[SourceOut] = []
    confidence: ConfidenceOut | None = None


class FeedbackAccepted(BaseModel):
    status: Literal["queued", "disabled"]


class HealthResponse(BaseModel):
    status: str
    search_configured: bool
    generation_configured: bool


def _to_response(result: AnswerResult) -> AnswerResponse:
    return AnswerResponse(
        answer=result.answer,
        sources=[SourceOut(**s) for s in result.sources],
        mode=result.mode.value,
        confidence=ConfidenceOut(band=result.confidence.band, pct=result.confidence.pct),
        follow_ups=result.follow_ups,
    )


# ---------------------------------------------------------------------------
# Error handling
# ---------------------------------------------------------------------------

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Report malformed bodies as 400 ``{"error": ...}`` rather than FastAPI's 422."""
    logger.info("[DEVI] Rejected malformed request to %s", request.url.path)
    return JSONResponse(status_code=400, content={"error": "Invalid request body."})


# ---------------------------------------------------------------------------
# API Endpoints
# ---------------------------------------------------------------------------

@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        search_configured=config.search_configured,
        generation_configured=config.generation_configured,
    )


@app.post(
    "/api/answer",
    response_model=AnswerResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def create_answer(request: AnswerRequest, background_tasks: BackgroundTasks):
    """Answer one question.

    Returns 400 for a missing/too-short question.  "No sources" is a
    normal 200 answer; unexpected failures are a generic 500.
    """
    try:
        result = await pipeline.answer(request.question, request.mode)
    except InvalidQuestionError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    except Exception:
        logger.exception("[DEVI] Error answering question")
        return JSONResponse(status_code=500, content={"error": "Server error."})

    if feedback_client is not None and feedback_client.configured:
        background_tasks.add_task(
            feedback_client.deliver,
            answer_log_payload(request.question.strip(), result),
        )

    return _to_response(result)


@app.post("/api/feedback", status_code=202, response_model=FeedbackAccepted)
async def submit_feedback(request: FeedbackRequest, background_tasks: BackgroundTasks):
    """Queue manual feedback for the webhook; a no-op when none is configured."""
    if feedback_client is None or not feedback_client.configured:
        return FeedbackAccepted(status="disabled")

    background_tasks.add_task(feedback_client.deliver, feedback_payload(request.model_dump()))
    logger.info("[DEVI] Feedback queued (rating=%s)", request.rating)
    return FeedbackAccepted(status="queued")


@app.get("/api/search-check")
async def search_check():
    """Probe the search provider and report what came back (always 200)."""
    try:
        return await pipeline.search_client.probe()
    except Exception as e:
        logger.exception("[DEVI] Search probe crashed")
        return {"ok": False, "error": type(e).__name__}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main():
    """Launch the Project Devi server."""
    port = int(os.environ.get("PORT", "8000"))

    logger.info("[DEVI] Starting server on port %d", port)
    logger.info("[DEVI] Health:  http://localhost:%d/health", port)
    logger.info("[DEVI] Answer:  http://localhost:%d/api/answer", port)

    uvicorn.run(app, host="0.0.0.0", port=port, log_level="info")


if __name__ == "__main__":
    main()
