"""Optional HTTP surface for the arbitration engine.

FastAPI is imported inside create_app() so the rest of the package works
without the server extra installed.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from pydantic import BaseModel, Field

from concord.engine import ArbitrationEngine
from concord.errors import LedgerWriteFailure, WeightSumInvalid
from concord.schemas.escalation import TicketStatus
from concord.schemas.sources import SourceResponse

logger = logging.getLogger(__name__)


class ArbitrationRequest(BaseModel):
    """Body of POST /api/arbitrate."""

    sources: list[SourceResponse] = Field(description="Source responses to arbitrate")
    supersedes: str | None = Field(default=None, description="Report this one corrects")


class ResolveRequest(BaseModel):
    """Body of POST /api/tickets/{ticket_id}/resolve."""

    status: TicketStatus = Field(description="New review status")
    resolved_by: str = Field(default="", description="Reviewer identifier")
    notes: str = Field(default="", description="Resolution notes")


def create_app(engine: ArbitrationEngine) -> Any:
    """Create the FastAPI application bound to one engine.

    The engine's ledger store is closed when the application shuts down.

    Raises:
        ImportError: If FastAPI is not installed.
    """
    try:
        from fastapi import FastAPI, HTTPException
        from fastapi.responses import JSONResponse
    except ImportError as exc:
        raise ImportError(
            "The HTTP server requires extra dependencies. "
            "Install with: pip install concord-arbitration[server]"
        ) from exc

    @asynccontextmanager
    async def lifespan(app):
        yield
        await engine.ledger.store.close()

    app = FastAPI(
        title="Concord",
        description="Cross-source contradiction arbitration",
        lifespan=lifespan,
    )

    @app.exception_handler(LedgerWriteFailure)
    async def _ledger_failure(request, exc):
        logger.error("Rejecting %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.exception_handler(WeightSumInvalid)
    async def _bad_weights(request, exc):
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    # ── Arbitration ──────────────────────────────────────────────

    @app.post("/api/arbitrate")
    async def arbitrate(body: ArbitrationRequest) -> dict:
        report = await engine.arbitrate(body.sources, supersedes=body.supersedes)
        return report.model_dump(mode="json")

    # ── Tickets ──────────────────────────────────────────────────

    @app.get("/api/tickets")
    async def list_tickets(status: TicketStatus | None = None) -> list[dict]:
        return [t.model_dump(mode="json") for t in engine.escalation.list(status)]

    @app.get("/api/tickets/stats")
    async def ticket_stats() -> dict:
        return engine.escalation.stats().model_dump(mode="json")

    @app.post("/api/tickets/{ticket_id}/resolve")
    async def resolve_ticket(ticket_id: str, body: ResolveRequest) -> dict:
        try:
            ticket = await engine.escalation.resolve(
                ticket_id, body.status, resolved_by=body.resolved_by, notes=body.notes
            )
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Ticket not found: {ticket_id}") from None
        except ValueError as e:
            raise HTTPException(status_code=409, detail=str(e)) from None
        return ticket.model_dump(mode="json")

    # ── Ledger ───────────────────────────────────────────────────

    @app.get("/api/ledger/verify")
    async def verify_ledger() -> dict:
        result = await engine.ledger.verify_chain()
        return result.model_dump(mode="json")

    @app.get("/api/ledger/stats")
    async def ledger_stats() -> dict:
        stats = await engine.ledger.stats()
        return stats.model_dump(mode="json")

    return app
