"""
FastAPI application exposing the ingestion and reconciliation core.

The caller is identified by the X-User-Id header; authentication itself is
the job of whatever sits in front of this service. State lives in an
in-memory store.
"""

import logging
import sys
from contextlib import asynccontextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

import structlog
from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from . import __version__
from .categorization import CategoryMatcher
from .config import get_settings
from .ingestion import LayoutTableParser, TextItem, get_template
from .models import AuditAction, BalanceCandidate, Transaction
from .reconciliation import BalanceConsolidationService, TransferLinkService
from .storage import (
    AlreadyLinkedError,
    InMemoryStore,
    InvalidLinkError,
    NotFoundError,
)
from .utils.audit_logger import AuditLogger
from .utils.money import decimal_to_cents

logger = structlog.get_logger()
settings = get_settings()


def setup_logging():
    """Configure logging to console (and file when enabled)."""
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.log_to_file:
        settings.log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(settings.log_dir / "app.log", encoding="utf-8"))

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.is_production
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    formatter = structlog.stdlib.ProcessorFormatter(processor=renderer)
    for handler in handlers:
        handler.setFormatter(formatter)

    # Configure standard logging
    root = logging.getLogger()
    root.handlers = handlers
    root.setLevel(settings.app_log_level.upper())

    # Configure structlog to use standard logging
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


# In-memory state
store = InMemoryStore()
audit = AuditLogger(session_id="api")
balance_service = BalanceConsolidationService(store, audit=audit)
transfer_service = TransferLinkService(store, audit=audit)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    setup_logging()
    logger.info("Starting statement reconciliation API", env=settings.app_env)
    yield
    if settings.log_to_file:
        audit.export_to_file()
    logger.info("Shutting down statement reconciliation API")


app = FastAPI(
    title="Statement Reconciliation",
    description="Statement ingestion, balance consolidation and transfer linking",
    version=__version__,
    lifespan=lifespan,
)


# Error mapping
@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(AlreadyLinkedError)
async def already_linked_handler(request: Request, exc: AlreadyLinkedError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(InvalidLinkError)
async def invalid_link_handler(request: Request, exc: InvalidLinkError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


def current_user(x_user_id: Optional[str] = Header(default=None)) -> str:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(401, "Missing X-User-Id header")
    return x_user_id.strip()


# Request/Response models
class TextItemIn(BaseModel):
    text: str
    x: float
    y: float
    width: float = 0.0
    height: float = 0.0


class ParsePageRequest(BaseModel):
    items: List[TextItemIn]
    account_id: Optional[str] = None
    template: Optional[str] = None


class ParsePageResponse(BaseModel):
    page_number: int
    skipped: bool
    skip_reason: Optional[str]
    transactions: List[Dict[str, Any]]


class TransactionIn(BaseModel):
    account_id: Optional[str] = None
    statement_id: Optional[str] = None
    transaction_date: Optional[date] = None
    description: str = ""
    amount: Decimal = Field(max_digits=26)
    category: str = "Uncategorized"


class BalanceCandidateRequest(BaseModel):
    page_number: int = Field(ge=1)
    data: Dict[str, Any] = Field(default_factory=dict)


class LinkRequest(BaseModel):
    transaction_1_id: str
    transaction_2_id: str
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    notes: Optional[str] = None


class UnlinkRequest(BaseModel):
    transaction_id: str


class CategoryMatchRequest(BaseModel):
    suggested: str
    user_categories: List[str]


# API Endpoints
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "timestamp": datetime.utcnow().isoformat()}


@app.post(
    "/api/statements/{statement_id}/pages/{page_number}/parse",
    response_model=ParsePageResponse,
)
async def parse_page(
    statement_id: str,
    page_number: int,
    request: ParsePageRequest,
    user_id: str = Depends(current_user),
):
    """Parse one page's text items and store the resulting transactions."""
    try:
        template = get_template(request.template or settings.default_template)
    except KeyError as e:
        raise HTTPException(400, str(e.args[0]))

    items = [TextItem(**item.model_dump()) for item in request.items]
    result = LayoutTableParser(template).parse_page_result(items, page_number)

    store.register_statement(user_id, statement_id)
    for txn in result.transactions:
        txn.statement_id = statement_id
        txn.account_id = request.account_id
    stored = store.add_transactions(user_id, result.transactions)

    if result.skipped:
        audit.record(
            AuditAction.PAGE_SKIPPED,
            f"Page {page_number} skipped: {result.skip_reason}",
            user_id=user_id,
            statement_id=statement_id,
        )
    else:
        audit.record(
            AuditAction.PAGE_PARSED,
            f"Page {page_number} parsed",
            user_id=user_id,
            transaction_ids=[t.id for t in stored],
            statement_id=statement_id,
        )

    return ParsePageResponse(
        page_number=page_number,
        skipped=result.skipped,
        skip_reason=result.skip_reason,
        transactions=[t.to_dict() for t in stored],
    )


@app.post("/api/statements/{statement_id}/balances")
async def record_balance_candidate(
    statement_id: str,
    request: BalanceCandidateRequest,
    user_id: str = Depends(current_user),
):
    """Upsert one page's balance reading from the extraction step."""
    candidate = BalanceCandidate.from_extraction(request.page_number, request.data)
    inserted = balance_service.record_candidate(user_id, statement_id, candidate)
    return {"inserted": inserted, "candidate": candidate.to_dict()}


@app.post("/api/statements/{statement_id}/finalize-balance")
async def finalize_balance(statement_id: str, user_id: str = Depends(current_user)):
    """Consolidate the statement's current balance candidates."""
    return balance_service.finalize(user_id, statement_id).to_dict()


@app.post("/api/transactions")
async def add_transactions(
    transactions: List[TransactionIn],
    user_id: str = Depends(current_user),
):
    """Add manually entered transactions."""
    stored = store.add_transactions(user_id, [
        Transaction(
            account_id=t.account_id,
            statement_id=t.statement_id,
            transaction_date=t.transaction_date,
            description=t.description,
            amount_cents=decimal_to_cents(t.amount),
            category=t.category,
        )
        for t in transactions
    ])
    return {"transactions": [t.to_dict() for t in stored]}


@app.get("/api/transactions")
async def list_transactions(user_id: str = Depends(current_user)):
    return {"transactions": [t.to_dict() for t in store.list_transactions(user_id)]}


@app.post("/api/transfers/link")
async def link_transfer(request: LinkRequest, user_id: str = Depends(current_user)):
    """Confirm two transactions as one transfer."""
    pair_id = transfer_service.link_transfer(
        user_id,
        request.transaction_1_id,
        request.transaction_2_id,
        confidence=request.confidence,
        notes=request.notes,
    )
    return {"success": True, "transfer_pair_id": pair_id}


@app.post("/api/transfers/unlink")
async def unlink_transfer(request: UnlinkRequest, user_id: str = Depends(current_user)):
    transfer_service.unlink_transfer(user_id, request.transaction_id)
    return {"success": True}


@app.get("/api/transfers/detect")
async def detect_transfers(
    date_tolerance_days: Optional[int] = None,
    amount_tolerance_percent: Optional[float] = None,
    user_id: str = Depends(current_user),
):
    """Batch-scan the caller's transactions for transfer pairs. Read-only."""
    suggestions = transfer_service.detect_transfers(
        user_id,
        date_tolerance_days=date_tolerance_days,
        amount_tolerance_percent=amount_tolerance_percent,
    )
    return {"suggestions": [s.to_dict() for s in suggestions]}


@app.get("/api/transfers/suggest/{transaction_id}")
async def suggest_transfer_for(
    transaction_id: str,
    date_tolerance_days: Optional[int] = None,
    amount_tolerance_percent: Optional[float] = None,
    user_id: str = Depends(current_user),
):
    """Top counterpart suggestions for one transaction. Read-only."""
    suggestions = transfer_service.suggest_transfer_for(
        user_id,
        transaction_id,
        date_tolerance_days=date_tolerance_days,
        amount_tolerance_percent=amount_tolerance_percent,
    )
    return {"suggestions": [s.to_dict() for s in suggestions]}


@app.get("/api/transfers/links")
async def list_links(user_id: str = Depends(current_user)):
    return {"links": [link.to_dict() for link in transfer_service.list_links(user_id)]}


@app.post("/api/categories/match")
async def match_category(request: CategoryMatchRequest):
    matcher = CategoryMatcher(request.user_categories, threshold=settings.category_match_threshold)
    result = matcher.match_with_confidence(request.suggested)
    return {
        "category": matcher.match(request.suggested),
        "match": result.to_dict(),
        "suggestions": matcher.suggestions(request.suggested),
    }


@app.get("/api/audit/summary")
async def audit_summary():
    return audit.summary()
