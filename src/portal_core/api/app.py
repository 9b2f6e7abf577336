"""FastAPI application for the investor portal position ledger."""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session, sessionmaker

from portal_core.config.loader import load_config
from portal_core.config.schema import AppConfig
from portal_core.db.engine import create_session_factory
from portal_core.errors import (
    ConcurrencyError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from portal_core.ledger import PositionLedger, ProfileRoleResolver, RoleResolver, summarize
from portal_core.models import PositionCreate, PositionPatch, PositionStatus, Role, Visibility

logger = structlog.get_logger()

router = APIRouter(prefix="/api")


# ═══════════════════════════════════════════════════════════════
# Dependencies
# ═══════════════════════════════════════════════════════════════


def get_ledger(request: Request) -> PositionLedger:
    return request.app.state.ledger


def get_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """The caller's user id; session/token mechanics live in front of this service."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id


async def get_role(request: Request, user_id: str = Depends(get_user_id)) -> Role:
    resolver: RoleResolver = request.app.state.role_resolver
    role = resolver(user_id)
    structlog.contextvars.bind_contextvars(user_id=user_id, role=role.value)
    return role


def require_admin(role: Role = Depends(get_role)) -> Role:
    if role is not Role.ADMIN:
        raise HTTPException(status_code=403, detail="Admin role required")
    return role


# ═══════════════════════════════════════════════════════════════
# Request bodies
# ═══════════════════════════════════════════════════════════════


class UpdatePositionRequest(BaseModel):
    changes: PositionPatch
    diff_summary: Optional[str] = None
    expected_version: Optional[int] = None


class ClosePositionRequest(BaseModel):
    closing_price: Decimal
    closing_date: date
    public_note: Optional[str] = None
    expected_version: Optional[int] = None


class VisibilityRequest(BaseModel):
    visibility: Visibility
    expected_version: Optional[int] = None


class MarketPriceRequest(BaseModel):
    market_price: Decimal
    expected_version: Optional[int] = None


class ArchiveRequest(BaseModel):
    expected_version: Optional[int] = None


# ═══════════════════════════════════════════════════════════════
# Routes
# ═══════════════════════════════════════════════════════════════


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/positions")
async def list_positions(
    request: Request,
    status: Optional[PositionStatus] = None,
    sector: Optional[str] = None,
    search: Optional[str] = None,
    limit: Optional[int] = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    role: Role = Depends(get_role),
    ledger: PositionLedger = Depends(get_ledger),
):
    """Positions visible to the caller, with derived P&L."""
    if limit is None:
        limit = request.app.state.config.ledger.default_list_limit
    positions = ledger.list_enriched(
        role, status=status, sector=sector, search=search, limit=limit, offset=offset,
    )
    return {"positions": positions, "count": len(positions)}


@router.get("/positions/summary")
async def positions_summary(
    role: Role = Depends(get_role),
    ledger: PositionLedger = Depends(get_ledger),
):
    """Dashboard roll-up over the positions visible to the caller."""
    positions = ledger.list_visible(role)
    return summarize(positions, today=ledger.today())


@router.get("/positions/{position_id}")
async def get_position(
    position_id: int,
    role: Role = Depends(get_role),
    ledger: PositionLedger = Depends(get_ledger),
):
    position = ledger.get(position_id)
    if role is Role.INVESTOR and not (
        position.status is PositionStatus.LIVE and position.visibility is Visibility.MEMBERS_VIEW
    ):
        # Same answer as a missing id so hidden positions don't leak
        raise NotFoundError(position_id)
    return ledger.enriched(position)


@router.post("/positions", status_code=201)
async def create_position(
    req: PositionCreate,
    user_id: str = Depends(get_user_id),
    _: Role = Depends(require_admin),
    ledger: PositionLedger = Depends(get_ledger),
):
    return ledger.create(req, user_id)


@router.patch("/positions/{position_id}")
async def update_position(
    position_id: int,
    req: UpdatePositionRequest,
    user_id: str = Depends(get_user_id),
    _: Role = Depends(require_admin),
    ledger: PositionLedger = Depends(get_ledger),
):
    return ledger.update(
        position_id, req.changes, user_id, req.diff_summary,
        expected_version=req.expected_version,
    )


@router.post("/positions/{position_id}/close")
async def close_position(
    position_id: int,
    req: ClosePositionRequest,
    user_id: str = Depends(get_user_id),
    _: Role = Depends(require_admin),
    ledger: PositionLedger = Depends(get_ledger),
):
    return ledger.close(
        position_id, req.closing_price, req.closing_date, user_id, req.public_note,
        expected_version=req.expected_version,
    )


@router.post("/positions/{position_id}/archive")
async def archive_position(
    position_id: int,
    req: Optional[ArchiveRequest] = None,
    user_id: str = Depends(get_user_id),
    _: Role = Depends(require_admin),
    ledger: PositionLedger = Depends(get_ledger),
):
    expected = req.expected_version if req else None
    return ledger.archive(position_id, user_id, expected_version=expected)


@router.post("/positions/{position_id}/visibility")
async def set_visibility(
    position_id: int,
    req: VisibilityRequest,
    user_id: str = Depends(get_user_id),
    _: Role = Depends(require_admin),
    ledger: PositionLedger = Depends(get_ledger),
):
    return ledger.toggle_visibility(
        position_id, req.visibility, user_id, expected_version=req.expected_version,
    )


@router.post("/positions/{position_id}/market-price")
async def update_market_price(
    position_id: int,
    req: MarketPriceRequest,
    user_id: str = Depends(get_user_id),
    _: Role = Depends(require_admin),
    ledger: PositionLedger = Depends(get_ledger),
):
    return ledger.update_market_price(
        position_id, req.market_price, user_id, expected_version=req.expected_version,
    )


@router.get("/audit-log")
async def get_audit_log(
    position_id: Optional[int] = None,
    limit: Optional[int] = Query(default=None, ge=1),
    _: Role = Depends(require_admin),
    ledger: PositionLedger = Depends(get_ledger),
):
    entries = ledger.audit_trail(position_id, limit=limit)
    return {"entries": entries, "count": len(entries)}


# ═══════════════════════════════════════════════════════════════
# Error mapping
# ═══════════════════════════════════════════════════════════════


async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": "Position not found"})


async def _conflict(request: Request, exc: ConcurrencyError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


async def _persistence_error(request: Request, exc: PersistenceError) -> JSONResponse:
    logger.error("persistence_error", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content={"detail": "Storage operation failed"})


# ═══════════════════════════════════════════════════════════════
# Factory
# ═══════════════════════════════════════════════════════════════


def create_app(
    config: Optional[AppConfig] = None,
    session_factory: Optional[sessionmaker[Session]] = None,
    role_resolver: Optional[RoleResolver] = None,
) -> FastAPI:
    """Build the app with its store handle injected (or derived from config)."""
    config = config or load_config()
    if session_factory is None:
        session_factory = create_session_factory(config.database.url)
    role_resolver = role_resolver or ProfileRoleResolver(session_factory)

    app = FastAPI(
        title="Investor Portal API",
        description="Position ledger, P&L and audit trail for the investor portal",
        version="0.1.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.config = config
    app.state.role_resolver = role_resolver
    app.state.ledger = PositionLedger(
        session_factory, config.ledger, role_resolver=role_resolver,
    )

    app.add_exception_handler(ValidationError, _validation_error)
    app.add_exception_handler(NotFoundError, _not_found)
    app.add_exception_handler(ConcurrencyError, _conflict)
    app.add_exception_handler(PersistenceError, _persistence_error)

    app.include_router(router)
    logger.info("app_created", cors_origins=config.api.cors_origins)
    return app
