from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Path, Query

from app.till.core import scope
from app.till.core.deps import get_optional_token_data, get_report_access, get_session_manager
from app.till.core.error_catalog import AppError, ErrorCatalog
from app.till.core.security import TokenData
from app.till.schemas.cash_registers import (
    ClosureReportResponse,
    DenominationResponse,
    OpeningReportResponse,
    SessionResponse,
)
from app.till.services.report_access import ClosureReportAccessController, ReportType


router = APIRouter()

SUPPORTED_FORMATS = {"json"}


def _ensure_format(format: str | None) -> None:
    if format and format.strip().lower() not in SUPPORTED_FORMATS:
        raise AppError(
            ErrorCatalog.INVALID_REPORT_FORMAT,
            details={"format": format, "supported": sorted(SUPPORTED_FORMATS)},
        )


def _authorize(
    *,
    report_type: ReportType,
    session_id: int,
    token: str | None,
    token_data: TokenData | None,
    access: ClosureReportAccessController,
) -> tuple[int, object]:
    """Returns the requester id and a check to run once the session is loaded."""
    claims = access.verify(token)
    if claims is not None and (claims.report_type != report_type or claims.session_id != session_id):
        raise AppError(
            ErrorCatalog.REPORT_TOKEN_INVALID,
            details={"report_type": report_type, "session_id": session_id},
        )
    if token_data is None and claims is None:
        raise AppError(ErrorCatalog.AUTHENTICATION_REQUIRED)
    if claims is None and not scope.can_view_reports(token_data):
        raise AppError(
            ErrorCatalog.PERMISSION_DENIED,
            details={"message": "not allowed to view cash register reports"},
        )

    requester_id = claims.requester_id if claims is not None else token_data.admin_user_id
    if claims is not None:
        cross_user = claims.scope == "admin"
    else:
        cross_user = scope.can_view_all_reports(token_data)

    def check_owner(opened_by: int, closed_by: int | None) -> None:
        if not cross_user and requester_id not in (opened_by, closed_by):
            raise AppError(
                ErrorCatalog.FORBIDDEN,
                details={"session_id": session_id, "message": "cannot view reports of another user"},
            )

    return requester_id, check_owner


def _denominations(items) -> list[DenominationResponse] | None:
    if not items:
        return None
    return [DenominationResponse.model_validate(item, from_attributes=True) for item in items]


@router.get(
    "/till/cash-registers/sessions/{session_id}/opening-report",
    response_model=OpeningReportResponse,
)
def opening_report(
    session_id: int = Path(gt=0),
    format: str | None = Query(default="json"),
    token: str | None = Query(default=None),
    token_data: TokenData | None = Depends(get_optional_token_data),
    manager=Depends(get_session_manager),
    access=Depends(get_report_access),
):
    _ensure_format(format)
    requester_id, check_owner = _authorize(
        report_type="opening",
        session_id=session_id,
        token=token,
        token_data=token_data,
        access=access,
    )
    session = manager.get_session(session_id)
    check_owner(session.admin_user_id, session.closing_user_id)
    return OpeningReportResponse(
        session=SessionResponse.from_record(session),
        requested_by_admin_id=requester_id,
        generated_at=datetime.utcnow(),
    )


@router.get(
    "/till/cash-registers/sessions/{session_id}/closure-report",
    response_model=ClosureReportResponse,
)
def closure_report(
    session_id: int = Path(gt=0),
    format: str | None = Query(default="json"),
    token: str | None = Query(default=None),
    token_data: TokenData | None = Depends(get_optional_token_data),
    manager=Depends(get_session_manager),
    access=Depends(get_report_access),
):
    _ensure_format(format)
    requester_id, check_owner = _authorize(
        report_type="closure",
        session_id=session_id,
        token=token,
        token_data=token_data,
        access=access,
    )
    session, summary = manager.closure_report(session_id)
    check_owner(summary.opened_by_admin_id, summary.closing_by_admin_id)
    return ClosureReportResponse(
        status=session.status,
        summary=summary,
        opening_denominations=_denominations(session.opening_denominations),
        closing_denominations=_denominations(session.closing_denominations),
        requested_by_admin_id=requester_id,
        generated_at=datetime.utcnow(),
    )
