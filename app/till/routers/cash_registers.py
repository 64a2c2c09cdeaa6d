from __future__ import annotations

from fastapi import APIRouter, Depends, Path, Query, Request

from app.till.core import scope
from app.till.core.deps import (
    get_assignment_directory,
    get_report_access,
    get_session_manager,
    require_administrator,
    require_close_permission,
    require_open_permission,
    require_operate_permission,
)
from app.till.core.error_catalog import AppError, ErrorCatalog
from app.till.schemas.cash_registers import (
    ActiveSessionResponse,
    AssignmentActionRequest,
    AssignmentActionResponse,
    AssignmentGroupResponse,
    AssignmentListResponse,
    CashRegisterBindingResponse,
    ClosurePreviewResponse,
    CloseSessionRequest,
    CloseSessionResponse,
    OpenSessionRequest,
    OpenSessionResponse,
    SessionListResponse,
    SessionResponse,
)
from app.till.services.records import AssignmentGroup


router = APIRouter()


def _group_response(group: AssignmentGroup) -> AssignmentGroupResponse:
    return AssignmentGroupResponse(
        admin_user_id=group.admin_user_id,
        assignments=[CashRegisterBindingResponse.from_binding(item) for item in group.assignments],
        default_cash_register_id=group.default_cash_register_id,
    )


@router.post(
    "/till/cash-registers/sessions/open",
    status_code=201,
    response_model=OpenSessionResponse,
)
def open_session(
    request: Request,
    payload: OpenSessionRequest,
    token_data=Depends(require_open_permission),
    manager=Depends(get_session_manager),
    access=Depends(get_report_access),
):
    requester_id = token_data.admin_user_id
    operator_id = payload.operator_admin_user_id or requester_id
    on_behalf = operator_id != requester_id
    if on_behalf and not scope.is_administrator(token_data):
        raise AppError(
            ErrorCatalog.FORBIDDEN,
            details={"message": "only administrators may open a register for another user"},
        )

    record = manager.open(
        operator_id,
        payload.cash_register_code,
        payload.opening_amount,
        opening_notes=payload.opening_notes,
        opening_denominations=payload.denominations(),
        allow_unassigned=on_behalf,
        acting_admin_user_id=requester_id,
    )
    token = access.issue(
        "opening",
        record.id,
        requester_id,
        access.scope_for(requester_id, record.admin_user_id),
    )
    return OpenSessionResponse(
        session=SessionResponse.from_record(record),
        report_url=access.report_url(str(request.base_url), "opening", record.id, token),
    )


@router.post("/till/cash-registers/sessions/close", response_model=CloseSessionResponse)
def close_session(
    request: Request,
    payload: CloseSessionRequest,
    token_data=Depends(require_close_permission),
    manager=Depends(get_session_manager),
    access=Depends(get_report_access),
):
    requester_id = token_data.admin_user_id
    result = manager.close(
        requester_id,
        payments=payload.reported_payments(),
        session_id=payload.session_id,
        closing_amount=payload.closing_amount,
        closing_notes=payload.closing_notes,
        closing_denominations=payload.denominations(),
        allow_different_user=scope.is_administrator(token_data),
    )
    token = access.issue(
        "closure",
        result.session_id,
        requester_id,
        access.scope_for(requester_id, result.summary.opened_by_admin_id),
    )
    return CloseSessionResponse(
        summary=result.summary,
        report_url=access.report_url(str(request.base_url), "closure", result.session_id, token),
        already_closed=result.already_closed,
    )


@router.get("/till/cash-registers/sessions/active", response_model=ActiveSessionResponse)
def get_active_session(
    token_data=Depends(require_operate_permission),
    manager=Depends(get_session_manager),
):
    admin_user_id = token_data.admin_user_id
    active = manager.get_active_session(admin_user_id)
    group = manager.assignments.list_for_admin(admin_user_id)
    return ActiveSessionResponse(
        active_session=SessionResponse.from_record(active) if active else None,
        cash_registers=[CashRegisterBindingResponse.from_binding(item) for item in group.assignments],
        default_cash_register_id=group.default_cash_register_id,
    )


@router.get("/till/cash-registers/sessions", response_model=SessionListResponse)
def list_sessions(
    limit: int | None = Query(default=None),
    admin_user_id: int | None = Query(default=None, gt=0),
    token_data=Depends(require_operate_permission),
    manager=Depends(get_session_manager),
):
    target_id = admin_user_id or token_data.admin_user_id
    if target_id != token_data.admin_user_id and not scope.is_administrator(token_data):
        raise AppError(ErrorCatalog.FORBIDDEN, details={"message": "cannot list sessions of another user"})
    rows = manager.list_recent_sessions(target_id, limit)
    return SessionListResponse(rows=[SessionResponse.from_record(row) for row in rows], total=len(rows))


@router.get("/till/cash-registers/open-sessions", response_model=SessionListResponse)
def list_open_sessions(
    token_data=Depends(require_administrator),
    manager=Depends(get_session_manager),
):
    rows = manager.list_active_sessions()
    return SessionListResponse(rows=[SessionResponse.from_record(row) for row in rows], total=len(rows))


@router.get(
    "/till/cash-registers/sessions/{session_id}/closure-preview",
    response_model=ClosurePreviewResponse,
)
def closure_preview(
    session_id: int = Path(gt=0),
    token_data=Depends(require_operate_permission),
    manager=Depends(get_session_manager),
):
    session, summary = manager.closure_report(session_id)
    return ClosurePreviewResponse(status=session.status, summary=summary)


@router.get("/till/cash-registers/assignments", response_model=AssignmentListResponse)
def list_assignments(
    admin_user_id: list[int] | None = Query(default=None),
    token_data=Depends(require_administrator),
    directory=Depends(get_assignment_directory),
):
    groups = directory.list_groups(admin_user_id)
    return AssignmentListResponse(items=[_group_response(group) for group in groups])


@router.post("/till/cash-registers/assignments", response_model=AssignmentActionResponse)
def update_assignment(
    payload: AssignmentActionRequest,
    token_data=Depends(require_administrator),
    directory=Depends(get_assignment_directory),
):
    if payload.action == "assign":
        directory.assign(payload.admin_user_id, payload.cash_register_code, make_default=bool(payload.make_default))
    elif payload.action == "unassign":
        directory.unassign(payload.admin_user_id, payload.cash_register_code)
    else:
        directory.set_default(payload.admin_user_id, payload.cash_register_code)
    return AssignmentActionResponse(admin_user_id=payload.admin_user_id, action=payload.action)
