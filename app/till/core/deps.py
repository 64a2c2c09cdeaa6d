from typing import Callable

from fastapi import Depends, Request
from jose import JWTError
from pydantic import ValidationError

from app.till.core import scope
from app.till.core.error_catalog import AppError, ErrorCatalog
from app.till.core.security import TokenData, decode_token, oauth2_scheme
from app.till.db.session import get_db
from app.till.repos.cash_registers import SqlCashRegisterRepository
from app.till.repos.ledger import SqlInvoiceLedger
from app.till.services.assignments import AssignmentDirectory
from app.till.services.cash_sessions import SessionLifecycleManager
from app.till.services.report_access import ClosureReportAccessController


def get_optional_token_data(request: Request, token: str | None = Depends(oauth2_scheme)) -> TokenData | None:
    if not token:
        return None
    try:
        token_data = TokenData(**decode_token(token))
    except (JWTError, ValidationError, TypeError, ValueError) as exc:
        raise AppError(ErrorCatalog.INVALID_TOKEN) from exc
    request.state.user_id = token_data.sub
    return token_data


def get_current_token_data(token_data: TokenData | None = Depends(get_optional_token_data)) -> TokenData:
    if token_data is None:
        raise AppError(ErrorCatalog.AUTHENTICATION_REQUIRED)
    return token_data


def require_capability(check: Callable[[TokenData], bool], message: str):
    def dependency(token_data: TokenData = Depends(get_current_token_data)) -> TokenData:
        if not check(token_data):
            raise AppError(ErrorCatalog.PERMISSION_DENIED, details={"message": message})
        return token_data

    return dependency


require_open_permission = require_capability(scope.can_open, "not allowed to open cash registers")
require_close_permission = require_capability(scope.can_close, "not allowed to close cash registers")
require_operate_permission = require_capability(scope.can_operate, "not allowed to operate cash registers")
require_administrator = require_capability(scope.is_administrator, "administrator role required")


def get_session_manager(db=Depends(get_db)) -> SessionLifecycleManager:
    return SessionLifecycleManager(SqlCashRegisterRepository(db), SqlInvoiceLedger(db))


def get_assignment_directory(db=Depends(get_db)) -> AssignmentDirectory:
    return AssignmentDirectory(SqlCashRegisterRepository(db))


def get_report_access() -> ClosureReportAccessController:
    return ClosureReportAccessController()


__all__ = [
    "get_optional_token_data",
    "get_current_token_data",
    "require_capability",
    "require_open_permission",
    "require_close_permission",
    "require_operate_permission",
    "require_administrator",
    "get_session_manager",
    "get_assignment_directory",
    "get_report_access",
]
