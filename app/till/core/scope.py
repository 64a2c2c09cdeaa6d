from app.till.core.security import TokenData

CASHIER_ROLES = {"FACTURADOR", "ADMINISTRADOR"}
ADMINISTRATOR_ROLE = "ADMINISTRADOR"
ADMINISTRATOR_PERMISSIONS = {"admin.users.manage", "menu.roles.view"}

OPEN_PERMISSIONS = {"cash.register.open"}
CLOSE_PERMISSIONS = {"cash.register.close", "cash.report.view"}
REPORT_VIEW_PERMISSIONS = {"cash.report.view"}
OPERATE_PERMISSIONS = OPEN_PERMISSIONS | CLOSE_PERMISSIONS


def _roles(token_data: TokenData) -> set[str]:
    return {role.strip().upper() for role in token_data.roles}


def _has_any(token_data: TokenData, permissions: set[str]) -> bool:
    return any(permission in permissions for permission in token_data.permissions)


def is_cashier(token_data: TokenData) -> bool:
    return bool(_roles(token_data) & CASHIER_ROLES)


def is_administrator(token_data: TokenData) -> bool:
    return ADMINISTRATOR_ROLE in _roles(token_data) or _has_any(token_data, ADMINISTRATOR_PERMISSIONS)


def can_open(token_data: TokenData) -> bool:
    return is_cashier(token_data) or _has_any(token_data, OPEN_PERMISSIONS)


def can_close(token_data: TokenData) -> bool:
    return is_cashier(token_data) or _has_any(token_data, CLOSE_PERMISSIONS)


def can_operate(token_data: TokenData) -> bool:
    return is_cashier(token_data) or _has_any(token_data, OPERATE_PERMISSIONS)


def can_view_reports(token_data: TokenData) -> bool:
    return is_cashier(token_data) or _has_any(token_data, REPORT_VIEW_PERMISSIONS)


def can_view_all_reports(token_data: TokenData) -> bool:
    return is_administrator(token_data) or _has_any(token_data, REPORT_VIEW_PERMISSIONS)
