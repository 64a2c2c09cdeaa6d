from __future__ import annotations

import logging

from app.till.core.error_catalog import AppError, ErrorCatalog
from app.till.core.logging import log_event
from app.till.repos.cash_registers import CashRegisterRepository
from app.till.services.records import AssignmentGroup, RegisterBinding, normalize_code

logger = logging.getLogger(__name__)


class AssignmentDirectory:
    """Which admins may operate which registers, and each admin's default register."""

    def __init__(self, repo: CashRegisterRepository):
        self.repo = repo

    def resolve(self, admin_user_id: int, cash_register_code: str, *, allow_unassigned: bool = False) -> RegisterBinding:
        code = normalize_code(cash_register_code)
        binding = self.repo.find_assignment(admin_user_id, code)
        if binding is None and allow_unassigned:
            binding = self.repo.find_active_register(code)
        if binding is None:
            raise AppError(
                ErrorCatalog.ASSIGNMENT_NOT_FOUND,
                details={"admin_user_id": admin_user_id, "cash_register_code": code},
            )
        return binding

    def list_for_admin(self, admin_user_id: int) -> AssignmentGroup:
        return AssignmentGroup(
            admin_user_id=admin_user_id,
            assignments=self.repo.list_assignments_for_admin(admin_user_id),
        )

    def list_groups(self, admin_user_ids: list[int] | None = None) -> list[AssignmentGroup]:
        return self.repo.list_assignment_groups(admin_user_ids)

    def _register(self, cash_register_code: str) -> RegisterBinding:
        binding = self.repo.find_active_register(cash_register_code)
        if binding is None:
            raise AppError(
                ErrorCatalog.CASH_REGISTER_NOT_FOUND,
                details={"cash_register_code": normalize_code(cash_register_code)},
            )
        return binding

    def assign(self, admin_user_id: int, cash_register_code: str, *, make_default: bool = False) -> None:
        with self.repo.transaction():
            register = self._register(cash_register_code)
            self.repo.save_assignment(admin_user_id, register.cash_register_id, is_default=make_default)
        log_event(
            logger,
            "cash_register.assign",
            admin_user_id=admin_user_id,
            cash_register_id=register.cash_register_id,
            is_default=make_default,
        )

    def unassign(self, admin_user_id: int, cash_register_code: str) -> None:
        with self.repo.transaction():
            register = self._register(cash_register_code)
            if not self.repo.delete_assignment(admin_user_id, register.cash_register_id):
                raise AppError(
                    ErrorCatalog.ASSIGNMENT_NOT_FOUND,
                    details={"admin_user_id": admin_user_id, "cash_register_code": register.cash_register_code},
                )
        log_event(logger, "cash_register.unassign", admin_user_id=admin_user_id, cash_register_id=register.cash_register_id)

    def set_default(self, admin_user_id: int, cash_register_code: str) -> None:
        with self.repo.transaction():
            register = self._register(cash_register_code)
            if not self.repo.set_default_assignment(admin_user_id, register.cash_register_id):
                raise AppError(
                    ErrorCatalog.ASSIGNMENT_NOT_FOUND,
                    details={"admin_user_id": admin_user_id, "cash_register_code": register.cash_register_code},
                )
        log_event(
            logger, "cash_register.set_default", admin_user_id=admin_user_id, cash_register_id=register.cash_register_id
        )
