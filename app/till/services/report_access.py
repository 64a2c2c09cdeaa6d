"""Signed capability tokens for opening/closure report links.

A token proves that the link was issued by this service for one report of one
session; it does not replace the login session. Whether the holder may read
the report is decided by the endpoint from the verified claims.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Literal
from urllib.parse import quote

from jose import JWTError, jwt
from pydantic import BaseModel, Field, ValidationError

from app.till.core.config import settings

logger = logging.getLogger(__name__)

REPORT_TOKEN_TYPE = "report_access"

ReportType = Literal["opening", "closure"]
ReportScope = Literal["self", "admin"]


class ReportAccessClaims(BaseModel):
    report_type: ReportType
    session_id: int = Field(gt=0)
    requester_id: int = Field(gt=0)
    scope: ReportScope
    expires_at: datetime


class ClosureReportAccessController:
    def __init__(
        self,
        secret: str | None = None,
        *,
        algorithm: str | None = None,
        expires_minutes: int | None = None,
    ):
        self._secret = secret or settings.report_token_secret
        self._algorithm = algorithm or settings.ALGORITHM
        self._ttl = timedelta(minutes=expires_minutes or settings.REPORT_TOKEN_EXPIRE_MINUTES)

    def issue(
        self,
        report_type: ReportType,
        session_id: int,
        requester_id: int,
        scope: ReportScope,
        *,
        now: datetime | None = None,
    ) -> str:
        issued_at = now or datetime.now(timezone.utc)
        claims = {
            "typ": REPORT_TOKEN_TYPE,
            "rpt": report_type,
            "sid": int(session_id),
            "sub": str(requester_id),
            "scope": scope,
            "iat": issued_at,
            "exp": issued_at + self._ttl,
        }
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)

    def verify(self, token: str | None) -> ReportAccessClaims | None:
        if not token:
            return None
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
            if payload.get("typ") != REPORT_TOKEN_TYPE:
                return None
            return ReportAccessClaims(
                report_type=payload.get("rpt"),
                session_id=payload.get("sid"),
                requester_id=payload.get("sub"),
                scope=payload.get("scope"),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            )
        except (JWTError, ValidationError, KeyError, TypeError, ValueError) as exc:
            logger.info("Rejected report access token: %s", exc.__class__.__name__)
            return None

    @staticmethod
    def scope_for(requester_id: int, owner_id: int) -> ReportScope:
        return "self" if requester_id == owner_id else "admin"

    @staticmethod
    def report_url(base_url: str, report_type: ReportType, session_id: int, token: str) -> str:
        path = "opening-report" if report_type == "opening" else "closure-report"
        base = base_url.rstrip("/")
        return f"{base}/till/cash-registers/sessions/{session_id}/{path}?format=json&token={quote(token, safe='')}"
