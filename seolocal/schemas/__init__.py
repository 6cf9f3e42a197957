"""
Pydantic schemas for persisted seolocal audits.
"""
from seolocal.schemas.common import BaseSchema
from seolocal.schemas.audit import (
    AuditConfig,
    AuditStatus,
    CheckResult,
    CheckValue,
    LocalAudit,
    LocalAuditSummary,
    LocalPageAnalysis,
    PageLink,
    PageStatus,
)

__all__ = [
    "BaseSchema",
    "AuditConfig",
    "AuditStatus",
    "CheckResult",
    "CheckValue",
    "LocalAudit",
    "LocalAuditSummary",
    "LocalPageAnalysis",
    "PageLink",
    "PageStatus",
]
