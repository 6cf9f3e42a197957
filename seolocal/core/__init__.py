"""
Core utilities for seolocal.
"""
from seolocal.core.exceptions import (
    SEOLocalError,
    NotFoundError,
    StorageError,
    AnalysisError,
    CrawlerSetupError,
    AuditError,
)
from seolocal.core.logging import configure_logging

__all__ = [
    "SEOLocalError",
    "NotFoundError",
    "StorageError",
    "AnalysisError",
    "CrawlerSetupError",
    "AuditError",
    "configure_logging",
]
