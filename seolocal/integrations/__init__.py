"""
Integrations for seolocal.

- storage: local JSON audit store (one document per audit)
"""

from seolocal.integrations.storage import LocalAuditStore, generate_summary

__all__ = [
    "LocalAuditStore",
    "generate_summary",
]
