"""
Custom exceptions for seolocal.
"""


class SEOLocalError(Exception):
    """Base class for all seolocal errors."""


class NotFoundError(SEOLocalError):
    """Resource not found exception (unknown audit ID or page URL)."""

    def __init__(self, resource: str = "Resource"):
        self.resource = resource
        super().__init__(f"{resource} not found")


class StorageError(SEOLocalError):
    """Audit document could not be read or written."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class AnalysisError(SEOLocalError):
    """HTML could not be parsed at all."""

    def __init__(self, detail: str = "failed to parse HTML"):
        self.detail = detail
        super().__init__(detail)


class CrawlerSetupError(SEOLocalError):
    """Render backend could not be launched; the crawl is aborted."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class AuditError(SEOLocalError):
    """An audit run could not produce results."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)
