from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PROJECT_NAME: str = "seolocal"
    VERSION: str = "0.1.0"

    # Audit documents live here, one <audit_id>.json per audit
    STORAGE_PATH: str = str(Path.home() / ".seo" / "audits")

    LOG_LEVEL: str = "INFO"

    # Defaults used when the caller does not provide an AuditConfig
    DEFAULT_PORT: int = 3000
    DEFAULT_CONCURRENCY: int = 4
    DEFAULT_MAX_PAGES: int = 0  # 0 = unlimited
    DEFAULT_MAX_DEPTH: int = 0  # 0 = unlimited
    DEFAULT_IGNORE_PATTERNS: List[str] = ["/api", "/admin"]

    # Crawler
    CRAWL_QUEUE_SIZE: int = 100
    NAVIGATION_TIMEOUT_SECONDS: int = 15
    ROBOTS_TIMEOUT_SECONDS: int = 10
    USER_AGENT: str = "seolocal/0.1 (+local SEO audit)"

    # Render backend
    BROWSER_TYPE: str = "chromium"  # chromium, firefox, webkit
    HEADLESS: bool = True

    # Analysis pool size when AuditConfig.concurrency <= 0
    ANALYSIS_DEFAULT_CONCURRENCY: int = 3

    AUDIT_POLL_INTERVAL_SECONDS: float = 2.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="SEO_",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def storage_dir(self) -> Path:
        return Path(self.STORAGE_PATH).expanduser()


settings = Settings()
