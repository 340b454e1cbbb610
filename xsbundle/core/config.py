from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _normalise_service_url(url: str) -> str:
    """Ensure the XS service URL ends with a single trailing slash.

    The remote hub is addressed as a directory (e.g.
    ``http://host/xsserviceuat/``); posting to the bare path without the
    slash is redirected by the proxy and the binary body is lost.
    """
    if not url.endswith("/"):
        return url + "/"
    return url


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    The HTTP process and the Celery worker process both build their own
    Settings instance and their own bundle queue handle from it.

    Staging folders
    ───────────────
    • UPLOAD_DIR: CSV manifests received from clients
    • DOWNLOAD_DIR: finished bundles served by /api/download
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Remote XS script repository (single binary XML endpoint)
    xsservice_url: str = "http://localhost/xsserviceuat/"

    @field_validator("xsservice_url", mode="before")
    @classmethod
    def normalise_xsservice_url(cls, v: str) -> str:
        return _normalise_service_url(v)

    # Redis: Celery broker and result backend for the bundle queue
    redis_url: str = "redis://localhost:6379/0"
    bundle_queue_name: str = "xsscript-bundle"

    # Public location of this site, used to build download links.
    # Without trailing slash, e.g. https://example.com/xsscript
    site_url: str = "http://localhost:8686"

    # Staging
    download_dir: str = "downloads"
    upload_dir: str = "uploads"

    # CORS: comma-separated list of allowed origins.
    cors_origins: list[str] = ["*"]

    # Rate limiting for the bundling endpoints: SlowAPI format.
    bundle_rate_limit: str = "10/minute"

    # Sentry: leave blank to disable error capture.
    sentry_dsn: str = ""

    # App
    debug: bool = True


def get_settings() -> Settings:
    return Settings()
