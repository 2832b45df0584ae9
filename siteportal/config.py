import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _resolve_database_url() -> str:
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        return database_url

    environment = os.getenv("ENVIRONMENT", "").strip().lower()
    if environment == "development":
        return "postgresql+psycopg://localhost:5434/site_portal"

    raise ValueError(
        "DATABASE_URL is not set. Set DATABASE_URL for non-development "
        "environments or set ENVIRONMENT=development for local defaults."
    )


@dataclass(frozen=True)
class Settings:
    database_url: str = _resolve_database_url()
    db_pool_size: int = int(os.getenv("DB_POOL_SIZE", "5"))
    db_max_overflow: int = int(os.getenv("DB_MAX_OVERFLOW", "10"))
    db_pool_timeout: int = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    db_pool_recycle: int = int(os.getenv("DB_POOL_RECYCLE", "1800"))

    # Session tokens issued by the identity provider
    jwt_secret: str = os.getenv("JWT_SECRET", "change-me")
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")
    jwt_access_token_minutes: int = int(os.getenv("JWT_ACCESS_TOKEN_MINUTES", "60"))

    # Public URLs of the portal front end
    app_origin: str = os.getenv("APP_ORIGIN", "http://localhost:8080")
    app_base_path: str = os.getenv("APP_BASE_PATH", "/tfsapp")
    auth_route: str = os.getenv("AUTH_ROUTE", "/auth")

    # Sign-on days are counted in the site's local calendar
    site_timezone: str = os.getenv("SITE_TIMEZONE", "Australia/Sydney")

    # Signature capture
    signature_canvas_width: int = int(os.getenv("SIGNATURE_CANVAS_WIDTH", "400"))
    signature_canvas_height: int = int(os.getenv("SIGNATURE_CANVAS_HEIGHT", "120"))
    signature_max_bytes: int = int(
        os.getenv("SIGNATURE_MAX_BYTES", str(512 * 1024))
    )  # 512KB
    # Largest side of an uploaded signature image, in pixels
    signature_max_dimension: int = int(os.getenv("SIGNATURE_MAX_DIMENSION", "4000"))

    # QR codes
    qr_box_size: int = int(os.getenv("QR_BOX_SIZE", "10"))
    qr_border: int = int(os.getenv("QR_BORDER", "2"))

    # S3 / MinIO settings
    s3_endpoint_url: str = os.getenv("S3_ENDPOINT_URL", "")
    s3_access_key: str = os.getenv("S3_ACCESS_KEY", "")
    s3_secret_key: str = os.getenv("S3_SECRET_KEY", "")
    s3_bucket_name: str = os.getenv("S3_BUCKET_NAME", "site-documents")
    s3_region: str = os.getenv("S3_REGION", "ap-southeast-2")
    s3_presigned_url_expiry: int = int(os.getenv("S3_PRESIGNED_URL_EXPIRY", "3600"))

    # Celery
    celery_broker_url: str = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
    celery_result_backend: str = os.getenv(
        "CELERY_RESULT_BACKEND", "redis://localhost:6379/1"
    )
    celery_task_always_eager: bool = os.getenv(
        "CELERY_TASK_ALWAYS_EAGER", "false"
    ).strip().lower() in {"1", "true", "yes", "on"}

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_format: str = os.getenv("LOG_FORMAT", "plain")

    # Branding
    brand_name: str = os.getenv("BRAND_NAME", "TFS Site Safety System")


settings = Settings()
