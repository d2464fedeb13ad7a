import dataclasses

import dotenv

from upload_relay.utils import env
from upload_relay.utils import split_csv


dotenv.load_dotenv()


STRATEGY_MULTIPART = "multipart"
STRATEGY_CONCATENATE = "concatenate"
ASSEMBLY_STRATEGIES = (STRATEGY_MULTIPART, STRATEGY_CONCATENATE)

DEFAULT_ALLOWED_CONTENT_TYPES = ",".join(
    [
        "application/pdf",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.openxmlformats-officedocument.presentationml.presentation",
        "text/plain",
        "text/markdown",
        "text/csv",
    ]
)


def _as_bool(value: str) -> bool:
    return value.lower() == "true"


@dataclasses.dataclass
class Config:
    """Application configuration settings."""

    # Logging
    log_level: str = env("LOG_LEVEL:INFO")
    loki_url: str = env("LOKI_URL:", convert=str)
    loki_enabled: bool = env("LOKI_ENABLED:false", convert=_as_bool)

    # Server Configuration
    host: str = env("HOST:0.0.0.0")
    port: int = env("PORT:8000", convert=int)
    environment: str = env("ENVIRONMENT:development")
    debug: bool = env("DEBUG:false", convert=_as_bool)
    enable_api_docs: bool = env("ENABLE_API_DOCS:false", convert=_as_bool)

    # Backend processor
    # Empty backend_url means "derive from the incoming request's host"
    backend_url: str = env("BACKEND_URL:", convert=str)
    backend_default_url: str = env("BACKEND_DEFAULT_URL:http://localhost:3000")
    backend_path_prefix: str = env("BACKEND_PATH_PREFIX:/backend")
    backend_timeout_seconds: float = env("BACKEND_TIMEOUT_SECONDS:240", convert=float)
    backend_bypass_secret: str = env("BACKEND_BYPASS_SECRET:", convert=str)
    backend_bypass_header: str = env("BACKEND_BYPASS_HEADER:x-vercel-protection-bypass")

    # Chunked uploads
    chunk_assembly_strategy: str = env("CHUNK_ASSEMBLY_STRATEGY:multipart")
    chunk_key_prefix: str = env("CHUNK_KEY_PREFIX:chunks")

    # Object storage (S3-compatible)
    s3_endpoint_url: str = env("S3_ENDPOINT_URL:", convert=str)
    s3_region: str = env("S3_REGION:us-east-1")
    s3_bucket: str = env("S3_BUCKET:uploads")
    s3_access_key: str = env("S3_ACCESS_KEY:", convert=str)
    s3_secret_key: str = env("S3_SECRET_KEY:", convert=str)
    storage_public_base_url: str = env("STORAGE_PUBLIC_BASE_URL:", convert=str)
    storage_fetch_timeout_seconds: float = env("STORAGE_FETCH_TIMEOUT_SECONDS:60", convert=float)
    presign_expiry_seconds: int = env("PRESIGN_EXPIRY_SECONDS:3600", convert=int)
    allowed_upload_content_types: list[str] = env(
        "ALLOWED_UPLOAD_CONTENT_TYPES:" + DEFAULT_ALLOWED_CONTENT_TYPES, convert=split_csv
    )


def get_config() -> Config:
    """Get application configuration."""
    cfg = Config()

    strategy = cfg.chunk_assembly_strategy.strip().lower()
    if strategy not in ASSEMBLY_STRATEGIES:
        raise ValueError(f"CHUNK_ASSEMBLY_STRATEGY must be one of {ASSEMBLY_STRATEGIES}, got {strategy!r}")
    object.__setattr__(cfg, "chunk_assembly_strategy", strategy)

    # Normalize URL-ish settings so joins never produce double slashes
    object.__setattr__(cfg, "backend_url", cfg.backend_url.rstrip("/"))
    object.__setattr__(cfg, "backend_default_url", cfg.backend_default_url.rstrip("/"))
    prefix = cfg.backend_path_prefix.strip().strip("/")
    object.__setattr__(cfg, "backend_path_prefix", f"/{prefix}" if prefix else "")

    if not cfg.storage_public_base_url:
        endpoint = cfg.s3_endpoint_url.rstrip("/") or f"https://s3.{cfg.s3_region}.amazonaws.com"
        object.__setattr__(cfg, "storage_public_base_url", f"{endpoint}/{cfg.s3_bucket}")
    else:
        object.__setattr__(cfg, "storage_public_base_url", cfg.storage_public_base_url.rstrip("/"))

    return cfg
