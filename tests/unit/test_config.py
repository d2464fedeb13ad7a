import pytest

from upload_relay.config import DEFAULT_ALLOWED_CONTENT_TYPES
from upload_relay.config import get_config
from upload_relay.utils import split_csv


def test_defaults_load_without_required_env(monkeypatch):
    monkeypatch.delenv("CHUNK_ASSEMBLY_STRATEGY", raising=False)
    monkeypatch.delenv("BACKEND_TIMEOUT_SECONDS", raising=False)

    cfg = get_config()

    assert cfg.chunk_assembly_strategy == "multipart"
    assert cfg.backend_timeout_seconds == 240.0
    assert cfg.backend_bypass_header == "x-vercel-protection-bypass"
    assert cfg.allowed_upload_content_types == split_csv(DEFAULT_ALLOWED_CONTENT_TYPES)


def test_strategy_is_normalized(monkeypatch):
    monkeypatch.setenv("CHUNK_ASSEMBLY_STRATEGY", "  Concatenate ")

    assert get_config().chunk_assembly_strategy == "concatenate"


def test_unknown_strategy_rejected(monkeypatch):
    monkeypatch.setenv("CHUNK_ASSEMBLY_STRATEGY", "stitch")

    with pytest.raises(ValueError, match="CHUNK_ASSEMBLY_STRATEGY"):
        get_config()


def test_backend_settings_are_normalized(monkeypatch):
    monkeypatch.setenv("BACKEND_URL", "https://api.example.com/")
    monkeypatch.setenv("BACKEND_PATH_PREFIX", "backend/")

    cfg = get_config()

    assert cfg.backend_url == "https://api.example.com"
    assert cfg.backend_path_prefix == "/backend"


def test_empty_path_prefix(monkeypatch):
    monkeypatch.setenv("BACKEND_PATH_PREFIX", "")

    assert get_config().backend_path_prefix == ""


def test_public_base_url_derived_from_endpoint(monkeypatch):
    monkeypatch.setenv("STORAGE_PUBLIC_BASE_URL", "")
    monkeypatch.setenv("S3_ENDPOINT_URL", "http://minio:9000/")
    monkeypatch.setenv("S3_BUCKET", "relay")

    assert get_config().storage_public_base_url == "http://minio:9000/relay"


def test_allowed_content_types_from_env(monkeypatch):
    monkeypatch.setenv("ALLOWED_UPLOAD_CONTENT_TYPES", "application/pdf, text/plain ,")

    assert get_config().allowed_upload_content_types == ["application/pdf", "text/plain"]
