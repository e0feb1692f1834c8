"""Runtime settings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="VISIONGATE_", extra="ignore")

    app_name: str = "VisionGate"
    log_level: str = "info"
    # debug level only: also log request bodies (inline images elided)
    log_full_request_body: bool = False
    # Empty disables the rotating file log.
    log_dir: str = "logs"
    log_file_max_bytes: int = 10 * 1024 * 1024
    log_file_backup_count: int = 10
    host: str = "127.0.0.1"
    port: int = 18090

    # OpenAI-compatible generation backend, e.g. a local llama.cpp / vLLM server.
    upstream_base_url: str = "http://127.0.0.1:8080/v1"
    upstream_timeout_seconds: float = 120.0
    upstream_max_connections: int = 100
    upstream_max_keepalive_connections: int = 20

    # Inline base64 images inflate bodies by ~4/3, keep headroom over image_fetch_max_bytes.
    max_request_body_bytes: int = 20_000_000

    image_fetch_timeout_seconds: float = 15.0
    image_fetch_max_bytes: int = 10_000_000
    image_fetch_follow_redirects: bool = True

    ocr_languages: str = "eng"
    ocr_max_workers: int = Field(default=2, ge=1)
    # Upper bound on one recognition, queueing included; 0 waits forever.
    ocr_timeout_seconds: float = Field(default=60.0, ge=0)
    # Empty means pytesseract resolves the binary from PATH.
    tesseract_cmd: str = ""


settings = Settings()
