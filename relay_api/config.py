import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlsplit

from dotenv import load_dotenv

load_dotenv()

DEFAULT_ALLOWED_ORIGINS = ("http://localhost:3000", "http://127.0.0.1:3000")


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = 3000
    api_base_url: str = "https://open-api.chanjing.cc"
    allowed_origins: tuple[str, ...] = DEFAULT_ALLOWED_ORIGINS
    uploads_dir: Path = Path("uploads")
    frontend_dir: Path = Path("frontend")
    public_base_url: str = ""
    transfer_sh_url: str = "https://transfer.sh"
    zerox0_url: str = "https://0x0.st"
    upstream_timeout_s: float = 30.0
    max_upload_bytes: int = 100 * 1024 * 1024
    log_level: str = "INFO"
    log_json: bool = True
    enable_metrics: bool = True

    @property
    def local_base_url(self) -> str:
        return (self.public_base_url or f"http://localhost:{self.port}").rstrip("/")

    @property
    def upstream_host(self) -> str:
        return urlsplit(self.api_base_url).netloc

    @property
    def upstream_origin(self) -> str:
        parts = urlsplit(self.api_base_url)
        return f"{parts.scheme}://{parts.netloc}"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _split_csv(raw: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def load_settings() -> Settings:
    port = int(os.getenv("RELAY_PORT", "3000"))
    return Settings(
        host=os.getenv("RELAY_HOST", "0.0.0.0"),
        port=port,
        api_base_url=os.getenv("API_BASE_URL", "https://open-api.chanjing.cc"),
        allowed_origins=_split_csv(os.getenv("ALLOWED_ORIGINS", ",".join(DEFAULT_ALLOWED_ORIGINS))),
        uploads_dir=Path(os.getenv("UPLOADS_DIR", "uploads")),
        frontend_dir=Path(os.getenv("FRONTEND_DIR", "frontend")),
        public_base_url=os.getenv("PUBLIC_BASE_URL", f"http://localhost:{port}"),
        transfer_sh_url=os.getenv("TRANSFER_SH_URL", "https://transfer.sh"),
        zerox0_url=os.getenv("ZEROX0_URL", "https://0x0.st"),
        upstream_timeout_s=float(os.getenv("UPSTREAM_TIMEOUT_S", "30")),
        max_upload_bytes=int(os.getenv("MAX_UPLOAD_BYTES", str(100 * 1024 * 1024))),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_json=_env_bool("LOG_JSON", "true"),
        enable_metrics=_env_bool("ENABLE_METRICS", "true"),
    )
