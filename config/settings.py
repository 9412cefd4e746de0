# config/settings.py
import os
import sys
from dotenv import load_dotenv
from pydantic import ValidationError, Field
from pydantic_settings import BaseSettings
from util.enums import Environment
import logging


if os.getenv("APP_ENV", Environment.DEV) == Environment.DEV:
    load_dotenv()

_log = logging.getLogger("config.settings")


class Settings(BaseSettings):
    # App
    APP_ENV: str = Field(..., validation_alias="APP_ENV")
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0", validation_alias="REDIS_URL"
    )

    # CORS & Limits
    ALLOWED_ORIGIN: str = Field(default="*", validation_alias="ALLOWED_ORIGIN")
    RATE_LIMIT_ENABLED: bool = Field(default=True, validation_alias="RATE_LIMIT_ENABLED")
    RATE_LIMIT_TIMES: int = Field(default=10, validation_alias="RATE_LIMIT_TIMES")
    RATE_LIMIT_SECONDS: int = Field(default=60, validation_alias="RATE_LIMIT_SECONDS")
    MAX_FILE_MB: int = Field(default=5, validation_alias="MAX_FILE_MB")
    MAX_EXTRACTED_MB: int = Field(default=100, validation_alias="MAX_EXTRACTED_MB")
    TRUST_PROXY: bool = Field(default=False, validation_alias="TRUST_PROXY")

    # Workspaces
    UPLOAD_ROOT: str = Field(default="uploads", validation_alias="UPLOAD_ROOT")
    # Opt-in: keep job directories on disk for post-mortem inspection.
    RETAIN_WORKSPACES: bool = Field(default=False, validation_alias="RETAIN_WORKSPACES")

    # Toolchain
    NARGO_BIN: str = Field(default="nargo", validation_alias="NARGO_BIN")
    BB_BIN: str = Field(default="bb", validation_alias="BB_BIN")
    GARAGA_BIN: str = Field(default="garaga", validation_alias="GARAGA_BIN")
    PROFILER_BIN: str = Field(default="noir-profiler", validation_alias="PROFILER_BIN")
    TOOLCHAIN_PATHS: str | None = Field(default=None, validation_alias="TOOLCHAIN_PATHS")
    MANIFEST_FILE_NAME: str = "Nargo.toml"
    PROVER_FILE_NAME: str = "Prover.toml"
    STAGE_TIMEOUT_SECONDS: float = Field(
        default=600.0, validation_alias="STAGE_TIMEOUT_SECONDS"
    )
    DISCONNECT_POLL_SECONDS: float = Field(
        default=1.0, validation_alias="DISCONNECT_POLL_SECONDS"
    )

    # Live log channel
    LOG_CHANNEL_QUEUE_SIZE: int = Field(
        default=1000, validation_alias="LOG_CHANNEL_QUEUE_SIZE"
    )

    # Logging knobs
    LOGGER_NAME: str = "noir-backend"
    LOG_LEVEL: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    # Level for mirrored toolchain stdout/stderr; empty means LOG_LEVEL.
    TOOL_LOG_LEVEL: str | None = Field(default=None, validation_alias="TOOL_LOG_LEVEL")
    LOG_TO_FILE: bool = Field(default=False, validation_alias="LOG_TO_FILE")
    LOG_DIR: str = Field(default="logs", validation_alias="LOG_DIR")
    LOG_FILE_NAME: str = Field(default="app.log", validation_alias="LOG_FILE_NAME")
    LOG_MAX_BYTES: int = Field(
        default=50 * 1024 * 1024, validation_alias="LOG_MAX_BYTES"
    )
    LOG_BACKUP_COUNT: int = Field(default=5, validation_alias="LOG_BACKUP_COUNT")

    def toolchain_path(self) -> str:
        """Extra PATH entries where nargo/bb are usually installed."""
        if self.TOOLCHAIN_PATHS:
            return self.TOOLCHAIN_PATHS
        if sys.platform == "darwin":
            home = os.path.expanduser("~")
            return f"{home}/.nargo/bin:{home}/.bb"
        return "/home/ubuntu/.nargo/bin:/home/ubuntu/.bb"


try:
    settings = Settings()
except ValidationError as e:
    print("❌ Missing/invalid environment variables:", file=sys.stderr)
    for err in e.errors():
        loc = ".".join(str(x) for x in err.get("loc", []))
        msg = err.get("msg", "")
        print(f" - {loc}: {msg}", file=sys.stderr)
    sys.exit(1)
except Exception as e:
    print(f"❌ Settings initialization failed: {e}", file=sys.stderr)
    sys.exit(1)
