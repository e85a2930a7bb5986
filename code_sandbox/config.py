import socket

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Code Execution Sandbox"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # API
    API_V1_PREFIX: str = "/api/v1"
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:8000",
        "http://127.0.0.1:3000",
    ]

    # Working directories (one subdirectory per in-flight execution)
    TEMP_DIR: str = "/tmp/code-execution"

    # Request ceilings
    MAX_CODE_LENGTH: int = 10_000
    MAX_TIMEOUT_MS: int = 30_000
    MAX_MEMORY_LIMIT_MB: int = 512

    # Defaults applied when the request leaves a limit unset
    DEFAULT_CONTAINER_TIMEOUT_MS: int = 10_000
    DEFAULT_SCRIPT_TIMEOUT_MS: int = 5_000
    DEFAULT_MEMORY_LIMIT_MB: int = 128

    # Container limits
    CPU_QUOTA: int = 50_000  # half a core with the default period
    CPU_PERIOD: int = 100_000
    PIDS_LIMIT: int = 64
    TMPFS_SIZE_MB: int = 64
    MAX_OUTPUT_BYTES: int = 1_048_576
    KILL_GRACE_SECONDS: float = 5.0
    STREAM_MODE: str = "demux"  # demux|combined
    DOCKER_BASE_URL: Optional[str] = None
    # Labels this replica's containers; keep it stable across restarts
    SANDBOX_INSTANCE_ID: str = Field(default_factory=socket.gethostname)

    # Script fast path
    SCRIPT_FAST_PATH_ENABLED: bool = True
    SCRIPT_MEMORY_LIMIT_MB: int = 64

    # Tracing
    TRACING_ENABLED: bool = False
    TRACING_EXPORTER: str = "console"  # console|none
    TRACING_SERVICE_NAME: str = "code-sandbox"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",  # Ignore extra environment variables
    )

    @field_validator("STREAM_MODE")
    @classmethod
    def _check_stream_mode(cls, value: str) -> str:
        value = value.lower()
        if value not in ("demux", "combined"):
            raise ValueError(f"Invalid STREAM_MODE: {value}. Must be 'demux' or 'combined'.")
        return value


settings = Settings()
