"""Project-wide constants (chunk size, pacing, backend endpoints)."""

CHUNK_SIZE_BYTES: int = 7 * 1024 * 1024  # 7 MiB, under the smallest attachment limit

UPLOAD_DELAY_SECONDS: float = 0.8

DELETE_WORKERS: int = 8

ENCRYPTION_KEY_BYTES: int = 32

REMOTE_LABEL_SUFFIX: str = ".vault"

DISCORD_API_BASE: str = "https://discord.com/api/v10"

BACKEND_TIMEOUT_SECONDS: int = 120

BACKEND_MAX_RATE_LIMIT_RETRIES: int = 5

NOTIFICATION_QUEUE_SIZE: int = 100

DEFAULT_SERVER_PORT: int = 8080
