import os
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
	# Accept a direct URL (supports either DATABASE_URL or database_url env vars)
	database_url: str | None = None

	# Individual parts with sensible local defaults so dev can boot without .env
	DB_DRIVER: str = "postgresql+psycopg2"
	DB_HOST: str = "localhost"
	DB_USER: str = "postgres"
	DB_PASSWORD: str = "postgres"
	DB_NAME: str = "planning"
	DB_PORT: int = 5432

	SECRET_KEY: str = "secret"
	ALGORITHM: str = "HS256"

	LOG_LEVEL: str = "INFO"

	# Observability / Telemetry flags
	ENABLE_REQUEST_LOGGING: bool = True
	ENABLE_OUTBOUND_LOGGING: bool = True
	LOG_SAMPLE_RATE: float = 1.0

	# Language model provider
	GOOGLE_GEMINI_API_KEY: str | None = None
	GEMINI_MODEL: str = "gemini-2.5-flash"
	GEMINI_TIMEOUT_SECONDS: int = 120

	# Blob store
	MINIO_ENDPOINT: str = os.getenv("MINIO_ENDPOINT", "localhost:9000")
	MINIO_ACCESS_KEY: str = os.getenv("MINIO_ACCESS_KEY", "minioadmin")
	MINIO_SECRET_KEY: str = os.getenv("MINIO_SECRET_KEY", "minioadmin")
	MINIO_BUCKET: str = os.getenv("MINIO_BUCKET", "planning-pdfs")
	MINIO_SECURE: bool = os.getenv("MINIO_SECURE", "false").lower() == "true"

	# Durable queue (QStash-compatible)
	QSTASH_URL: str = "https://qstash.upstash.io"
	QSTASH_TOKEN: str | None = None
	QSTASH_CURRENT_SIGNING_KEY: str | None = None
	QSTASH_NEXT_SIGNING_KEY: str | None = None
	PROCESS_DOCUMENT_URL: str | None = None
	REAP_JOBS_URL: str | None = None
	QUEUE_RETRIES: int = 3
	QUEUE_TIMEOUT_SECONDS: float = 10.0

	# Pipeline limits
	MAX_UPLOAD_SIZE_MB: int = 20
	MIN_PDF_TEXT_CHARS: int = 50
	MAX_PROMPT_CHARS: int = 120_000
	STALE_JOB_MINUTES: int = 15
	REAPER_STALE_MINUTES: int = 30

	# Prefer explicit database_url if provided; otherwise assemble from parts
	@property
	def DATABASE_URL(self) -> str:
		if self.database_url and self.database_url.strip() and self.database_url.strip() != "://:@:/":
			return self.database_url.strip()
		explicit_url = os.getenv("DATABASE_URL")
		if explicit_url and explicit_url.strip() and explicit_url.strip() != "://:@:/":
			return explicit_url.strip()
		return f"{self.DB_DRIVER}://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

	@property
	def QSTASH_SIGNING_KEYS(self) -> list[str]:
		"""Current key first; the next key is accepted during key rotation."""
		keys = [k for k in (self.QSTASH_CURRENT_SIGNING_KEY, self.QSTASH_NEXT_SIGNING_KEY) if k]
		return list(dict.fromkeys(keys))

	model_config = SettingsConfigDict(
		env_file=".env",
		extra="ignore",  # tolerate unrelated env vars like database_url
		case_sensitive=False,  # accept lowercase keys on Windows and in .env
	)

settings = Settings()
