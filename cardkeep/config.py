from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Database backends with an ON CONFLICT insert dialect
SUPPORTED_BACKENDS = ("sqlite", "postgresql")


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="CARDKEEP_")

    app_name: str = "cardkeep"
    debug: bool = False

    database_url: str = "sqlite+aiosqlite:///./cardkeep.db"

    # Upper bound in seconds on waiting for a connection (or a SQLite lock)
    database_timeout: float = 10.0

    # Largest page a listing endpoint will return
    page_limit: int = 25

    host: str = "0.0.0.0"
    port: int = 4000

    api_key_length: int = 64

    # Managed user that CLI-issued API keys are attributed to by default
    default_managed_name: str = "cardkeep"

    # HS256 secret for access tokens. Unset means a random key per process,
    # so tokens do not survive a restart.
    signing_key: str | None = None
    access_token_minutes: int = 15

    @field_validator("database_url")
    @classmethod
    def check_backend(cls, value: str) -> str:
        backend = value.split(":", 1)[0].split("+", 1)[0]
        if backend not in SUPPORTED_BACKENDS:
            supported = ", ".join(SUPPORTED_BACKENDS)
            raise ValueError(f"Unsupported database backend {backend!r} (expected {supported})")
        return value


settings = Settings()


# =============================================================================
# CARD LIMITS
# =============================================================================

# Column width of card.name and card.category_name
MAX_NAME_LENGTH = 255

# Reserved in card names; a superseded card is renamed to "<name>@<id>"
ARCHIVE_SEPARATOR = "@"

# Length of a hex-encoded SHA-256 API key hash
KEY_HASH_LENGTH = 64
