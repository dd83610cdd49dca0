"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for TodoGate happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Clients never read settings themselves. The API lifespan and the CLI call
get_settings() once and pass explicit base URLs and credentials into each
client constructor (see TupleStoreClient.from_settings() and friends).

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Fills local docker defaults in DEBUG mode
      and refuses to start without backend URLs in production mode.

Layer rule: core/ is the kernel. This module may not import from api/,
authz/, ownership/, or records/.
"""

import logging
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("todogate.config")

# Ports used by the stock Ory / Supabase docker-compose setups.
_DEV_KETO_READ_URL = "http://localhost:4466"
_DEV_KETO_WRITE_URL = "http://localhost:4467"
_DEV_DB_API_URL = "http://localhost:54321"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.

    Environment variable name mapping: field names are uppercased automatically.
    E.g. `keto_read_url` reads from KETO_READ_URL, `debug` reads from DEBUG.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Per-call timeout for every outbound HTTP request, in seconds. There is
    # no operation-level deadline spanning several calls.
    http_timeout: float = 10.0

    # ------------------------------------------------------------------
    # Relation-tuple store (Keto). Read and write APIs may live on
    # different hosts/ports.
    # ------------------------------------------------------------------

    keto_read_url: str = ""
    keto_write_url: str = ""

    # ------------------------------------------------------------------
    # Identity service (Kratos). Optional -- empty means role lookups and
    # email enrichment are skipped.
    # ------------------------------------------------------------------

    kratos_admin_url: str = ""
    kratos_public_url: str = ""

    # ------------------------------------------------------------------
    # Record store (PostgREST / Supabase)
    # ------------------------------------------------------------------

    db_api_url: str = ""
    db_api_key: str = ""
    todo_table: str = "todos"
    user_table: str = "users"

    # ------------------------------------------------------------------
    # HTTP surface
    # ------------------------------------------------------------------

    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def resolve_backends(self) -> "Settings":
        """Resolve backend URLs.

        KRATOS_ADMIN_URL falls back to KRATOS_PUBLIC_URL. Identity lookups try
        the admin route first and the public route second, so either base works.

        Dev mode (DEBUG=true): missing Keto / record-store URLs default to the
            local docker ports with a warning.

        Production mode: missing Keto / record-store URLs are a hard startup
            failure. Running without the tuple store would make every ownership
            check fail at request time instead of at boot.
        """
        if not self.kratos_admin_url and self.kratos_public_url:
            self.kratos_admin_url = self.kratos_public_url

        missing = [
            name
            for name, value in (
                ("KETO_READ_URL", self.keto_read_url),
                ("KETO_WRITE_URL", self.keto_write_url),
                ("DB_API_URL", self.db_api_url),
            )
            if not value
        ]
        if missing:
            if not self.debug:
                raise ValueError(
                    f"{', '.join(missing)} required in production mode. "
                    "Set them in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
            logger.warning("WARNING: %s not set, using local development defaults.", ", ".join(missing))
            self.keto_read_url = self.keto_read_url or _DEV_KETO_READ_URL
            self.keto_write_url = self.keto_write_url or _DEV_KETO_WRITE_URL
            self.db_api_url = self.db_api_url or _DEV_DB_API_URL

        self.keto_read_url = self.keto_read_url.rstrip("/")
        self.keto_write_url = self.keto_write_url.rstrip("/")
        self.kratos_admin_url = self.kratos_admin_url.rstrip("/")
        self.db_api_url = self.db_api_url.rstrip("/")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
