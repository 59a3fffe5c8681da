"""Process-wide settings for shipwright.

``ShipwrightSettings`` holds everything that describes *where* and *what*
to deploy: the project directory, the platform CLI, the files and
environment variables preflight requires, and the default target URL.
Per-run knobs (timeouts, flags) live in :mod:`shipwright.deploy.config`.

Features:
    - **Pydantic validation:** Type-checked at startup
    - **Environment-driven:** ``SHIPWRIGHT_*`` env vars and a ``.env`` file
    - **Extra ignore:** Unknown env vars don't cause startup failures

Examples:
    >>> settings = ShipwrightSettings(platform_cli="railway")
    >>> settings.state_path.name
    '.railway-deployment.json'

Tags:
    settings, configuration, pydantic, environment
"""

from __future__ import annotations

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ShipwrightSettings(BaseSettings):
    """Settings shared by every shipwright command.

    Fields
    ──────
    log_level        : Structlog log level
    log_format       : ``console`` or ``json``
    project_dir      : Working tree that is deployed and rolled back
    platform_cli     : Hosting platform CLI executable
    platform_domain  : Domain suffix used to pick the public URL
    target_url       : Fallback public URL (``RAILWAY_STATIC_URL``)
    required_env     : Variables preflight insists on
    required_files   : Platform descriptor files preflight insists on
    test_command     : Local test command run during preflight
    manifest_file    : Package manifest checked during preflight (empty disables)
    required_engine  : Runtime the manifest must pin under ``engines``
    required_scripts : Scripts the manifest must define
    state_file       : Persisted deployment record file name
    lock_file        : Invocation lock file name
    """

    model_config = SettingsConfigDict(
        env_prefix="SHIPWRIGHT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: str = "console"

    # ── Project ──────────────────────────────────────────────────
    project_dir: Path = Field(default_factory=Path.cwd)
    platform_cli: str = "railway"
    platform_domain: str = "railway.app"
    target_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("SHIPWRIGHT_TARGET_URL", "RAILWAY_STATIC_URL"),
    )
    default_local_url: str = "http://localhost:8080"

    # ── Preflight ────────────────────────────────────────────────
    required_env: list[str] = Field(
        default=["SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY", "CLERK_SECRET_KEY"],
    )
    required_files: list[str] = Field(
        default=["railway.json", "Procfile", ".railwayignore"],
    )
    test_command: str = "npm run test:local"
    manifest_file: str | None = "package.json"
    required_engine: str | None = "node"
    required_scripts: list[str] = Field(default=["start", "health"])

    # ── State ────────────────────────────────────────────────────
    state_file: str = ".railway-deployment.json"
    lock_file: str = ".shipwright.lock"

    @property
    def state_path(self) -> Path:
        return self.project_dir / self.state_file

    @property
    def lock_path(self) -> Path:
        return self.project_dir / self.lock_file

    def resolve_target_url(self, discovered: str | None = None) -> str:
        """Pick the URL to verify: discovered > configured > local default."""
        return discovered or self.target_url or self.default_local_url
