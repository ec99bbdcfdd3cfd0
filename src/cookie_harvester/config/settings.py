"""
Pydantic models describing every tunable of a crawl.

Defaults reproduce the containerised deployment: headless Chromium,
10 pages, 600ms pause after each click. Unknown keys are rejected at
every level so that a misspelt YAML key fails loudly.
"""

from enum import Enum
from pathlib import Path
from typing import Literal
from urllib.parse import urlsplit

from pydantic import BaseModel, Field, field_validator


DEFAULT_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
]


class DedupKey(str, Enum):
    """Which cookie attributes identify an already-recorded cookie."""

    NAME_DOMAIN_PATH = "name_domain_path"
    NAME = "name"
    NONE = "none"  # record every non-empty snapshot


class BrowserSettings(BaseModel):
    """How the Playwright browser is launched and how each context is set up."""

    model_config = {"extra": "forbid"}

    headless: bool = Field(
        default=True,
        description="Launch without a visible window",
    )
    browser_type: Literal["chromium", "firefox", "webkit"] = Field(
        default="chromium",
        description="Playwright engine: chromium, firefox or webkit",
    )
    launch_args: list[str] = Field(
        default_factory=lambda: list(DEFAULT_LAUNCH_ARGS),
        description="Extra command-line flags passed to the browser on launch",
    )
    navigation_timeout_ms: int = Field(
        default=30000,
        ge=1000,
        le=180000,
        description="Per-navigation timeout applied to every context",
    )
    timeout_ms: int = Field(
        default=10000,
        ge=500,
        le=120000,
        description="Timeout for element operations such as clicks",
    )
    user_agent: str | None = Field(
        default=None,
        description="User-Agent header override; None keeps the engine default",
    )
    viewport_width: int = Field(
        default=1280,
        ge=320,
        le=3840,
        description="Viewport width in CSS pixels",
    )
    viewport_height: int = Field(
        default=720,
        ge=240,
        le=2160,
        description="Viewport height in CSS pixels",
    )
    ignore_https_errors: bool = Field(
        default=False,
        description="Visit sites with invalid TLS certificates",
    )


class CrawlerSettings(BaseModel):
    """Crawl budget: fixed for the lifetime of one run."""

    model_config = {"extra": "forbid"}

    start_url: str | None = Field(
        default=None,
        description="Seed URL. Required to run a crawl.",
    )
    max_pages: int = Field(
        default=10,
        ge=1,
        description="Maximum number of URLs claimed for a visit",
    )
    wait_after_click_ms: int = Field(
        default=600,
        ge=0,
        description="Delay after each interaction click in milliseconds",
    )
    max_concurrency: int = Field(
        default=5,
        ge=1,
        le=64,
        description="Maximum number of page visits in flight",
    )
    same_domain_only: bool = Field(
        default=True,
        description="Restrict traversal to the seed hostname and its subdomains",
    )
    interact: bool = Field(
        default=True,
        description="Click interactive-looking elements after the initial load",
    )
    interaction_selector: str = Field(
        default='div[role="button"], div[tabindex]',
        description="CSS selector for elements clicked during interaction",
    )
    dedup_key: DedupKey = Field(
        default=DedupKey.NAME_DOMAIN_PATH,
        description="Cookie identity used to suppress repeated observations",
    )
    max_retries: int = Field(
        default=0,
        ge=0,
        le=5,
        description="Retry attempts for visits that failed with a retryable error",
    )
    retry_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        le=60.0,
        description="Base delay before a retry, doubled per attempt",
    )

    @field_validator("start_url", mode="before")
    @classmethod
    def validate_start_url(cls, v: str | None) -> str | None:
        """Accept only absolute http(s) URLs; blank means unset."""
        if v is None:
            return None
        v = str(v).strip()
        if not v:
            return None
        parts = urlsplit(v)
        if parts.scheme.lower() not in ("http", "https") or not parts.hostname:
            raise ValueError(f"start_url must be an absolute http(s) URL: {v!r}")
        return v


class OutputSettings(BaseModel):
    """Where the result document is written."""

    model_config = {"extra": "forbid"}

    path: Path = Field(
        default=Path("results/cookies.json"),
        description="File the JSON crawl result is written to",
    )
    indent: int = Field(
        default=2,
        ge=0,
        le=8,
        description="JSON indentation",
    )


class LoggingSettings(BaseModel):
    """Log level, format and destinations."""

    model_config = {"extra": "forbid"}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Least severe level emitted",
    )
    format: str = Field(
        default="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        description="logging.Formatter format string",
    )
    date_format: str = Field(
        default="%Y-%m-%d %H:%M:%S",
        description="strftime format for %(asctime)s",
    )
    file_path: Path | None = Field(
        default=None,
        description="Rotating log file; None disables file logging",
    )
    max_file_size_mb: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Size in MB at which the log file rotates",
    )
    backup_count: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Rotated files kept next to the active one",
    )
    log_to_console: bool = Field(
        default=True,
        description="Also log to stderr",
    )


class Settings(BaseModel):
    """
    Complete configuration, one section per subsystem.

    Build it with load_config() to pick up YAML and environment layers.
    """

    browser: BrowserSettings = Field(
        default_factory=BrowserSettings,
        description="Browser launch and context options",
    )
    crawler: CrawlerSettings = Field(
        default_factory=CrawlerSettings,
        description="Crawl budget and behaviour",
    )
    output: OutputSettings = Field(
        default_factory=OutputSettings,
        description="Result document settings",
    )
    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Log level and destinations",
    )

    model_config = {
        "extra": "forbid",
        "validate_default": True,
    }
