"""
Pydantic configuration models for GrantWatch.

These models provide type-safe configuration with validation for:
- Portal location and selectors
- Search filters
- Timeouts for optional and mandatory waits
- Pagination, enrichment and browser settings
- Logging
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, SecretStr, field_validator


# =============================================================================
# Portal Constants
# =============================================================================


DEFAULT_STATUS_FILTERS = ["Open for Applications", "Future"]

DEFAULT_AREA_OF_WORK_FILTERS = [
    "Community",
    "Disability",
    "Supporting Parents and Children",
    "Promoting Mental Health",
    "Promoting Physical Health",
    "Community Facilities",
    "Sport and Recreation",
    "Play Opportunities",
]

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)


# =============================================================================
# Credentials
# =============================================================================


class Credentials(BaseModel):
    """Portal login credentials."""

    username: str = Field(..., min_length=1, description="Portal login email")
    password: SecretStr = Field(..., description="Portal login password")

    @field_validator("username")
    @classmethod
    def username_not_blank(cls, v: str) -> str:
        """Reject whitespace-only usernames."""
        if not v.strip():
            raise ValueError("username must not be blank")
        return v

    @property
    def masked_username(self) -> str:
        """First few characters of the username, for logs."""
        return f"{self.username[:5]}..."


# =============================================================================
# Portal Configuration
# =============================================================================


class SelectorConfig(BaseModel):
    """Selectors and fixed strings for the portal markup."""

    cookie_accept: str = Field(
        default='button.ccc-accept-button, #ccc-accept-settings, [data-ccc-action="accept"]',
        description="Cookie consent accept control",
    )
    login_email: str = Field(default="#LogOnEmail", description="Login email input")
    login_password: str = Field(default="#LogOnPassword", description="Login password input")
    login_submit: str = Field(
        default='input[type="submit"][value="Log in"]',
        description="Login submit control",
    )
    login_errors: str = Field(
        default=".validation-summary-errors",
        description="Validation summary shown on failed login",
    )
    search_link_text: str = Field(
        default="Search for funding",
        description="Text of the post-login navigation link to the search",
    )
    filter_checkbox: str = Field(
        default='label:has-text("{label}") input',
        description="Filter checkbox template, {label} is the filter text",
    )
    search_submit: str = Field(
        default="button.siteSearchFilter",
        description="Search form submit button",
    )
    detail_link_fragment: str = Field(
        default="/Scheme/View/",
        description="Path fragment identifying grant detail links",
    )
    first_title_link: str = Field(
        default='main li a[href*="/Scheme/View/"]',
        description="First record title link, used to detect page changes",
    )
    next_page_title: str = Field(
        default='a[title="Click to go to page {page} of results"]',
        description="Pagination link template, {page} is the page number",
    )
    pagination_links: str = Field(
        default="ul.pagination a",
        description="Pagination links for the structural scan",
    )


class PortalConfig(BaseModel):
    """Location of the portal."""

    name: str = Field(default="idox_bca", min_length=1, description="Portal identifier for logs")
    base_url: str = Field(
        default="https://funding.idoxopen4community.co.uk",
        description="Origin used to resolve relative links",
    )
    entry_path: str = Field(default="/bca", description="Path of the login landing page")
    post_login_url_patterns: list[str] = Field(
        default_factory=lambda: ["**/Home**", "**/Search**"],
        min_length=1,
        description="URL globs that indicate a successful login",
    )
    selectors: SelectorConfig = Field(default_factory=SelectorConfig)

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the base URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must be an http(s) URL")
        return v.rstrip("/")

    @property
    def entry_url(self) -> str:
        """Full URL of the login landing page."""
        return f"{self.base_url}/{self.entry_path.lstrip('/')}"


class FilterConfig(BaseModel):
    """Fixed search filters."""

    status: list[str] = Field(default_factory=lambda: list(DEFAULT_STATUS_FILTERS))
    area_of_work: list[str] = Field(default_factory=lambda: list(DEFAULT_AREA_OF_WORK_FILTERS))

    def as_used(self) -> dict[str, list[str]]:
        """Filters in result wire shape."""
        return {"status": list(self.status), "areaOfWork": list(self.area_of_work)}


# =============================================================================
# Timeouts
# =============================================================================


class TimeoutConfig(BaseModel):
    """Bounds for every wait, in milliseconds.

    Short timeouts guard optional UI and their expiry means "absent".
    Long timeouts guard navigation and network settling.
    """

    default_action_ms: int = Field(default=10000, ge=100)
    portal_load_ms: int = Field(default=30000, ge=1000)
    portal_load_attempts: int = Field(default=2, ge=1, le=5)
    cookie_banner_ms: int = Field(default=3000, ge=0)
    cookie_settle_ms: int = Field(default=1000, ge=0)
    login_form_ms: int = Field(default=10000, ge=100)
    login_signal_ms: int = Field(default=30000, ge=100)
    login_fallback_ms: int = Field(default=5000, ge=0)
    search_link_ms: int = Field(default=5000, ge=0)
    network_idle_ms: int = Field(default=30000, ge=100)
    filter_checkbox_ms: int = Field(default=1000, ge=0)
    filter_submit_ms: int = Field(default=2000, ge=0)
    next_page_title_ms: int = Field(default=3000, ge=0)
    next_page_role_ms: int = Field(default=2000, ge=0)
    content_change_ms: int = Field(default=15000, ge=0)
    content_change_fallback_ms: int = Field(default=2000, ge=0)
    page_settle_ms: int = Field(default=500, ge=0)
    detail_page_ms: int = Field(default=30000, ge=100)
    politeness_ms: int = Field(default=500, ge=0)


# =============================================================================
# Pagination and Enrichment
# =============================================================================


class PaginationConfig(BaseModel):
    """Listing walk settings."""

    hard_cap: int = Field(
        default=60,
        ge=1,
        le=60,
        description="Maximum listing pages walked per run, at most 60",
    )


class EnrichmentConfig(BaseModel):
    """Detail page capture limits, in characters."""

    description_max: int = Field(default=2000, ge=1)
    eligibility_max: int = Field(default=2000, ge=1)
    how_to_apply_max: int = Field(default=1000, ge=1)
    contact_max: int = Field(default=500, ge=1)
    excerpt_max: int = Field(default=500, ge=1)
    area_tag_max: int = Field(
        default=50,
        ge=1,
        description="Tag texts at or above this length are not area-of-work values",
    )
    title_preview: int = Field(default=60, ge=1, description="Title length in progress events")


# =============================================================================
# Browser and Logging
# =============================================================================


class PlaywrightConfig(BaseModel):
    """Playwright-specific backend configuration."""

    browser: str = Field(default="chromium", description="Browser to use: chromium, firefox, webkit")
    headless: bool = Field(default=True)
    user_agent: str = Field(default=DEFAULT_USER_AGENT)
    viewport_width: int = Field(default=1920, ge=320, le=3840)
    viewport_height: int = Field(default=1080, ge=240, le=2160)
    stealth: bool = Field(default=True, description="Hide common automation fingerprints")
    screenshots_on_error: bool = Field(default=False)
    screenshots_path: Path = Field(default=Path("snapshots"))

    @field_validator("browser")
    @classmethod
    def known_browser(cls, v: str) -> str:
        """Only the three Playwright engines are supported."""
        if v not in ("chromium", "firefox", "webkit"):
            raise ValueError(f"unsupported browser: {v}")
        return v


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    file: Path | None = Field(default=None, description="Log file path")
    json_format: bool = Field(default=True, description="Use JSON format for file logs")
    rich_console: bool = Field(default=True, description="Use Rich for console output")


# =============================================================================
# Application Configuration
# =============================================================================


class AppConfig(BaseModel):
    """Root configuration, built once at startup and passed to the runner."""

    portal: PortalConfig = Field(default_factory=PortalConfig)
    filters: FilterConfig = Field(default_factory=FilterConfig)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)
    pagination: PaginationConfig = Field(default_factory=PaginationConfig)
    enrichment: EnrichmentConfig = Field(default_factory=EnrichmentConfig)
    playwright: PlaywrightConfig = Field(default_factory=PlaywrightConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    credentials: Credentials | None = Field(
        default=None,
        description="Set from the environment, never from the YAML file",
    )
