"""Configuration for the subtitle pipeline.

Process-level settings come from environment variables through
pydantic-settings. Per-component tuning lives in small frozen models
(``FilterConfig``, ``StyleConfig``) that are passed explicitly into each stage.
Per-request overrides arrive as ``SubtitleOptions`` and are merged over the
defaults into a new ``StyleConfig``.
"""

import logging
import tempfile
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict

from caption_translator.colors import DEFAULT_BACKGROUND_COLOR, DEFAULT_TEXT_COLOR

logger = logging.getLogger(__name__)

Region = Literal["bottom", "top", "middle", "any"]
Anchor = Literal["bottom", "top", "middle", "source"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: str = "development"
    work_dir: Path = Path(tempfile.gettempdir()) / "caption-translator"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: list[str] = ["*"]
    max_upload_mb: int = 100

    # Sampling / OCR
    sampling_rate_hz: float = Field(default=1.0, gt=0)
    ocr_throttle_seconds: float = Field(default=0.1, ge=0)
    ocr_language_hint: str = ""
    service_account_json: str = ""
    skip_intro_seconds: float = Field(default=0.0, ge=0)
    skip_outro_seconds: float = Field(default=0.0, ge=0)

    # Text handling
    subtitle_filter_enabled: bool = True
    normalize_cjk_spacing: bool = True

    # Translation
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_temperature: float = 0.3
    deepl_api_key: str = ""
    deepl_api_url: str = "https://api-free.deepl.com/v2/translate"

    # Fonts
    default_font_url: str = ""
    default_font_name: str = ""

    # Jobs
    job_ttl_seconds: int = 3600
    max_jobs: int = 1000
    eviction_interval_seconds: int = 600
    max_concurrent_jobs: int = 2

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    @property
    def uploads_dir(self) -> Path:
        return self.work_dir / "uploads"

    @property
    def jobs_dir(self) -> Path:
        return self.work_dir / "jobs"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


class FilterConfig(BaseModel):
    """Thresholds for the subtitle candidate filter.

    Attributes:
        enabled: When False, every clustered line is passed through
        region: Vertical band of the frame where subtitles are expected
        region_fraction: Height of that band as a fraction of frame height
        min_chars: Minimum non-whitespace character count
        min_words: Minimum whitespace-delimited word count
        min_aspect: Minimum width/height ratio
        max_lines_per_frame: Keep at most this many (widest) lines per frame
        require_persistence: Drop texts never seen in two consecutive samples
        frame_margin: Pixels added below the lowest box when estimating frame height
    """

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    region: Region = "bottom"
    region_fraction: float = 0.5
    min_chars: int = Field(default=1, ge=0)
    min_words: int = Field(default=1, ge=0)
    min_aspect: float = Field(default=1.0, ge=0)
    max_lines_per_frame: int = Field(default=2, ge=1)
    require_persistence: bool = True
    frame_margin: int = Field(default=10, ge=0)

    @field_validator("region_fraction")
    @classmethod
    def clamp_region_fraction(cls, v: float) -> float:
        return min(1.0, max(0.05, v))


class SubtitleOptions(BaseModel):
    """Per-request style overrides. Unset fields keep the configured defaults.

    Field names are accepted in snake_case or camelCase (``baseFontSize``).
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    base_font_size: int | None = Field(default=None, gt=0)
    box_padding: int | None = Field(default=None, ge=0, alias="boxPad")
    margin_v: int | None = Field(default=None, ge=0, alias="marginV")
    text_color: str | None = Field(default=None, alias="textColorHex")
    background_color: str | None = Field(default=None, alias="bgColorHex")
    force_single_line: bool | None = Field(default=None, alias="forceOneLine")
    max_width_fraction: float | None = Field(default=None, gt=0, le=1)
    cjk_width_factor: float | None = Field(default=None, gt=0)
    latin_width_factor: float | None = Field(default=None, gt=0)
    rounded_radius: int | None = Field(default=None, ge=0)
    background_blur: int | None = Field(default=None, ge=0, alias="bgBlur")
    anchor: Anchor | None = Field(default=None, alias="position")
    font_url: str | None = None
    font_name: str | None = None

    @classmethod
    def parse_lenient(cls, raw: dict[str, Any] | None) -> "SubtitleOptions":
        """Build options from untrusted input, dropping fields that fail validation.

        Malformed style options are a configuration problem, not a reason to
        reject the request, so each invalid field falls back to its default.
        """
        if not raw:
            return cls()
        data = dict(raw)
        # errors may be reported under either the field name or its alias
        names = {}
        for name, info in cls.model_fields.items():
            names[name] = {name, info.alias or name}
            names[info.alias or name] = names[name]
        while True:
            try:
                return cls.model_validate(data)
            except ValidationError as e:
                bad = set()
                for err in e.errors():
                    if err["loc"]:
                        bad |= names.get(err["loc"][0], {err["loc"][0]})
                bad &= set(data)
                if not bad:
                    logger.warning(f"Discarding unusable subtitle options: {e}")
                    return cls()
                for key in bad:
                    logger.warning(f"Ignoring invalid subtitle option {key}={data[key]!r}")
                    del data[key]


class StyleConfig(BaseModel):
    """Resolved layout and style parameters for one job."""

    model_config = ConfigDict(frozen=True)

    base_font_size: int = 44
    min_font_size: int = 12
    box_padding: int = 10
    margin_v: int = 90
    text_color: str = DEFAULT_TEXT_COLOR
    background_color: str = DEFAULT_BACKGROUND_COLOR
    force_single_line: bool = False
    max_width_fraction: float = 0.9
    cjk_width_factor: float = 0.9
    latin_width_factor: float = 0.62
    line_gap_ratio: float = 0.15
    rounded_radius: int = 0
    background_blur: int = 0
    anchor: Anchor = "bottom"
    font_url: str | None = None
    font_name: str | None = None

    @property
    def soft_badge(self) -> bool:
        """Whether the background is drawn as a blurred/rounded shape."""
        return self.rounded_radius > 0 or self.background_blur > 0

    def merged(self, options: SubtitleOptions | None) -> "StyleConfig":
        """Return a copy with the request's overrides applied."""
        if options is None:
            return self
        overrides = options.model_dump(exclude_none=True)
        return self.model_copy(update=overrides)


def default_style(settings: Settings | None = None) -> StyleConfig:
    """Build the baseline style, applying the configured default font if any."""
    settings = settings or get_settings()
    return StyleConfig(
        font_url=settings.default_font_url or None,
        font_name=settings.default_font_name or None,
    )
