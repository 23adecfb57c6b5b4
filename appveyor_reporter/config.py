"""Configuration for the AppVeyor reporter."""

from pydantic import Field, PositiveInt
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


class ReporterSettings(BaseSettings):
    """Reporter configuration.

    Environment variables (``APPVEYOR_API_URL``, ``APPVEYOR_BATCH_SIZE``,
    ``APPVEYOR_BATCH_INTERVAL_IN_MS``) override options passed explicitly,
    which override the defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="APPVEYOR_",
        case_sensitive=False,
        env_ignore_empty=True,
        frozen=True,
    )

    api_url: str | None = Field(
        default=None,
        description="AppVeyor build worker API URL (reporting disabled if unset)",
    )
    batch_size: PositiveInt = Field(
        default=100,
        description="Queued results that trigger an immediate flush",
    )
    batch_interval_in_ms: PositiveInt = Field(
        default=1000,
        description="Milliseconds between timer-driven flushes",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Environment wins over explicit options.
        return (env_settings, init_settings)

    @classmethod
    def from_options(cls, **options: object) -> "ReporterSettings":
        """Build settings from explicit options, ignoring those left unset."""
        explicit = {key: value for key, value in options.items() if value is not None}
        return cls(**explicit)

    @property
    def enabled(self) -> bool:
        """Whether results should be sent at all."""
        return bool(self.api_url)

    @property
    def batch_interval(self) -> float:
        """Flush interval in seconds."""
        return self.batch_interval_in_ms / 1000
