"""
Read and write the configuration file.

Settings are read, in order of precedence, from the arguments given to
the constructor, from environment variables prefixed with `PIPELOOP_`,
and from a `pipeloop.toml` file in the working directory. All fields
have defaults, so that the file is optional.

**Example**:

    ```python
    from pipeloop.config import Settings, export_settings

    settings = Settings(prod=True, max_calls=20)
    export_settings(settings)  # writes pipeloop.toml
    ```
"""

from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

DEFAULT_CONFIG_FILE = "pipeloop.toml"
ENV_PREFIX = "PIPELOOP_"


class Settings(BaseSettings):
    """
    A pydantic settings object containing the configuration of the
    pipe orchestrator.

    Attributes:
        prod: run against the production endpoint. In production the
            pipe definition is stored on the server; otherwise it is
            sent along with each request to a local server.
        prod_url: base URL of the production endpoint
        local_url: base URL of the local development server
        max_calls: default bound on tool-call resubmissions per run
        timeout: HTTP timeout in seconds
        api_key: pipe API key used when a pipe does not give its own
    """

    prod: bool = Field(
        default=False,
        description="Use the production endpoint",
    )
    prod_url: str = Field(
        default="https://api.langbase.com",
        description="Base URL of the production endpoint",
    )
    local_url: str = Field(
        default="http://localhost:9000",
        description="Base URL of the local development server",
    )
    max_calls: int = Field(
        default=100,
        ge=1,
        description="Maximum number of resubmissions after tool calls",
    )
    timeout: float = Field(
        default=30.0, gt=0, description="Request timeout in seconds"
    )
    api_key: str | None = Field(
        default=None, description="Default pipe API key"
    )

    model_config = SettingsConfigDict(
        toml_file=DEFAULT_CONFIG_FILE,
        env_prefix=ENV_PREFIX,
        frozen=True,
        extra='ignore',
    )

    @field_validator('prod_url', 'local_url', mode='after')
    @classmethod
    def validate_url(cls, url: str) -> str:
        cleaned = url.strip().rstrip('/')
        if not cleaned.startswith(('http://', 'https://')):
            raise ValueError(
                f"Invalid URL '{url}': must start with http:// or https://"
            )
        return cleaned

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize the order of settings sources."""
        return (
            init_settings,
            env_settings,
            TomlConfigSettingsSource(settings_cls),
        )

    def get_base_url(self, prod: bool | None = None) -> str:
        """The base URL of the endpoint for the given mode (defaults
        to the mode of the settings)."""
        if prod is None:
            prod = self.prod
        return self.prod_url if prod else self.local_url


def serialize_settings(sets: BaseSettings) -> str:
    """Transform the settings into a string in TOML format.

    Args:
        sets: The settings object to serialize

    Returns:
        TOML formatted string representation of settings
    """
    import tomlkit

    doc = tomlkit.document()
    doc.add(tomlkit.comment("Configuration file"))
    doc.add(tomlkit.nl())

    data: dict[str, Any] = sets.model_dump()
    for key, value in data.items():
        # None values can't be serialized to TOML
        if value is not None:
            doc[key] = value

    return str(tomlkit.dumps(doc))


def export_settings(
    settings: BaseSettings, file_path: str | Path | None = None
) -> None:
    """Save settings to file in TOML format.

    Args:
        settings: A settings object to save
        file_path: The settings file path (defaults to pipeloop.toml)

    Raises:
        OSError: If file cannot be written
    """
    if file_path is None:
        file_path = DEFAULT_CONFIG_FILE

    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    with file_path.open("w", encoding="utf-8") as f:
        f.write(serialize_settings(settings))


def load_settings(file_path: str | Path | None = None) -> Settings:
    """Load settings from TOML file.

    Args:
        file_path: Path to settings file (defaults to pipeloop.toml)

    Raises:
        FileNotFoundError: If settings file doesn't exist
        ValueError: If settings file is invalid
    """
    if file_path is None:
        file_path = DEFAULT_CONFIG_FILE

    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(
            f"Settings file not found: {file_path}"
        )

    try:

        class FileSettings(Settings):
            model_config = SettingsConfigDict(
                toml_file=str(file_path),
                env_prefix=ENV_PREFIX,
                frozen=True,
                extra='ignore',
            )

        return FileSettings()
    except Exception as e:
        raise ValueError(
            f"Failed to load settings from {file_path}: {e}"
        ) from e
