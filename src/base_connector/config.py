import abc
import datetime
from pathlib import Path
from typing import Annotated, Any

from base_connector.enums import LogLevelType
from base_connector.errors import ConfigRetrievalError
from pydantic import BaseModel, BeforeValidator, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

"""
All the variables of these classes are customizable through:
    - config.yml
    - .env
    - environment variables.

If a variable is set in 2 different places, the first one will be used in this order:
    1. YAML file
    2. .env file
    3. Environment variables
    4. Default value

WARNING:
    The Environment variables in the .env or global environment must be set in the following format:
    CONNECTOR_<variable>
    AZURE_<variable>
    PIM_<variable>

    the split is made on the first occurrence of the "_" character.
"""


def environ_list_validator(value: str | list[str]) -> list[str]:
    if isinstance(value, str):
        return [string.strip() for string in value.split(",") if string.strip()]
    return value


ListFromString = Annotated[
    list[str],  # Final type
    BeforeValidator(environ_list_validator),
]


class ConnectorConfig(BaseModel):
    name: str = Field(
        default="Connector",
        description="The name of the connector, used in logs.",
    )
    log_level: LogLevelType = Field(
        default=LogLevelType.INFO,
        description="The minimum level of logs to display.",
    )
    json_logging: bool = Field(
        default=False,
        description="Whether to format the logs as JSON.",
    )
    log_file: Path | None = Field(
        default=None,
        description="Optional file receiving a copy of the logs.",
    )
    duration_period: datetime.timedelta = Field(
        default=datetime.timedelta(days=1),
        description="The period of time to await between two runs of the connector.",
    )
    run_and_terminate: bool = Field(
        default=True,
        description="Run a single pass and exit instead of scheduling runs.",
    )


class BaseConnectorSettings(abc.ABC, BaseSettings):
    connector: ConnectorConfig = Field(
        default_factory=ConnectorConfig,
        description="Configuration for the connector.",
    )

    # files are resolved from the current working directory unless overridden
    model_config = SettingsConfigDict(
        extra="allow",
        env_nested_delimiter="_",
        env_nested_max_split=1,
        enable_decoding=False,
    )

    def __init__(self) -> None:
        try:
            super().__init__()
        except Exception as e:
            raise ConfigRetrievalError(
                "Invalid configuration.", {"error": str(e)}
            ) from e

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """
        Customise the sources of settings for the connector.

        This method is called by the Pydantic BaseSettings class to determine the order of sources

        The configuration come in this order either from:
            1. YAML file
            2. .env file
            3. Environment variables
            4. Default values
        """
        if Path(settings_cls.model_config.get("yaml_file") or "").is_file():  # type: ignore
            return (YamlConfigSettingsSource(settings_cls),)
        if Path(settings_cls.model_config.get("env_file") or "").is_file():  # type: ignore
            return (dotenv_settings,)
        return (env_settings,)

    def model_dump_safe(self) -> dict[str, Any]:
        """Dump the settings as JSON-compatible values, secrets masked."""
        return self.model_dump(mode="json")
