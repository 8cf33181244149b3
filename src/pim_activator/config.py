import json
import os
from pathlib import Path
from typing import Annotated, Any

from base_connector.config import BaseConnectorSettings, ConnectorConfig, ListFromString
from pim_activator.models import ScopeType
from pim_activator.role_config import ActivationMode, ResourceScope, RoleConfig
from pydantic import BaseModel, BeforeValidator, Field, SecretStr, model_validator
from pydantic_settings import SettingsConfigDict

_FILE_PATH = os.path.dirname(os.path.abspath(__file__))


def resource_scopes_validator(value: Any) -> Any:
    """
    Accept resource scopes as a JSON document or as comma separated scope paths
    (environment variables), e.g.
        PIM_RESOURCE_SCOPES='[{"scope": "/subscriptions/<id>", "roles": ["Owner"]}]'
        PIM_RESOURCE_SCOPES=/subscriptions/<id>,/subscriptions/<id>/resourceGroups/rg
    """
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return []
        if value.startswith(("[", "{")):
            value = json.loads(value)
            return [value] if isinstance(value, dict) else value
        return [{"scope": scope.strip()} for scope in value.split(",") if scope.strip()]
    return value


class _ConnectorConfig(ConnectorConfig):
    name: str = Field(default="PIM Activator")
    state_file: Path = Field(
        default=Path("~/.pim-activator/state.json"),
        description="JSON file keeping the activation history between runs.",
    )


class AzureConfig(BaseModel):
    tenant_id: str | None = Field(default=None)
    client_id: str | None = Field(default=None)
    client_secret: SecretStr | None = Field(default=None)
    principal_id: str | None = Field(
        default=None,
        description="Object id of the principal to activate roles for, "
        "resolved from the signed-in user when omitted.",
    )
    graph_url: str = Field(default="https://graph.microsoft.com/v1.0")
    management_url: str = Field(default="https://management.azure.com")
    management_api_version: str = Field(default="2020-10-01")
    request_timeout: float = Field(default=30, gt=0)


class ResourceScopeConfig(BaseModel):
    scope: str
    scope_type: ScopeType | None = Field(default=None)
    roles: ListFromString = Field(default=[])
    max_duration_hours: int | None = Field(default=None, ge=1, le=24)

    @model_validator(mode="after")
    def _derive_scope_type(self) -> "ResourceScopeConfig":
        if self.scope_type is None:
            self.scope_type = ScopeType.from_scope(self.scope)
        return self


class PimConfig(BaseModel):
    activation_mode: ActivationMode = Field(default=ActivationMode.NAMED)
    justification: str | None = Field(default=None)
    directory_duration_hours: int | None = Field(default=None, ge=1, le=24)
    resource_duration_hours: int | None = Field(default=None, ge=1, le=24)
    directory_roles: ListFromString = Field(default=[])
    resource_scopes: Annotated[
        list[ResourceScopeConfig], BeforeValidator(resource_scopes_validator)
    ] = Field(default=[])
    enable_directory_roles: bool = Field(default=True)
    enable_resource_roles: bool = Field(default=True)

    def to_role_config(self, overrides: dict[str, Any] | None = None) -> RoleConfig:
        """
        Build the frozen role configuration.
        :param overrides: Values taking precedence over the settings (command line flags),
            `None` values are ignored
        :return: The role configuration
        """
        values: dict[str, Any] = {
            "activation_mode": self.activation_mode,
            "directory_roles": tuple(self.directory_roles),
            "resource_scopes": tuple(
                ResourceScope(
                    scope=resource_scope.scope,
                    scope_type=resource_scope.scope_type,
                    roles=tuple(resource_scope.roles),
                    max_duration_hours=resource_scope.max_duration_hours,
                )
                for resource_scope in self.resource_scopes
            ),
            "enable_directory_roles": self.enable_directory_roles,
            "enable_resource_roles": self.enable_resource_roles,
            "justification": self.justification,
            "directory_duration_hours": self.directory_duration_hours,
            "resource_duration_hours": self.resource_duration_hours,
        }
        values.update(
            {key: value for key, value in (overrides or {}).items() if value is not None}
        )
        return RoleConfig(**values)


class ConnectorSettings(BaseConnectorSettings):
    model_config = SettingsConfigDict(
        yaml_file=f"{_FILE_PATH}/../../config.yml",
        env_file=f"{_FILE_PATH}/../../.env",
    )

    connector: _ConnectorConfig = Field(default_factory=_ConnectorConfig)
    azure: AzureConfig = Field(default_factory=AzureConfig)
    pim: PimConfig = Field(default_factory=PimConfig)
