import datetime
import json
from pathlib import Path
from typing import Any

import pytest
from base_connector.errors import ConfigRetrievalError
from pim_activator.config import ConnectorSettings, PimConfig
from pim_activator.models import ScopeType
from pim_activator.role_config import ActivationMode, ResourceScope
from pydantic import ValidationError
from pydantic_settings import SettingsConfigDict
from pytest_mock import MockerFixture

SUBSCRIPTION = "/subscriptions/11111111-1111-1111-1111-111111111111"


@pytest.mark.usefixtures("mock_pim_config")
def test_config() -> None:
    config = ConnectorSettings()

    assert config.connector.name == "PIM Activator"
    assert config.connector.log_level == "debug"
    assert config.connector.state_file == Path("/tmp/pim-activator/state.json")
    assert config.connector.duration_period == datetime.timedelta(hours=12)
    assert config.connector.run_and_terminate is True

    assert config.azure.tenant_id == "tenant-id"
    assert config.azure.client_id == "client-id"
    assert config.azure.client_secret.get_secret_value() == "client-secret"
    assert config.azure.graph_url == "https://graph.microsoft.com/v1.0"
    assert config.azure.management_api_version == "2020-10-01"

    assert config.pim.activation_mode is ActivationMode.NAMED
    assert config.pim.justification == "Daily operations"
    assert config.pim.directory_duration_hours == 8
    assert config.pim.resource_duration_hours is None
    assert config.pim.directory_roles == ["Global Reader", "Security Reader"]
    assert len(config.pim.resource_scopes) == 1
    assert config.pim.resource_scopes[0].scope == SUBSCRIPTION
    assert config.pim.resource_scopes[0].scope_type is ScopeType.SUBSCRIPTION
    assert config.pim.resource_scopes[0].roles == []


@pytest.mark.usefixtures("mock_pim_config")
def test_secrets_are_masked() -> None:
    dumped = ConnectorSettings().model_dump_safe()

    assert dumped["azure"]["client_secret"] == "**********"
    assert dumped["connector"]["state_file"] == "/tmp/pim-activator/state.json"


@pytest.mark.usefixtures("mock_pim_config")
def test_resource_scopes_from_json(mocker: MockerFixture) -> None:
    mocker.patch.dict(
        "os.environ",
        {
            "PIM_RESOURCE_SCOPES": json.dumps(
                [
                    {"scope": SUBSCRIPTION, "roles": ["Owner", "Reader"]},
                    {
                        "scope": f"{SUBSCRIPTION}/resourceGroups/rg-prod",
                        "roles": "Contributor",
                        "max_duration_hours": 4,
                    },
                ]
            )
        },
    )

    scopes = ConnectorSettings().pim.resource_scopes

    assert scopes[0].roles == ["Owner", "Reader"]
    assert scopes[1].scope_type is ScopeType.RESOURCE_GROUP
    assert scopes[1].roles == ["Contributor"]
    assert scopes[1].max_duration_hours == 4


@pytest.mark.usefixtures("mock_pim_config")
def test_invalid_config(mocker: MockerFixture) -> None:
    mocker.patch.dict("os.environ", {"PIM_DIRECTORY_DURATION_HOURS": "48"})

    with pytest.raises(ConfigRetrievalError) as exc_info:
        ConnectorSettings()

    assert "directory_duration_hours" in exc_info.value.metadata["error"]


@pytest.mark.usefixtures("mock_pim_config")
def test_unsupported_scope(mocker: MockerFixture) -> None:
    mocker.patch.dict("os.environ", {"PIM_RESOURCE_SCOPES": "/tenants/unknown"})

    with pytest.raises(ConfigRetrievalError):
        ConnectorSettings()


def test_yaml_config() -> None:
    class YamlConfig(ConnectorSettings):
        model_config = SettingsConfigDict(
            yaml_file=f"{Path(__file__).parent}/config.test.yml"
        )

    config = YamlConfig()

    assert config.connector.run_and_terminate is False
    assert config.pim.activation_mode is ActivationMode.ALL
    assert config.pim.enable_directory_roles is False
    assert config.pim.resource_scopes[0].scope_type is ScopeType.MANAGEMENT_GROUP
    assert config.pim.resource_scopes[0].max_duration_hours == 2


def test_to_role_config() -> None:
    pim_config = PimConfig(
        justification="Configured",
        directory_duration_hours=8,
        directory_roles=["Global Reader"],
        resource_scopes=[
            {"scope": SUBSCRIPTION, "roles": ["Owner"], "max_duration_hours": 4}
        ],
    )

    role_config = pim_config.to_role_config(
        {"justification": None, "directory_duration_hours": 2}
    )

    assert role_config.justification == "Configured"
    assert role_config.directory_duration_hours == 2
    assert role_config.directory_roles == ("Global Reader",)
    assert role_config.resource_scopes == (
        ResourceScope(
            scope=SUBSCRIPTION,
            scope_type=ScopeType.SUBSCRIPTION,
            roles=("Owner",),
            max_duration_hours=4,
        ),
    )


@pytest.mark.parametrize(
    "value",
    [{"scope": SUBSCRIPTION, "max_duration_hours": 0}, {"roles": ["Owner"]}],
)
def test_invalid_resource_scope(value: dict[str, Any]) -> None:
    with pytest.raises(ValidationError):
        PimConfig(resource_scopes=[value])
