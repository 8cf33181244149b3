import os
from copy import deepcopy
from pathlib import Path
from typing import Any, Callable
from unittest.mock import MagicMock

import pytest
from pim_activator.config import ConnectorSettings
from pim_activator.models import EligibleRole, RoleKind, ScopeType
from pim_activator.state import StateManager
from pytest_mock import MockerFixture

SUBSCRIPTION = "/subscriptions/11111111-1111-1111-1111-111111111111"
OWNER_DEFINITION_ID = (
    f"{SUBSCRIPTION}/providers/Microsoft.Authorization/roleDefinitions/"
    "8e3af657-a8ff-443c-a75c-2fe8c4bcb635"
)


@pytest.fixture(name="pim_config_dict")
def fixture_pim_config_dict() -> dict[str, dict[str, Any]]:
    return {
        "connector": {
            "name": "PIM Activator",
            "log_level": "debug",
            "state_file": "/tmp/pim-activator/state.json",
            "duration_period": "PT12H",
        },
        "azure": {
            "tenant_id": "tenant-id",
            "client_id": "client-id",
            "client_secret": "client-secret",
        },
        "pim": {
            "activation_mode": "named",
            "justification": "Daily operations",
            "directory_duration_hours": 8,
            "directory_roles": "Global Reader,Security Reader",
            "resource_scopes": f"{SUBSCRIPTION}",
        },
    }


@pytest.fixture(name="mock_pim_config")
def fixture_mock_pim_config(
    mocker: MockerFixture, pim_config_dict: dict[str, dict[str, Any]]
) -> None:
    # Make sure the local config is not loaded in the tests
    ConnectorSettings.model_config["yaml_file"] = ""
    ConnectorSettings.model_config["env_file"] = ""

    environ = deepcopy(os.environ)
    for key, value in pim_config_dict.items():
        for sub_key, sub_value in value.items():
            if sub_value is not None:
                environ[f"{key.upper()}_{sub_key.upper()}"] = str(sub_value)
    mocker.patch("os.environ", environ)


@pytest.fixture(name="logger")
def fixture_logger() -> MagicMock:
    return MagicMock()


@pytest.fixture(name="state_manager")
def fixture_state_manager(tmp_path: Path, logger: MagicMock) -> StateManager:
    return StateManager(path=tmp_path / "state.json", logger=logger)


@pytest.fixture(name="directory_role")
def fixture_directory_role() -> Callable[..., EligibleRole]:
    """Factory fixture to create eligible directory roles."""

    def _factory(name: str = "Global Reader", **kwargs: Any) -> EligibleRole:
        return EligibleRole(
            kind=RoleKind.DIRECTORY,
            role_name=name,
            role_definition_id=kwargs.pop(
                "role_definition_id", f"{name.lower().replace(' ', '-')}-id"
            ),
            **kwargs,
        )

    return _factory


@pytest.fixture(name="resource_role")
def fixture_resource_role() -> Callable[..., EligibleRole]:
    """Factory fixture to create eligible resource roles."""

    def _factory(
        name: str = "Owner", scope: str = SUBSCRIPTION, **kwargs: Any
    ) -> EligibleRole:
        return EligibleRole(
            kind=RoleKind.RESOURCE,
            role_name=name,
            role_definition_id=kwargs.pop("role_definition_id", OWNER_DEFINITION_ID),
            scope=scope,
            scope_type=kwargs.pop("scope_type", ScopeType.from_scope(scope)),
            eligibility_schedule_id=kwargs.pop(
                "eligibility_schedule_id", "eligibility-schedule-id"
            ),
            **kwargs,
        )

    return _factory
