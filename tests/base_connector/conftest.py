import os
from copy import deepcopy
from typing import Any

import pytest
from pytest_mock import MockerFixture


@pytest.fixture(name="config_dict")
def fixture_config_dict() -> dict[str, dict[str, Any]]:
    return {
        "connector": {
            "name": "Test Connector",
            "log_level": "debug",
            "json_logging": True,
            "duration_period": "PT5M",
            "run_and_terminate": False,
        },
    }


@pytest.fixture(name="mocked_environ")
def fixture_mocked_environ(
    mocker: MockerFixture, config_dict: dict[str, dict[str, Any]]
) -> None:
    environ = deepcopy(os.environ)
    for key, value in config_dict.items():
        for sub_key, sub_value in value.items():
            if sub_value is not None:
                environ[f"{key.upper()}_{sub_key.upper()}"] = str(sub_value)
    mocker.patch("os.environ", environ)
