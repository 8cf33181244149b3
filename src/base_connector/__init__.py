from base_connector.config import BaseConnectorSettings, ConnectorConfig, ListFromString
from base_connector.connector import BaseConnector
from base_connector.errors import (
    AuthenticationError,
    ConfigRetrievalError,
    ConnectorClientError,
    ConnectorError,
    ConnectorWarning,
    StateError,
)
from base_connector.logger import ConnectorLogger, setup_logger

__all__ = [
    "AuthenticationError",
    "BaseConnector",
    "BaseConnectorSettings",
    "ConfigRetrievalError",
    "ConnectorClientError",
    "ConnectorConfig",
    "ConnectorError",
    "ConnectorLogger",
    "ConnectorWarning",
    "ListFromString",
    "StateError",
    "setup_logger",
]
