from .config import ConnectorSettings
from .connector import Connector
from .orchestrator import RunOrchestrator

__all__ = [
    "Connector",
    "ConnectorSettings",
    "RunOrchestrator",
]
