from pathlib import Path

from base_connector.connector import BaseConnector
from base_connector.logger import ConnectorLogger
from pim_activator.activator import DirectoryRoleActivator, ResourceRoleActivator
from pim_activator.client import AzureSession
from pim_activator.config import ConnectorSettings
from pim_activator.lister import DirectoryRoleLister, ResourceRoleLister
from pim_activator.models import RoleKind, RunSummary
from pim_activator.orchestrator import RunOrchestrator
from pim_activator.reporter import RunReporter
from pim_activator.role_config import RoleConfig
from pim_activator.state import StateManager


class Connector(BaseConnector):
    """
    Scheduled self-activation of Azure PIM eligible roles.

    Each pass signs in, lists the eligible directory and resource roles of the
    signed-in principal and activates the configured ones, learning from the
    activation history kept in the state file.
    """

    def __init__(
        self,
        config: ConnectorSettings,
        logger: ConnectorLogger,
        role_config: RoleConfig,
        session: AzureSession | None = None,
        state_file: Path | None = None,
    ) -> None:
        super().__init__(config=config, logger=logger)
        self.role_config = role_config
        self.session = session
        self.state_manager = StateManager(
            path=state_file or config.connector.state_file, logger=logger
        )

    def _get_session(self) -> AzureSession:
        if self.session is None:
            self.session = AzureSession.from_config(self.config.azure, self.logger)
        return self.session

    def build_orchestrator(self) -> RunOrchestrator:
        """Sign in and wire the listers and activators of the signed-in principal."""
        session = self._get_session()
        principal_id = session.principal_id()

        return RunOrchestrator(
            role_config=self.role_config,
            state_manager=self.state_manager,
            listers={
                RoleKind.DIRECTORY: DirectoryRoleLister(
                    client=session.graph, principal_id=principal_id, logger=self.logger
                ),
                RoleKind.RESOURCE: ResourceRoleLister(
                    client=session.management,
                    logger=self.logger,
                    scopes=self.role_config.resource_scope_paths(),
                ),
            },
            activators={
                RoleKind.DIRECTORY: DirectoryRoleActivator(
                    client=session.graph, principal_id=principal_id, logger=self.logger
                ),
                RoleKind.RESOURCE: ResourceRoleActivator(
                    client=session.management,
                    principal_id=principal_id,
                    logger=self.logger,
                ),
            },
            reporter=RunReporter(self.logger),
            logger=self.logger,
            principal_id=principal_id,
        )

    def process_data(self, list_only: bool = False) -> RunSummary:  # type: ignore[override]
        return self.build_orchestrator().run(list_only=list_only)
