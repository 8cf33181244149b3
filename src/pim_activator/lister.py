import abc
from collections.abc import Iterable
from typing import Any

from base_connector.logger import ConnectorLogger
from pim_activator.client import GraphClient, ResourceManagerClient
from pim_activator.models import EligibleRole, RoleKind, ScopeType


class EligibleRoleLister(abc.ABC):
    """Read-only query of the roles the principal may self-activate, for one role kind."""

    kind: RoleKind

    def __init__(self, logger: ConnectorLogger) -> None:
        self.logger = logger

    def list_eligible_roles(self) -> list[EligibleRole]:
        """
        List eligible roles, deduplicated by identity and ordered by name then scope.
        Any API error is propagated.
        """
        roles: dict[str, EligibleRole] = {}
        for item in self._fetch():
            role = self._to_eligible_role(item)
            if role is None:
                self.logger.debug(
                    f"[{self.kind.upper()}] Ignoring unusable eligibility",
                    {"id": item.get("id")},
                )
                continue
            roles.setdefault(role.identity.key, role)

        eligible_roles = sorted(
            roles.values(), key=lambda role: (role.role_name.lower(), role.scope.lower())
        )
        self.logger.info(
            f"[{self.kind.upper()}] Eligible roles found",
            {"count": len(eligible_roles)},
        )
        return eligible_roles

    @abc.abstractmethod
    def _fetch(self) -> Iterable[dict[str, Any]]:
        """Raw eligibility schedule instances."""

    @abc.abstractmethod
    def _to_eligible_role(self, item: dict[str, Any]) -> EligibleRole | None:
        """Convert an eligibility schedule instance, None when it can not be used."""


class DirectoryRoleLister(EligibleRoleLister):
    kind = RoleKind.DIRECTORY

    def __init__(
        self, client: GraphClient, principal_id: str, logger: ConnectorLogger
    ) -> None:
        super().__init__(logger)
        self.client = client
        self.principal_id = principal_id

    def _fetch(self) -> Iterable[dict[str, Any]]:
        return self.client.list_directory_eligibilities(self.principal_id)

    def _to_eligible_role(self, item: dict[str, Any]) -> EligibleRole | None:
        role_definition = item.get("roleDefinition") or {}
        role_name = role_definition.get("displayName")
        role_definition_id = item.get("roleDefinitionId") or role_definition.get("id")
        if not role_name or not role_definition_id:
            return None
        return EligibleRole(
            kind=RoleKind.DIRECTORY,
            role_name=role_name,
            role_definition_id=role_definition_id,
            scope=item.get("directoryScopeId") or "/",
            scope_type=ScopeType.DIRECTORY,
            eligibility_schedule_id=item.get("roleEligibilityScheduleId"),
        )


class ResourceRoleLister(EligibleRoleLister):
    kind = RoleKind.RESOURCE

    def __init__(
        self,
        client: ResourceManagerClient,
        logger: ConnectorLogger,
        scopes: Iterable[str] = (),
    ) -> None:
        """
        :param client: Azure Resource Manager client
        :param logger: Connector logger
        :param scopes: Scopes to query, the whole tenant when empty
        """
        super().__init__(logger)
        self.client = client
        self.scopes = list(scopes)

    def _fetch(self) -> Iterable[dict[str, Any]]:
        if not self.scopes:
            yield from self.client.list_resource_eligibilities()
            return
        for scope in self.scopes:
            self.logger.debug("[RESOURCE] Listing eligibilities", {"scope": scope})
            yield from self.client.list_resource_eligibilities(scope)

    def _to_eligible_role(self, item: dict[str, Any]) -> EligibleRole | None:
        properties = item.get("properties") or {}
        expanded = properties.get("expandedProperties") or {}
        role_definition = expanded.get("roleDefinition") or {}
        expanded_scope = expanded.get("scope") or {}

        role_name = role_definition.get("displayName")
        role_definition_id = properties.get("roleDefinitionId") or role_definition.get(
            "id"
        )
        scope = expanded_scope.get("id") or properties.get("scope")
        if not role_name or not role_definition_id or not scope:
            return None

        try:
            scope_type = ScopeType.from_api(expanded_scope.get("type"), scope)
        except ValueError:
            self.logger.warning(
                "[RESOURCE] Ignoring eligibility at an unsupported scope",
                {"role": role_name, "scope": scope},
            )
            return None

        return EligibleRole(
            kind=RoleKind.RESOURCE,
            role_name=role_name,
            role_definition_id=role_definition_id,
            scope=scope,
            scope_type=scope_type,
            eligibility_schedule_id=properties.get("roleEligibilityScheduleId"),
        )
