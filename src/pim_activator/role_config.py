"""Immutable description of the roles a user wants activated."""

from enum import StrEnum

from pim_activator.models import (
    EligibleRole,
    Preferences,
    RoleIdentity,
    RoleKind,
    ScopeType,
)
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_JUSTIFICATION = "Automated daily role activation"
DEFAULT_DURATION_HOURS = 8


class ActivationMode(StrEnum):
    ALL = "all"
    NAMED = "named"


class ResourceScope(BaseModel):
    model_config = ConfigDict(frozen=True)

    scope: str
    scope_type: ScopeType
    # Empty means every eligible role at this scope
    roles: tuple[str, ...] = ()
    max_duration_hours: int | None = Field(default=None, ge=1, le=24)


class RoleFilter:
    """Named subset of roles to activate, matched case-insensitively."""

    def __init__(
        self,
        directory_roles: tuple[str, ...] = (),
        resource_scopes: tuple[ResourceScope, ...] = (),
    ) -> None:
        self._directory_roles = {name.lower() for name in directory_roles}
        self._resource_roles = {
            scope.scope.lower(): {role.lower() for role in scope.roles}
            for scope in resource_scopes
        }

    def allows(self, identity: RoleIdentity) -> bool:
        if identity.kind is RoleKind.DIRECTORY:
            return identity.role_name.lower() in self._directory_roles

        roles = self._resource_roles.get(identity.scope.lower())
        if roles is None:
            return False
        return not roles or identity.role_name.lower() in roles


class RoleConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    activation_mode: ActivationMode = ActivationMode.NAMED
    directory_roles: tuple[str, ...] = ()
    resource_scopes: tuple[ResourceScope, ...] = ()
    enable_directory_roles: bool = True
    enable_resource_roles: bool = True
    justification: str | None = None
    directory_duration_hours: int | None = Field(default=None, ge=1, le=24)
    resource_duration_hours: int | None = Field(default=None, ge=1, le=24)

    def enabled_kinds(self) -> list[RoleKind]:
        kinds = []
        if self.enable_directory_roles:
            kinds.append(RoleKind.DIRECTORY)
        if self.enable_resource_roles:
            kinds.append(RoleKind.RESOURCE)
        return kinds

    def role_filter(self, kind: RoleKind) -> RoleFilter | None:
        """The filter to apply to eligible roles, None when every role is wanted."""
        if self.activation_mode is ActivationMode.ALL:
            return None
        if kind is RoleKind.DIRECTORY:
            return RoleFilter(directory_roles=self.directory_roles)
        return RoleFilter(resource_scopes=self.resource_scopes)

    def find_scope(self, scope: str) -> ResourceScope | None:
        for resource_scope in self.resource_scopes:
            if resource_scope.scope.lower() == scope.lower():
                return resource_scope
        return None

    def resolve_preferences(self, stored: Preferences) -> Preferences:
        """
        Resolve justification and default durations.

        Configured values (command line overrides included) win over the stored
        preferences, which win over the built-in defaults.
        """
        return Preferences(
            default_justification=self.justification
            or stored.default_justification
            or DEFAULT_JUSTIFICATION,
            directory_duration_hours=self.directory_duration_hours
            or stored.directory_duration_hours
            or DEFAULT_DURATION_HOURS,
            resource_duration_hours=self.resource_duration_hours
            or stored.resource_duration_hours
            or DEFAULT_DURATION_HOURS,
        )

    def default_duration(self, role: EligibleRole, preferences: Preferences) -> int:
        if role.kind is RoleKind.DIRECTORY:
            return preferences.directory_duration_hours or DEFAULT_DURATION_HOURS

        duration = preferences.resource_duration_hours or DEFAULT_DURATION_HOURS
        resource_scope = self.find_scope(role.scope)
        if resource_scope is not None and resource_scope.max_duration_hours:
            duration = min(duration, resource_scope.max_duration_hours)
        return duration

    def resource_scope_paths(self) -> list[str]:
        return [resource_scope.scope for resource_scope in self.resource_scopes]
