"""Role activators.

An activator submits self-activation requests for one role kind and translates the
provider responses and errors into the closed `AttemptSignal` vocabulary. Matching on
provider error codes and messages happens here and nowhere else.
"""

import abc
import datetime
from collections.abc import Sequence
from typing import Any

from base_connector.errors import ConnectorClientError, ConnectorError
from base_connector.logger import ConnectorLogger
from pim_activator.client import GraphClient, ResourceManagerClient
from pim_activator.models import (
    ActivationOutcome,
    ActivationStatus,
    AttemptResult,
    AttemptSignal,
    EligibleRole,
    RoleKind,
    ScopeType,
)

_ALREADY_ACTIVE_CODES = {"roleassignmentexists"}
_ALREADY_ACTIVE_MESSAGES = ("already exists", "already active")
_DURATION_CODES = ("policyvalidation", "invalidscheduleinfo")
_DURATION_MESSAGES = ("expiration", "duration")
_APPROVAL_MARKERS = ("pendingapproval", "requireapproval")

_SIGNAL_STATUS = {
    AttemptSignal.ACTIVATED: ActivationStatus.ACTIVATED,
    AttemptSignal.ALREADY_ACTIVE: ActivationStatus.ALREADY_ACTIVE,
    AttemptSignal.PENDING: ActivationStatus.PENDING,
}


def classify_activation_error(error: ConnectorClientError) -> AttemptSignal:
    """
    Translate an activation request error.
    :param error: Error raised by the API client
    :return: The attempt signal
    """
    code = (error.error_code or "").lower()
    message = (error.error_message or error.message or "").lower()
    text = f"{code} {message}"

    if code in _ALREADY_ACTIVE_CODES or any(
        marker in message for marker in _ALREADY_ACTIVE_MESSAGES
    ):
        return AttemptSignal.ALREADY_ACTIVE
    if "expirationrule" in text or (
        any(marker in code for marker in _DURATION_CODES)
        and any(marker in message for marker in _DURATION_MESSAGES)
    ):
        return AttemptSignal.DURATION_REJECTED
    if any(marker in text for marker in _APPROVAL_MARKERS):
        return AttemptSignal.PENDING
    return AttemptSignal.FAILED


def classify_activation_response(response: dict[str, Any]) -> AttemptSignal:
    """Translate an accepted activation request (Graph or ARM payload)."""
    status = response.get("status") or (response.get("properties") or {}).get(
        "status"
    )
    if status and str(status).lower().startswith("pendingapproval"):
        return AttemptSignal.PENDING
    return AttemptSignal.ACTIVATED


def resolve_role_definition_id(role: EligibleRole) -> str:
    """
    Resolve the role definition id in the namespace of the role's scope.

    Built-in role definitions are exposed under every subscription and management
    group; ARM requires the id matching the scope the request targets.
    """
    guid = role.role_definition_id.rstrip("/").rsplit("/", 1)[-1]
    segments = [segment for segment in role.scope.split("/") if segment]

    match role.scope_type:
        case ScopeType.MANAGEMENT_GROUP:
            return (
                f"/providers/Microsoft.Management/managementGroups/{segments[3]}"
                f"/providers/Microsoft.Authorization/roleDefinitions/{guid}"
            )
        case ScopeType.SUBSCRIPTION | ScopeType.RESOURCE_GROUP | ScopeType.RESOURCE:
            return (
                f"/subscriptions/{segments[1]}"
                f"/providers/Microsoft.Authorization/roleDefinitions/{guid}"
            )
        case _:
            raise ConnectorError(
                "[RESOURCE] Unsupported scope type for a resource role",
                {"role": role.role_name, "scope": role.scope},
            )


class RoleActivator(abc.ABC):
    kind: RoleKind

    def __init__(self, principal_id: str, logger: ConnectorLogger) -> None:
        self.principal_id = principal_id
        self.logger = logger

    @abc.abstractmethod
    def _submit(
        self,
        role: EligibleRole,
        duration_hours: int,
        justification: str,
        start: datetime.datetime,
    ) -> dict[str, Any]:
        """Submit one self-activation request and return the accepted request."""

    def attempt(
        self,
        role: EligibleRole,
        duration_hours: int,
        justification: str,
        now: datetime.datetime,
    ) -> AttemptResult:
        """Perform one activation attempt for a single duration."""
        try:
            response = self._submit(role, duration_hours, justification, now)
        except ConnectorClientError as e:
            return AttemptResult(
                signal=classify_activation_error(e),
                duration_hours=duration_hours,
                message=e.error_message or e.message,
            )
        return AttemptResult(
            signal=classify_activation_response(response),
            duration_hours=duration_hours,
        )

    def activate(
        self,
        role: EligibleRole,
        durations: Sequence[int],
        justification: str,
        now: datetime.datetime,
    ) -> ActivationOutcome:
        """
        Try the durations in order until a terminal outcome.

        A duration rejection moves on to the next duration, any other signal is terminal.
        :param role: Role to activate
        :param durations: Durations to try, longest first
        :param justification: Justification sent with the requests
        :param now: Start of the activation
        :return: The activation outcome
        """
        if not durations:
            raise ValueError("At least one duration is required")

        attempted: list[int] = []
        result: AttemptResult | None = None
        for duration_hours in durations:
            attempted.append(duration_hours)
            result = self.attempt(role, duration_hours, justification, now)
            self.logger.debug(
                f"[{self.kind.upper()}] Activation attempt",
                {
                    **role.to_meta(),
                    "duration_hours": duration_hours,
                    "signal": result.signal.value,
                },
            )

            if result.signal in _SIGNAL_STATUS:
                return ActivationOutcome(
                    status=_SIGNAL_STATUS[result.signal],
                    granted_duration_hours=duration_hours,
                    attempted_durations=attempted,
                    message=result.message,
                )
            if result.signal is not AttemptSignal.DURATION_REJECTED:
                break

        return ActivationOutcome(
            status=ActivationStatus.FAILED,
            attempted_durations=attempted,
            message=result.message if result else None,
        )


class DirectoryRoleActivator(RoleActivator):
    """Entra ID directory roles, activated through Microsoft Graph."""

    kind = RoleKind.DIRECTORY

    def __init__(
        self, client: GraphClient, principal_id: str, logger: ConnectorLogger
    ) -> None:
        super().__init__(principal_id, logger)
        self.client = client

    def _submit(
        self,
        role: EligibleRole,
        duration_hours: int,
        justification: str,
        start: datetime.datetime,
    ) -> dict[str, Any]:
        return self.client.request_directory_activation(
            principal_id=self.principal_id,
            role_definition_id=role.role_definition_id,
            directory_scope_id=role.scope or "/",
            justification=justification,
            duration_hours=duration_hours,
            start=start,
        )


class ResourceRoleActivator(RoleActivator):
    """Azure resource roles, activated through Azure Resource Manager."""

    kind = RoleKind.RESOURCE

    def __init__(
        self, client: ResourceManagerClient, principal_id: str, logger: ConnectorLogger
    ) -> None:
        super().__init__(principal_id, logger)
        self.client = client

    def _submit(
        self,
        role: EligibleRole,
        duration_hours: int,
        justification: str,
        start: datetime.datetime,
    ) -> dict[str, Any]:
        return self.client.request_resource_activation(
            scope=role.scope,
            principal_id=self.principal_id,
            role_definition_id=resolve_role_definition_id(role),
            eligibility_schedule_id=role.eligibility_schedule_id,
            justification=justification,
            duration_hours=duration_hours,
            start=start,
        )
