import datetime
from enum import StrEnum
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel


def _ensure_utc(value: datetime.datetime) -> datetime.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.UTC)
    return value


def _serialize_timestamp(value: datetime.datetime) -> str:
    return value.isoformat(timespec="seconds")


Timestamp = Annotated[
    datetime.datetime,
    AfterValidator(_ensure_utc),
    PlainSerializer(_serialize_timestamp, when_used="json"),
]


class RoleKind(StrEnum):
    DIRECTORY = "directory"
    RESOURCE = "resource"


# Kinds are always processed in this order
ROLE_KIND_ORDER = (RoleKind.DIRECTORY, RoleKind.RESOURCE)


class ScopeType(StrEnum):
    DIRECTORY = "directory"
    MANAGEMENT_GROUP = "managementGroup"
    SUBSCRIPTION = "subscription"
    RESOURCE_GROUP = "resourceGroup"
    RESOURCE = "resource"

    @classmethod
    def from_scope(cls, scope: str) -> "ScopeType":
        """
        Derive the scope type from an Azure Resource Manager scope path.
        :param scope: Scope path, e.g. `/subscriptions/<id>/resourceGroups/<name>`
        :return: The scope type
        """
        segments = [segment for segment in scope.lower().split("/") if segment]
        if not segments:
            return cls.DIRECTORY
        if segments[:3] == ["providers", "microsoft.management", "managementgroups"]:
            if len(segments) == 4:
                return cls.MANAGEMENT_GROUP
        elif segments[0] == "subscriptions":
            if len(segments) == 2:
                return cls.SUBSCRIPTION
            if len(segments) == 4 and segments[2] == "resourcegroups":
                return cls.RESOURCE_GROUP
            if len(segments) > 4 and segments[2] == "resourcegroups":
                return cls.RESOURCE
        raise ValueError(f"Unsupported scope: {scope!r}")

    @classmethod
    def from_api(cls, value: str | None, scope: str) -> "ScopeType":
        """Map the scope type reported by the API, falling back on the scope path."""
        for scope_type in cls:
            if value and value.lower() == scope_type.value.lower():
                return scope_type
        return cls.from_scope(scope)


class RoleIdentity(BaseModel):
    """Stable key of a role grant, used to look up its activation history."""

    model_config = ConfigDict(frozen=True)

    kind: RoleKind
    role_name: str
    scope: str = "/"
    scope_type: ScopeType = ScopeType.DIRECTORY

    @classmethod
    def directory(cls, role_name: str) -> "RoleIdentity":
        return cls(kind=RoleKind.DIRECTORY, role_name=role_name)

    @classmethod
    def resource(
        cls, scope: str, role_name: str, scope_type: ScopeType | None = None
    ) -> "RoleIdentity":
        return cls(
            kind=RoleKind.RESOURCE,
            role_name=role_name,
            scope=scope,
            scope_type=scope_type or ScopeType.from_scope(scope),
        )

    @property
    def key(self) -> str:
        if self.kind is RoleKind.DIRECTORY:
            return self.role_name
        # Azure scopes are case-insensitive
        return f"{self.scope_type}|{self.scope.lower()}|{self.role_name}"


class RoleHistoryRecord(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, validate_assignment=True
    )

    last_activated_at: Timestamp | None = Field(default=None)
    expires_at: Timestamp | None = Field(default=None)
    # Longest duration ever granted, 0 when unknown
    optimal_duration_hours: int = Field(default=0, ge=0)
    consecutive_failures: int = Field(default=0, ge=0)
    total_activations: int = Field(default=0, ge=0)
    total_failures: int = Field(default=0, ge=0)


class ActivationHistory(BaseModel):
    directory: dict[str, RoleHistoryRecord] = Field(default_factory=dict)
    resource: dict[str, RoleHistoryRecord] = Field(default_factory=dict)

    def records(self, kind: RoleKind) -> dict[str, RoleHistoryRecord]:
        return getattr(self, kind.value)


class Preferences(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, validate_assignment=True
    )

    default_justification: str | None = Field(default=None)
    directory_duration_hours: int | None = Field(default=None, ge=1, le=24)
    resource_duration_hours: int | None = Field(default=None, ge=1, le=24)


class RunState(BaseModel):
    """
    Process-wide state persisted between runs.
    All values MUST be JSON serializable, the state is dumped by alias
    (`lastRun`, `userId`, `activationHistory`, `preferences`).
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, validate_assignment=True
    )

    last_run: Timestamp | None = Field(default=None)
    user_id: str | None = Field(default=None)
    activation_history: ActivationHistory = Field(default_factory=ActivationHistory)
    preferences: Preferences = Field(default_factory=Preferences)


class EligibleRole(BaseModel):
    """A role the current principal is eligible to self-activate."""

    model_config = ConfigDict(frozen=True)

    kind: RoleKind
    role_name: str
    role_definition_id: str
    scope: str = "/"
    scope_type: ScopeType = ScopeType.DIRECTORY
    eligibility_schedule_id: str | None = None

    @property
    def identity(self) -> RoleIdentity:
        return RoleIdentity(
            kind=self.kind,
            role_name=self.role_name,
            scope=self.scope,
            scope_type=self.scope_type,
        )

    def to_meta(self) -> dict[str, Any]:
        meta: dict[str, Any] = {"kind": self.kind.value, "role": self.role_name}
        if self.kind is RoleKind.RESOURCE:
            meta.update(scope=self.scope, scope_type=self.scope_type.value)
        return meta


class SkipReason(StrEnum):
    NOT_CONFIGURED = "NotConfigured"
    STILL_ACTIVE = "StillActive"
    TOO_MANY_FAILURES = "TooManyFailures"


class Decision(BaseModel):
    model_config = ConfigDict(frozen=True)

    reason: SkipReason | None = None

    @classmethod
    def attempt(cls) -> "Decision":
        return cls()

    @classmethod
    def skip(cls, reason: SkipReason) -> "Decision":
        return cls(reason=reason)

    @property
    def should_attempt(self) -> bool:
        return self.reason is None


class AttemptSignal(StrEnum):
    """Closed vocabulary an API adapter reports for one activation attempt."""

    ACTIVATED = "Activated"
    ALREADY_ACTIVE = "AlreadyActive"
    PENDING = "Pending"
    DURATION_REJECTED = "DurationRejected"
    FAILED = "Failed"


class AttemptResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    signal: AttemptSignal
    duration_hours: int
    message: str | None = None


class ActivationStatus(StrEnum):
    ACTIVATED = "Activated"
    ALREADY_ACTIVE = "AlreadyActive"
    PENDING = "Pending"
    FAILED = "Failed"

    @property
    def is_success(self) -> bool:
        return self is not ActivationStatus.FAILED


class ActivationOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: ActivationStatus
    # Duration actually granted, 0 when failed
    granted_duration_hours: int = Field(default=0, ge=0)
    attempted_durations: list[int] = Field(default_factory=list)
    message: str | None = None


class RunSummary(BaseModel):
    activated: int = 0
    skipped: int = 0
    failed: int = 0
    planned: int = 0
    elapsed: datetime.timedelta = datetime.timedelta(0)
    list_only: bool = False
