from enum import StrEnum
from typing import Any

from base_connector.logger import ConnectorLogger
from pim_activator.models import (
    ActivationOutcome,
    EligibleRole,
    RunSummary,
    SkipReason,
)
from pydantic import BaseModel, ConfigDict, Field


class RunEventType(StrEnum):
    ROLE_SKIPPED = "role_skipped"
    ROLE_PLANNED = "role_planned"
    ROLE_ATTEMPT = "role_attempt"
    ROLE_OUTCOME = "role_outcome"
    RUN_SUMMARY = "run_summary"


class RunEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: RunEventType
    data: dict[str, Any] = Field(default_factory=dict)


class RunReporter:
    """
    Collect the events of a run and log them as they happen.
    The events are kept in order for callers needing an audit trail of the run.
    """

    def __init__(self, logger: ConnectorLogger) -> None:
        self.logger = logger
        self.events: list[RunEvent] = []

    def _emit(self, event_type: RunEventType, data: dict[str, Any]) -> RunEvent:
        event = RunEvent(type=event_type, data=data)
        self.events.append(event)
        return event

    def events_of(self, event_type: RunEventType) -> list[RunEvent]:
        return [event for event in self.events if event.type is event_type]

    def role_skipped(self, role: EligibleRole, reason: SkipReason) -> None:
        data = {**role.to_meta(), "reason": reason.value}
        self._emit(RunEventType.ROLE_SKIPPED, data)
        self.logger.info(f"[{role.kind.upper()}] Skipped {role.role_name}", data)

    def role_planned(self, role: EligibleRole, durations: list[int]) -> None:
        """Role that would be activated, in list-only runs."""
        data = {**role.to_meta(), "durations": durations}
        self._emit(RunEventType.ROLE_PLANNED, data)
        self.logger.info(f"[{role.kind.upper()}] Would activate {role.role_name}", data)

    def role_attempt(self, role: EligibleRole, durations: list[int]) -> None:
        data = {**role.to_meta(), "durations": durations}
        self._emit(RunEventType.ROLE_ATTEMPT, data)
        self.logger.info(f"[{role.kind.upper()}] Activating {role.role_name}", data)

    def role_outcome(self, role: EligibleRole, outcome: ActivationOutcome) -> None:
        data = {
            **role.to_meta(),
            "status": outcome.status.value,
            "duration_hours": outcome.granted_duration_hours,
            "attempted_durations": outcome.attempted_durations,
        }
        if outcome.message:
            data["message"] = outcome.message
        self._emit(RunEventType.ROLE_OUTCOME, data)

        message = f"[{role.kind.upper()}] {role.role_name}: {outcome.status.value}"
        if outcome.status.is_success:
            self.logger.info(message, data)
        else:
            self.logger.error(message, data)

    def run_summary(self, summary: RunSummary) -> None:
        data = {
            "activated": summary.activated,
            "skipped": summary.skipped,
            "failed": summary.failed,
            "elapsed_seconds": round(summary.elapsed.total_seconds(), 2),
            "list_only": summary.list_only,
        }
        if summary.list_only:
            data["planned"] = summary.planned
        self._emit(RunEventType.RUN_SUMMARY, data)
        self.logger.info("Run completed", data)
