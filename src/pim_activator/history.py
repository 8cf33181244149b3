import datetime

from pim_activator.models import RoleHistoryRecord, RoleKind, RunState


class RoleHistoryStore:
    """
    Per-role activation history of a run state.

    The store works in memory on the records of the given `RunState`; loading and
    saving the state is done once per run by the orchestrator.
    """

    def __init__(self, state: RunState) -> None:
        self.state = state

    def _records(self, kind: RoleKind) -> dict[str, RoleHistoryRecord]:
        return self.state.activation_history.records(kind)

    def _get_or_create(self, kind: RoleKind, key: str) -> RoleHistoryRecord:
        records = self._records(kind)
        if key not in records:
            records[key] = RoleHistoryRecord()
        return records[key]

    def get(self, kind: RoleKind, key: str) -> RoleHistoryRecord | None:
        return self._records(kind).get(key)

    def record_success(
        self,
        kind: RoleKind,
        key: str,
        duration_hours: int,
        now: datetime.datetime,
    ) -> RoleHistoryRecord:
        """
        Record a successful (or already active / pending) activation.
        :param kind: Role kind
        :param key: Role identity key
        :param duration_hours: Duration granted for this activation
        :param now: Activation time
        :return: The updated record
        """
        record = self._get_or_create(kind, key)
        # Persisted timestamps have a second precision
        activated_at = now.replace(microsecond=0)

        record.last_activated_at = activated_at
        record.expires_at = activated_at + datetime.timedelta(hours=duration_hours)
        record.consecutive_failures = 0
        record.total_activations += 1
        if duration_hours > record.optimal_duration_hours:
            record.optimal_duration_hours = duration_hours
        return record

    def record_failure(self, kind: RoleKind, key: str) -> RoleHistoryRecord:
        record = self._get_or_create(kind, key)
        record.consecutive_failures += 1
        record.total_failures += 1
        return record
