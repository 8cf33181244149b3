from collections.abc import Sequence

from pim_activator.models import RoleHistoryRecord

# Shorter standard windows retried after a duration policy rejection
STANDARD_FALLBACK_DURATIONS = (4, 2)


class DurationNegotiator:
    """
    Produce the durations to request for an activation.

    Policies frequently cap self-activation below the tenant default. Retrying with
    standard shorter windows recovers from such a rejection without knowing the cap.
    """

    def __init__(
        self, fallback_durations: Sequence[int] = STANDARD_FALLBACK_DURATIONS
    ) -> None:
        self.fallback_durations = sorted(set(fallback_durations), reverse=True)

    @staticmethod
    def base_duration(record: RoleHistoryRecord | None, default_hours: int) -> int:
        """The learned optimal duration when known, the default otherwise."""
        if record is not None and record.optimal_duration_hours > 0:
            return record.optimal_duration_hours
        return default_hours

    def plan_durations(self, base_hours: int) -> list[int]:
        """
        Ordered, strictly descending durations to attempt, starting at `base_hours`.
        e.g. 8 -> [8, 4, 2], 4 -> [4, 2], 2 -> [2], 1 -> [1]
        """
        if base_hours < 1:
            raise ValueError(f"Duration must be at least 1 hour, got {base_hours}")

        plan = [base_hours]
        for duration in self.fallback_durations:
            if duration < plan[-1]:
                plan.append(duration)
        return plan
