import datetime

from pim_activator.models import Decision, RoleHistoryRecord, RoleIdentity, SkipReason
from pim_activator.role_config import RoleFilter

# A role expiring within this window is activated again
STILL_ACTIVE_BUFFER = datetime.timedelta(minutes=30)
# Circuit breaker for roles whose policy forbids self-activation
MAX_CONSECUTIVE_FAILURES = 3


class ActivationDecisionEngine:
    def __init__(
        self,
        still_active_buffer: datetime.timedelta = STILL_ACTIVE_BUFFER,
        max_consecutive_failures: int = MAX_CONSECUTIVE_FAILURES,
    ) -> None:
        self.still_active_buffer = still_active_buffer
        self.max_consecutive_failures = max_consecutive_failures

    def decide(
        self,
        identity: RoleIdentity,
        record: RoleHistoryRecord | None,
        role_filter: RoleFilter | None,
        now: datetime.datetime,
    ) -> Decision:
        """
        Decide whether an activation should be attempted for a role.

        First match wins:
            1. still active beyond the buffer -> Skip(StillActive)
            2. filtered out by the configuration -> Skip(NotConfigured)
            3. too many consecutive failures -> Skip(TooManyFailures)
            4. Attempt
        """
        if (
            record is not None
            and record.expires_at is not None
            and record.expires_at > now + self.still_active_buffer
        ):
            return Decision.skip(SkipReason.STILL_ACTIVE)

        if role_filter is not None and not role_filter.allows(identity):
            return Decision.skip(SkipReason.NOT_CONFIGURED)

        if (
            record is not None
            and record.consecutive_failures >= self.max_consecutive_failures
        ):
            return Decision.skip(SkipReason.TOO_MANY_FAILURES)

        return Decision.attempt()
