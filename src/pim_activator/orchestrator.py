import datetime
from collections.abc import Mapping

from base_connector.errors import ConnectorError
from base_connector.logger import ConnectorLogger
from pim_activator.activator import RoleActivator
from pim_activator.decision import ActivationDecisionEngine
from pim_activator.history import RoleHistoryStore
from pim_activator.lister import EligibleRoleLister
from pim_activator.models import (
    ROLE_KIND_ORDER,
    ActivationHistory,
    ActivationOutcome,
    ActivationStatus,
    EligibleRole,
    Preferences,
    RoleKind,
    RunState,
    RunSummary,
)
from pim_activator.negotiator import DurationNegotiator
from pim_activator.reporter import RunReporter
from pim_activator.role_config import RoleFilter, RoleConfig
from pim_activator.state import StateManager


class RunOrchestrator:
    """
    Drive one activation pass over the eligible roles of every enabled kind.

    Roles are processed one at a time, directory roles first. The state is loaded once
    before the pass and saved once after it; list-only passes never activate anything
    and never save the state.
    """

    def __init__(
        self,
        role_config: RoleConfig,
        state_manager: StateManager,
        listers: Mapping[RoleKind, EligibleRoleLister],
        activators: Mapping[RoleKind, RoleActivator],
        reporter: RunReporter,
        logger: ConnectorLogger,
        principal_id: str,
        decision_engine: ActivationDecisionEngine | None = None,
        negotiator: DurationNegotiator | None = None,
    ) -> None:
        self.role_config = role_config
        self.state_manager = state_manager
        self.listers = listers
        self.activators = activators
        self.reporter = reporter
        self.logger = logger
        self.principal_id = principal_id
        self.decision_engine = decision_engine or ActivationDecisionEngine()
        self.negotiator = negotiator or DurationNegotiator()

    @staticmethod
    def _now() -> datetime.datetime:
        return datetime.datetime.now(tz=datetime.UTC)

    def _bind_principal(self, state: RunState) -> None:
        """The activation history belongs to a single principal."""
        if state.user_id and state.user_id != self.principal_id:
            self.logger.warning(
                "[STATE] State belongs to another principal, resetting activation history",
                {"state_user_id": state.user_id, "principal_id": self.principal_id},
            )
            state.activation_history = ActivationHistory()
        state.user_id = self.principal_id

    def _kinds(self) -> list[RoleKind]:
        enabled = self.role_config.enabled_kinds()
        return [kind for kind in ROLE_KIND_ORDER if kind in enabled and kind in self.listers]

    def run(self, list_only: bool = False) -> RunSummary:
        """
        Run one pass.

        Listing errors are raised before any role is processed. A failing role never
        stops the pass.
        :param list_only: Classify the eligible roles without activating them
        :return: The counts of the pass
        """
        started_at = self._now()
        state = self.state_manager.load()
        self._bind_principal(state)
        state.preferences = self.role_config.resolve_preferences(state.preferences)
        store = RoleHistoryStore(state)

        kinds = self._kinds()
        eligible_roles = {kind: self.listers[kind].list_eligible_roles() for kind in kinds}

        summary = RunSummary(list_only=list_only)
        try:
            for kind in kinds:
                role_filter = self.role_config.role_filter(kind)
                for role in eligible_roles[kind]:
                    self._process_role(
                        role, role_filter, store, state.preferences, summary, list_only
                    )
        finally:
            if not list_only:
                state.last_run = started_at
                self.state_manager.save(state)

        summary.elapsed = self._now() - started_at
        self.reporter.run_summary(summary)
        return summary

    def _process_role(
        self,
        role: EligibleRole,
        role_filter: RoleFilter | None,
        store: RoleHistoryStore,
        preferences: Preferences,
        summary: RunSummary,
        list_only: bool,
    ) -> None:
        now = self._now()
        identity = role.identity
        record = store.get(role.kind, identity.key)

        decision = self.decision_engine.decide(identity, record, role_filter, now)
        if not decision.should_attempt:
            summary.skipped += 1
            self.reporter.role_skipped(role, decision.reason)
            return

        default_hours = self.role_config.default_duration(role, preferences)
        durations = self.negotiator.plan_durations(
            self.negotiator.base_duration(record, default_hours)
        )
        if list_only:
            summary.planned += 1
            self.reporter.role_planned(role, durations)
            return

        self.reporter.role_attempt(role, durations)
        try:
            outcome = self.activators[role.kind].activate(
                role, durations, preferences.default_justification, now
            )
        except ConnectorError as e:
            outcome = ActivationOutcome(
                status=ActivationStatus.FAILED, message=e.message
            )

        if outcome.status.is_success:
            # AlreadyActive and Pending also teach the requested duration
            store.record_success(
                role.kind, identity.key, outcome.granted_duration_hours, now
            )
            summary.activated += 1
        else:
            store.record_failure(role.kind, identity.key)
            summary.failed += 1
        self.reporter.role_outcome(role, outcome)
