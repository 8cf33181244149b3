import datetime

import pytest
from pim_activator.decision import ActivationDecisionEngine
from pim_activator.models import (
    Decision,
    RoleHistoryRecord,
    RoleIdentity,
    SkipReason,
)
from pim_activator.role_config import ResourceScope, RoleFilter

NOW = datetime.datetime(2025, 6, 2, 7, 30, tzinfo=datetime.UTC)
SUBSCRIPTION = "/subscriptions/11111111-1111-1111-1111-111111111111"


@pytest.fixture(name="engine")
def fixture_engine() -> ActivationDecisionEngine:
    return ActivationDecisionEngine()


def test_no_history_attempts(engine: ActivationDecisionEngine) -> None:
    decision = engine.decide(RoleIdentity.directory("Owner"), None, None, NOW)

    assert decision == Decision.attempt()
    assert decision.should_attempt


def test_still_active_skips(engine: ActivationDecisionEngine) -> None:
    record = RoleHistoryRecord(expires_at=NOW + datetime.timedelta(minutes=45))

    decision = engine.decide(
        RoleIdentity.resource(SUBSCRIPTION, "Reader"), record, None, NOW
    )

    assert decision == Decision.skip(SkipReason.STILL_ACTIVE)
    assert not decision.should_attempt


@pytest.mark.parametrize("minutes", [30, 29, 0, -60])
def test_expiring_soon_attempts(
    engine: ActivationDecisionEngine, minutes: int
) -> None:
    record = RoleHistoryRecord(expires_at=NOW + datetime.timedelta(minutes=minutes))

    decision = engine.decide(RoleIdentity.directory("Global Reader"), record, None, NOW)

    assert decision.should_attempt


def test_still_active_wins_over_failures_and_filter(
    engine: ActivationDecisionEngine,
) -> None:
    record = RoleHistoryRecord(
        expires_at=NOW + datetime.timedelta(hours=3), consecutive_failures=5
    )

    decision = engine.decide(
        RoleIdentity.directory("Global Administrator"),
        record,
        RoleFilter(directory_roles=("Global Reader",)),
        NOW,
    )

    assert decision.reason is SkipReason.STILL_ACTIVE


def test_not_configured_skips(engine: ActivationDecisionEngine) -> None:
    decision = engine.decide(
        RoleIdentity.directory("Global Administrator"),
        None,
        RoleFilter(directory_roles=("Global Reader",)),
        NOW,
    )

    assert decision.reason is SkipReason.NOT_CONFIGURED


def test_filter_matches_case_insensitively(engine: ActivationDecisionEngine) -> None:
    decision = engine.decide(
        RoleIdentity.directory("global reader"),
        None,
        RoleFilter(directory_roles=("Global Reader",)),
        NOW,
    )

    assert decision.should_attempt


def test_too_many_failures_skips(engine: ActivationDecisionEngine) -> None:
    record = RoleHistoryRecord(consecutive_failures=3, total_failures=3)

    decision = engine.decide(
        RoleIdentity.directory("Global Administrator"), record, None, NOW
    )

    assert decision.reason is SkipReason.TOO_MANY_FAILURES


def test_too_many_failures_with_expired_record(
    engine: ActivationDecisionEngine,
) -> None:
    record = RoleHistoryRecord(
        expires_at=NOW - datetime.timedelta(days=1), consecutive_failures=4
    )

    decision = engine.decide(RoleIdentity.directory("Owner"), record, None, NOW)

    assert decision.reason is SkipReason.TOO_MANY_FAILURES


def test_two_failures_attempts(engine: ActivationDecisionEngine) -> None:
    record = RoleHistoryRecord(consecutive_failures=2)

    decision = engine.decide(RoleIdentity.directory("Owner"), record, None, NOW)

    assert decision.should_attempt


def test_resource_filter(engine: ActivationDecisionEngine) -> None:
    role_filter = RoleFilter(
        resource_scopes=(
            ResourceScope(
                scope=SUBSCRIPTION,
                scope_type="subscription",
                roles=("Reader",),
            ),
        )
    )

    reader = RoleIdentity.resource(SUBSCRIPTION.upper(), "Reader")
    owner = RoleIdentity.resource(SUBSCRIPTION, "Owner")
    other = RoleIdentity.resource(
        "/subscriptions/22222222-2222-2222-2222-222222222222", "Reader"
    )

    assert engine.decide(reader, None, role_filter, NOW).should_attempt
    assert engine.decide(owner, None, role_filter, NOW).reason is (
        SkipReason.NOT_CONFIGURED
    )
    assert engine.decide(other, None, role_filter, NOW).reason is (
        SkipReason.NOT_CONFIGURED
    )


def test_custom_thresholds() -> None:
    engine = ActivationDecisionEngine(
        still_active_buffer=datetime.timedelta(hours=2), max_consecutive_failures=1
    )
    identity = RoleIdentity.directory("Owner")

    assert engine.decide(
        identity,
        RoleHistoryRecord(expires_at=NOW + datetime.timedelta(hours=1)),
        None,
        NOW,
    ).should_attempt
    assert engine.decide(
        identity, RoleHistoryRecord(consecutive_failures=1), None, NOW
    ).reason is (SkipReason.TOO_MANY_FAILURES)
