"""
Unit tests for the dunning scheduler.

Retries are scheduled 3, 7, 14 and 21 days after the first failure.
"""

import pytest
from datetime import datetime, timedelta, timezone

from common.core.exceptions import NotFoundError
from packages.billing.models.domain.enums import CancellationReason, NotificationKind
from packages.billing.services.notification_dispatcher import NotificationDispatcher
from packages.dunning.models.domain.dunning import DunningStatus
from packages.dunning.policy import next_attempt_date, retry_offset_days
from packages.dunning.repositories.dunning_case_repository import DunningCaseRepository
from packages.dunning.services.dunning_scheduler import DunningScheduler

FAILED_AT = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def scheduler(notification_provider):
    return DunningScheduler(
        dispatcher=NotificationDispatcher(notification_provider),
        schedule=[3, 7, 14, 21],
        max_attempts=4,
    )


async def open_case(scheduler, subscription):
    return await scheduler.on_payment_failed(
        subscription.id,
        subscription.user_id,
        "card_declined",
        FAILED_AT,
        gateway_invoice_id="in_1",
    )


class TestRetryPolicy:
    def test_schedule_offsets(self):
        schedule = [3, 7, 14, 21]
        assert [retry_offset_days(n, schedule) for n in (1, 2, 3, 4)] == [3, 7, 14, 21]

    def test_attempts_beyond_schedule_add_a_week(self):
        assert retry_offset_days(5, [3, 7, 14, 21]) == 28

    def test_offsets_count_from_first_failure(self):
        assert next_attempt_date(FAILED_AT, 2, [3, 7, 14, 21]) == FAILED_AT + timedelta(days=7)

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            retry_offset_days(0, [3])
        with pytest.raises(ValueError):
            retry_offset_days(1, [])


class TestOnPaymentFailed:
    async def test_first_failure_opens_case(self, scheduler, sample_subscription):
        case = await open_case(scheduler, sample_subscription)

        assert case.status == DunningStatus.ACTIVE
        assert case.attempt_count == 1
        assert case.max_attempts == 4
        assert case.first_failure_at == FAILED_AT
        assert case.next_attempt_date == FAILED_AT + timedelta(days=3)
        assert case.gateway_invoice_id == "in_1"

    async def test_early_repeat_failure_keeps_schedule(self, scheduler, sample_subscription):
        case = await open_case(scheduler, sample_subscription)

        repeated = await scheduler.on_payment_failed(
            sample_subscription.id,
            sample_subscription.user_id,
            "insufficient_funds",
            FAILED_AT + timedelta(hours=1),
        )

        assert repeated.id == case.id
        assert repeated.attempt_count == 1
        assert repeated.next_attempt_date == case.next_attempt_date
        assert repeated.failure_reason == "insufficient_funds"
        assert repeated.gateway_invoice_id == "in_1"

    async def test_failure_at_due_date_advances(self, scheduler, sample_subscription):
        await open_case(scheduler, sample_subscription)

        advanced = await scheduler.on_payment_failed(
            sample_subscription.id,
            sample_subscription.user_id,
            "card_declined",
            FAILED_AT + timedelta(days=3),
        )

        assert advanced.attempt_count == 2
        assert advanced.next_attempt_date == FAILED_AT + timedelta(days=7)

    async def test_one_open_case_per_subscription(self, scheduler, sample_subscription):
        await open_case(scheduler, sample_subscription)
        await open_case(scheduler, sample_subscription)

        cases = await DunningCaseRepository().list_for_subscription(sample_subscription.id)
        assert len(cases) == 1


class TestOnRetryResult:
    async def test_successful_retry_resolves(self, scheduler, sample_subscription):
        case = await open_case(scheduler, sample_subscription)
        at = FAILED_AT + timedelta(days=3)

        outcome = await scheduler.on_retry_result(case.id, True, at=at, attempt=1)

        assert outcome.applied
        assert outcome.recovered
        assert outcome.cancellation is None
        assert outcome.case.status == DunningStatus.RESOLVED
        assert outcome.case.resolution_reason == "payment_succeeded"
        assert outcome.case.resolved_at == at
        assert outcome.case.next_attempt_date is None

    async def test_failed_retries_follow_schedule(self, scheduler, sample_subscription):
        case = await open_case(scheduler, sample_subscription)

        expected = [7, 14, 21]
        for attempt, offset in enumerate(expected, start=1):
            at = FAILED_AT + timedelta(days=retry_offset_days(attempt, [3, 7, 14, 21]))
            outcome = await scheduler.on_retry_result(case.id, False, at=at, attempt=attempt)

            assert outcome.case.attempt_count == attempt + 1
            assert outcome.case.next_attempt_date == FAILED_AT + timedelta(days=offset)
            assert outcome.case.last_attempt_at == at
            assert outcome.cancellation is None

    async def test_last_failed_attempt_exhausts(self, scheduler, sample_subscription):
        case = await open_case(scheduler, sample_subscription)
        for attempt in (1, 2, 3):
            await scheduler.on_retry_result(case.id, False, at=FAILED_AT, attempt=attempt)

        at = FAILED_AT + timedelta(days=21)
        outcome = await scheduler.on_retry_result(case.id, False, at=at, attempt=4)

        assert outcome.case.status == DunningStatus.EXHAUSTED
        assert outcome.case.resolution_reason == "attempts_exhausted"
        assert outcome.cancellation is not None
        assert outcome.cancellation.reason == CancellationReason.DUNNING_EXHAUSTED
        assert outcome.cancellation.at == at

    async def test_stale_attempt_is_ignored(self, scheduler, sample_subscription):
        case = await open_case(scheduler, sample_subscription)
        await scheduler.on_retry_result(case.id, False, at=FAILED_AT, attempt=1)

        outcome = await scheduler.on_retry_result(case.id, False, at=FAILED_AT, attempt=1)

        assert not outcome.applied
        assert outcome.case.attempt_count == 2

    async def test_result_for_closed_case_is_ignored(self, scheduler, sample_subscription):
        case = await open_case(scheduler, sample_subscription)
        await scheduler.resolve(sample_subscription.id, "payment_succeeded", at=FAILED_AT)

        outcome = await scheduler.on_retry_result(case.id, False, at=FAILED_AT)

        assert not outcome.applied
        assert outcome.case.status == DunningStatus.RESOLVED

    async def test_unknown_case(self, scheduler):
        with pytest.raises(NotFoundError):
            await scheduler.on_retry_result(12345, True)


class TestDueRetries:
    async def test_due_cases_notified_once_per_attempt(
        self, scheduler, sample_subscription, notification_provider
    ):
        case = await open_case(scheduler, sample_subscription)
        now = case.next_attempt_date

        first = await scheduler.due_retries(now)
        second = await scheduler.due_retries(now)

        assert [c.id for c in first] == [case.id]
        assert [c.id for c in second] == [case.id]
        assert notification_provider.kinds() == [NotificationKind.DUNNING_ATTEMPT]

    async def test_next_attempt_is_notified_again(
        self, scheduler, sample_subscription, notification_provider
    ):
        case = await open_case(scheduler, sample_subscription)
        await scheduler.due_retries(case.next_attempt_date)

        advanced = await scheduler.on_retry_result(
            case.id, False, at=case.next_attempt_date, attempt=1
        )
        await scheduler.due_retries(advanced.case.next_attempt_date)

        assert notification_provider.kinds() == [
            NotificationKind.DUNNING_ATTEMPT,
            NotificationKind.DUNNING_ATTEMPT,
        ]

    async def test_cases_not_yet_due(self, scheduler, sample_subscription):
        case = await open_case(scheduler, sample_subscription)

        assert await scheduler.due_retries(case.next_attempt_date - timedelta(seconds=1)) == []


class TestResolve:
    async def test_resolve_without_open_case(self, scheduler, sample_subscription):
        assert await scheduler.resolve(sample_subscription.id, "payment_succeeded") is None

    async def test_resolve_allows_new_case(self, scheduler, sample_subscription):
        first = await open_case(scheduler, sample_subscription)
        await scheduler.resolve(sample_subscription.id, "payment_succeeded", at=FAILED_AT)

        second = await open_case(scheduler, sample_subscription)

        assert second.id != first.id
        assert second.status == DunningStatus.ACTIVE
