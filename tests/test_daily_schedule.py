"""Tests for the daily scheduler."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import IntegrityError

from vocabdrop.clock import ensure_utc
from vocabdrop.models.delivery_settings import CustomTime, DeliverySettings
from vocabdrop.models.outbox_message import OutboxMessage
from vocabdrop.models.word_history import WordHistory
from vocabdrop.services.daily_schedule import run_daily_schedule, schedule_subscription
from vocabdrop.services.word_generator import WordGenerationError

# 2026-03-10 00:05 in Asia/Kolkata
RUN_AT = datetime(2026, 3, 9, 18, 35, tzinfo=timezone.utc)


def clock():
    return RUN_AT


def outbox_rows(db_session, phone):
    return (
        db_session.query(OutboxMessage)
        .filter(OutboxMessage.phone == phone)
        .order_by(OutboxMessage.send_at)
        .all()
    )


def generated(*words):
    return [
        {
            "word": w,
            "definition": f"Meaning of {w}",
            "example": f"Using {w}.",
            "pronunciation": "",
            "part_of_speech": "verb",
            "memory_hook": "",
            "category": "general",
        }
        for w in words
    ]


@pytest.fixture(autouse=True)
def mock_email():
    with patch("vocabdrop.services.daily_schedule.email_service") as mock_email:
        mock_email.send_scheduler_report.return_value = (True, "email-1", None)
        yield mock_email


class TestHappyPath:
    def test_schedules_three_words_at_spaced_times(self, db_session, make_subscription, add_words):
        """Preferred 10:00, 3 words -> 10:00, 14:00, 18:00 IST."""
        subscription = make_subscription(delivery_time="10:00")
        add_words(count=5)

        summary = run_daily_schedule(db_session, clock=clock)

        rows = outbox_rows(db_session, subscription.phone_number)
        assert [ensure_utc(r.send_at) for r in rows] == [
            datetime(2026, 3, 10, 4, 30, tzinfo=timezone.utc),
            datetime(2026, 3, 10, 8, 30, tzinfo=timezone.utc),
            datetime(2026, 3, 10, 12, 30, tzinfo=timezone.utc),
        ]
        assert all(r.status == "queued" for r in rows)
        assert all(r.retries == 0 for r in rows)
        assert all(r.source == "daily-scheduler" for r in rows)

        assert summary.total_subscriptions == 1
        assert summary.scheduled == 1
        assert summary.messages_inserted == 3
        assert summary.success_rate == 1.0
        assert summary.low_success is False
        assert summary.results[0].delivery_times == ["10:00", "14:00", "18:00"]

    def test_rows_carry_word_content(self, db_session, make_subscription, add_words):
        subscription = make_subscription(first_name="Ravi")
        add_words(count=3)

        run_daily_schedule(db_session, clock=clock)

        first = outbox_rows(db_session, subscription.phone_number)[0]
        assert first.user_id == subscription.user_id
        assert first.variables["word"] == "word1"
        assert first.variables["definition"] == "Definition of word1"
        assert first.variables["pronunciation"] == "WORD-1"
        assert first.variables["memory_hook"] == "Hook for word1"
        assert first.variables["part_of_speech"] == "noun"
        assert first.variables["position"] == 1
        assert first.variables["totalWords"] == 3
        assert first.variables["firstName"] == "Ravi"
        assert first.variables["timezone"] == "Asia/Kolkata"

    def test_creates_default_delivery_settings(self, db_session, make_subscription, add_words):
        subscription = make_subscription()
        add_words()

        run_daily_schedule(db_session, clock=clock)

        settings_row = db_session.get(DeliverySettings, subscription.user_id)
        assert settings_row is not None
        assert settings_row.mode == "auto"
        assert settings_row.words_per_day == 3
        assert settings_row.timezone == "Asia/Kolkata"

    def test_send_times_strictly_increasing(self, db_session, make_subscription, add_words):
        subscription = make_subscription(delivery_time="21:00")
        db_session.add(DeliverySettings(user_id=subscription.user_id, words_per_day=5))
        db_session.commit()
        add_words(count=5)

        run_daily_schedule(db_session, clock=clock)

        rows = (
            db_session.query(OutboxMessage)
            .filter(OutboxMessage.phone == subscription.phone_number)
            .order_by(OutboxMessage.id)
            .all()
        )
        instants = [ensure_utc(r.send_at) for r in rows]
        positions = [r.variables["position"] for r in rows]
        assert len(rows) == 5
        assert positions == [1, 2, 3, 4, 5]
        assert all(a < b for a, b in zip(instants, instants[1:]))

    def test_custom_mode_uses_stored_times(self, db_session, make_subscription, add_words):
        subscription = make_subscription()
        settings_row = DeliverySettings(
            user_id=subscription.user_id, mode="custom", words_per_day=2, timezone="UTC"
        )
        settings_row.custom_times.append(
            CustomTime(user_id=subscription.user_id, position=1, time="20:15")
        )
        settings_row.custom_times.append(
            CustomTime(user_id=subscription.user_id, position=2, time="19:00")
        )
        db_session.add(settings_row)
        db_session.commit()
        add_words()

        # 18:35 UTC on 2026-03-09 is still 2026-03-09 in UTC
        run_daily_schedule(db_session, clock=clock)

        rows = outbox_rows(db_session, subscription.phone_number)
        assert [ensure_utc(r.send_at) for r in rows] == [
            datetime(2026, 3, 9, 19, 0, tzinfo=timezone.utc),
            datetime(2026, 3, 9, 20, 15, tzinfo=timezone.utc),
        ]


class TestIdempotency:
    def test_second_run_creates_no_duplicates(self, db_session, make_subscription, add_words):
        subscription = make_subscription()
        add_words()

        run_daily_schedule(db_session, clock=clock)
        summary = run_daily_schedule(
            db_session, clock=lambda: RUN_AT + timedelta(minutes=5)
        )

        assert len(outbox_rows(db_session, subscription.phone_number)) == 3
        assert summary.already_scheduled == 1
        assert summary.messages_inserted == 0
        assert summary.results == []

    @pytest.mark.parametrize(
        "existing_send_at,blocked",
        [
            # 2026-03-10 22:30 IST, same local day as the run
            (datetime(2026, 3, 10, 17, 0, tzinfo=timezone.utc), True),
            # 2026-03-09 23:00 IST, the previous local day
            (datetime(2026, 3, 9, 17, 30, tzinfo=timezone.utc), False),
        ],
    )
    def test_guard_uses_local_day(
        self, db_session, make_subscription, add_words, existing_send_at, blocked
    ):
        subscription = make_subscription()
        add_words()
        db_session.add(
            OutboxMessage(
                user_id=subscription.user_id,
                phone=subscription.phone_number,
                send_at=existing_send_at,
                template="vocab_word_delivery",
                variables={"word": "earlier"},
            )
        )
        db_session.commit()

        summary = run_daily_schedule(db_session, clock=clock)

        assert summary.already_scheduled == (1 if blocked else 0)
        expected_rows = 1 if blocked else 4
        assert len(outbox_rows(db_session, subscription.phone_number)) == expected_rows

    def test_next_day_is_scheduled(self, db_session, make_subscription, add_words):
        subscription = make_subscription(trial_ends_at=RUN_AT + timedelta(days=5))
        add_words(count=6)

        run_daily_schedule(db_session, clock=clock)
        run_daily_schedule(db_session, clock=lambda: RUN_AT + timedelta(days=1))

        assert len(outbox_rows(db_session, subscription.phone_number)) == 6


class TestSubscriptionSelection:
    def test_skips_subscription_without_user_id(self, db_session, make_subscription, add_words):
        subscription = make_subscription(user_id=None)
        add_words()

        summary = run_daily_schedule(db_session, clock=clock)

        assert outbox_rows(db_session, subscription.phone_number) == []
        assert summary.skipped == 1
        assert summary.results[0].status == "skipped"

    def test_ignores_expired_subscriptions(self, db_session, make_subscription, add_words):
        make_subscription(trial_ends_at=RUN_AT - timedelta(days=1))
        make_subscription(
            trial_ends_at=None, is_pro=True, subscription_ends_at=RUN_AT - timedelta(seconds=1)
        )
        add_words()

        summary = run_daily_schedule(db_session, clock=clock)

        assert summary.total_subscriptions == 0
        assert db_session.query(OutboxMessage).count() == 0

    def test_pro_without_end_date_is_scheduled(self, db_session, make_subscription, add_words):
        subscription = make_subscription(trial_ends_at=None, is_pro=True, subscription_ends_at=None)
        add_words()

        run_daily_schedule(db_session, clock=clock)

        assert len(outbox_rows(db_session, subscription.phone_number)) == 3


class TestWordSelection:
    def test_prefers_words_not_recently_sent(self, db_session, make_subscription, add_words):
        subscription = make_subscription()
        add_words(count=5)
        for word in ("word1", "word2"):
            db_session.add(
                WordHistory(
                    user_id=subscription.user_id,
                    word=word,
                    category="general",
                    date_sent=RUN_AT - timedelta(days=2),
                )
            )
        db_session.commit()

        run_daily_schedule(db_session, clock=clock)

        words = [r.variables["word"] for r in outbox_rows(db_session, subscription.phone_number)]
        assert words == ["word3", "word4", "word5"]

    def test_history_outside_lookback_is_ignored(self, db_session, make_subscription, add_words):
        subscription = make_subscription()
        add_words(count=3)
        db_session.add(
            WordHistory(
                user_id=subscription.user_id,
                word="word1",
                category="general",
                date_sent=RUN_AT - timedelta(days=45),
            )
        )
        db_session.commit()

        run_daily_schedule(db_session, clock=clock)

        words = [r.variables["word"] for r in outbox_rows(db_session, subscription.phone_number)]
        assert words[0] == "word1"

    def test_tops_up_from_generator(self, db_session, make_subscription, add_words):
        """One unseen word but three needed: two are generated."""
        subscription = make_subscription()
        add_words(count=1)
        generator = MagicMock()
        generator.generate.return_value = generated("alacrity", "sanguine")

        summary = run_daily_schedule(db_session, clock=clock, generator=generator)

        generator.generate.assert_called_once_with("general", 2)
        words = [r.variables["word"] for r in outbox_rows(db_session, subscription.phone_number)]
        assert words == ["word1", "alacrity", "sanguine"]
        assert summary.scheduled == 1

    def test_generator_failure_gives_partial(self, db_session, make_subscription, add_words):
        subscription = make_subscription()
        add_words(count=1)
        generator = MagicMock()
        generator.generate.side_effect = WordGenerationError("OpenAI API error")

        summary = run_daily_schedule(db_session, clock=clock, generator=generator)

        assert len(outbox_rows(db_session, subscription.phone_number)) == 1
        assert summary.partial == 1
        assert summary.results[0].status == "partial"
        assert "1 of 3" in summary.results[0].error

    def test_no_words_at_all_fails(self, db_session, make_subscription):
        make_subscription()
        generator = MagicMock()
        generator.generate.side_effect = WordGenerationError("OpenAI API key is not configured")

        summary = run_daily_schedule(db_session, clock=clock, generator=generator)

        assert summary.failed == 1
        assert summary.results[0].status == "failed"
        assert db_session.query(OutboxMessage).count() == 0


class TestFailureIsolation:
    def test_row_insert_failure_does_not_abort_batch(self, db_session, make_subscription, add_words):
        subscription = make_subscription()
        add_words()

        with patch(
            "vocabdrop.services.daily_schedule._insert_outbox_row",
            side_effect=[None, IntegrityError("INSERT", {}, Exception("duplicate")), None],
        ):
            result = schedule_subscription(db_session, subscription, RUN_AT)

        assert result.status == "partial"
        assert result.messages_count == 2
        assert result.delivery_times == ["10:00", "18:00"]

    def test_conflicting_row_leaves_other_rows(self, db_session, make_subscription, add_words):
        """A row already holding the 14:00 IST slot fails alone; the rest commit."""
        subscription = make_subscription(delivery_time="10:00")
        add_words()
        db_session.add(
            OutboxMessage(
                user_id=subscription.user_id,
                phone=subscription.phone_number,
                send_at=datetime(2026, 3, 10, 8, 30, tzinfo=timezone.utc),
                template="vocab_word_delivery",
                source="manual",
                variables={"word": "existing"},
            )
        )
        db_session.commit()

        with patch(
            "vocabdrop.services.daily_schedule.already_scheduled", return_value=False
        ):
            summary = run_daily_schedule(db_session, clock=clock)

        result = summary.results[0]
        assert result.status == "partial"
        assert result.messages_count == 2
        assert result.delivery_times == ["10:00", "18:00"]
        assert summary.partial == 1

        rows = outbox_rows(db_session, subscription.phone_number)
        assert len(rows) == 3
        assert [r.source for r in rows] == ["daily-scheduler", "manual", "daily-scheduler"]

    def test_subscription_error_does_not_abort_run(self, db_session, make_subscription, add_words):
        first = make_subscription()
        second = make_subscription()
        add_words()

        real_schedule = schedule_subscription

        def flaky(db, subscription, now, generator=None):
            if subscription.id == first.id:
                raise RuntimeError("boom")
            return real_schedule(db, subscription, now, generator)

        with patch("vocabdrop.services.daily_schedule.schedule_subscription", side_effect=flaky):
            summary = run_daily_schedule(db_session, clock=clock)

        assert summary.failed == 1
        assert summary.scheduled == 1
        assert len(outbox_rows(db_session, second.phone_number)) == 3


class TestSummaryNotification:
    def test_sends_report(self, db_session, make_subscription, add_words, mock_email):
        make_subscription()
        add_words()

        summary = run_daily_schedule(db_session, clock=clock)

        mock_email.send_scheduler_report.assert_called_once_with(summary)

    def test_low_success_flagged(self, db_session, make_subscription, add_words):
        make_subscription(category="general")
        make_subscription(category="empty")
        add_words()
        generator = MagicMock()
        generator.generate.side_effect = WordGenerationError("down")

        summary = run_daily_schedule(db_session, clock=clock, generator=generator)

        assert summary.success_rate == 0.5
        assert summary.low_success is True

    def test_notification_failure_is_ignored(self, db_session, make_subscription, add_words, mock_email):
        make_subscription()
        add_words()
        mock_email.send_scheduler_report.side_effect = RuntimeError("resend down")

        summary = run_daily_schedule(db_session, clock=clock)

        assert summary.success is True
        assert summary.scheduled == 1

    def test_notify_disabled(self, db_session, mock_email):
        run_daily_schedule(db_session, clock=clock, notify=False)

        mock_email.send_scheduler_report.assert_not_called()
