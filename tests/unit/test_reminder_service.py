"""Unit tests for reminder policies and the reminder runner"""

import pytest
from datetime import date, timedelta
from sqlalchemy import text
from unittest.mock import AsyncMock, MagicMock

from invoicehub.errors import ConfigurationError, ReminderColumnMissingError, WebhookDeliveryError
from invoicehub.models.app_settings import AppSettings
from invoicehub.models.document import CompanyTag, PaymentState
from invoicehub.services.db_service import DatabaseService
from invoicehub.services.document_service import DocumentService
from invoicehub.services.reminder_service import (
    REMINDER_NOTIFICATION,
    DailySendCounter,
    DueDateReminderPolicy,
    LocalReminderRecord,
    ReminderService,
    RollingGapReminderPolicy,
    overdue_count,
    reminder_watchlist,
)


TODAY = date(2024, 4, 10)


def _invoice(sample_document, doc_id, due, **changes):
    return sample_document.model_copy(update={"id": doc_id, "number": f"INV-{doc_id}", "due_date": due, **changes})


@pytest.mark.unit
class TestDueDatePolicy:
    policy = DueDateReminderPolicy()

    def test_two_days_before_due(self, sample_document):
        doc = _invoice(sample_document, "a", date(2024, 4, 12))
        assert self.policy.is_eligible(doc, TODAY)

    def test_due_today_is_not_eligible(self, sample_document):
        doc = _invoice(sample_document, "a", TODAY)
        assert not self.policy.is_eligible(doc, TODAY)

    def test_overdue_every_day(self, sample_document):
        doc = _invoice(sample_document, "a", date(2024, 4, 1), last_reminder_sent=date(2024, 4, 9))
        assert self.policy.is_eligible(doc, TODAY)

    def test_once_per_day(self, sample_document):
        doc = _invoice(sample_document, "a", date(2024, 4, 1), last_reminder_sent=TODAY)
        assert not self.policy.is_eligible(doc, TODAY)

    def test_explicit_last_sent_overrides_document(self, sample_document):
        doc = _invoice(sample_document, "a", date(2024, 4, 1))
        assert not self.policy.is_eligible(doc, TODAY, last_sent=TODAY)

    def test_paid_and_quotes_are_excluded(self, sample_document, sample_quote):
        paid = _invoice(sample_document, "a", date(2024, 4, 1), status=PaymentState.PAID)
        quote = sample_quote.model_copy(update={"due_date": date(2024, 4, 1)})

        assert not self.policy.is_eligible(paid, TODAY)
        assert not self.policy.is_eligible(quote, TODAY)

    def test_no_due_date(self, sample_document):
        assert not self.policy.is_eligible(_invoice(sample_document, "a", None), TODAY)


@pytest.mark.unit
class TestRollingGapPolicy:
    def test_gap_since_issue(self, sample_document):
        policy = RollingGapReminderPolicy(gap_days=3, max_reminders=4)
        doc = sample_document.model_copy(update={"issue_date": date(2024, 4, 7)})

        assert policy.is_eligible(doc, TODAY)
        assert not policy.is_eligible(doc, date(2024, 4, 9))

    def test_gap_since_last_reminder(self, sample_document):
        policy = RollingGapReminderPolicy(gap_days=3, max_reminders=4)
        doc = sample_document.model_copy(update={"last_reminder_sent": date(2024, 4, 8), "reminder_count": 1})
        assert not policy.is_eligible(doc, TODAY)

    def test_stops_after_max_reminders(self, sample_document):
        policy = RollingGapReminderPolicy(gap_days=3, max_reminders=2)
        doc = sample_document.model_copy(update={"reminder_count": 2})
        assert not policy.is_eligible(doc, TODAY)


@pytest.mark.unit
class TestWatchlist:
    def test_due_soon_and_overdue_sorted(self, sample_document):
        docs = [
            _invoice(sample_document, "later", date(2024, 4, 13)),
            _invoice(sample_document, "far", date(2024, 5, 1)),
            _invoice(sample_document, "overdue", date(2024, 4, 2)),
            _invoice(sample_document, "paid", date(2024, 4, 2), status=PaymentState.PAID),
        ]

        watch = reminder_watchlist(docs, TODAY)

        assert [d.id for d in watch] == ["overdue", "later"]
        assert overdue_count(docs, TODAY) == 1


@pytest.mark.unit
class TestDailySendCounter:
    def test_counts_per_day(self, tmp_path):
        counter = DailySendCounter(tmp_path / "counter.json", limit=2)

        assert counter.remaining(TODAY) == 2
        counter.increment(TODAY)
        counter.increment(TODAY)

        assert counter.count(TODAY) == 2
        assert counter.remaining(TODAY) == 0

    def test_new_day_resets(self, tmp_path):
        counter = DailySendCounter(tmp_path / "counter.json", limit=5)
        counter.increment(date(2024, 4, 9))
        counter.increment(TODAY)

        assert counter.count(TODAY) == 1
        assert counter.count(date(2024, 4, 9)) == 0

    def test_unreadable_file_counts_as_zero(self, tmp_path):
        path = tmp_path / "counter.json"
        path.write_text("not json", encoding="utf-8")
        assert DailySendCounter(path, limit=5).count(TODAY) == 0


@pytest.mark.unit
class TestReminderService:
    @pytest.fixture
    def overdue_docs(self, sample_document):
        return [
            _invoice(sample_document, "one", date(2024, 4, 1)),
            _invoice(sample_document, "two", date(2024, 4, 5)),
        ]

    @pytest.fixture
    def document_service(self):
        service = MagicMock()
        service.mark_reminder_sent = AsyncMock()
        service.load = AsyncMock(return_value=[])
        return service

    @pytest.fixture
    def integrations(self):
        mock = MagicMock()
        mock.send_document_email.return_value = True
        return mock

    async def test_requires_webhook(self, document_service, integrations, overdue_docs):
        service = ReminderService(document_service, integrations, AppSettings(), policy=DueDateReminderPolicy())

        with pytest.raises(ConfigurationError):
            await service.run(overdue_docs, today=TODAY)
        integrations.send_document_email.assert_not_called()

    async def test_sends_and_tracks_each_candidate(
        self, document_service, integrations, overdue_docs, sample_settings
    ):
        service = ReminderService(document_service, integrations, sample_settings, policy=DueDateReminderPolicy())

        result = await service.run(overdue_docs, today=TODAY)

        assert result.checked == 2
        assert result.sent == 2
        assert result.failed == 0
        assert document_service.mark_reminder_sent.await_count == 2
        _, kwargs = integrations.send_document_email.call_args
        assert kwargs["notification_type"] == REMINDER_NOTIFICATION
        assert "Reminder sent for Mary Walsh (Inv: INV-one)" in result.log[0]

    async def test_failure_does_not_stop_batch(
        self, document_service, integrations, overdue_docs, sample_settings
    ):
        integrations.send_document_email.side_effect = [WebhookDeliveryError("Webhook failed: 500"), True]
        service = ReminderService(document_service, integrations, sample_settings, policy=DueDateReminderPolicy())

        result = await service.run(overdue_docs, today=TODAY)

        assert result.sent == 1
        assert result.failed == 1
        # Only the delivered reminder is recorded
        document_service.mark_reminder_sent.assert_awaited_once()

    async def test_switches_to_local_tracking_when_column_missing(
        self, document_service, integrations, overdue_docs, sample_settings
    ):
        document_service.mark_reminder_sent.side_effect = ReminderColumnMissingError()
        service = ReminderService(document_service, integrations, sample_settings, policy=DueDateReminderPolicy())

        result = await service.run(overdue_docs, today=TODAY)

        assert result.sent == 2
        assert result.local_mode is True
        assert service.local_tracker == {
            "one": LocalReminderRecord(last_sent=TODAY, count=1),
            "two": LocalReminderRecord(last_sent=TODAY, count=1),
        }
        # After the switch the store is not asked again
        assert document_service.mark_reminder_sent.await_count == 1

        again = await service.run(overdue_docs, today=TODAY)
        assert again.checked == 0

    async def test_daily_cap_defers_the_rest(
        self, document_service, integrations, overdue_docs, sample_settings, tmp_path
    ):
        counter = DailySendCounter(tmp_path / "counter.json", limit=1)
        service = ReminderService(
            document_service,
            integrations,
            sample_settings,
            policy=RollingGapReminderPolicy(gap_days=3, max_reminders=4),
            counter=counter,
        )

        result = await service.run(overdue_docs, today=TODAY)

        assert result.sent == 1
        assert result.skipped_cap == 1
        assert counter.count(TODAY) == 1

    async def test_loads_documents_when_not_given(self, document_service, integrations, sample_settings):
        service = ReminderService(document_service, integrations, sample_settings, policy=DueDateReminderPolicy())

        result = await service.run(today=TODAY)

        document_service.load.assert_awaited_once()
        assert result.checked == 0

    async def test_local_tracking_counts_towards_max_reminders(
        self, document_service, integrations, overdue_docs, sample_settings, tmp_path
    ):
        document_service.mark_reminder_sent.side_effect = ReminderColumnMissingError()
        service = ReminderService(
            document_service,
            integrations,
            sample_settings,
            policy=RollingGapReminderPolicy(gap_days=3, max_reminders=2),
            counter=DailySendCounter(tmp_path / "counter.json", limit=100),
        )

        sent = []
        for offset in (0, 3, 6, 9):
            result = await service.run(overdue_docs[:1], today=TODAY + timedelta(days=offset))
            sent.append(result.sent)

        assert sent == [1, 1, 0, 0]
        assert service.local_tracker["one"] == LocalReminderRecord(last_sent=TODAY + timedelta(days=3), count=2)

    async def test_attaches_logo_for_each_company(
        self, document_service, integrations, overdue_docs, sample_settings
    ):
        docs = [overdue_docs[0], overdue_docs[1].model_copy(update={"company": CompanyTag.MIRRORZONE})]
        service = ReminderService(document_service, integrations, sample_settings, policy=DueDateReminderPolicy())

        await service.run(docs, today=TODAY, logos={CompanyTag.MIRRORZONE: "data:image/png;base64,AAAA"})

        logos = [call.kwargs["logo"] for call in integrations.send_document_email.call_args_list]
        assert logos == [None, "data:image/png;base64,AAAA"]


@pytest.mark.unit
class TestReminderServiceWithoutReminderColumn:
    """Runs against a real SQLite store that lacks ``last_reminder_sent``"""

    @pytest.fixture
    async def legacy_store(self, db_session, sample_document):
        await DatabaseService.save_document(sample_document, db=db_session)
        await db_session.execute(text("ALTER TABLE documents DROP COLUMN last_reminder_sent"))
        await db_session.commit()
        return db_session

    async def test_reads_still_work(self, legacy_store, sample_document):
        documents = await DatabaseService.list_documents(db=legacy_store)
        fetched = await DatabaseService.get_document(sample_document.id, db=legacy_store)

        assert [d.id for d in documents] == [sample_document.id]
        assert documents[0].last_reminder_sent is None
        assert fetched.total == sample_document.total

    async def test_run_switches_to_local_tracking(self, legacy_store, sample_document, sample_settings):
        integrations = MagicMock()
        integrations.send_document_email.return_value = True
        service = ReminderService(
            DocumentService(legacy_store), integrations, sample_settings, policy=DueDateReminderPolicy()
        )

        result = await service.run(today=TODAY)

        assert result.sent == 1
        assert result.local_mode is True
        assert service.local_tracker[sample_document.id].last_sent == TODAY
        assert (await service.run(today=TODAY)).checked == 0
