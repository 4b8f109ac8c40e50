"""Reminder cadence policies and the reminder batch runner"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union
import asyncio
import json
import logging

from invoicehub.config import settings
from invoicehub.errors import ConfigurationError, ReminderColumnMissingError
from invoicehub.models.app_settings import AppSettings
from invoicehub.models.customer import Customer
from invoicehub.models.document import CompanyTag, Document, PaymentState, QuoteState

logger = logging.getLogger(__name__)

REMINDER_NOTIFICATION = "Follow-up / Reminder"
DAYS_BEFORE_DUE = 2
WATCHLIST_DAYS = 3
COUNTER_KEY_PREFIX = "automation_daily_count_"

_FROM_DOCUMENT = object()


class DueDateReminderPolicy:
    """
    Remind two days before the due date and every day once overdue,
    at most once per calendar day.
    """

    name = "due_date"

    def is_eligible(
        self, document: Document, today: date, last_sent=_FROM_DOCUMENT, sent_count: Optional[int] = None
    ) -> bool:
        if document.is_quote or document.is_paid:
            return False
        if document.due_date is None:
            return False
        if last_sent is _FROM_DOCUMENT:
            last_sent = document.last_reminder_sent

        is_overdue = document.due_date < today
        is_two_days_before = document.due_date - timedelta(days=DAYS_BEFORE_DUE) == today
        return (is_overdue or is_two_days_before) and last_sent != today


class RollingGapReminderPolicy:
    """
    Background automation cadence: a reminder every ``gap_days`` since the
    last one (or since issue), up to ``max_reminders`` in total.
    """

    name = "rolling_gap"

    def __init__(self, gap_days: int = 3, max_reminders: int = 4):
        self.gap_days = gap_days
        self.max_reminders = max_reminders

    def is_eligible(
        self, document: Document, today: date, last_sent=_FROM_DOCUMENT, sent_count: Optional[int] = None
    ) -> bool:
        if document.is_quote or document.status in (PaymentState.PAID, QuoteState.ACCEPTED):
            return False
        if sent_count is None:
            sent_count = document.reminder_count
        if sent_count >= self.max_reminders:
            return False
        if last_sent is _FROM_DOCUMENT:
            last_sent = document.last_reminder_sent
        last_event = last_sent or document.issue_date
        return (today - last_event).days >= self.gap_days


ReminderPolicy = Union[DueDateReminderPolicy, RollingGapReminderPolicy]


def policy_from_settings() -> ReminderPolicy:
    if settings.REMINDER_POLICY == RollingGapReminderPolicy.name:
        return RollingGapReminderPolicy(settings.REMINDER_GAP_DAYS, settings.MAX_REMINDERS)
    return DueDateReminderPolicy()


class DailySendCounter:
    """
    Day-keyed count of automated sends, kept in a small JSON file.

    Best effort only: concurrent processes can race on the file.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None, limit: Optional[int] = None):
        self.path = Path(path) if path else Path(settings.LOCAL_STORAGE_PATH) / "automation_counter.json"
        self.limit = settings.MAX_DAILY_AUTOMATED_EMAILS if limit is None else limit

    @staticmethod
    def key_for(day: date) -> str:
        return f"{COUNTER_KEY_PREFIX}{day.isoformat()}"

    def _read(self) -> Dict[str, int]:
        if not self.path.exists():
            return {}
        try:
            return json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Unreadable reminder counter {self.path}: {e}")
            return {}

    def count(self, day: date) -> int:
        return int(self._read().get(self.key_for(day), 0))

    def remaining(self, day: date) -> int:
        return max(0, self.limit - self.count(day))

    def increment(self, day: date) -> int:
        key = self.key_for(day)
        # Only today's key is kept; earlier days reset by falling away
        data = {key: self._read().get(key, 0) + 1}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data), encoding="utf-8")
        return data[key]


@dataclass
class LocalReminderRecord:
    last_sent: date
    count: int


@dataclass
class ReminderRunResult:
    checked: int = 0
    sent: int = 0
    failed: int = 0
    skipped_cap: int = 0
    local_mode: bool = False
    log: List[str] = field(default_factory=list)


def _by_due_date(document: Document):
    return (document.due_date is None, document.due_date or date.min)


def reminder_watchlist(documents: Iterable[Document], today: Optional[date] = None) -> List[Document]:
    """Unpaid invoices due within three days or already overdue, soonest first"""
    today = today or date.today()
    horizon = today + timedelta(days=WATCHLIST_DAYS)
    watch = [
        d for d in documents
        if not d.is_quote and not d.is_paid and d.due_date is not None and d.due_date <= horizon
    ]
    return sorted(watch, key=_by_due_date)


def overdue_count(documents: Iterable[Document], today: Optional[date] = None) -> int:
    today = today or date.today()
    return sum(
        1 for d in documents
        if not d.is_quote and not d.is_paid and d.due_date is not None and d.due_date < today
    )


class ReminderService:
    """
    Sends reminders for eligible documents, one at a time.

    When the store turns out to have no reminder column, tracking moves to
    an in-memory map for the rest of this instance's life.
    """

    def __init__(
        self,
        document_service,
        integration_service,
        app_settings: AppSettings,
        policy: Optional[ReminderPolicy] = None,
        counter: Optional[DailySendCounter] = None,
    ):
        self.document_service = document_service
        self.integration_service = integration_service
        self.app_settings = app_settings
        self.policy = policy or policy_from_settings()
        if counter is None and isinstance(self.policy, RollingGapReminderPolicy):
            counter = DailySendCounter()
        self.counter = counter
        self.local_mode = False
        self.local_tracker: Dict[str, LocalReminderRecord] = {}

    def _is_eligible(self, document: Document, today: date) -> bool:
        if not self.local_mode:
            return self.policy.is_eligible(document, today)
        record = self.local_tracker.get(document.id)
        if record is None:
            return self.policy.is_eligible(document, today, last_sent=None)
        return self.policy.is_eligible(document, today, last_sent=record.last_sent, sent_count=record.count)

    def _track_locally(self, document: Document, today: date) -> None:
        record = self.local_tracker.get(document.id)
        count = record.count if record else document.reminder_count
        self.local_tracker[document.id] = LocalReminderRecord(last_sent=today, count=count + 1)

    def candidates(self, documents: Iterable[Document], today: Optional[date] = None) -> List[Document]:
        today = today or date.today()
        eligible = [d for d in documents if self._is_eligible(d, today)]
        return sorted(eligible, key=_by_due_date)

    async def _track(self, document: Document, today: date, result: ReminderRunResult) -> None:
        if self.local_mode:
            self._track_locally(document, today)
            return
        try:
            await self.document_service.mark_reminder_sent(document, today)
        except ReminderColumnMissingError:
            self.local_mode = True
            self._track_locally(document, today)
            logger.warning("Reminder column missing; tracking reminders in memory for this session")
            result.log.append(f"[{datetime.now():%H:%M}] Switch: tracking reminders locally")

    async def run(
        self,
        documents: Optional[List[Document]] = None,
        today: Optional[date] = None,
        customers: Optional[Dict[str, Customer]] = None,
        logos: Optional[Dict[CompanyTag, Union[bytes, str]]] = None,
    ) -> ReminderRunResult:
        """
        Send every eligible reminder for ``today``.

        ``logos`` maps each company to its uploaded logo; the attached PDF
        uses the brand file for companies without one.

        Raises:
            ConfigurationError: no email webhook URL is configured
        """
        if not self.app_settings.webhook_url:
            raise ConfigurationError("Webhook URL is not configured")

        today = today or date.today()
        if documents is None:
            documents = await self.document_service.load()
        customers = customers or {}
        logos = logos or {}

        result = ReminderRunResult(local_mode=self.local_mode)
        due = self.candidates(documents, today)
        result.checked = len(due)
        logger.info(f"Reminder run for {today}: {len(due)} candidate(s) with policy {self.policy.name}")

        for document in due:
            stamp = f"[{datetime.now():%H:%M}]"
            if self.counter is not None and self.counter.remaining(today) <= 0:
                result.skipped_cap += 1
                continue
            try:
                await asyncio.to_thread(
                    self.integration_service.send_document_email,
                    document,
                    self.app_settings,
                    customer=customers.get(document.customer_id or ""),
                    logo=logos.get(document.company),
                    notification_type=REMINDER_NOTIFICATION,
                )
                if self.counter is not None:
                    self.counter.increment(today)
                await self._track(document, today, result)
                result.sent += 1
                result.log.append(
                    f"{stamp} Reminder sent for {document.customer.name} (Inv: {document.number})"
                )
            except Exception as e:
                result.failed += 1
                logger.error(f"Reminder failed for {document.number}: {e}", exc_info=True)
                result.log.append(f"{stamp} Failed for {document.number}: {e}")

        if result.skipped_cap:
            logger.warning(f"Daily reminder cap reached; {result.skipped_cap} reminder(s) deferred")
        result.local_mode = self.local_mode
        return result
