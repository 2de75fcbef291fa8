"""
Email automation service

Sends are at-most-once per (template, event, recipient) under normal
operation: a prior "sent" row in the email log short-circuits the send.
There is no cross-process lock, so the log check is the only guard when two
runs overlap. Sent and failed attempts are written to the log; dedup skips
are only counted in the batch report so repeated cron runs add no rows.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional
from urllib.parse import quote
from zoneinfo import ZoneInfo

from ...config import APP_URL, EMAIL_RATE_LIMIT_DELAY_MS, LOCAL_TIMEZONE
from ...email_service import ResendTransport
from ...errors import DomainError, NotFoundError, ValidationError
from ...models import ApprovalStatus, EmailTemplate, Event
from ...record_store import RecordStore
from ..events.repository import EventRepository
from ..events.resolver import EventResolver
from .matcher import (
    AUDIENCE_NON_BUYER,
    AUDIENCE_PARENT,
    AUDIENCE_TEACHER,
    Recipient,
    dedupe_recipients,
    event_matches_template,
    events_hitting_threshold,
    normalize_audience,
    should_fire_now,
)
from .repository import EmailRepository
from .schemas import EmailTemplateCreate, EmailTemplateUpdate
from .templates import render_email_html, substitute_variables

logger = logging.getLogger(__name__)

LOCAL_TZ = ZoneInfo(LOCAL_TIMEZONE)
SCHULSONG_RELEASE_TEMPLATE = "schulsong_release"
ALREADY_SENT = "Already sent"


@dataclass
class SendResult:
    success: bool
    status: str
    error: Optional[str] = None
    message_id: Optional[str] = None


@dataclass
class BatchReport:
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    cancelled: bool = False
    dry_run: bool = False
    items: list[dict] = field(default_factory=list)

    def add(self, template: str, event_id: str, email: Optional[str], status: str, error: Optional[str] = None):
        if status == "sent":
            self.sent += 1
        elif status == "failed":
            self.failed += 1
        elif status == "skipped":
            self.skipped += 1
        item = {"template": template, "eventId": event_id, "email": email, "status": status}
        if error:
            item["error"] = error
        self.items.append(item)

    def to_dict(self) -> dict:
        return {
            "sent": self.sent,
            "failed": self.failed,
            "skipped": self.skipped,
            "cancelled": self.cancelled,
            "dryRun": self.dry_run,
            "items": self.items,
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EmailAutomationService:
    """Template matching, recipient resolution and idempotent sending"""

    def __init__(
        self,
        store: RecordStore,
        transport: ResendTransport,
        resolver: EventResolver,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], None] = time.sleep,
        rate_limit_delay_ms: int = EMAIL_RATE_LIMIT_DELAY_MS,
    ):
        self.store = store
        self.transport = transport
        self.resolver = resolver
        self.clock = clock
        self.sleep = sleep
        self.rate_limit_delay_ms = rate_limit_delay_ms
        # Pacing spans every batch sent through this instance
        self._has_sent = False
        self.repo = EmailRepository()
        self.event_repo = EventRepository()

    # ========================================================================
    # TEMPLATES
    # ========================================================================

    @staticmethod
    def _validate_template_fields(fields: dict[str, Any]) -> dict[str, Any]:
        hour = fields.get("trigger_hour")
        if hour is not None and not 0 <= hour <= 23:
            raise ValidationError("Trigger hour must be between 0 and 23")
        if "audience" in fields and fields["audience"] is not None:
            audience = normalize_audience(fields["audience"])
            if not audience:
                raise ValidationError("At least one audience (teacher, parent, non-buyer) is required")
            fields["audience"] = ",".join(audience)
        return fields

    def list_templates(self) -> list[EmailTemplate]:
        return sorted(self.repo.list_templates(self.store), key=lambda t: (t.trigger_days, t.name))

    def get_template(self, template_id: str) -> EmailTemplate:
        template = self.repo.get_template(self.store, template_id)
        if not template:
            raise NotFoundError("Email template not found")
        return template

    def create_template(self, data: EmailTemplateCreate) -> EmailTemplate:
        if self.repo.get_template_by_name(self.store, data.name):
            raise ValidationError(f"A template named '{data.name}' already exists")
        fields = self._validate_template_fields(data.model_dump())
        template = self.repo.create_template(self.store, {k: v for k, v in fields.items() if v is not None})
        logger.info(f"✅ Email template created: {template.name}")
        return template

    def update_template(self, template_id: str, data: EmailTemplateUpdate) -> EmailTemplate:
        template = self.get_template(template_id)
        fields = self._validate_template_fields(data.model_dump(exclude_unset=True))
        if not fields:
            return template
        return self.repo.update_template(self.store, template, fields)

    def deactivate_template(self, template_id: str) -> EmailTemplate:
        template = self.get_template(template_id)
        return self.repo.update_template(self.store, template, {"active": False})

    # ========================================================================
    # RECIPIENTS
    # ========================================================================

    def _teacher_recipients(self, event: Event) -> list[Recipient]:
        """Linked teachers, else the booking contact, else assigned staff"""
        teachers = self.repo.list_teachers_for_event(self.store, event.record_id)
        recipients = [Recipient(t.email, AUDIENCE_TEACHER, t.name or "") for t in teachers if t.email]
        if recipients:
            return recipients

        for booking_id in event.school_booking:
            booking = self.repo.get_booking(self.store, booking_id)
            if booking and booking.contact_email:
                return [Recipient(booking.contact_email, AUDIENCE_TEACHER, booking.contact_name or "")]

        return [Recipient(email, AUDIENCE_TEACHER) for email in event.assigned_staff if email]

    def _parent_recipients(self, event: Event, audience: list[str]) -> list[Recipient]:
        registrations = [
            r for r in self.repo.list_registrations(self.store, event.event_id)
            if (r.email_campaigns or "").lower() != "no" and r.parent_email
        ]
        wants_parents = AUDIENCE_PARENT in audience
        wants_non_buyers = AUDIENCE_NON_BUYER in audience
        paid = self.repo.paid_order_emails(self.store, event.event_id) if wants_non_buyers else set()

        recipients = []
        for r in registrations:
            email = r.parent_email.strip().lower()
            variables = {"parent_name": r.parent_name or "", "child_name": r.child_name or ""}
            if wants_non_buyers and email not in paid:
                recipients.append(Recipient(email, AUDIENCE_NON_BUYER, r.parent_name or "", variables))
            elif wants_parents and (not wants_non_buyers or email in paid):
                # With both audiences requested, "parent" means the buyers so the sets stay disjoint
                recipients.append(Recipient(email, AUDIENCE_PARENT, r.parent_name or "", variables))
        return recipients

    def get_recipients_for_event(self, event: Event, audience: list[str]) -> list[Recipient]:
        audience = normalize_audience(audience)
        recipients: list[Recipient] = []
        if AUDIENCE_TEACHER in audience:
            recipients.extend(self._teacher_recipients(event))
        if AUDIENCE_PARENT in audience or AUDIENCE_NON_BUYER in audience:
            recipients.extend(self._parent_recipients(event, audience))
        return dedupe_recipients(recipients)

    # ========================================================================
    # SENDING
    # ========================================================================

    @staticmethod
    def event_variables(event: Event) -> dict[str, Any]:
        return {
            "school_name": event.school_name,
            "event_date": event.event_date,
            "event_id": event.event_id,
            "event_type": event.event_type or "",
            "app_url": APP_URL,
            "parent_portal_url": f"{APP_URL}/familie",
            "teacher_portal_url": f"{APP_URL}/paedagogen",
            "_event_record_id": event.record_id,
        }

    @staticmethod
    def _unsubscribe_url(email: str) -> str:
        return f"{APP_URL}/unsubscribe?email={quote(email)}"

    def _safe_log(self, template: EmailTemplate, event: Event, recipient: Recipient, status: str,
                  error: Optional[str] = None, message_id: Optional[str] = None) -> None:
        try:
            self.repo.log_send(
                self.store, template.name, event.event_id, recipient.email, recipient.type,
                status, error_message=error, resend_message_id=message_id,
            )
        except DomainError as e:
            logger.error(f"❌ Failed to write email log ({status}) for {recipient.email}: {e}")

    def send_automated_email(
        self,
        template: EmailTemplate,
        event: Event,
        recipient: Recipient,
        force_resend: bool = False,
    ) -> SendResult:
        if not force_resend and self.repo.has_been_sent(self.store, template.name, event.event_id, recipient.email):
            logger.info(f"⏭️ {template.name} already sent to {recipient.email} for {event.event_id}")
            return SendResult(success=False, status="skipped", error=ALREADY_SENT)
        return self._deliver(template, event, recipient)

    def _deliver(self, template: EmailTemplate, event: Event, recipient: Recipient) -> SendResult:
        """Render and hand one email to the transport, pacing consecutive transport calls"""
        variables = {
            **self.event_variables(event),
            "recipient_name": recipient.name,
            "recipient_email": recipient.email,
            **recipient.variables,
        }
        subject = substitute_variables(template.subject, variables)
        body = substitute_variables(template.body_html, variables, escape=True)

        headers = None
        unsubscribe_url = None
        if recipient.type in (AUDIENCE_PARENT, AUDIENCE_NON_BUYER):
            unsubscribe_url = self._unsubscribe_url(recipient.email)
            headers = {
                "List-Unsubscribe": f"<{unsubscribe_url}>",
                "List-Unsubscribe-Post": "List-Unsubscribe=One-Click",
            }

        if self._has_sent and self.rate_limit_delay_ms:
            self.sleep(self.rate_limit_delay_ms / 1000)
        self._has_sent = True
        response = self.transport.send(recipient.email, subject, render_email_html(body, unsubscribe_url), headers)
        if "id" in response:
            self._safe_log(template, event, recipient, "sent", message_id=response["id"])
            return SendResult(success=True, status="sent", message_id=response["id"])

        error = response.get("error") or "Unknown email provider error"
        logger.error(f"❌ {template.name} to {recipient.email} failed: {error}")
        self._safe_log(template, event, recipient, "failed", error=error)
        return SendResult(success=False, status="failed", error=error)

    def _send_batch(
        self,
        template: EmailTemplate,
        event: Event,
        recipients: list[Recipient],
        report: BatchReport,
        cancel: Optional[Callable[[], bool]] = None,
        force_resend: bool = False,
    ) -> None:
        """Strictly sequential sends with a minimum pause between transport calls"""
        for recipient in recipients:
            if cancel is not None and cancel():
                report.cancelled = True
                return
            if report.dry_run:
                already = self.repo.has_been_sent(self.store, template.name, event.event_id, recipient.email)
                report.items.append({
                    "template": template.name,
                    "eventId": event.event_id,
                    "email": recipient.email,
                    "status": "already_sent" if already else "would_send",
                })
                continue

            result = self.send_automated_email(template, event, recipient, force_resend=force_resend)
            report.add(template.name, event.event_id, recipient.email, result.status, result.error)

    def send_template_to_event(
        self, template_id: str, identifier: str, force_resend: bool = False,
        cancel: Optional[Callable[[], bool]] = None,
    ) -> BatchReport:
        """Manual trigger of one template for one event"""
        template = self.get_template(template_id)
        event = self.resolver.resolve_or_404(identifier)
        recipients = self.get_recipients_for_event(event, template.audience)
        report = BatchReport()
        self._send_batch(template, event, recipients, report, cancel=cancel, force_resend=force_resend)
        return report

    # ========================================================================
    # AUTOMATION RUNS
    # ========================================================================

    def process_email_automation(
        self,
        dry_run: bool = False,
        cancel: Optional[Callable[[], bool]] = None,
        ignore_trigger_hour: bool = False,
    ) -> BatchReport:
        now_local = self.clock().astimezone(LOCAL_TZ)
        today = now_local.date()
        report = BatchReport(dry_run=dry_run)

        templates = self.repo.list_templates(self.store, active_only=True)
        events = [e for e in self.event_repo.list_events(self.store) if e.event_date is not None]
        logger.info(f"📊 Email automation run: {len(templates)} active templates, {len(events)} events (dry_run={dry_run})")

        for template in templates:
            if template.name == SCHULSONG_RELEASE_TEMPLATE:
                continue
            if not ignore_trigger_hour and not should_fire_now(template, now_local):
                continue

            for event in events_hitting_threshold(events, template.trigger_days, today):
                if not event_matches_template(event, template):
                    continue
                if cancel is not None and cancel():
                    report.cancelled = True
                    return report
                try:
                    recipients = self.get_recipients_for_event(event, template.audience)
                    self._send_batch(template, event, recipients, report, cancel=cancel)
                except DomainError as e:
                    logger.error(f"❌ {template.name} for {event.event_id} failed: {e}")
                    report.add(template.name, event.event_id, None, "failed", str(e))
                if report.cancelled:
                    return report

        logger.info(f"✅ Email automation done: sent={report.sent} failed={report.failed} skipped={report.skipped}")
        return report

    def process_schulsong_release_emails(self, cancel: Optional[Callable[[], bool]] = None) -> BatchReport:
        """Notify teachers and parents once an approved schulsong release time has passed"""
        report = BatchReport()
        template = self.repo.get_template_by_name(self.store, SCHULSONG_RELEASE_TEMPLATE)
        if template is None or not template.active:
            logger.info("ℹ️ No active schulsong release template, skipping")
            return report

        now = self.clock()
        for event in self.event_repo.list_events(self.store):
            if event.is_cancelled or event.schulsong_released_at is None or event.schulsong_released_at > now:
                continue
            if not event.is_schulsong or event.admin_approval_status != ApprovalStatus.APPROVED:
                continue
            try:
                recipients = self.get_recipients_for_event(event, [AUDIENCE_TEACHER, AUDIENCE_PARENT])
                self._send_batch(template, event, recipients, report, cancel=cancel)
            except DomainError as e:
                logger.error(f"❌ Schulsong release email for {event.event_id} failed: {e}")
                report.add(template.name, event.event_id, None, "failed", str(e))
            if report.cancelled:
                break
        return report

    def send_test_email(self, template_id: str, to: str, identifier: Optional[str] = None) -> dict:
        """Render with real or sample data and send to one address; not logged"""
        template = self.get_template(template_id)
        if identifier:
            variables = self.event_variables(self.resolver.resolve_or_404(identifier))
        else:
            variables = {
                "school_name": "Musterschule",
                "event_date": self.clock().astimezone(LOCAL_TZ).date(),
                "event_id": "evt_musterschule_minimusikertag_20250101_abc123",
                "app_url": APP_URL,
                "parent_portal_url": f"{APP_URL}/familie",
                "teacher_portal_url": f"{APP_URL}/paedagogen",
            }
        variables.update({"recipient_name": "Test", "parent_name": "Test", "child_name": "Testkind"})

        subject = f"[TEST] {substitute_variables(template.subject, variables)}"
        html = render_email_html(substitute_variables(template.body_html, variables, escape=True))
        response = self.transport.send(to, subject, html)
        if "id" in response:
            return {"success": True, "messageId": response["id"]}
        return {"success": False, "error": response.get("error")}
