"""Email repository - templates, send log and recipient sources"""

from datetime import datetime, timezone
from typing import Any, Optional

from ...models import EmailLog, EmailTemplate, Order, Registration, SchoolBooking, Tables, Teacher
from ...record_store import RecordStore


class EmailRepository:
    """Repository for email automation records"""

    # Templates

    @staticmethod
    def list_templates(store: RecordStore, active_only: bool = False) -> list[EmailTemplate]:
        rows = store.select(Tables.EMAIL_TEMPLATES, filter_by={"active": True} if active_only else None)
        return [EmailTemplate.from_record(r) for r in rows]

    @staticmethod
    def get_template(store: RecordStore, record_id: str) -> Optional[EmailTemplate]:
        record = store.find(Tables.EMAIL_TEMPLATES, record_id)
        return EmailTemplate.from_record(record) if record else None

    @staticmethod
    def get_template_by_name(store: RecordStore, name: str) -> Optional[EmailTemplate]:
        record = store.first(Tables.EMAIL_TEMPLATES, filter_by={"name": name})
        return EmailTemplate.from_record(record) if record else None

    @staticmethod
    def create_template(store: RecordStore, fields: dict[str, Any]) -> EmailTemplate:
        return EmailTemplate.from_record(store.create(Tables.EMAIL_TEMPLATES, fields))

    @staticmethod
    def update_template(store: RecordStore, template: EmailTemplate, fields: dict[str, Any]) -> EmailTemplate:
        return EmailTemplate.from_record(store.update(Tables.EMAIL_TEMPLATES, template.record_id, fields))

    # Send log

    @staticmethod
    def has_been_sent(store: RecordStore, template_name: str, event_id: str, recipient_email: str) -> bool:
        record = store.first(
            Tables.EMAIL_LOGS,
            filter_by={
                "template_name": template_name,
                "event_id": event_id,
                "recipient_email": recipient_email.lower(),
                "status": "sent",
            },
        )
        return record is not None

    @staticmethod
    def log_send(
        store: RecordStore,
        template_name: str,
        event_id: str,
        recipient_email: str,
        recipient_type: str,
        status: str,
        error_message: Optional[str] = None,
        resend_message_id: Optional[str] = None,
    ) -> EmailLog:
        fields = {
            "template_name": template_name,
            "event_id": event_id,
            "recipient_email": recipient_email.lower(),
            "recipient_type": recipient_type,
            "sent_at": datetime.now(timezone.utc).isoformat(),
            "status": status,
            "error_message": error_message,
            "resend_message_id": resend_message_id,
        }
        record = store.create(Tables.EMAIL_LOGS, {k: v for k, v in fields.items() if v is not None})
        return EmailLog.from_record(record)

    @staticmethod
    def list_logs(store: RecordStore, event_id: Optional[str] = None) -> list[EmailLog]:
        rows = store.select(Tables.EMAIL_LOGS, filter_by={"event_id": event_id} if event_id else None)
        return [EmailLog.from_record(r) for r in rows]

    # Recipient sources

    @staticmethod
    def list_teachers_for_event(store: RecordStore, event_record_id: str) -> list[Teacher]:
        rows = store.select(Tables.TEACHERS, linked={"events": event_record_id})
        return [Teacher.from_record(r) for r in rows]

    @staticmethod
    def get_booking(store: RecordStore, record_id: str) -> Optional[SchoolBooking]:
        record = store.find(Tables.SCHOOL_BOOKINGS, record_id)
        return SchoolBooking.from_record(record) if record else None

    @staticmethod
    def list_registrations(store: RecordStore, event_id: str) -> list[Registration]:
        rows = store.select(Tables.REGISTRATIONS, filter_by={"event_id": event_id})
        return [Registration.from_record(r) for r in rows]

    @staticmethod
    def paid_order_emails(store: RecordStore, event_id: str) -> set[str]:
        rows = store.select(Tables.ORDERS, filter_by={"event_id": event_id})
        return {o.parent_email.strip().lower() for o in (Order.from_record(r) for r in rows) if o.is_paid}
