"""Email router - admin endpoints for templates and automation runs"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...auth import Session, require_admin
from ...dependencies import get_resolver
from ...email_service import ResendTransport, get_transport
from ...record_store import RecordStore, get_record_store
from ...schemas import ok
from ..events.resolver import EventResolver
from .repository import EmailRepository
from .schemas import (
    AutomationRunRequest,
    EmailTemplateCreate,
    EmailTemplateUpdate,
    ManualSendRequest,
    SendTestEmailRequest,
)
from .service import EmailAutomationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/email", tags=["Email Automation"])


def get_email_service(
    store: RecordStore = Depends(get_record_store),
    transport: ResendTransport = Depends(get_transport),
    resolver: EventResolver = Depends(get_resolver),
) -> EmailAutomationService:
    """Dependency injection for EmailAutomationService"""
    return EmailAutomationService(store, transport, resolver)


# ============================================================================
# TEMPLATES
# ============================================================================


@router.get("/templates")
def list_templates(
    session: Session = Depends(require_admin),
    service: EmailAutomationService = Depends(get_email_service),
):
    return ok(service.list_templates())


@router.post("/templates")
def create_template(
    data: EmailTemplateCreate,
    session: Session = Depends(require_admin),
    service: EmailAutomationService = Depends(get_email_service),
):
    return ok(service.create_template(data))


@router.patch("/templates/{template_id}")
def update_template(
    template_id: str,
    data: EmailTemplateUpdate,
    session: Session = Depends(require_admin),
    service: EmailAutomationService = Depends(get_email_service),
):
    return ok(service.update_template(template_id, data))


@router.delete("/templates/{template_id}")
def deactivate_template(
    template_id: str,
    session: Session = Depends(require_admin),
    service: EmailAutomationService = Depends(get_email_service),
):
    """Templates are deactivated, never deleted, so the send log stays meaningful"""
    return ok(service.deactivate_template(template_id))


# ============================================================================
# SENDING
# ============================================================================


@router.post("/automation/run")
def run_automation(
    data: AutomationRunRequest,
    session: Session = Depends(require_admin),
    service: EmailAutomationService = Depends(get_email_service),
):
    logger.info(f"📤 Manual automation run by {session.email} (dry_run={data.dry_run})")
    report = service.process_email_automation(dry_run=data.dry_run, ignore_trigger_hour=data.ignore_trigger_hour)
    return ok(report.to_dict())


@router.post("/send")
def send_template(
    data: ManualSendRequest,
    session: Session = Depends(require_admin),
    service: EmailAutomationService = Depends(get_email_service),
):
    report = service.send_template_to_event(data.template_id, data.event_id, force_resend=data.force_resend)
    return ok(report.to_dict())


@router.post("/test")
def send_test_email(
    data: SendTestEmailRequest,
    session: Session = Depends(require_admin),
    service: EmailAutomationService = Depends(get_email_service),
):
    return ok(service.send_test_email(data.template_id, data.to, data.event_id))


@router.get("/logs")
def list_logs(
    event_id: Optional[str] = Query(None),
    session: Session = Depends(require_admin),
    service: EmailAutomationService = Depends(get_email_service),
):
    canonical = service.resolver.resolve_or_404(event_id).event_id if event_id else None
    logs = EmailRepository.list_logs(service.store, canonical)
    logs.sort(key=lambda log: log.sent_at.isoformat() if log.sent_at else "", reverse=True)
    return ok(logs)
