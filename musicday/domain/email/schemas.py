"""Email domain schemas - Pydantic models for validation"""

from typing import Optional

from pydantic import BaseModel, field_validator


class EmailTemplateCreate(BaseModel):
    name: str
    subject: str
    body_html: str
    audience: list[str]
    trigger_days: int
    trigger_hour: Optional[int] = None
    is_minimusikertag: Optional[bool] = None
    is_plus: Optional[bool] = None
    is_schulsong: Optional[bool] = None
    is_kita: Optional[bool] = None
    only_under_100: bool = False
    active: bool = True

    @field_validator("name", "subject")
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v.strip()


class EmailTemplateUpdate(BaseModel):
    subject: Optional[str] = None
    body_html: Optional[str] = None
    audience: Optional[list[str]] = None
    trigger_days: Optional[int] = None
    trigger_hour: Optional[int] = None
    is_minimusikertag: Optional[bool] = None
    is_plus: Optional[bool] = None
    is_schulsong: Optional[bool] = None
    is_kita: Optional[bool] = None
    only_under_100: Optional[bool] = None
    active: Optional[bool] = None


class AutomationRunRequest(BaseModel):
    dry_run: bool = True
    ignore_trigger_hour: bool = False


class SendTestEmailRequest(BaseModel):
    template_id: str
    to: str
    event_id: Optional[str] = None

    @field_validator("to")
    @classmethod
    def looks_like_email(cls, v):
        if "@" not in v:
            raise ValueError("Invalid email address")
        return v.strip()


class ManualSendRequest(BaseModel):
    template_id: str
    event_id: str
    force_resend: bool = False
