"""
Template variable substitution for automated emails.

    {{school_name}}       plain variable
    {{event_date}}        dates render as dd.mm.yyyy
    {{event_date+7}}      date math on any date variable
    {{event_date-14}}

Keys starting with "_" are internal and never substituted. Placeholders
without a value are removed. With escape=True values are HTML-escaped for
use inside an email body.
"""

import html
import re
from datetime import date, datetime, timedelta
from typing import Any, Optional

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([a-zA-Z0-9_]+)\s*(?:([+-])\s*(\d+))?\s*\}\}")


def format_german_date(value: date) -> str:
    return value.strftime("%d.%m.%Y")


def _as_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return None
    return None


def _render_value(value: Any) -> str:
    if value is None:
        return ""
    as_date = _as_date(value) if isinstance(value, (date, datetime)) else None
    if as_date is not None:
        return format_german_date(as_date)
    return str(value)


def substitute_variables(text: str, variables: dict[str, Any], escape: bool = False) -> str:
    if not text:
        return ""

    def replace(match: re.Match) -> str:
        name, sign, days = match.group(1), match.group(2), match.group(3)
        if name.startswith("_"):
            return ""
        value = variables.get(name)
        if sign is None:
            rendered = _render_value(value)
            return html.escape(rendered) if escape else rendered

        base = _as_date(value)
        if base is None:
            return ""
        offset = int(days) if sign == "+" else -int(days)
        return format_german_date(base + timedelta(days=offset))

    return PLACEHOLDER_PATTERN.sub(replace, text)


def render_email_html(body_html: str, unsubscribe_url: Optional[str] = None) -> str:
    """Wrap a template body in the shared email layout"""
    footer = ""
    if unsubscribe_url:
        footer = (
            '<p style="font-size:12px;color:#888888;margin-top:32px;">'
            f'<a href="{html.escape(unsubscribe_url)}" style="color:#888888;">Vom Newsletter abmelden</a></p>'
        )
    return (
        "<!DOCTYPE html><html><body "
        'style="font-family:Arial,Helvetica,sans-serif;color:#333333;background:#ffffff;margin:0;padding:0;">'
        '<div style="max-width:600px;margin:0 auto;padding:24px;">'
        f"{body_html}{footer}"
        "</div></body></html>"
    )
