"""Message builders for item, API-failure and recovery notifications."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog
from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..mapping import Item

logger = structlog.get_logger(__name__)

SMS_MAX_LEN = 480

_TEMPLATE_DIR = Path(__file__).parent / "templates"
_jinja_env = Environment(
    loader=FileSystemLoader(str(_TEMPLATE_DIR)),
    autoescape=select_autoescape(["html", "j2"]),
    trim_blocks=True,
    lstrip_blocks=True,
)

# accent / tint colors for the shared email layout
_THEMES = {
    "items": {"accent": "#007bff", "tint": "#e7f3ff"},
    "failure": {"accent": "#dc3545", "tint": "#fdecea"},
    "recovery": {"accent": "#28a745", "tint": "#e9f7ef"},
}


@dataclass(frozen=True)
class EmailMessage:
    subject: str
    text: str
    html: str | None = None


def load_timezone(name: str):
    cleaned = (name or "").strip()
    if not cleaned or cleaned.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(cleaned)
    except ZoneInfoNotFoundError:
        logger.warning("Timezone not found; falling back to UTC", tz=cleaned)
        return timezone.utc


def format_display_time(now: datetime, tz_name: str) -> str:
    return now.astimezone(load_timezone(tz_name)).strftime("%Y-%m-%d %H:%M:%S %Z")


def _truncate_sms(text: str) -> str:
    text = " ".join(text.split())
    if len(text) <= SMS_MAX_LEN:
        return text
    return text[: SMS_MAX_LEN - 3].rstrip() + "..."


def _item_lines(items: list[Item]) -> list[str]:
    lines: list[str] = []
    for index, item in enumerate(items, start=1):
        line = f"{index}. ID: {item.id if item.id is not None else 'n/a'}, Time: {item.timestamp or 'n/a'}"
        if item.title:
            line += f", Title: {item.title}"
        lines.append(line)
        if item.details:
            lines.append(f"   Details: {item.details}")
    return lines


# --- new items -------------------------------------------------------------

def build_items_sms(endpoint_tag: str, items: list[Item]) -> str:
    return _truncate_sms(
        f"[{endpoint_tag}] Payment notification: {len(items)} item(s) detected. Please check the system."
    )


def build_items_email(
    endpoint_tag: str,
    items: list[Item],
    *,
    mute_link: str | None,
    sent_at: str,
) -> EmailMessage:
    subject = f"Payment Notification [{endpoint_tag}]: {len(items)} item(s)"
    if mute_link:
        mute_text = f"Mute alerts for this endpoint (choose duration): {mute_link}"
    else:
        mute_text = "Manual mute is currently disabled."
    text = "\n".join(
        [
            "Dear Admin,",
            "",
            f"Items have been detected on endpoint '{endpoint_tag}':",
            "",
            *_item_lines(items),
            "",
            f"Total items: {len(items)}",
            "",
            mute_text,
            "",
            f"Timestamp: {sent_at}",
        ]
    )
    html = _jinja_env.get_template("items_email.html.j2").render(
        **_THEMES["items"],
        endpoint_tag=endpoint_tag,
        items=items,
        mute_link=mute_link,
        sent_at=sent_at,
    )
    return EmailMessage(subject=subject, text=text, html=html)


# --- API failure -----------------------------------------------------------

def build_api_failure_sms(endpoint_tag: str, status: int | None, error: str) -> str:
    return _truncate_sms(f"[{endpoint_tag}] API FAILURE: status {status or 'N/A'}. Error: {error or 'Unknown error'}")


def build_api_failure_email(
    endpoint_tag: str,
    status: int | None,
    error: str,
    *,
    mute_link: str | None,
    sent_at: str,
) -> EmailMessage:
    subject = f"API FAILURE [{endpoint_tag}]: {status or 'No Status'}"
    tail = f"Mute alerts: {mute_link}" if mute_link else "Manual mute is disabled in settings."
    text = (
        f"API failure detected on endpoint '{endpoint_tag}'. "
        f"Status: {status or 'N/A'}. Error: {error or 'Unknown error'}.\n\n{tail}\n\nSystem time: {sent_at}"
    )
    html = _jinja_env.get_template("api_failure_email.html.j2").render(
        **_THEMES["failure"],
        endpoint_tag=endpoint_tag,
        status=status or "N/A",
        error=error or "Unknown error",
        mute_link=mute_link,
        sent_at=sent_at,
    )
    return EmailMessage(subject=subject, text=text, html=html)


# --- recovery --------------------------------------------------------------

def build_recovery_email(endpoint_tag: str, previous_error: str, *, sent_at: str) -> EmailMessage:
    subject = f"API RECOVERED [{endpoint_tag}]"
    text = f"API for endpoint '{endpoint_tag}' recovered at {sent_at}. Previous error: {previous_error or 'N/A'}."
    html = _jinja_env.get_template("api_recovery_email.html.j2").render(
        **_THEMES["recovery"],
        endpoint_tag=endpoint_tag,
        previous_error=previous_error or "N/A",
        sent_at=sent_at,
    )
    return EmailMessage(subject=subject, text=text, html=html)
