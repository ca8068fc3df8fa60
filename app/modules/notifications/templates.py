"""Email bodies for reschedule request events."""

from __future__ import annotations

from html import escape

from app.modules.notifications.email import EmailMessage


class TemplatePayloadError(ValueError):
    """Raised when an outbox payload lacks a field the template needs."""


def _required(payload: dict, key: str) -> str:
    value = payload.get(key)
    if value in (None, ""):
        raise TemplatePayloadError(f"Missing required key: {key}")
    return str(value)


def _detail(label: str, value: str) -> str:
    return f"<p><strong>{escape(label)}</strong><br />{escape(value)}</p>"


def _class_line(payload: dict) -> str:
    return f"{_required(payload, 'original_class_date')} at {_required(payload, 'original_class_time')}"


def reschedule_request_created(payload: dict) -> EmailMessage:
    """Teacher notification for a new student request."""
    student_name = _required(payload, "student_name")
    teacher_name = payload.get("teacher_name") or "Teacher"
    parts = [
        "<h1>Reschedule Request</h1>",
        f"<p>Bonjour {escape(teacher_name)}!</p>",
        f"<p>{escape(student_name)} has asked to reschedule a class in "
        f"{escape(payload.get('cohort_name') or 'Private Class')}.</p>",
        _detail("Original Class", _class_line(payload)),
        _detail("Proposed New Time", _required(payload, "proposed_datetime")),
    ]
    if payload.get("reason"):
        parts.append(_detail("Reason", payload["reason"]))
    parts.append("<p>Please review the request in the admin portal.</p>")
    return EmailMessage(
        to=_required(payload, "teacher_email"),
        subject=f"Reschedule Request from {student_name}",
        html="\n".join(parts),
    )


def reschedule_request_approved(payload: dict) -> EmailMessage:
    """Student notification for an approved request."""
    parts = [
        "<h1>Request Approved</h1>",
        f"<p>Bonjour {escape(payload.get('student_name') or 'Student')}!</p>",
        "<p>Your reschedule request has been approved.</p>",
        _detail("Original Class", _class_line(payload)),
        _detail("Approved New Time", _required(payload, "proposed_datetime")),
    ]
    if payload.get("admin_notes"):
        parts.append(_detail("Teacher Notes", payload["admin_notes"]))
    return EmailMessage(
        to=_required(payload, "student_email"),
        subject="Your reschedule request was approved",
        html="\n".join(parts),
    )


def reschedule_request_declined(payload: dict) -> EmailMessage:
    """Student notification for a declined request."""
    parts = [
        "<h1>Request Declined</h1>",
        f"<p>Bonjour {escape(payload.get('student_name') or 'Student')}!</p>",
        "<p>Unfortunately your reschedule request could not be accommodated.</p>",
        _detail("Original Class", _class_line(payload)),
        _detail("Requested Time", _required(payload, "proposed_datetime")),
    ]
    if payload.get("admin_notes"):
        parts.append(_detail("Teacher Notes", payload["admin_notes"]))
    parts.append("<p>Your original class remains scheduled.</p>")
    return EmailMessage(
        to=_required(payload, "student_email"),
        subject="Update on your reschedule request",
        html="\n".join(parts),
    )


TEMPLATES = {
    "reschedule_request.created": reschedule_request_created,
    "reschedule_request.approved": reschedule_request_approved,
    "reschedule_request.declined": reschedule_request_declined,
}


def build_messages(event_type: str, payload: dict) -> list[EmailMessage]:
    """Messages for an outbox event; empty for event types without email."""
    template = TEMPLATES.get(event_type)
    if template is None:
        return []
    return [template(payload)]
