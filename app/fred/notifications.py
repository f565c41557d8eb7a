"""
Outbound email for rental workflow events.

Sending is best-effort: when SMTP is not configured the message is logged
instead, and delivery errors are logged and reported back to the caller, never
raised into the request.
"""
from __future__ import annotations

import logging
import smtplib
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RentalNotice:
    rental_id: int
    requested_by: str
    district: str
    section: str
    equipment_type: str
    delivery_date: str | None
    delivery_location: str | None
    approval_link: str


def _render_rental_notice(notice: RentalNotice, *, resubmitted: bool) -> tuple[str, str]:
    verb = "resubmitted" if resubmitted else "submitted"
    subject = f"Rental request #{notice.rental_id} {verb} - approval needed"
    lines = [
        f"A rental request has been {verb} and is awaiting processing.",
        "",
        f"Rental ID:     {notice.rental_id}",
        f"Requested by:  {notice.requested_by}",
        f"Equipment:     {notice.equipment_type}",
        f"District:      {notice.district}",
        f"Section:       {notice.section}",
    ]
    if notice.delivery_date:
        lines.append(f"Delivery date: {notice.delivery_date}")
    if notice.delivery_location:
        lines.append(f"Deliver to:    {notice.delivery_location}")
    lines += ["", f"Review it here: {notice.approval_link}"]
    return subject, "\n".join(lines)


def send_email(config: Mapping[str, Any], to: Sequence[str], subject: str, body: str) -> tuple[bool, str | None]:
    smtp_server = (config.get("SMTP_SERVER") or "").strip()
    email_from = (config.get("EMAIL_FROM") or "").strip()
    if not smtp_server or not email_from:
        logger.info("Email not configured; would have sent %r to %s", subject, ", ".join(to))
        return False, "SMTP not configured"

    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = email_from
    msg["To"] = ", ".join(to)
    msg.set_content(body)

    port = config.get("SMTP_PORT")
    try:
        with smtplib.SMTP(smtp_server, int(port) if port else 0, timeout=15) as server:
            if config.get("SMTP_USE_TLS", True):
                server.starttls()
            username = (config.get("SMTP_USERNAME") or "").strip()
            if username:
                server.login(username, config.get("SMTP_PASSWORD") or "")
            server.send_message(msg)
    except (OSError, smtplib.SMTPException) as e:
        logger.warning("Email send failed (subject=%r): %s", subject, e)
        return False, str(e)
    logger.info("Email sent (subject=%r, recipients=%d)", subject, len(to))
    return True, None


def send_rental_approval_notification(
    config: Mapping[str, Any],
    to: Sequence[str],
    notice: RentalNotice,
    *,
    resubmitted: bool = False,
) -> tuple[bool, str | None]:
    if not to:
        logger.warning("No RC users with email addresses found for notification (rental_id=%s)", notice.rental_id)
        return False, "No recipients"
    subject, body = _render_rental_notice(notice, resubmitted=resubmitted)
    return send_email(config, to, subject, body)
