"""Transactional email: message templates and the Brevo HTTP sender."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from html import escape
from typing import Any

import httpx

from stshield.core.config import get_settings
from stshield.core.logging import get_logger

log = get_logger(__name__)

SUPPORT_EMAIL = "support@studentshield.in"
SUPPORT_PHONE = "1800-123-4567"
SUPPORT_HOURS = "Mon-Fri, 9 AM - 6 PM"

CUSTOMER_FIELDS = (
    "name", "email", "phone", "gender", "dateOfBirth", "aadharNumber",
    "address", "city", "state", "pincode",
    "nomineeFullName", "nomineeRelationship", "nomineeGender", "nomineeDateOfBirth",
)


class EmailError(Exception):
    pass


class EmailNotConfiguredError(EmailError):
    pass


@dataclass
class EmailMessage:
    to_email: str
    to_name: str
    subject: str
    html: str
    text: str
    sender_name: str = "Student Shield"


class EmailSender(ABC):
    @abstractmethod
    async def send(self, message: EmailMessage) -> str:
        """Send and return the provider message id."""
        ...


class BrevoEmailSender(EmailSender):
    def __init__(self, api_key: str, sender_email: str, api_url: str, timeout: float = 10.0) -> None:
        self.api_key = api_key
        self.sender_email = sender_email
        self.api_url = api_url
        self.timeout = timeout

    async def send(self, message: EmailMessage) -> str:
        if not self.api_key or not self.sender_email:
            raise EmailNotConfiguredError("BREVO_API_KEY / SENDER_EMAIL not set")
        if not message.to_email:
            raise EmailNotConfiguredError("Missing recipient address")
        payload = {
            "sender": {"name": message.sender_name, "email": self.sender_email},
            "to": [{"email": message.to_email, "name": message.to_name or message.to_email}],
            "subject": message.subject,
            "htmlContent": message.html,
            "textContent": message.text,
        }
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(
                self.api_url,
                json=payload,
                headers={"Accept": "application/json", "api-key": self.api_key},
            )
        if resp.status_code >= 400:
            raise EmailError(f"Brevo API error: {resp.status_code} - {resp.text[:500]}")
        return resp.json().get("messageId", "")


def get_email_sender() -> EmailSender:
    s = get_settings()
    return BrevoEmailSender(s.brevo_api_key, s.sender_email, s.brevo_api_url, s.email_timeout_seconds)


def customer_from_user_data(user_data: dict[str, Any] | None) -> dict[str, Any]:
    """Pick the known customer/nominee fields out of the opaque payload."""
    data = user_data or {}
    return {k: data.get(k) for k in CUSTOMER_FIELDS}


def _v(value: Any) -> str:
    return escape(str(value)) if value not in (None, "") else "N/A"


# Customer confirmation

def build_customer_confirmation(customer: dict[str, Any], policy: dict[str, Any]) -> EmailMessage:
    rows = [
        ("Reference Number", policy.get("policy_number")),
        ("Plan", policy.get("plan_name")),
        ("Premium Paid", f"₹{policy.get('amount')}"),
        ("Policy Holder", customer.get("name")),
        ("Email", customer.get("email")),
        ("Phone", customer.get("phone")),
        ("Policy Date", policy.get("date")),
        ("Payment ID", policy.get("payment_id")),
        ("Nominee Name", customer.get("nomineeFullName")),
        ("Nominee Relationship", customer.get("nomineeRelationship")),
    ]
    details_html = "\n".join(f"<p><strong>{k}:</strong> {_v(v)}</p>" for k, v in rows)
    details_text = "\n".join(f"{k}: {v if v not in (None, '') else 'N/A'}" for k, v in rows)
    name = customer.get("name") or "Customer"
    html = f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Policy Confirmation</title></head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
  <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="background: #DC2626; color: white; padding: 30px; text-align: center;">
      <h1>Welcome to Student Shield!</h1>
      <p>Your policy will be issued soon!</p>
    </div>
    <p>Dear {_v(name)},</p>
    <p>Congratulations! Your Student Shield policy has been successfully created.</p>
    <div>
      <h3>Details:</h3>
      {details_html}
    </div>
    <div>
      <h3>Need Help?</h3>
      <p><strong>Email:</strong> {SUPPORT_EMAIL}</p>
      <p><strong>Phone:</strong> {SUPPORT_PHONE}</p>
      <p><strong>Support Hours:</strong> {SUPPORT_HOURS}</p>
    </div>
    <p>Note: Your policy copy will be sent to your email id within 24-48 hours.</p>
    <p>Thank you for choosing Student Shield.</p>
    <p style="color: #666; text-align: center;">This is an automated email. Please do not reply.</p>
  </div>
</body>
</html>"""
    text = f"""Welcome to Student Shield!

Dear {name},

Congratulations! Your Student Shield policy has been successfully created.

Details:
{details_text}

Need Help?
Email: {SUPPORT_EMAIL}
Phone: {SUPPORT_PHONE}
Support Hours: {SUPPORT_HOURS}

Note: Your policy copy will be sent to your email id within 24-48 hours.

Thank you for choosing Student Shield.
"""
    return EmailMessage(
        to_email=customer.get("email") or "",
        to_name=customer.get("name") or "",
        subject=f"Policy Confirmation - {policy.get('policy_number')}",
        html=html,
        text=text,
    )


# Company acknowledgment / alert

def _company_sections(customer: dict[str, Any], policy: dict[str, Any]) -> list[tuple[str, list[tuple[str, Any]]]]:
    return [
        ("Policy Information", [
            ("Policy Number", policy.get("policy_number")),
            ("Plan", policy.get("plan_name")),
            ("Premium", policy.get("amount")),
            ("Date", policy.get("date")),
            ("Order ID", policy.get("order_id")),
            ("Payment ID", policy.get("payment_id")),
        ]),
        ("Customer Information", [
            ("Name", customer.get("name")),
            ("Email", customer.get("email")),
            ("Phone", customer.get("phone")),
            ("Date of Birth", customer.get("dateOfBirth")),
            ("Aadhar", customer.get("aadharNumber")),
        ]),
        ("Address", [
            ("Address", customer.get("address")),
            ("City", customer.get("city")),
            ("State", customer.get("state")),
            ("Pincode", customer.get("pincode")),
        ]),
        ("Nominee Information", [
            ("Name", customer.get("nomineeFullName")),
            ("Relationship", customer.get("nomineeRelationship")),
        ]),
    ]


def _render_company(title: str, customer: dict[str, Any], policy: dict[str, Any]) -> tuple[str, str]:
    sections = _company_sections(customer, policy)
    html_parts = []
    text_parts = [title, ""]
    for heading, rows in sections:
        body = "\n".join(f"<p><strong>{k}:</strong> {_v(v)}</p>" for k, v in rows)
        html_parts.append(f'<div style="border-left: 3px solid #DC2626; padding: 10px;"><h3>{heading}</h3>{body}</div>')
        text_parts.append(f"{heading}:")
        text_parts.extend(f"- {k}: {v if v not in (None, '') else 'N/A'}" for k, v in rows)
        text_parts.append("")
    html = f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{escape(title)}</title></head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
  <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="background: #1f2937; color: white; padding: 20px; text-align: center;"><h2>{escape(title)}</h2></div>
    {"".join(html_parts)}
  </div>
</body>
</html>"""
    return html, "\n".join(text_parts)


def build_company_acknowledgment(
    customer: dict[str, Any],
    policy: dict[str, Any],
    company_email: str,
) -> EmailMessage:
    html, text = _render_company(f"New Policy Created - {policy.get('policy_number')}", customer, policy)
    return EmailMessage(
        to_email=company_email,
        to_name="Student Shield Team",
        subject=f"New Policy Created - {policy.get('policy_number')}",
        html=html,
        text=text,
        sender_name="Student Shield System",
    )


def build_tamper_alert(
    customer: dict[str, Any],
    alert: dict[str, Any],
    company_email: str,
) -> EmailMessage:
    policy = {
        "policy_number": "N/A",
        "plan_name": alert.get("plan_name"),
        "amount": f"Expected: {alert.get('expected_amount')}, Received: {alert.get('actual_amount')}",
        "date": alert.get("date"),
        "order_id": alert.get("order_id"),
        "payment_id": alert.get("payment_id"),
    }
    html, text = _render_company("ALERT: Payment amount mismatch", customer, policy)
    return EmailMessage(
        to_email=company_email,
        to_name="Student Shield Team",
        subject=f"ALERT: Payment amount mismatch - {alert.get('order_id')}",
        html=html,
        text=text,
        sender_name="Student Shield System",
    )
