# app/services/notification_service.py
"""
E-mail notifications sent through fastapi-mail.

Every public method returns True/False and never raises: a failed mail is
logged and reported to the caller, which decides whether it matters.
"""
from datetime import datetime
from typing import List, Optional

from fastapi_mail import FastMail, MessageSchema, MessageType

from app.utiles.custom_helpers import _as_utc
from app.utiles.logger import get_logger

logger = get_logger(__name__)


def _fmt_date(value) -> str:
    value = _as_utc(value)
    return value.strftime("%Y-%m-%d") if value else "N/A"


class NotificationService:
    def __init__(self, mailer: FastMail):
        self.mailer = mailer

    async def send_email(self, to, subject: str, html: str, bcc: Optional[List[str]] = None) -> bool:
        recipients = [to] if isinstance(to, str) else list(to or [])
        if not recipients and not bcc:
            logger.warning("Email '%s' skipped: no recipients", subject)
            return False
        try:
            message = MessageSchema(
                subject=subject,
                recipients=recipients,
                bcc=bcc or [],
                body=html,
                subtype=MessageType.html,
            )
            await self.mailer.send_message(message)
            logger.info("Email sent: subject='%s' to=%s bcc=%s", subject, recipients, len(bcc or []))
            return True
        except Exception as e:
            logger.error("Email sending failed: subject='%s' to=%s error=%s", subject, recipients, e)
            return False

    # --------------------------
    # Templates
    # --------------------------
    async def send_document_expiry_notification(
        self,
        to: str,
        document_type: str,
        expiry_date: datetime,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> bool:
        subject = f"Document Expiry Alert: {document_type}"
        owner = f" for {entity_type.lower()} {entity_id}" if entity_type and entity_id else ""
        html = f"""
            <h2>Document Expiry Alert</h2>
            <p>Your {document_type}{owner} is expiring on {_fmt_date(expiry_date)}.</p>
            <p>Please renew it soon to maintain compliance.</p>
        """
        return await self.send_email(to, subject, html)

    async def send_assignment_notification(self, to: str, vehicle_id: str, driver_id: str, action: str) -> bool:
        subject = f"Vehicle-Driver Assignment: {action}"
        html = f"""
            <h2>Vehicle-Driver Assignment</h2>
            <p>Vehicle {vehicle_id} has been {action.lower()} to driver {driver_id}.</p>
        """
        return await self.send_email(to, subject, html)

    async def send_verification_notification(
        self, to: str, document_id: str, status: str, remarks: Optional[str] = None
    ) -> bool:
        subject = f"Document Verification: {status}"
        html = f"""
            <h2>Document Verification</h2>
            <p>Document {document_id} has been {status.lower()}.</p>
            <p>Remarks: {remarks or 'None'}</p>
        """
        return await self.send_email(to, subject, html)

    async def send_welcome_notification(self, to: str, vendor_id: str, name: str) -> bool:
        subject = "Welcome to Fleet Management System"
        html = f"""
            <h2>Welcome to Fleet Management System</h2>
            <p>Hello {name}, your vendor account has been created.</p>
            <p>Your vendor ID is {vendor_id}.</p>
        """
        return await self.send_email(to, subject, html)

    async def send_bulk_notification(self, emails: List[str], subject: str, message: str) -> bool:
        html = f"""
            <h2>{subject}</h2>
            <p>{message}</p>
        """
        # recipients hidden from each other
        return await self.send_email([], subject, html, bcc=emails)
