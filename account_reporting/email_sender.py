"""
Email Sender Module

This module provides a reusable utility for sending HTML emails with optional attachments.
This is a pure infrastructure module - no email content generation logic.

Uses SMTP for email delivery with support for:
- HTML email body assembled from one or more fragments
- Optional file attachments (spreadsheet)
- Bcc recipients (envelope only, never written to headers)
- High-priority flag for admin failure notifications
- Saving a copy of the sent HTML body
- Environment variable-based configuration
"""

import os
import smtplib
from pathlib import Path
from typing import List, Optional, Sequence, Tuple
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.mime.base import MIMEBase
from email.utils import formatdate, make_msgid
from email import encoders

from account_reporting.config import DEFAULT_SMTP_PORT, SMTP_TIMEOUT_SECONDS
from account_reporting.logger import get_logger

logger = get_logger(__name__)


def _unique(addresses: Sequence[str]) -> List[str]:
    """Drop blanks and case-insensitive duplicates, keeping first occurrence order."""
    seen = set()
    result = []
    for address in addresses:
        key = address.strip().lower()
        if key and key not in seen:
            seen.add(key)
            result.append(address.strip())
    return result


def render_html_body(html_parts: Sequence[str]) -> str:
    """Wrap the body fragments into a complete HTML document."""
    content = "\n".join(html_parts)
    return (
        "<!DOCTYPE html>\n"
        "<html>\n"
        "<head><meta charset=\"UTF-8\"></head>\n"
        "<body style=\"font-family: Arial, sans-serif; font-size: 14px; color: #333;\">\n"
        f"{content}\n"
        "</body>\n"
        "</html>\n"
    )


def build_message(
    sender: str,
    to_emails: Sequence[str],
    subject: str,
    html_body: str,
    attachments: Optional[Sequence[str]] = None,
    high_priority: bool = False
) -> MIMEMultipart:
    """
    Create an RFC-compliant MIME structure:

        multipart/mixed (root)
        ├── multipart/alternative (body container)
        │   └── text/html
        └── application/octet-stream (one per attachment)

    Bcc recipients are not part of the message; they are only added to the SMTP envelope.
    """
    mixed_msg = MIMEMultipart('mixed')
    mixed_msg['From'] = sender
    mixed_msg['To'] = ", ".join(to_emails)
    mixed_msg['Subject'] = subject
    mixed_msg['Date'] = formatdate(localtime=True)
    mixed_msg['Message-ID'] = make_msgid()

    if high_priority:
        mixed_msg['X-Priority'] = '1'
        mixed_msg['Importance'] = 'High'

    alternative_part = MIMEMultipart('alternative')
    alternative_part.attach(MIMEText(html_body, 'html', 'utf-8'))
    mixed_msg.attach(alternative_part)

    for attachment_path in attachments or []:
        with open(attachment_path, 'rb') as f:
            attachment = MIMEBase('application', 'octet-stream')
            attachment.set_payload(f.read())

        encoders.encode_base64(attachment)

        filename = os.path.basename(attachment_path)
        attachment.add_header(
            'Content-Disposition',
            f'attachment; filename="{filename}"'
        )
        mixed_msg.attach(attachment)
        logger.debug(f"Attached file: {filename}")

    return mixed_msg


def send_email(
    to_emails: Sequence[str],
    subject: str,
    html_parts: Sequence[str],
    attachments: Optional[Sequence[str]] = None,
    bcc_emails: Optional[Sequence[str]] = None,
    high_priority: bool = False,
    save_path: Optional[str] = None,
    from_email: Optional[str] = None
) -> Tuple[bool, Optional[str]]:
    """
    Send one HTML email with optional attachments and bcc recipients.

    This function:
    1. Validates email addresses and attachment paths
    2. Reads SMTP settings from environment variables
    3. Sends a single message to all To and Bcc recipients
    4. Saves a copy of the HTML body to save_path (if given) after a successful send

    Empty optional arguments are left out of the message entirely.

    Args:
        to_emails: List of recipient email addresses
        subject: Email subject line
        html_parts: HTML fragments joined to form the email body
        attachments: Optional list of file paths to attach
        bcc_emails: Optional list of blind-copy addresses
        high_priority: Mark the message as high importance
        save_path: Optional file path for a copy of the sent HTML
        from_email: Sender address (falls back to SMTP_FROM, then SMTP_USER)

    Returns:
        Tuple of (success: bool, error_msg: Optional[str])
        - success: True once the message has been handed to the SMTP server
        - error_msg: set on failure, or with success=True when the message was
          delivered but the copy could not be written to save_path

    Environment Variables:
        - SMTP_SERVER: SMTP server address (required)
        - SMTP_PORT: SMTP port (optional, defaults to 587)
        - SMTP_USER / SMTP_PASSWORD: optional login
        - SMTP_USE_TLS: 'false' disables STARTTLS
        - SMTP_FROM: default sender address

    Example:
        success, error = send_email(
            to_emails=["hr@example.com"],
            subject="3 new users created in the last 7 days",
            html_parts=["<p>The following 3 users...</p>", "<table>...</table>"],
            attachments=["reports/new_users_2026_01_15.xlsx"],
            bcc_emails=["ops@example.com"]
        )
    """
    try:
        # Step 1: Validate inputs
        to_list = _unique(to_emails or [])
        to_keys = {address.lower() for address in to_list}
        bcc_list = [address for address in _unique(bcc_emails or []) if address.lower() not in to_keys]
        attachment_list = [a for a in (attachments or []) if a]

        logger.info(f"Preparing to send email to {len(to_list)} recipient(s)"
                    + (f" and {len(bcc_list)} bcc recipient(s)" if bcc_list else ""))
        logger.info(f"Subject: {subject}")
        if attachment_list:
            logger.info(f"Attachments: {', '.join(os.path.basename(a) for a in attachment_list)}")
        else:
            logger.info("Attachments: None")

        if not to_list:
            error_msg = "Email recipient list is empty"
            logger.warning(error_msg)
            return False, error_msg

        for email in to_list + bcc_list:
            if '@' not in email:
                error_msg = f"Invalid email address: {email}"
                logger.error(error_msg)
                return False, error_msg

        for attachment_path in attachment_list:
            if not os.path.isfile(attachment_path):
                error_msg = f"Attachment file not found: {attachment_path}"
                logger.error(error_msg)
                return False, error_msg

        # Step 2: Read SMTP configuration from environment variables
        smtp_server = os.getenv('SMTP_SERVER')
        smtp_user = os.getenv('SMTP_USER')
        smtp_password = os.getenv('SMTP_PASSWORD')
        smtp_port = int(os.getenv('SMTP_PORT', DEFAULT_SMTP_PORT))
        use_tls = os.getenv('SMTP_USE_TLS', 'true').strip().lower() not in ('false', '0', 'no')
        sender = from_email or os.getenv('SMTP_FROM') or smtp_user

        if not smtp_server:
            error_msg = "SMTP_SERVER environment variable is not set"
            logger.error(error_msg)
            return False, error_msg

        if not sender:
            error_msg = "No sender address: set MailFrom in the config file, SMTP_FROM or SMTP_USER"
            logger.error(error_msg)
            return False, error_msg

        logger.info(f"SMTP Configuration: {smtp_server}:{smtp_port} (TLS: {use_tls})")
        logger.debug(f"SMTP User: {smtp_user or '(none, relay)'}")

        # Step 3: Build and send a single message
        html_body = render_html_body(html_parts)
        message = build_message(
            sender=sender,
            to_emails=to_list,
            subject=subject,
            html_body=html_body,
            attachments=attachment_list,
            high_priority=high_priority
        )

        server = smtplib.SMTP(smtp_server, smtp_port, timeout=SMTP_TIMEOUT_SECONDS)
        try:
            if use_tls:
                server.starttls()
            if smtp_user and smtp_password:
                server.login(smtp_user, smtp_password)
            server.send_message(message, from_addr=sender, to_addrs=to_list + bcc_list)
        finally:
            server.quit()

        logger.info(f"Email sent successfully to {len(to_list) + len(bcc_list)} address(es)")

        # Step 4: Keep a copy of what was sent. The message is already delivered,
        # so a failure here is reported with success=True.
        if save_path:
            try:
                Path(save_path).parent.mkdir(parents=True, exist_ok=True)
                with open(save_path, 'w', encoding='utf-8') as f:
                    f.write(html_body)
            except OSError as e:
                error_msg = f"Email sent; could not save copy to {save_path}: {str(e)}"
                logger.error(error_msg)
                return True, error_msg
            logger.info(f"Saved copy of sent email to {save_path}")

        return True, None

    except Exception as e:
        error_msg = f"Failed to send email: {str(e)}"
        logger.error(error_msg, exc_info=True)
        return False, error_msg
