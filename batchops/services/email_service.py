"""
Email Service

Messaging gateway used by mass messaging and notifications.
Uses aiosmtplib for async delivery; a batch shares one SMTP connection.
"""

import logging
import os
import re
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Dict, List, Optional, Sequence

import aiosmtplib

from batchops.schemas import Recipient

logger = logging.getLogger(__name__)


class EmailServiceConfig:
    """Configuration for email service from environment variables."""

    def __init__(self):
        self.smtp_host = os.getenv('SMTP_HOST', 'localhost')
        self.smtp_port = int(os.getenv('SMTP_PORT', '587'))
        self.smtp_username = os.getenv('SMTP_USERNAME', '')
        self.smtp_password = os.getenv('SMTP_PASSWORD', '')
        self.smtp_use_tls = os.getenv('SMTP_USE_TLS', 'true').lower() == 'true'
        self.smtp_use_ssl = os.getenv('SMTP_USE_SSL', 'false').lower() == 'true'
        self.from_email = os.getenv('FROM_EMAIL', 'noreply@batchops.local')
        self.from_name = os.getenv('FROM_NAME', 'Workshop Admin')
        self.reply_to_email = os.getenv('REPLY_TO_EMAIL', '')

    def is_configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_port and self.from_email)

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if not self.smtp_host:
            errors.append("SMTP_HOST is required")
        if not self.smtp_port or self.smtp_port <= 0:
            errors.append("SMTP_PORT must be a positive integer")
        if not self.from_email:
            errors.append("FROM_EMAIL is required")
        if self.smtp_use_ssl and self.smtp_use_tls:
            errors.append("Cannot use both SSL and TLS simultaneously")

        return errors


def html_to_text(html_content: str) -> str:
    """Convert HTML to basic text content."""
    text = re.sub(r'<[^>]+>', '', html_content)
    text = text.replace('&amp;', '&').replace('&lt;', '<').replace('&gt;', '>')
    text = text.replace('&quot;', '"').replace('&#39;', "'")
    text = re.sub(r'\s+', ' ', text).strip()
    return text


class EmailService:
    """Service for sending emails via SMTP."""

    def __init__(self, config: Optional[EmailServiceConfig] = None):
        self.config = config or EmailServiceConfig()

    def _smtp_kwargs(self) -> Dict[str, Any]:
        smtp_kwargs = {
            'hostname': self.config.smtp_host,
            'port': self.config.smtp_port,
            'use_tls': self.config.smtp_use_tls,
        }
        if self.config.smtp_use_ssl:
            smtp_kwargs['use_tls'] = True
            smtp_kwargs['port'] = self.config.smtp_port or 465
        elif self.config.smtp_use_tls:
            # STARTTLS on a plain submission port
            smtp_kwargs['use_tls'] = False
            smtp_kwargs['start_tls'] = True
        return smtp_kwargs

    def _build_message(
        self,
        to_email: str,
        subject: str,
        html_content: Optional[str],
        text_content: Optional[str],
        reply_to: Optional[str] = None,
    ) -> MIMEMultipart:
        message = MIMEMultipart('alternative')
        message['From'] = f"{self.config.from_name} <{self.config.from_email}>"
        message['To'] = to_email
        message['Subject'] = subject

        if reply_to or self.config.reply_to_email:
            message['Reply-To'] = reply_to or self.config.reply_to_email

        if text_content is None and html_content:
            text_content = html_to_text(html_content)
        if text_content:
            message.attach(MIMEText(text_content, 'plain', 'utf-8'))
        if html_content:
            message.attach(MIMEText(html_content, 'html', 'utf-8'))
        return message

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: Optional[str],
        text_content: Optional[str] = None,
        reply_to: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Send one email via SMTP.

        Returns:
            Dict with 'success', and 'message_id' or 'error' keys
        """
        if not self.config.is_configured():
            return {
                'success': False,
                'error': 'Email service not configured'
            }

        try:
            message = self._build_message(to_email, subject, html_content, text_content, reply_to)
            async with aiosmtplib.SMTP(**self._smtp_kwargs()) as smtp:
                if self.config.smtp_username and self.config.smtp_password:
                    await smtp.login(self.config.smtp_username, self.config.smtp_password)
                await smtp.send_message(message)

            logger.info(f"Email sent successfully to {to_email}: {subject}")
            return {
                'success': True,
                'message_id': message.get('Message-ID', ''),
            }

        except Exception as e:
            error_msg = f"Failed to send email to {to_email}: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return {
                'success': False,
                'error': error_msg
            }

    async def send_batch(
        self,
        recipients: Sequence[Recipient],
        subject: str,
        html_content: Optional[str] = None,
        text_content: Optional[str] = None,
    ) -> bool:
        """Send the same message to every recipient over one connection.

        Returns True only when every message in the batch was accepted.
        """
        if not recipients:
            return True
        if not self.config.is_configured():
            logger.error("Email service not configured; batch not sent")
            return False

        try:
            async with aiosmtplib.SMTP(**self._smtp_kwargs()) as smtp:
                if self.config.smtp_username and self.config.smtp_password:
                    await smtp.login(self.config.smtp_username, self.config.smtp_password)
                for recipient in recipients:
                    message = self._build_message(recipient.email, subject, html_content, text_content)
                    await smtp.send_message(message)
        except Exception as e:
            logger.error(f"Failed to send batch of {len(recipients)} emails: {e}", exc_info=True)
            return False

        logger.info(f"Sent batch of {len(recipients)} emails: {subject}")
        return True

    async def test_connection(self) -> Dict[str, Any]:
        """Test SMTP connection and configuration."""
        validation_errors = self.config.validate()
        if validation_errors:
            return {
                'success': False,
                'error': f"Configuration errors: {', '.join(validation_errors)}"
            }

        try:
            async with aiosmtplib.SMTP(**self._smtp_kwargs()) as smtp:
                if self.config.smtp_username and self.config.smtp_password:
                    await smtp.login(self.config.smtp_username, self.config.smtp_password)
                return {
                    'success': True,
                    'message': f"Successfully connected to {self.config.smtp_host}:{self.config.smtp_port}"
                }
        except Exception as e:
            return {
                'success': False,
                'error': f"Connection test failed: {str(e)}"
            }
