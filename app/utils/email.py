# ================================
# AWS SES EMAIL SERVICE (utils/email.py)
# ================================

import boto3
from botocore.exceptions import ClientError, BotoCoreError
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from jinja2 import Environment, FileSystemLoader, select_autoescape
from typing import List, Optional, Dict, Any
from pathlib import Path
import logging
import smtplib

from app.config import settings

logger = logging.getLogger(__name__)

class EmailAttachment:
    def __init__(self, filename: str, content: bytes, mime_subtype: str = "pdf"):
        self.filename = filename
        self.content = content
        self.mime_subtype = mime_subtype

class EmailService:
    """AWS SES email service with SMTP fallback"""

    def __init__(self):
        self.ses_client = None
        self.template_env = None
        self._initialize_clients()

    def _initialize_clients(self):
        """Initializes the SES client and the template engine"""
        if settings.AWS_ACCESS_KEY_ID and settings.AWS_SECRET_ACCESS_KEY:
            self.ses_client = boto3.client(
                'ses',
                aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
                aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
                region_name=settings.AWS_REGION
            )
            logger.info("AWS SES client initialized successfully")
        else:
            logger.warning("AWS credentials not provided, SES will not be available")

        templates_dir = Path(settings.EMAIL_TEMPLATES_DIR)
        if not templates_dir.is_absolute() and not templates_dir.exists():
            # Fall back to the templates shipped with the package
            templates_dir = Path(__file__).resolve().parent.parent / "templates" / "email"

        self.template_env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=select_autoescape(['html', 'xml'])
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.ses_client or settings.SMTP_HOST)

    async def send_email(
        self,
        to_emails: List[str],
        subject: str,
        template_name: str,
        template_data: Dict[str, Any],
        attachments: Optional[List[EmailAttachment]] = None,
        from_email: str = None,
        from_name: str = None,
        reply_to: str = None
    ) -> bool:
        """Renders a template pair and sends it through SES, falling back to SMTP"""
        try:
            html_content = self._render_template(f"{template_name}.html", template_data)
            text_content = self._render_template(f"{template_name}.txt", template_data)
        except Exception as e:
            logger.error(f"Template rendering failed for {template_name}: {e}")
            return False

        from_address = self._format_email_address(
            from_email or settings.AWS_SES_FROM_EMAIL,
            from_name or settings.AWS_SES_FROM_NAME
        )
        reply_to = reply_to or settings.AWS_SES_REPLY_TO

        message = self._build_message(
            to_emails, subject, html_content, text_content,
            from_address, reply_to, attachments or []
        )

        if self.ses_client:
            if self._send_via_ses(message, from_address, to_emails):
                return True
            logger.warning("SES failed, attempting SMTP fallback")

        return self._send_via_smtp(message, to_emails)

    def _build_message(
        self,
        to_emails: List[str],
        subject: str,
        html_content: str,
        text_content: str,
        from_address: str,
        reply_to: Optional[str],
        attachments: List[EmailAttachment]
    ) -> MIMEMultipart:
        msg = MIMEMultipart('mixed')
        msg['Subject'] = subject
        msg['From'] = from_address
        msg['To'] = ', '.join(to_emails)
        if reply_to:
            msg['Reply-To'] = reply_to

        body = MIMEMultipart('alternative')
        body.attach(MIMEText(text_content, 'plain', 'utf-8'))
        body.attach(MIMEText(html_content, 'html', 'utf-8'))
        msg.attach(body)

        for attachment in attachments:
            part = MIMEApplication(attachment.content, _subtype=attachment.mime_subtype)
            part.add_header('Content-Disposition', 'attachment', filename=attachment.filename)
            msg.attach(part)

        return msg

    def _send_via_ses(self, message: MIMEMultipart, from_address: str, to_emails: List[str]) -> bool:
        """Sends the raw MIME message through AWS SES"""
        try:
            send_params = {
                'Source': from_address,
                'Destinations': to_emails,
                'RawMessage': {'Data': message.as_string()}
            }
            if settings.AWS_SES_CONFIGURATION_SET:
                send_params['ConfigurationSetName'] = settings.AWS_SES_CONFIGURATION_SET

            response = self.ses_client.send_raw_email(**send_params)

            logger.info(f"Email sent via SES. MessageId: {response['MessageId']}")
            return True

        except ClientError as e:
            error = e.response['Error']
            logger.error(f"SES sending failed: {error['Code']} - {error['Message']}")
            return False
        except BotoCoreError as e:
            logger.error(f"SES sending failed: {e}")
            return False

    def _send_via_smtp(self, message: MIMEMultipart, to_emails: List[str]) -> bool:
        """SMTP fallback"""
        if not settings.SMTP_HOST:
            logger.error("No SMTP configuration available")
            return False

        try:
            with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as server:
                server.starttls()
                if settings.SMTP_USERNAME and settings.SMTP_PASSWORD:
                    server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
                server.send_message(message, to_addrs=to_emails)

            logger.info("Email sent via SMTP fallback")
            return True

        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP sending failed: {e}")
            return False

    def _render_template(self, template_name: str, data: Dict[str, Any]) -> str:
        template = self.template_env.get_template(template_name)
        return template.render(**data)

    def _format_email_address(self, email: str, name: str = None) -> str:
        if name:
            return f"{name} <{email}>"
        return email

    # ================================
    # Predefined emails
    # ================================

    async def send_invoice_email(
        self,
        to_email: str,
        invoice_data: Dict[str, Any],
        pdf_content: bytes
    ) -> bool:
        """Sends an invoice with its PDF attached"""
        template_data = {
            **invoice_data,
            'company_name': settings.COMPANY_NAME,
            'company_email': settings.COMPANY_EMAIL or settings.AWS_SES_FROM_EMAIL,
            'company_phone': settings.COMPANY_PHONE,
            'app_name': settings.APP_NAME,
        }

        subject = f"Invoice {invoice_data['invoice_number']} from {settings.COMPANY_NAME}"
        attachment = EmailAttachment(f"invoice-{invoice_data['invoice_number']}.pdf", pdf_content)

        return await self.send_email(
            to_emails=[to_email],
            subject=subject,
            template_name="invoice",
            template_data=template_data,
            attachments=[attachment]
        )

email_service = EmailService()
