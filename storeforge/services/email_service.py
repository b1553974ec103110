"""Email delivery with Jinja2 templates"""

from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

import aiosmtplib
from jinja2 import Environment, FileSystemLoader, select_autoescape

from storeforge.core.config import Settings, settings as default_settings
from storeforge.utils.helpers import format_currency

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent.parent / "templates" / "emails"


def build_store_url(slug: str, config: Settings = default_settings) -> str:
    """Public storefront URL of a store"""
    if config.is_production:
        return f"https://{slug}.{config.PRODUCTION_DOMAIN}"
    return f"{config.STOREFRONT_BASE_URL.rstrip('/')}/{slug}"


def build_recovery_url(store_url: str, token: str) -> str:
    return f"{store_url}/cart/recover?token={token}"


class EmailService:
    """
    Sends transactional email over SMTP

    With no SMTP host configured the service runs dry: messages are logged
    and reported as delivered.
    """

    def __init__(self, config: Settings = default_settings):
        self.smtp_host = config.SMTP_HOST
        self.smtp_port = config.SMTP_PORT
        self.smtp_user = config.SMTP_USER
        self.smtp_password = config.SMTP_PASSWORD
        self.from_email = config.SMTP_FROM_EMAIL
        self.from_name = config.APP_NAME

        self.env = Environment(
            loader=FileSystemLoader(str(TEMPLATE_DIR)),
            autoescape=select_autoescape(["html", "xml"]),
        )
        self.env.filters["currency"] = format_currency

    @property
    def dry_run(self) -> bool:
        return not self.smtp_host

    async def send_email(
        self,
        to_email: str,
        subject: str,
        body: str,
        html_body: Optional[str] = None,
    ) -> bool:
        """Send one email; delivery failures are logged and reported as False"""
        if self.dry_run:
            logger.info("SMTP not configured, email to %s not sent: %s", to_email, subject)
            return True

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = to_email
        msg.attach(MIMEText(body, "plain", "utf-8"))
        if html_body:
            msg.attach(MIMEText(html_body, "html", "utf-8"))

        try:
            await aiosmtplib.send(
                msg,
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.smtp_user or None,
                password=self.smtp_password or None,
                start_tls=self.smtp_port == 587,
                use_tls=self.smtp_port == 465,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error("Failed to send email to %s: %s", to_email, e)
            return False

        logger.info("Email sent successfully to %s", to_email)
        return True

    async def send_abandoned_cart_reminder(
        self,
        to_email: str,
        subject: str,
        store_name: str,
        store_url: str,
        recovery_url: str,
        items: List[Dict[str, Any]],
        subtotal: Any,
        sequence_number: int,
        discount_code: Optional[str] = None,
        discount_percentage: Optional[Any] = None,
    ) -> bool:
        """Render and send one reminder of the recovery sequence"""
        context = {
            "store_name": store_name,
            "store_url": store_url,
            "recovery_url": recovery_url,
            "items": items,
            "subtotal": subtotal,
            "sequence_number": sequence_number,
            "discount_code": discount_code,
            "discount_percentage": discount_percentage,
        }
        html_body = self.env.get_template("abandoned_cart.html").render(**context)
        body = self.env.get_template("abandoned_cart.txt").render(**context)

        return await self.send_email(to_email=to_email, subject=subject, body=body, html_body=html_body)
