from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, Optional
import asyncio
import re

import resend
from jinja2 import Environment, FileSystemLoader, select_autoescape
from loguru import logger

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"


class EmailDeliveryError(Exception):
    """Raised when the email provider rejects or fails a send"""


@dataclass(frozen=True)
class EmailConfig:
    api_key: Optional[str]
    from_email: str
    template_dir: Path = TEMPLATE_DIR


def html_to_text(html: str) -> str:
    """Strip tags for the plain-text alternative"""
    text = re.sub(r"<[^>]+>", " ", html)
    return re.sub(r"\s+", " ", text).strip()


class EmailSender:
    """Sends transactional email through Resend"""

    def __init__(self, config: EmailConfig):
        self.config = config
        self.templates = Environment(
            loader=FileSystemLoader(str(config.template_dir)),
            autoescape=select_autoescape(["html"])
        )

    def render(self, template_name: str, data: Dict[str, Any]) -> str:
        return self.templates.get_template(f"{template_name}.html").render(**data)

    async def _send(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not self.config.api_key:
            raise EmailDeliveryError("Email provider is not configured")

        resend.api_key = self.config.api_key
        payload = {"from": self.config.from_email, **payload}
        try:
            response = await asyncio.to_thread(resend.Emails.send, payload)
        except Exception as e:
            logger.error(f"Failed to send email to {payload.get('to')}: {e}")
            raise EmailDeliveryError(str(e)) from e

        logger.info(f"Email sent to {payload.get('to')} - Subject: {payload.get('subject')}")
        return response

    async def send_html(self, recipient: str, subject: str, html: str) -> Dict[str, Any]:
        return await self._send({
            "to": recipient,
            "subject": subject,
            "html": html,
            "text": html_to_text(html),
        })

    async def send_template(
        self,
        recipient: str,
        template_name: str,
        subject: str,
        data: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Render a Jinja2 template from the templates directory and send it"""
        return await self.send_html(recipient, subject, self.render(template_name, data))

    async def send_text(self, recipient: str, subject: str, text: str) -> Dict[str, Any]:
        return await self._send({
            "to": recipient,
            "subject": subject,
            "text": text,
        })
