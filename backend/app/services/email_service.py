import html
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import boto3

from app.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class InvitationEmail:
    videographer_name: str
    videographer_email: str
    project_name: str
    bride_name: str
    groom_name: str
    wedding_date: str
    invitation_token: str
    couple_email: str
    couple_name: Optional[str] = None
    invitation_message: Optional[str] = None

    @property
    def invitation_url(self) -> str:
        return f"{settings.APP_BASE_URL.rstrip('/')}/invitation/{self.invitation_token}"

    @property
    def subject(self) -> str:
        return f"Your Wedding Video is Ready! - {self.project_name}"


def render_invitation_text(data: InvitationEmail) -> str:
    greeting = f"Hi {data.couple_name}," if data.couple_name else "Hi there,"
    lines = [
        greeting,
        "",
        f"{data.videographer_name} has shared your wedding footage on Memory Finder.",
        "",
        f"Project: {data.project_name}",
        f"Couple: {data.bride_name} & {data.groom_name}",
        f"Wedding date: {data.wedding_date}",
    ]
    if data.invitation_message:
        lines += ["", f"Message from {data.videographer_name}:", data.invitation_message]
    lines += [
        "",
        f"Open your project: {data.invitation_url}",
        "",
        "Search your video with phrases like \"first dance\" or \"vows\" and we'll find the moments.",
        "This invitation expires in 30 days.",
        "",
        f"Questions? Reply to {data.videographer_email}.",
    ]
    return "\n".join(lines)


def render_invitation_html(data: InvitationEmail) -> str:
    esc = html.escape
    message_block = ""
    if data.invitation_message:
        message_block = (
            f"<blockquote><strong>Message from {esc(data.videographer_name)}:</strong><br>"
            f"{esc(data.invitation_message)}</blockquote>"
        )
    greeting = f"Hi {esc(data.couple_name)}," if data.couple_name else "Hi there,"
    return f"""<!DOCTYPE html>
<html>
  <body style="font-family: Arial, sans-serif; color: #333;">
    <h1>Your Wedding Video is Ready!</h1>
    <p>{greeting}</p>
    <p>{esc(data.videographer_name)} has shared your wedding footage on Memory Finder.</p>
    <ul>
      <li><strong>Project:</strong> {esc(data.project_name)}</li>
      <li><strong>Couple:</strong> {esc(data.bride_name)} &amp; {esc(data.groom_name)}</li>
      <li><strong>Wedding date:</strong> {esc(data.wedding_date)}</li>
    </ul>
    {message_block}
    <p><a href="{esc(data.invitation_url)}">View your wedding memories</a></p>
    <p style="font-size: 12px; color: #888;">This invitation expires in 30 days.
    Questions? Contact {esc(data.videographer_email)}.</p>
  </body>
</html>"""


class EmailService:
    """Sends transactional email through AWS SES."""
    def __init__(self, client=None):
        if client is None and settings.AWS_REGION:
            client = boto3.client("ses", region_name=settings.AWS_REGION)
        self.client = client
        self.sender = settings.EMAIL_FROM

    def send_invitation(self, data: InvitationEmail) -> Dict[str, Any]:
        """
        Delivers the project invitation. Never raises: delivery problems
        come back as {"success": False, "error": ...}.
        """
        if self.client is None:
            logger.warning("Email not configured (no AWS region). Skipping invitation email.")
            return {"success": False, "messageId": None, "error": "Email service not configured"}

        try:
            response = self.client.send_email(
                Source=self.sender,
                Destination={"ToAddresses": [data.couple_email]},
                Message={
                    "Subject": {"Data": data.subject, "Charset": "UTF-8"},
                    "Body": {
                        "Html": {"Data": render_invitation_html(data), "Charset": "UTF-8"},
                        "Text": {"Data": render_invitation_text(data), "Charset": "UTF-8"},
                    },
                },
            )
        except Exception as e:
            logger.error(f"SES invitation email to {data.couple_email} failed: {e}")
            return {"success": False, "messageId": None, "error": str(e)}

        message_id = response.get("MessageId")
        logger.info(f"Invitation email sent to {data.couple_email}: {message_id}")
        return {"success": True, "messageId": message_id, "error": None}
