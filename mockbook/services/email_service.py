"""
Email Service

Sends booking, payment and reminder emails via SMTP.
"""

from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple
import aiosmtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart

from mockbook.config import Config
from mockbook.utils.datetime_utils import parse_datetime_safe
from mockbook.utils.logger import get_logger

logger = get_logger(__name__)


def format_when(value) -> str:
    """'Monday, November 02, 2026 at 09:00 AM (IST)'"""
    try:
        dt: datetime = parse_datetime_safe(value)
    except ValueError:
        return str(value)
    return f"{dt.strftime('%A, %B %d, %Y')} at {dt.strftime('%I:%M %p')} (IST)"


class EmailService:
    """Service for sending emails"""

    def __init__(self, config: Config):
        self.config = config
        self.enabled = bool(
            config.smtp.host and
            config.smtp.user and
            config.smtp.password
        )

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        cc: Sequence[str] = (),
    ) -> Tuple[bool, Optional[str]]:
        """
        Send one email.

        Returns:
            Tuple of (success, error_message)
        """
        if not self.enabled:
            logger.warning("[EmailService] SMTP not configured - skipping email send")
            return False, "Email service not configured"

        try:
            message = MIMEMultipart("alternative")
            message["Subject"] = subject
            message["From"] = f'"{self.config.smtp.from_name}" <{self.config.smtp.from_email}>'
            message["To"] = to_email
            cc = [c for c in cc if c and c != to_email]
            if cc:
                message["Cc"] = ", ".join(cc)

            if text_content:
                message.attach(MIMEText(text_content, "plain"))
            message.attach(MIMEText(html_content, "html"))

            # SMTP_SECURE=true means direct TLS (port 465), false means STARTTLS (port 587)
            use_tls = self.config.smtp.secure
            start_tls = not self.config.smtp.secure

            await aiosmtplib.send(
                message,
                recipients=[to_email, *cc],
                hostname=self.config.smtp.host,
                port=self.config.smtp.port,
                use_tls=use_tls,
                start_tls=start_tls,
                username=self.config.smtp.user,
                password=self.config.smtp.password,
                timeout=30.0,
            )

            logger.info(f"[EmailService] ✅ Email sent successfully to {to_email}: {subject}")
            return True, None

        except Exception as e:
            error_msg = f"Failed to send email: {str(e)}"
            logger.error(f"[EmailService] {error_msg}", exc_info=True)
            return False, error_msg

    # ------------------------------------------------------------------ rendering

    def render(self, heading: str, name: str, paragraphs: List[str], details: Dict[str, str], color: str = "#002cf2") -> str:
        """Create HTML email content: heading, greeting, details box, closing."""
        rows = "\n".join(
            f'<div class="detail-row"><span class="detail-label">{label}:</span> {value}</div>'
            for label, value in details.items()
            if value
        )
        body = "\n".join(f"<p>{p}</p>" for p in paragraphs)
        return f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <style>
        body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
        .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
        .header {{ background: {color}; color: white; padding: 24px; text-align: center; border-radius: 8px 8px 0 0; }}
        .content {{ background: #f9fafb; padding: 30px; border-radius: 0 0 8px 8px; }}
        .details {{ background: white; padding: 20px; border-radius: 8px; margin: 20px 0; }}
        .detail-row {{ margin: 10px 0; }}
        .detail-label {{ font-weight: bold; color: #555; }}
        .footer {{ text-align: center; color: #666; font-size: 12px; margin-top: 30px; }}
    </style>
</head>
<body>
    <div class="container">
        <div class="header"><h1>{heading}</h1></div>
        <div class="content">
            <p>Hi <strong>{name}</strong>,</p>
            {body}
            <div class="details">
                {rows}
            </div>
            <div class="footer">
                <p>Best regards,<br><strong>{self.config.smtp.from_name}</strong></p>
            </div>
        </div>
    </div>
</body>
</html>
"""

    @staticmethod
    def render_text(name: str, paragraphs: List[str], details: Dict[str, str]) -> str:
        lines = [f"Hi {name},", ""]
        lines.extend(paragraphs)
        lines.append("")
        lines.extend(f"{label}: {value}" for label, value in details.items() if value)
        return "\n".join(lines)
