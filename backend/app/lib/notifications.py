import logging
from datetime import datetime, timezone, tzinfo
from pathlib import Path
from typing import Optional, Tuple
from urllib.parse import urlparse
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup, escape

from app.core.settings import Settings
from app.lib.portfolio import owner_profile
from app.lib.validation import Submission

log = logging.getLogger("uvicorn.error")

TEMPLATE_DIR = Path(__file__).resolve().parents[1] / "templates"
ADMIN_TEMPLATE = "admin_notice.html.j2"
ACK_TEMPLATE = "acknowledgment.html.j2"


def nl2br(value: str) -> Markup:
    """Escape ``value`` and turn its line breaks into ``<br>`` tags."""
    return Markup("<br>\n").join(escape(line) for line in str(value).splitlines())


def format_timestamp(moment: datetime, tz: tzinfo, seconds: bool = True) -> str:
    # e.g. Sunday, October 18, 2026, 09:30:00 AM UTC
    local = moment.astimezone(tz)
    clock = "%I:%M:%S %p %Z" if seconds else "%I:%M %p %Z"
    # Day of month without zero padding
    return f"{local:%A, %B} {local.day}, {local:%Y}, {local.strftime(clock)}"


class NotificationRenderer:
    """Renders the admin notice and the sender acknowledgment for a submission.

    Every submitted field goes through Jinja2 autoescaping, so markup in a
    name, subject or message shows up as text in the owner's mail client.
    """

    def __init__(self, settings: Settings):
        self.env = Environment(
            loader=FileSystemLoader(TEMPLATE_DIR),
            autoescape=select_autoescape(["html", "xml", "html.j2"]),
        )
        self.env.filters["nl2br"] = nl2br
        self.owner_email = settings.notification_email
        self.site_host = urlparse(settings.zeabur_url).netloc or settings.zeabur_url
        try:
            self.tz = ZoneInfo(settings.display_timezone)
        except (ZoneInfoNotFoundError, ValueError):
            log.warning(f"[mail] Unknown DISPLAY_TIMEZONE {settings.display_timezone!r}, using UTC")
            self.tz = timezone.utc

    def render_admin_notice(self, submission: Submission, received_at: Optional[datetime] = None) -> str:
        received_at = received_at or datetime.now(timezone.utc)
        return self.env.get_template(ADMIN_TEMPLATE).render(
            submission=submission,
            received_at=format_timestamp(received_at, self.tz),
            site_host=self.site_host,
        )

    def render_acknowledgment(self, submission: Submission, received_at: Optional[datetime] = None) -> str:
        received_at = received_at or datetime.now(timezone.utc)
        return self.env.get_template(ACK_TEMPLATE).render(
            submission=submission,
            received_at=format_timestamp(received_at, self.tz, seconds=False),
            owner=owner_profile(),
            owner_email=self.owner_email,
        )

    def render_both(self, submission: Submission, received_at: Optional[datetime] = None) -> Tuple[str, str]:
        received_at = received_at or datetime.now(timezone.utc)
        return (
            self.render_admin_notice(submission, received_at),
            self.render_acknowledgment(submission, received_at),
        )
