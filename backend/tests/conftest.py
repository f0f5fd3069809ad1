from typing import List, Optional

import pytest

from app.core.mailer import DispatchError, DispatchResult
from app.core.settings import Settings

CONFIG_ENV = [
    "EMAIL_HOST", "EMAIL_PORT", "EMAIL_USER", "EMAIL_PASSWORD", "EMAIL_FROM",
    "RESEND_API_KEY", "EMAIL_TO", "NOTIFICATION_EMAIL", "REDIS_URL",
    "API_RATE_LIMIT", "CONTACT_RATE_LIMIT", "STATIC_DIR", "APK_DIR",
    "DISPLAY_TIMEZONE", "CORS_ORIGINS", "TRUST_PROXY",
]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in CONFIG_ENV:
        monkeypatch.delenv(name, raising=False)


def make_settings(**overrides) -> Settings:
    values = {"EMAIL_TO": "owner@example.com"}
    values.update(overrides)
    return Settings(_env_file=None, **values)


class FakeTransport:
    """Records every send; raises DispatchError for recipients in ``fail_for``."""

    def __init__(self, name: str = "smtp", sends_acknowledgment: bool = True,
                 fail_for: Optional[List[str]] = None, delivered: bool = True):
        self.name = name
        self.sends_acknowledgment = sends_acknowledgment
        self.fail_for = set(fail_for or [])
        self.delivered = delivered
        self.sent = []
        self.closed = False

    async def send(self, to, subject, html, reply_to=None):
        self.sent.append({"to": to, "subject": subject, "html": html, "reply_to": reply_to})
        if to in self.fail_for:
            raise DispatchError(self.name, "550 mailbox unavailable")
        message_id = f"<{len(self.sent)}@test>" if self.delivered else None
        return DispatchResult(delivered=self.delivered, transport=self.name, message_id=message_id)

    async def close(self):
        self.closed = True


VALID_SUBMISSION = {
    "name": "Jane Doe",
    "email": "jane@example.com",
    "subject": "Hello",
    "message": "Interested in collaborating.",
}
