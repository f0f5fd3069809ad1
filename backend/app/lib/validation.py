from dataclasses import dataclass
from typing import Any, Dict, List, Mapping

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

FIELD_ORDER = ("name", "email", "subject", "message")

FIELD_MESSAGES = {
    "name": "Name must be between 2 and 50 characters",
    "email": "Please provide a valid email address",
    "subject": "Subject must be between 2 and 100 characters",
    "message": "Message must be between 5 and 1000 characters",
}

GMAIL_DOMAINS = {"gmail.com", "googlemail.com"}
ICLOUD_DOMAINS = {"icloud.com", "me.com"}
OUTLOOK_DOMAINS = {
    "hotmail.com", "hotmail.co.uk", "hotmail.de", "hotmail.es", "hotmail.fr", "hotmail.it",
    "live.com", "live.co.uk", "live.de", "live.fr", "live.it",
    "msn.com", "outlook.com", "outlook.de", "outlook.es", "outlook.fr", "outlook.in", "outlook.it",
}
YAHOO_DOMAINS = {
    "rocketmail.com", "yahoo.ca", "yahoo.co.uk", "yahoo.com", "yahoo.de",
    "yahoo.fr", "yahoo.in", "yahoo.it", "ymail.com",
}


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def as_dict(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message}


class ValidationError(Exception):
    def __init__(self, errors: List[FieldError]):
        super().__init__(", ".join(f"{e.field}: {e.message}" for e in errors))
        self.errors = errors


def normalize_email(address: str) -> str:
    """Lowercase the address and drop provider subaddresses.

    Gmail also ignores dots in the mailbox name and treats googlemail.com as
    gmail.com. Yahoo marks a subaddress with a hyphen, the others with "+".
    """
    local, _, domain = address.strip().lower().rpartition("@")
    if domain in GMAIL_DOMAINS:
        local = local.split("+", 1)[0].replace(".", "")
        domain = "gmail.com"
    elif domain in ICLOUD_DOMAINS or domain in OUTLOOK_DOMAINS:
        local = local.split("+", 1)[0]
    elif domain in YAHOO_DOMAINS and "-" in local:
        local = local.rsplit("-", 1)[0]
    return f"{local}@{domain}"


class Submission(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    name: str = Field(min_length=2, max_length=50)
    email: EmailStr
    subject: str = Field(min_length=2, max_length=100)
    message: str = Field(min_length=5, max_length=1000)

    @field_validator("email", mode="before")
    @classmethod
    def _bare_address(cls, v: Any) -> Any:
        # "Name <addr>" display-name form is not an address
        if isinstance(v, str) and ("<" in v or ">" in v):
            raise ValueError("display name not allowed")
        return v

    @field_validator("email")
    @classmethod
    def _canonical_email(cls, v: str) -> str:
        return normalize_email(v)


def _coerce(value: Any) -> Any:
    # Numbers and booleans are accepted as their text; containers are rejected
    if value is None or isinstance(value, (dict, list)):
        return value
    return str(value).strip()


def validate_submission(raw: Mapping[str, Any]) -> Submission:
    data = {f: _coerce(raw.get(f)) for f in FIELD_ORDER if raw.get(f) is not None}
    try:
        return Submission(**data)
    except PydanticValidationError as exc:
        failed = {str(err["loc"][0]) for err in exc.errors() if err["loc"]}
        errors = [FieldError(f, FIELD_MESSAGES[f]) for f in FIELD_ORDER if f in failed]
        raise ValidationError(errors) from None
