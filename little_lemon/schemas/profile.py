import re

from pydantic import BaseModel, EmailStr, Field, computed_field, field_validator

PHONE_RE = re.compile(r"^\(?([0-9]{3})\)?[-. ]?([0-9]{3})[-. ]?([0-9]{4})$")


def format_phone_number(number: str) -> str:
    """Normalise a US phone number to ``(555) 123-4567``; empty stays empty."""
    if not number:
        return ""
    match = PHONE_RE.match(number)
    if match is None:
        raise ValueError("Please enter a valid US phone number")
    return "({}) {}-{}".format(*match.groups())


class NotificationPreferences(BaseModel):
    # Stored under the same camelCase keys the mobile client writes
    order_statuses: bool = Field(default=True, alias="orderStatuses")
    password_changes: bool = Field(default=True, alias="passwordChanges")
    special_offers: bool = Field(default=True, alias="specialOffers")
    newsletter: bool = True

    model_config = {"populate_by_name": True, "extra": "ignore"}


class OnboardingRequest(BaseModel):
    first_name: str
    last_name: str
    email: str

    @field_validator("first_name", "last_name", "email")
    @classmethod
    def required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Please fill in all fields")
        return value


class _EmailCheck(BaseModel):
    email: EmailStr


def validate_email(email: str) -> str:
    """Return the e-mail unchanged or raise ValueError."""
    try:
        _EmailCheck(email=email)
    except ValueError:
        raise ValueError("Please enter a valid email address") from None
    return email


class ProfileUpdate(BaseModel):
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone_number: str = ""
    notifications: NotificationPreferences = Field(default_factory=NotificationPreferences)


class ProfileImageUpdate(BaseModel):
    uri: str | None = None


class Profile(BaseModel):
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone_number: str = ""
    profile_image: str | None = None
    notifications: NotificationPreferences = Field(default_factory=NotificationPreferences)

    @computed_field
    @property
    def initials(self) -> str:
        first = self.first_name[:1].upper()
        last = self.last_name[:1].upper()
        return f"{first}{last}"


class OnboardingStatus(BaseModel):
    onboarded: bool
