"""
Pydantic models for provider user profiles.

Each provider returns its own profile schema. The models declare only the
fields mapped to claims; everything else is ignored here and stays
available to hooks through AuthenticatedContext.raw_profile.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from oauth_signin.core.domain import ProviderProfile


def _as_text(value: Any) -> Any:
    """Providers send numeric ids; claims carry strings."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


class StravaAthlete(ProviderProfile):
    """Athlete object embedded in the Strava token response."""

    id: Optional[str] = None
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    email: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, v):
        """Strava ids are integers."""
        return _as_text(v)

    @property
    def user_id(self) -> Optional[str]:
        return self.id

    @property
    def display_name(self) -> Optional[str]:
        parts = [part.strip() for part in (self.firstname, self.lastname) if part]
        name = " ".join(part for part in parts if part)
        return name or None

    @property
    def email_address(self) -> Optional[str]:
        return self.email

    @property
    def link(self) -> Optional[str]:
        if not self.id:
            return None
        return f"https://www.strava.com/athletes/{self.id}"


class UntappdSettings(BaseModel):
    """Account settings block of an Untappd user."""

    model_config = ConfigDict(extra="ignore")

    email_address: Optional[str] = None


class UntappdUser(ProviderProfile):
    """User object returned by the Untappd user/info endpoint."""

    uid: Optional[str] = None
    user_name: Optional[str] = None
    untappd_url: Optional[str] = None
    settings: Optional[UntappdSettings] = None

    @field_validator("uid", mode="before")
    @classmethod
    def validate_uid(cls, v):
        return _as_text(v)

    @property
    def user_id(self) -> Optional[str]:
        return self.uid

    @property
    def display_name(self) -> Optional[str]:
        return self.user_name

    @property
    def email_address(self) -> Optional[str]:
        return self.settings.email_address if self.settings else None

    @property
    def link(self) -> Optional[str]:
        return self.untappd_url
