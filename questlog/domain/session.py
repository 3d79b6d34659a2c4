"""Session context pushed into the engine by the session provider."""

from pydantic import BaseModel, Field

from questlog.core.config import settings


class SessionIdentity(BaseModel):
    """Authenticated account identity."""

    account_id: str = Field(..., description="Account ID in the remote store")
    email: str | None = Field(default=None, description="Account email")
    name: str | None = Field(default=None, description="Account display name")
    token: str | None = Field(default=None, description="Bearer token for the remote API")


class SessionContext(BaseModel):
    """Explicit session and feature-flag state.

    Replaces ambient "is a session active" reads: the engine receives one of
    these at construction and again on every session change.
    """

    identity: SessionIdentity | None = Field(default=None, description="Current identity, or None when signed out")
    remote_enabled: bool = Field(
        default_factory=lambda: settings.remote_enabled,
        description="Whether remote mode may be used when a session is active",
    )

    @property
    def is_remote(self) -> bool:
        return self.identity is not None and self.remote_enabled

    @property
    def account_id(self) -> str | None:
        return self.identity.account_id if self.identity else None
