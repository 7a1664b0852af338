from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from tracker.errors import TrackerError


# --- Session ---
class SessionStatus(str, Enum):
    ANONYMOUS = "anonymous"
    VERIFYING = "verifying"
    AUTHENTICATED = "authenticated"


class UserProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    email: str
    name: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value


class Session(BaseModel):
    """Authenticated identity plus bearer token, or the absence thereof."""

    model_config = ConfigDict(frozen=True)

    status: SessionStatus = SessionStatus.ANONYMOUS
    token: Optional[str] = None
    user: Optional[UserProfile] = None

    @model_validator(mode="after")
    def _token_iff_authenticated(self) -> "Session":
        authenticated = self.status == SessionStatus.AUTHENTICATED
        if authenticated != bool(self.token):
            raise ValueError("a token is present exactly when the session is authenticated")
        if authenticated and self.user is None:
            raise ValueError("an authenticated session needs a user profile")
        return self

    @classmethod
    def anonymous(cls) -> "Session":
        return cls()

    @classmethod
    def verifying(cls) -> "Session":
        return cls(status=SessionStatus.VERIFYING)

    @classmethod
    def authenticated(cls, token: str, user: UserProfile) -> "Session":
        return cls(status=SessionStatus.AUTHENTICATED, token=token, user=user)

    @property
    def is_authenticated(self) -> bool:
        return self.status == SessionStatus.AUTHENTICATED


class RegistrationForm(BaseModel):
    name: str
    email: str
    password: str
    confirm_password: str


# --- Connectivity ---
class ConnectivityStatus(str, Enum):
    CHECKING = "checking"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


@dataclass(frozen=True)
class ConnectivityState:
    status: ConnectivityStatus = ConnectivityStatus.CHECKING
    last_checked_at: datetime | None = None

    @property
    def is_disconnected(self) -> bool:
        return self.status == ConnectivityStatus.DISCONNECTED


# --- Usage data ---
class UsageLog(BaseModel):
    """One recorded AI invocation, as reported by the server."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, protected_namespaces=())

    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    timestamp: datetime = Field(validation_alias=AliasChoices("timestamp", "createdAt"))
    model_used: str = Field(default="", validation_alias=AliasChoices("model_used", "modelUsed"))
    prompt_tokens: int = Field(default=0, validation_alias=AliasChoices("prompt_tokens", "promptTokens"))
    completion_tokens: int = Field(
        default=0, validation_alias=AliasChoices("completion_tokens", "completionTokens")
    )
    total_tokens: int = Field(default=0, validation_alias=AliasChoices("total_tokens", "totalTokens"))
    estimated_cost: float = Field(
        default=0.0, validation_alias=AliasChoices("estimated_cost", "estimatedCost")
    )
    response_time_ms: int = Field(
        default=0,
        validation_alias=AliasChoices("response_time_ms", "responseTimeMs", "responseTime"),
    )
    prompt_text: str = Field(default="", validation_alias=AliasChoices("prompt_text", "promptText", "prompt"))

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    @field_validator(
        "prompt_tokens", "completion_tokens", "total_tokens", "response_time_ms", mode="before"
    )
    @classmethod
    def _null_count_is_zero(cls, value: Any) -> Any:
        if value is None:
            return 0
        # Some servers report response times as fractional milliseconds
        return round(value) if isinstance(value, float) else value

    @field_validator("estimated_cost", mode="before")
    @classmethod
    def _null_cost_is_zero(cls, value: Any) -> Any:
        return 0.0 if value is None else value


class AggregateStats(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    total_tokens: int = Field(default=0, validation_alias=AliasChoices("total_tokens", "totalTokens"))
    total_cost: float = Field(default=0.0, validation_alias=AliasChoices("total_cost", "totalCost"))
    total_requests: int = Field(
        default=0, validation_alias=AliasChoices("total_requests", "totalRequests")
    )
    avg_response_time_ms: float = Field(
        default=0.0,
        validation_alias=AliasChoices("avg_response_time_ms", "avgResponseTimeMs", "avgResponseTime"),
    )

    @classmethod
    def zero(cls) -> "AggregateStats":
        return cls()


@dataclass(frozen=True)
class SyncResult:
    """Joined, all-or-nothing outcome of one logs+stats fetch cycle."""
    logs: list[UsageLog] = field(default_factory=list)
    stats: AggregateStats = field(default_factory=AggregateStats.zero)
    error: TrackerError | None = None
    generation: int = 0

    @classmethod
    def failed(cls, error: TrackerError, generation: int = 0) -> "SyncResult":
        return cls(error=error, generation=generation)

    @property
    def ok(self) -> bool:
        return self.error is None


# --- Prompts ---
@dataclass(frozen=True)
class PromptRequest:
    text: str
    model_id: str


# --- Debug panel ---
@dataclass(frozen=True)
class ApiTrace:
    """Raw payloads of the latest exchange with the backend."""
    logs: dict | None = None
    stats: dict | None = None
    process: dict | None = None
    error: dict | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# --- View models ---
@dataclass(frozen=True)
class ChartPoint:
    label: str
    timestamp: datetime
    tokens: int
    scaled_cost: float
    response_time_ms: int


@dataclass(frozen=True)
class StatCards:
    total_tokens: str
    total_cost: str
    total_requests: str
    avg_response_time: str
    loaded_logs: int
