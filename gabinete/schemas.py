# gabinete/schemas.py
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator, model_validator

from .domain.clock import to_utc_naive
from .domain.ticket_lifecycle import PRIORITIES, STATUSES

UtcDateTime = Annotated[datetime, AfterValidator(to_utc_naive)]


# -------------------- Profiles --------------------

class ProfileSummary(BaseModel):
    id: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class ProfileOut(ProfileSummary):
    tenant_id: Optional[str] = None
    phone: Optional[str] = None
    role: str
    active: bool
    created_at: datetime


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(default=None, min_length=2, max_length=160)
    phone: Optional[str] = Field(default=None, max_length=30)
    avatar_url: Optional[str] = None


class RoleUpdate(BaseModel):
    role: str


class ProfileStatusUpdate(BaseModel):
    active: bool


class UserCountsOut(BaseModel):
    citizen: int = 0
    aide: int = 0
    politician: int = 0
    admin: int = 0
    total: int = 0


# -------------------- Tenants --------------------

class TenantContact(BaseModel):
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    website: Optional[str] = None
    instagram: Optional[str] = None
    facebook: Optional[str] = None


class TenantOut(BaseModel):
    id: str
    slug: str
    name: str
    primary_color: str
    secondary_color: str
    logo_url: Optional[str] = None
    contact: Optional[dict[str, Any]] = None
    active: bool
    model_config = ConfigDict(from_attributes=True)


class TenantUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=160)
    primary_color: Optional[str] = None
    secondary_color: Optional[str] = None
    logo_url: Optional[str] = None
    contact: Optional[TenantContact] = None


class ThemeOut(BaseModel):
    primary: str
    primary_foreground: str
    primary_light: str
    primary_dark: str
    secondary: str
    secondary_foreground: str


# -------------------- Categories --------------------

class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    color: str = "#6b7280"
    icon: Optional[str] = None
    display_order: int = 0
    active: bool = True


class CategoryOut(CategoryCreate):
    id: str
    tenant_id: str
    model_config = ConfigDict(from_attributes=True)


class CategorySummary(BaseModel):
    id: str
    name: str
    color: str
    icon: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


# -------------------- Tickets --------------------

class TicketLocation(BaseModel):
    street: Optional[str] = None
    complement: Optional[str] = None
    neighborhood: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None


class TicketCreate(BaseModel):
    title: str = Field(min_length=5, max_length=200)
    description: str = Field(min_length=20)
    category_id: Optional[str] = None
    priority: str = "medium"
    location: Optional[TicketLocation] = None
    # staff filing on behalf of a citizen
    reporter_id: Optional[str] = None

    @field_validator("priority")
    @classmethod
    def _priority(cls, v: str) -> str:
        if v not in PRIORITIES:
            raise ValueError(f"priority must be one of {PRIORITIES}")
        return v


class TicketUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=5, max_length=200)
    description: Optional[str] = Field(default=None, min_length=20)
    category_id: Optional[str] = None
    priority: Optional[str] = None
    location: Optional[TicketLocation] = None

    @field_validator("priority")
    @classmethod
    def _priority(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in PRIORITIES:
            raise ValueError(f"priority must be one of {PRIORITIES}")
        return v


class StatusChange(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def _status(cls, v: str) -> str:
        if v not in STATUSES:
            raise ValueError(f"status must be one of {STATUSES}")
        return v


class AssignChange(BaseModel):
    assignee_id: Optional[str] = None


class TicketOut(BaseModel):
    id: str
    tenant_id: str
    reporter_id: str
    ticket_number: str
    title: str
    description: str
    category_id: Optional[str] = None
    status: str
    priority: str
    location: Optional[dict[str, Any]] = None
    photos: List[str] = Field(default_factory=list)
    assignee_id: Optional[str] = None
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    reporter: Optional[ProfileSummary] = None
    category: Optional[CategorySummary] = None
    assignee: Optional[ProfileSummary] = None

    model_config = ConfigDict(from_attributes=True)


class StatusChangeOut(BaseModel):
    changed: bool
    ticket: TicketOut


class TicketCountsOut(BaseModel):
    total: int
    open: int
    resolved: int


# -------------------- Board --------------------

class BoardOut(BaseModel):
    columns: dict[str, List[TicketOut]]
    can_drag: bool


class BoardMove(BaseModel):
    ticket_id: str
    over_column: Optional[str] = None
    over_ticket_id: Optional[str] = None


class BoardMoveOut(BaseModel):
    outcome: str
    ticket_id: str
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    error: Optional[str] = None
    columns: dict[str, List[TicketOut]]


# -------------------- Comments --------------------

class CommentCreate(BaseModel):
    message: str = Field(min_length=1)
    is_public: bool = True


class CommentOut(BaseModel):
    id: str
    ticket_id: str
    author_id: str
    message: str
    is_public: bool
    attachments: List[str] = Field(default_factory=list)
    created_at: datetime
    author: Optional[ProfileSummary] = None
    model_config = ConfigDict(from_attributes=True)


# -------------------- Events --------------------

class EventCreate(BaseModel):
    title: str = Field(min_length=3, max_length=200)
    description: str = ""
    location: Optional[str] = None
    starts_at: UtcDateTime
    ends_at: UtcDateTime
    banner_url: Optional[str] = None
    published: bool = False

    @model_validator(mode="after")
    def _range(self) -> "EventCreate":
        if self.ends_at < self.starts_at:
            raise ValueError("ends_at cannot be before starts_at")
        return self


class EventOut(EventCreate):
    id: str
    tenant_id: str
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


# -------------------- Notifications --------------------

class NotificationOut(BaseModel):
    id: str
    tenant_id: str
    recipient_id: str
    title: str
    message: Optional[str] = None
    type: str
    meta: dict[str, Any] = Field(default_factory=dict)
    read_at: Optional[datetime] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class NotificationListOut(BaseModel):
    items: List[NotificationOut]
    unread_count: int


class MarkAllReadIn(BaseModel):
    ids: Optional[List[str]] = None


class MarkAllReadOut(BaseModel):
    updated_ids: List[str]
    unread_count: int


class BroadcastIn(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1)

    @field_validator("title", "message")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class BroadcastOut(BaseModel):
    recipients: int


# -------------------- Preferences --------------------

class PreferenceIn(BaseModel):
    value: Any


class PreferenceOut(BaseModel):
    key: str
    value: Any


# -------------------- Postal code --------------------

class PostalAddressOut(BaseModel):
    cep: str
    logradouro: Optional[str] = None
    bairro: Optional[str] = None
    cidade: Optional[str] = None
    estado: Optional[str] = None
