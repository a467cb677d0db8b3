"""
API request and response models for ProfileDash REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
cards/models.py, which own the internal domain representation. Route handlers
map between the two.

No response model carries a password or password hash.
"""

from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from auth.models import User
from cards.models import Card, CardDetail, FileRecord

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    user = "user"
    admin = "admin"
    superadmin = "superadmin"


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


class SetupStatusResponse(BaseModel):
    """Response for GET /api/v1/setup/status -- operator-facing configuration check."""

    model_config = ConfigDict(frozen=True)

    database: str  # "connected" | "failed"
    database_error: Optional[str] = None
    blob_storage: str  # "remote" | "local" | "unconfigured"
    setup_required: bool


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)


class UserResponse(BaseModel):
    """Public view of an account. Built field by field -- never from __dict__."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    role: str
    created_at: str
    updated_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            created_at=user.created_at or "",
            updated_at=user.updated_at or "",
        )


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str = "Login successful"
    user: UserResponse


class AuthCheckResponse(BaseModel):
    """Response for GET /api/v1/auth/check -- never 401, reports state instead."""

    model_config = ConfigDict(frozen=True)

    authenticated: bool
    user: Optional[UserResponse] = None


class SetupRequest(BaseModel):
    """Request body for POST /api/v1/setup (first superadmin account)."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=8, max_length=255)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserCreate(BaseModel):
    """Request body for POST /api/v1/users."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1, max_length=255)
    role: RoleEnum = RoleEnum.user


class UserUpdate(BaseModel):
    """Request body for PUT /api/v1/users/{id}. Omitted fields are left unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[str] = Field(default=None, min_length=3, max_length=255)
    password: Optional[str] = Field(default=None, min_length=1, max_length=255)
    role: Optional[RoleEnum] = None


# ---------------------------------------------------------------------------
# Cards
# ---------------------------------------------------------------------------


class CardDetailIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    field_name: str = Field(min_length=1, max_length=255)
    field_value: str = ""
    file_url: Optional[str] = None

    def to_domain(self) -> CardDetail:
        return CardDetail(field_name=self.field_name, field_value=self.field_value, file_url=self.file_url)


class FileIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    file_name: str = Field(min_length=1, max_length=255)
    file_url: str = Field(min_length=1)
    file_size: Optional[int] = Field(default=None, ge=0)
    mime_type: Optional[str] = Field(default=None, max_length=255)

    def to_domain(self) -> FileRecord:
        return FileRecord(
            file_name=self.file_name,
            file_url=self.file_url,
            file_size=self.file_size,
            mime_type=self.mime_type,
        )


# assignedUserId is accepted for clients written against the camelCase form.
_ASSIGNED_ALIASES = AliasChoices("assigned_user_id", "assignedUserId")


class CardCreate(BaseModel):
    """Request body for POST /api/v1/cards."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=255)
    type: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    progress: int = Field(default=0, ge=0, le=100)
    assigned_user_id: Optional[int] = Field(default=None, validation_alias=_ASSIGNED_ALIASES)
    details: list[CardDetailIn] = Field(default_factory=list)


class CardUpdate(BaseModel):
    """Request body for PUT /api/v1/cards/{id}.

    Scalar fields that are omitted keep their stored value. details and files
    are the complete desired sets: omitting them (or sending []) clears them.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    type: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    progress: Optional[int] = Field(default=None, ge=0, le=100)
    assigned_user_id: Optional[int] = Field(default=None, validation_alias=_ASSIGNED_ALIASES)
    details: list[CardDetailIn] = Field(default_factory=list)
    files: list[FileIn] = Field(default_factory=list)


class CardResponse(BaseModel):
    """One card in GET /api/v1/cards and the body of POST /api/v1/cards."""

    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    description: Optional[str]
    type: str
    progress: int
    assigned_user_id: Optional[int]
    assigned_user_name: Optional[str] = None
    assigned_user_email: Optional[str] = None
    created_by: Optional[int] = None
    created_at: str
    updated_at: str

    @classmethod
    def from_card(cls, card: Card) -> "CardResponse":
        return cls(**_card_fields(card))


class CardDetailRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    field_name: str
    field_value: str
    file_url: Optional[str] = None


class FileRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    file_name: str
    file_url: str
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    uploaded_by: Optional[int] = None
    created_at: str = ""


class CardDetailResponse(CardResponse):
    """GET /api/v1/cards/{id}: the card with its ordered details and files."""

    details: list[CardDetailRow] = Field(default_factory=list)
    files: list[FileRow] = Field(default_factory=list)

    @classmethod
    def from_card(cls, card: Card) -> "CardDetailResponse":
        return cls(
            **_card_fields(card),
            details=[
                CardDetailRow(field_name=d.field_name, field_value=d.field_value, file_url=d.file_url)
                for d in card.details
            ],
            files=[
                FileRow(
                    id=f.id,
                    file_name=f.file_name,
                    file_url=f.file_url,
                    file_size=f.file_size,
                    mime_type=f.mime_type,
                    uploaded_by=f.uploaded_by,
                    created_at=f.created_at,
                )
                for f in card.files
            ],
        )


def _card_fields(card: Card) -> dict:
    return {
        "id": card.id,
        "title": card.title,
        "description": card.description,
        "type": card.type,
        "progress": card.progress,
        "assigned_user_id": card.assigned_user_id,
        "assigned_user_name": card.assigned_user_name,
        "assigned_user_email": card.assigned_user_email,
        "created_by": card.created_by,
        "created_at": card.created_at,
        "updated_at": card.updated_at,
    }


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------


class UploadResponse(BaseModel):
    """Response for POST /api/v1/upload."""

    model_config = ConfigDict(frozen=True)

    url: str
    pathname: str
    size: int
    content_type: Optional[str] = None
    file_id: Optional[int] = None
    card_id: Optional[int] = None
