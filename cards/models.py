"""
cards/models.py -- Domain dataclasses for profile cards.

These are pure data containers with zero logic. Validation, access checks and
the replace-on-update semantics for details and files live in cards/store.py.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class CardDetail:
    """One typed field on a card ("Profile URL" -> "https://...").

    position keeps the caller's order; a card's details are always read back
    in the order they were last written.
    """

    field_name: str
    field_value: str = ""
    file_url: Optional[str] = None
    card_id: Optional[int] = None
    position: int = 0
    id: Optional[int] = None
    created_at: str = ""


@dataclass
class FileRecord:
    """Metadata for a file attached to a card.

    The bytes live in the blob store; only the durable URL is kept here.
    """

    file_name: str
    file_url: str
    card_id: Optional[int] = None
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    uploaded_by: Optional[int] = None
    id: Optional[int] = None
    created_at: str = ""


@dataclass
class Card:
    """A profile card, optionally assigned to one user.

    assigned_user_name / assigned_user_email are filled from a join on read and
    ignored on write. details and files are only populated by get_card().

    id is None before the record is written to the database.
    """

    title: str
    type: str  # free-form kind: "LinkedIn", "Degree", ...
    description: Optional[str] = None
    progress: int = 0  # 0-100
    assigned_user_id: Optional[int] = None
    created_by: Optional[int] = None
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""
    assigned_user_name: Optional[str] = None
    assigned_user_email: Optional[str] = None
    details: list[CardDetail] = field(default_factory=list)
    files: list[FileRecord] = field(default_factory=list)
