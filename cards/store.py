"""
cards/store.py -- SQLAlchemy-backed repository for profile cards, their detail
fields, and their file records.

Pattern: Repository + Data Mapper. CardStore is the repository; the _row_to_*
functions are the mappers. Route handlers never touch SQL directly.

Access control: every public method takes the acting User and asks auth.guard
before it writes anything. A denied call raises Forbidden with zero side
effects.

Replace semantics: update_card() does not diff details or files. Inside one
transaction it updates the scalar fields, deletes every detail and file row of
the card, and inserts the lists it was given. An empty list clears the set; a
failure anywhere rolls the whole update back.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = CardStore(db)
    card = store.create_card(Card(title="LinkedIn", type="LinkedIn", assigned_user_id=7), admin)
    store.list_cards(user)
    store.update_card(card.id, admin, details=[CardDetail("URL", "https://...")], progress=50)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Optional

from sqlalchemy import select

from auth import guard
from auth.models import User
from cards.models import Card, CardDetail, FileRecord
from core.database import Database, card_details, cards, now_iso, users
from core.database import files as files_table
from core.errors import Forbidden, NotFound, ValidationError

logger = logging.getLogger("profiledash.cards")

# Scalar columns update_card() accepts as keyword arguments.
_UPDATABLE_FIELDS = frozenset({"title", "description", "type", "progress", "assigned_user_id"})


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _required_text(value: Optional[str], label: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{label} is required.")
    return str(value).strip()


def _validate_progress(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("Progress must be an integer between 0 and 100.")
    if not 0 <= value <= 100:
        raise ValidationError("Progress must be between 0 and 100.")
    return value


def _detail_values(card_id: int, details: Iterable[CardDetail], stamp: str) -> list[dict]:
    rows = []
    for position, detail in enumerate(details):
        rows.append(
            {
                "card_id": card_id,
                "position": position,
                "field_name": _required_text(detail.field_name, "Detail field name"),
                "field_value": detail.field_value or "",
                "file_url": detail.file_url or None,
                "created_at": stamp,
            }
        )
    return rows


def _file_values(card_id: int, records: Iterable[FileRecord], uploader_id: Optional[int], stamp: str) -> list[dict]:
    rows = []
    for record in records:
        rows.append(
            {
                "card_id": card_id,
                "file_name": _required_text(record.file_name, "File name"),
                "file_url": _required_text(record.file_url, "File URL"),
                "file_size": record.file_size,
                "mime_type": record.mime_type,
                "uploaded_by": record.uploaded_by if record.uploaded_by is not None else uploader_id,
                "created_at": stamp,
            }
        )
    return rows


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CardStore:
    def __init__(self, db: Database) -> None:
        self._db = db

    # ------------------------------------------------------------------
    # Internal reads
    # ------------------------------------------------------------------

    def _card_query(self):
        return select(
            cards,
            users.c.name.label("assigned_user_name"),
            users.c.email.label("assigned_user_email"),
        ).select_from(cards.outerjoin(users, cards.c.assigned_user_id == users.c.id))

    def _fetch_card(self, card_id: int) -> Optional[Card]:
        with self._db.connect() as conn:
            row = conn.execute(self._card_query().where(cards.c.id == card_id)).fetchone()
        return _row_to_card(row) if row is not None else None

    def _require_card(self, card_id: int) -> Card:
        card = self._fetch_card(card_id)
        if card is None:
            raise NotFound("Card not found.")
        return card

    @staticmethod
    def _check_assignee(conn, assigned_user_id: Optional[int]) -> None:
        # Called inside the writing transaction, after the card row is written.
        if assigned_user_id is None:
            return
        found = conn.execute(select(users.c.id).where(users.c.id == assigned_user_id)).first()
        if found is None:
            raise ValidationError(f"Assigned user {assigned_user_id} does not exist.")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_cards(self, user: User) -> list[Card]:
        """Return the cards visible to user, newest first.

        Admins and superadmins see every card; everyone else sees only the
        cards assigned to them.
        """
        query = self._card_query()
        if not guard.is_admin(user):
            query = query.where(cards.c.assigned_user_id == user.id)
        query = query.order_by(cards.c.created_at.desc(), cards.c.id.desc())
        with self._db.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_card(r) for r in rows]

    def get_card(self, card_id: int, user: User) -> Card:
        """Return a card with its ordered details and files.

        Raises NotFound if the card does not exist, Forbidden if user may not
        read it.
        """
        card = self._require_card(card_id)
        if not guard.can_read_card(user, card):
            raise Forbidden("You do not have access to this card.")
        with self._db.connect() as conn:
            detail_rows = conn.execute(
                card_details.select()
                .where(card_details.c.card_id == card_id)
                .order_by(card_details.c.position, card_details.c.id)
            ).fetchall()
            file_rows = conn.execute(
                files_table.select().where(files_table.c.card_id == card_id).order_by(files_table.c.id)
            ).fetchall()
        card.details = [_row_to_detail(r) for r in detail_rows]
        card.files = [_row_to_file(r) for r in file_rows]
        return card

    def get_card_for_upload(self, card_id: int, user: User) -> Card:
        """Check that user may attach files to card_id before any bytes are stored."""
        card = self._require_card(card_id)
        if not guard.can_attach_file(user, card):
            raise Forbidden("You are not allowed to upload files to this card.")
        return card

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_card(self, card: Card, user: User, details: Optional[Iterable[CardDetail]] = None) -> Card:
        """Insert a new card (and optional initial details) and return it."""
        if not guard.can_write_card(user):
            raise Forbidden("Admin access required.")
        title = _required_text(card.title, "Title")
        card_type = _required_text(card.type, "Type")
        progress = _validate_progress(card.progress)

        stamp = now_iso()
        with self._db.transaction() as conn:
            result = conn.execute(
                cards.insert().values(
                    title=title,
                    description=card.description,
                    type=card_type,
                    progress=progress,
                    assigned_user_id=card.assigned_user_id,
                    created_by=user.id,
                    created_at=stamp,
                    updated_at=stamp,
                )
            )
            card_id = result.inserted_primary_key[0]
            self._check_assignee(conn, card.assigned_user_id)
            detail_rows = _detail_values(card_id, details or [], stamp)
            if detail_rows:
                conn.execute(card_details.insert(), detail_rows)

        logger.info("Card created: id=%s assigned_user_id=%s by user_id=%s", card_id, card.assigned_user_id, user.id)
        return self._fetch_card(card_id)

    def update_card(
        self,
        card_id: int,
        user: User,
        *,
        details: Iterable[CardDetail] = (),
        files: Iterable[FileRecord] = (),
        **fields: Any,
    ) -> Card:
        """Update scalar fields and replace the card's details and files.

        fields may contain any subset of title, description, type, progress,
        assigned_user_id; absent keys keep their stored value. details and
        files are the complete desired sets -- whatever is not passed is gone
        afterwards.
        """
        if not guard.can_write_card(user):
            raise Forbidden("Admin access required.")
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown card fields: {', '.join(sorted(unknown))}.")
        self._require_card(card_id)

        values: dict = {}
        if "title" in fields:
            values["title"] = _required_text(fields["title"], "Title")
        if "type" in fields:
            values["type"] = _required_text(fields["type"], "Type")
        if "description" in fields:
            values["description"] = fields["description"]
        if "progress" in fields:
            if fields["progress"] is None:
                raise ValidationError("Progress cannot be null.")
            values["progress"] = _validate_progress(fields["progress"])
        if "assigned_user_id" in fields:
            values["assigned_user_id"] = fields["assigned_user_id"]

        stamp = now_iso()
        values["updated_at"] = stamp
        # Build (and validate) every row before the transaction opens.
        detail_rows = _detail_values(card_id, details, stamp)
        file_rows = _file_values(card_id, files, user.id, stamp)

        with self._db.transaction() as conn:
            result = conn.execute(cards.update().where(cards.c.id == card_id).values(**values))
            if result.rowcount == 0:
                # Deleted since _require_card(); roll back before any child row lands.
                raise NotFound("Card not found.")
            if "assigned_user_id" in values:
                self._check_assignee(conn, values["assigned_user_id"])
            conn.execute(card_details.delete().where(card_details.c.card_id == card_id))
            if detail_rows:
                conn.execute(card_details.insert(), detail_rows)
            conn.execute(files_table.delete().where(files_table.c.card_id == card_id))
            if file_rows:
                conn.execute(files_table.insert(), file_rows)

        logger.info(
            "Card updated: id=%s details=%d files=%d by user_id=%s",
            card_id,
            len(detail_rows),
            len(file_rows),
            user.id,
        )
        return self._fetch_card(card_id)

    def delete_card(self, card_id: int, user: User) -> None:
        """Delete a card and its dependent detail and file rows, all-or-nothing."""
        if not guard.can_write_card(user):
            raise Forbidden("Admin access required.")
        self._require_card(card_id)
        with self._db.transaction() as conn:
            conn.execute(card_details.delete().where(card_details.c.card_id == card_id))
            conn.execute(files_table.delete().where(files_table.c.card_id == card_id))
            conn.execute(cards.delete().where(cards.c.id == card_id))
        logger.info("Card deleted: id=%s by user_id=%s", card_id, user.id)

    def attach_file(
        self,
        card_id: int,
        file_name: str,
        file_url: str,
        user: User,
        file_size: Optional[int] = None,
        mime_type: Optional[str] = None,
    ) -> FileRecord:
        """Record a file (already stored in the blob store) against a card.

        Allowed for the card's assigned user and for admins.
        """
        self.get_card_for_upload(card_id, user)
        stamp = now_iso()
        row = _file_values(
            card_id,
            [FileRecord(file_name=file_name, file_url=file_url, file_size=file_size, mime_type=mime_type)],
            user.id,
            stamp,
        )[0]
        with self._db.transaction() as conn:
            result = conn.execute(files_table.insert().values(**row))
            file_id = result.inserted_primary_key[0]
            if conn.execute(select(cards.c.id).where(cards.c.id == card_id)).first() is None:
                raise NotFound("Card not found.")
        logger.info("File attached: card_id=%s file_id=%s by user_id=%s", card_id, file_id, user.id)
        return FileRecord(id=file_id, **row)


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_card(row) -> Card:
    return Card(
        id=row.id,
        title=row.title,
        description=row.description,
        type=row.type,
        progress=row.progress,
        assigned_user_id=row.assigned_user_id,
        created_by=row.created_by,
        created_at=row.created_at,
        updated_at=row.updated_at,
        assigned_user_name=row.assigned_user_name,
        assigned_user_email=row.assigned_user_email,
    )


def _row_to_detail(row) -> CardDetail:
    return CardDetail(
        id=row.id,
        card_id=row.card_id,
        position=row.position,
        field_name=row.field_name,
        field_value=row.field_value or "",
        file_url=row.file_url,
        created_at=row.created_at,
    )


def _row_to_file(row) -> FileRecord:
    return FileRecord(
        id=row.id,
        card_id=row.card_id,
        file_name=row.file_name,
        file_url=row.file_url,
        file_size=row.file_size,
        mime_type=row.mime_type,
        uploaded_by=row.uploaded_by,
        created_at=row.created_at,
    )
