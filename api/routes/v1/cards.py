"""
api/routes/v1/cards.py -- Profile card endpoints.

Routes:
  GET    /api/v1/cards        -- cards visible to the caller (all for admins)
  POST   /api/v1/cards        -- create a card (admin); 201
  GET    /api/v1/cards/{id}   -- card with details and files (assignee or admin)
  PUT    /api/v1/cards/{id}   -- update fields, replace details and files (admin)
  DELETE /api/v1/cards/{id}   -- delete card with its details and files (admin)

Visibility and write rules are enforced in CardStore via auth.guard; routes
only resolve the caller and translate transport models.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import CardCreate, CardDetailResponse, CardResponse, CardUpdate, MessageResponse
from auth.dependencies import get_current_user, require_admin
from auth.models import User
from cards.models import Card
from cards.store import CardStore

router = APIRouter()


@router.get("/cards", response_model=list[CardResponse])
def list_cards(request: Request, current_user: User = Depends(get_current_user)) -> list[CardResponse]:
    card_store: CardStore = request.app.state.cards
    return [CardResponse.from_card(c) for c in card_store.list_cards(current_user)]


@router.post("/cards", response_model=CardResponse, status_code=201)
def create_card(
    request: Request,
    body: CardCreate,
    current_user: User = Depends(require_admin),
) -> CardResponse:
    card_store: CardStore = request.app.state.cards
    card = Card(
        title=body.title,
        type=body.type,
        description=body.description,
        progress=body.progress,
        assigned_user_id=body.assigned_user_id,
    )
    created = card_store.create_card(card, current_user, details=[d.to_domain() for d in body.details])
    return CardResponse.from_card(created)


@router.get("/cards/{card_id}", response_model=CardDetailResponse)
def get_card(request: Request, card_id: int, current_user: User = Depends(get_current_user)) -> CardDetailResponse:
    card_store: CardStore = request.app.state.cards
    return CardDetailResponse.from_card(card_store.get_card(card_id, current_user))


@router.put("/cards/{card_id}", response_model=MessageResponse)
def update_card(
    request: Request,
    card_id: int,
    body: CardUpdate,
    current_user: User = Depends(require_admin),
) -> MessageResponse:
    """Update a card.

    Scalars are partial: only fields present in the body change. details and
    files always replace the stored sets, so an omitted list clears them.
    """
    card_store: CardStore = request.app.state.cards
    scalars = body.model_dump(exclude_unset=True, exclude={"details", "files"})
    card_store.update_card(
        card_id,
        current_user,
        details=[d.to_domain() for d in body.details],
        files=[f.to_domain() for f in body.files],
        **scalars,
    )
    return MessageResponse(message="Card updated successfully")


@router.delete("/cards/{card_id}", response_model=MessageResponse)
def delete_card(request: Request, card_id: int, current_user: User = Depends(require_admin)) -> MessageResponse:
    card_store: CardStore = request.app.state.cards
    card_store.delete_card(card_id, current_user)
    return MessageResponse(message="Card deleted successfully")
