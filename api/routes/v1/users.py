"""
api/routes/v1/users.py -- Account management endpoints.

Routes:
  GET    /api/v1/users         -- list accounts (admin)
  POST   /api/v1/users         -- create account (admin); 409 on duplicate email
  GET    /api/v1/users/{id}    -- one account (admin)
  PUT    /api/v1/users/{id}    -- partial update (admin)
  DELETE /api/v1/users/{id}    -- delete account and its cards (superadmin); 204

Role rules (auth.guard.can_assign_role): admins manage user and admin
accounts; granting superadmin or editing a superadmin is reserved to
superadmins. Nobody can delete their own account through the API.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.models import UserCreate, UserResponse, UserUpdate
from auth import guard
from auth.dependencies import get_current_user, require_admin
from auth.models import User
from auth.store import UserStore
from core.errors import Forbidden, NotFound, ValidationError

router = APIRouter()


@router.get("/users", response_model=list[UserResponse])
def list_users(request: Request, current_user: User = Depends(require_admin)) -> list[UserResponse]:
    user_store: UserStore = request.app.state.user_store
    return [UserResponse.from_user(u) for u in user_store.list_users()]


@router.post("/users", response_model=UserResponse, status_code=201)
def create_user(
    request: Request,
    body: UserCreate,
    current_user: User = Depends(require_admin),
) -> UserResponse:
    """Create an account. The password is hashed before it is stored."""
    if not guard.can_assign_role(current_user, body.role.value):
        raise Forbidden("Only a superadmin can create superadmin accounts.")
    user_store: UserStore = request.app.state.user_store
    created = user_store.create_user(body.name, body.email, body.password, body.role.value)
    return UserResponse.from_user(created)


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(request: Request, user_id: int, current_user: User = Depends(require_admin)) -> UserResponse:
    user_store: UserStore = request.app.state.user_store
    user = user_store.find_by_id(user_id)
    if user is None:
        raise NotFound("User not found.")
    return UserResponse.from_user(user)


@router.put("/users/{user_id}", response_model=UserResponse)
def update_user(
    request: Request,
    user_id: int,
    body: UserUpdate,
    current_user: User = Depends(require_admin),
) -> UserResponse:
    """Update name, email, role, and/or password. Omitted fields are unchanged."""
    user_store: UserStore = request.app.state.user_store
    target = user_store.find_by_id(user_id)
    if target is None:
        raise NotFound("User not found.")

    new_role = body.role.value if body.role is not None else target.role
    if not guard.can_assign_role(current_user, new_role, target):
        raise Forbidden("Only a superadmin can grant the superadmin role or modify a superadmin account.")

    updated = user_store.update_user(
        user_id,
        name=body.name,
        email=body.email,
        role=body.role.value if body.role is not None else None,
        password=body.password,
    )
    return UserResponse.from_user(updated)


@router.delete("/users/{user_id}", status_code=204)
def delete_user(
    request: Request,
    user_id: int,
    current_user: User = Depends(get_current_user),
) -> Response:
    """Delete an account with its sessions and assigned cards. Superadmin only.

    The permission check runs before the target is looked up, so a
    non-superadmin gets 403 whether or not the id exists.
    """
    if not guard.can_delete_user(current_user):
        raise Forbidden("Only a superadmin can delete users.")
    if user_id == current_user.id:
        raise ValidationError("You cannot delete your own account.")
    user_store: UserStore = request.app.state.user_store
    user_store.delete_user(user_id)
    return Response(status_code=204)
