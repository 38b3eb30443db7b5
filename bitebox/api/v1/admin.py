"""Admin-only account management (RBAC)."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from bitebox.api.v1.auth import require_admin
from bitebox.api.v1.guards import guarded_body
from bitebox.core.database import get_db
from bitebox.schemas.auth import UpdateRoleRequest, UserData, UserOut, UsersListData
from bitebox.schemas.common import Envelope
from bitebox.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/users", response_model=Envelope[UsersListData])
def list_users(
    _admin: Annotated[UserOut, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> Envelope[UsersListData]:
    """List all users (admin only)."""
    users = CredentialStore(db).list_users()
    return Envelope[UsersListData](
        data=UsersListData(users=[UserOut.model_validate(u) for u in users])
    )


@router.patch("/users/role", response_model=Envelope[UserData])
def update_user_role(
    admin: Annotated[UserOut, Depends(require_admin)],
    body: Annotated[UpdateRoleRequest, Depends(guarded_body(UpdateRoleRequest))],
    db: Annotated[Session, Depends(get_db)],
) -> Envelope[UserData]:
    """
    Change a user's role. Existing access tokens keep the old role until they
    expire; the next login or refresh carries the new one.
    """
    user = CredentialStore(db).update_user_role(body.email, body.role)
    logger.info(
        "User role changed",
        extra={"admin_id": admin.id, "user_id": user.id, "role": user.role},
    )
    return Envelope[UserData](
        message="User role updated successfully",
        data=UserData(user=UserOut.model_validate(user)),
    )
