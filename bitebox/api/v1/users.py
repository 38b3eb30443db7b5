"""Endpoints for the signed-in user."""

from typing import Annotated

from fastapi import APIRouter, Depends

from bitebox.api.v1.auth import get_current_user
from bitebox.schemas.auth import UserData, UserOut
from bitebox.schemas.common import Envelope

router = APIRouter()


@router.get("/me", response_model=Envelope[UserData])
def get_me(
    current_user: Annotated[UserOut, Depends(get_current_user)],
) -> Envelope[UserData]:
    """Return the user identified by the Bearer token or session cookie."""
    return Envelope[UserData](data=UserData(user=current_user))
