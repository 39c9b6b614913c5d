from fastapi import APIRouter, Depends
from pydantic import BaseModel

from telehealth.auth.dependencies import get_current_user
from telehealth.models.user import User

router = APIRouter(tags=['auth'])


class CurrentUserResponse(BaseModel):
    id: int
    email: str
    full_name: str | None = None
    role: str

    class Config:
        from_attributes = True


@router.get('/me', response_model=CurrentUserResponse)
def me(current_user: User = Depends(get_current_user)):
    return current_user
