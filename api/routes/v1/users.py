"""
api/routes/v1/users.py -- User directory routes.

Routes:
  GET  /users -- every user, newest first
  POST /users -- create a user (name must not be blank)

Both need X-User-Id like every other route. Users carry no ownership
tuples, so nothing here talks to the tuple store.
"""

from fastapi import APIRouter, Depends, Request

from api.dependencies import get_user_directory, get_user_id
from api.limiter import limiter
from api.models import UserCreate, UserResponse
from records.users import UserDirectory

router = APIRouter(dependencies=[Depends(get_user_id)])


@router.get("/users", response_model=list[UserResponse])
@limiter.limit("60/minute")
def list_users(
    request: Request,
    directory: UserDirectory = Depends(get_user_directory),
) -> list[UserResponse]:
    return [UserResponse.from_user(u) for u in directory.list_users()]


@router.post("/users", response_model=UserResponse, status_code=201)
@limiter.limit("30/minute")
def create_user(
    request: Request,
    body: UserCreate,
    directory: UserDirectory = Depends(get_user_directory),
) -> UserResponse:
    return UserResponse.from_user(directory.create(body.name))
