import os
from typing import Any, Tuple

import jwt
from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..models import User
from ..schemas import UserOut
from ..exceptions import http_problem

# Tokens are issued by the identity service; this API only verifies them.
router = APIRouter(prefix="/auth", tags=["auth"])

JWT_ALG = "HS256"
ACCESS_TOKEN_COOKIE = "access_token"
ROLES = {"admin", "staff"}


def get_jwt_secret() -> str:
  secret = os.getenv("JWT_SECRET")
  if not secret:
    raise RuntimeError("JWT_SECRET environment variable is required")
  if len(secret) < 32 or secret.lower() in {"secret", "changeme", "default"}:
    raise RuntimeError(
        "JWT_SECRET must be at least 32 characters and not a common default"
    )
  return secret


def _extract_bearer_token(request: Request, authorization: str | None) -> str:
  if authorization and authorization.lower().startswith("bearer "):
    return authorization.split(" ", 1)[1]

  cookie_token = request.cookies.get(ACCESS_TOKEN_COOKIE)
  if cookie_token:
    return cookie_token

  raise http_problem(
      status_code=401,
      detail="missing token",
      code="auth_missing_token",
  )


async def _resolve_user_and_payload(
    request: Request, authorization: str | None, session: AsyncSession
) -> Tuple[User, dict[str, Any]]:
  token = _extract_bearer_token(request, authorization)
  try:
    payload = jwt.decode(token, get_jwt_secret(), algorithms=[JWT_ALG])
  except jwt.ExpiredSignatureError:
    raise http_problem(
        status_code=401,
        detail="token expired",
        code="auth_token_expired",
    )
  except jwt.PyJWTError:
    raise http_problem(
        status_code=401,
        detail="invalid token",
        code="auth_invalid_token",
    )
  uid = payload.get("sub")
  user = await session.get(User, uid) if uid else None
  if not user:
    raise http_problem(
        status_code=401,
        detail="user not found",
        code="auth_user_not_found",
    )
  return user, payload


async def get_current_user(
    request: Request,
    authorization: str | None = Header(None),
    session: AsyncSession = Depends(get_session),
) -> User:
  user, _ = await _resolve_user_and_payload(request, authorization, session)
  return user


def require_roles(*roles: str):
  """Dependency factory allowing only users holding one of ``roles``."""

  allowed = set(roles) or ROLES

  async def _dependency(user: User = Depends(get_current_user)) -> User:
    if user.role not in allowed:
      raise http_problem(
          status_code=403,
          detail="forbidden",
          code="auth_forbidden",
      )
    return user

  return _dependency


require_operator = require_roles("admin", "staff")
require_admin = require_roles("admin")


@router.get("/me", response_model=UserOut)
async def read_me(current: User = Depends(get_current_user)):
  return UserOut(
      id=current.id,
      username=current.username,
      role=current.role,
      ownerId=current.owner_id,
  )
