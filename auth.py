import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from database import DbSession, to_obj_id
from errors import AuthenticationError, AuthorizationError, ValidationError
from schemas import Role
from security import decode_access_token

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    """The authenticated caller, handed to each handler explicitly."""
    id: str
    role: Role


def get_current_user(db: DbSession, token: Optional[str] = Depends(oauth2_scheme)) -> CurrentUser:
    if not token:
        raise AuthenticationError("Not authorized, no token")
    try:
        payload = decode_access_token(token)
        user_oid = to_obj_id(payload["id"])
    except (JWTError, ValidationError):
        logger.warning("Rejected bearer token")
        raise AuthenticationError("Not authorized, token failed")

    # role is read from the store, not trusted from the token
    user = db["user"].find_one({"_id": user_oid}, {"role": 1})
    if not user:
        raise AuthenticationError("Not authorized, user not found")
    return CurrentUser(id=str(user["_id"]), role=Role(user["role"]))


def require_role(*roles: Role):
    allowed = frozenset(roles)

    def role_dep(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in allowed:
            logger.warning("User %s with role %s denied", current_user.id, current_user.role.value)
            raise AuthorizationError()
        return current_user
    return role_dep
