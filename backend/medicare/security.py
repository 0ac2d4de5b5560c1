from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from medicare.config import get_settings
from medicare.constants import Role
from medicare.deps import get_store
from medicare.domain.entities import Actor
from medicare.exceptions import ForbiddenError, UnauthorizedError
from medicare.repositories import Store

settings = get_settings()

# tokenUrl only feeds the Swagger "Authorize" dialog
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

# ------------------------ Password hashing helpers ------------------------

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """Return False when the account has no password set."""
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


# ------------------------ JWT helpers ------------------------


def create_access_token(subject: str, role: Role, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode = {"sub": subject, "role": role.value, "exp": expire}
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Actor:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise UnauthorizedError("Token has expired. Please log in again.")
    except JWTError:
        raise UnauthorizedError("Invalid token. Please log in again.")
    subject = payload.get("sub")
    try:
        role = Role(payload.get("role"))
    except ValueError:
        raise UnauthorizedError("Invalid token. Please log in again.")
    if not subject:
        raise UnauthorizedError("Invalid token. Please log in again.")
    return Actor(id=subject, role=role)


async def get_current_actor(
    token: str | None = Depends(oauth2_scheme),
    store: Store = Depends(get_store),
) -> Actor:
    """Resolve the bearer token to an actor whose account still exists.

    Doctors must additionally be active.
    """
    if not token:
        raise UnauthorizedError("Not authorized to access this route. No token provided.")
    actor = decode_token(token)
    if actor.role == Role.DOCTOR:
        doctor = await store.doctors.get(actor.id)
        if not doctor:
            raise UnauthorizedError("Doctor not found. Token is invalid.")
        if not doctor.is_active:
            raise ForbiddenError("Doctor account is deactivated.")
    else:
        user = await store.users.get(actor.id)
        if not user:
            raise UnauthorizedError("User not found. Token is invalid.")
        # the stored role wins over whatever the token claims
        actor = Actor(id=actor.id, role=user.role)
    return actor


# ------------------------ RBAC helpers ------------------------


def require_roles(allowed: List[Role]) -> Callable:
    """FastAPI dependency factory to enforce role-based access.
    Usage: Depends(require_roles([Role.ADMIN, Role.DOCTOR]))
    """

    async def checker(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in allowed:
            raise ForbiddenError(
                f"User role '{actor.role.value}' is not authorized to access this route"
            )
        return actor

    return checker
