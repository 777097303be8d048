# auth.py
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES, BCRYPT_ROUNDS
from database import get_db
from models import Doctor, Organization

logger = logging.getLogger(__name__)

DOCTOR = "doctor"
ORGANIZATION = "organization"

# bcrypt reads at most 72 bytes of input
BCRYPT_MAX_BYTES = 72

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


# -----------------------------
# Password helpers
# -----------------------------
def _truncate(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def get_password_hash(password: str) -> str:
    return pwd_context.hash(_truncate(password))


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(_truncate(plain_password), hashed_password)
    except ValueError:
        # unrecognised or corrupt hash
        return False


# -----------------------------
# JWT helpers
# -----------------------------
def create_access_token(subject: str, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {"sub": subject, "exp": expire}
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_subject(token: str) -> Optional[str]:
    """Return the token subject, or None if the signature or expiry is invalid."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        return None
    return subject


# -----------------------------
# Principal resolution
# -----------------------------
@dataclass(frozen=True)
class Principal:
    """The authenticated actor of a request: a doctor or an organization."""

    kind: str
    account: Union[Doctor, Organization]

    @property
    def id(self) -> str:
        return self.account.id

    @property
    def is_doctor(self) -> bool:
        return self.kind == DOCTOR

    @property
    def is_organization(self) -> bool:
        return self.kind == ORGANIZATION


def resolve_principal(db: Session, subject: str) -> Optional[Principal]:
    """Try the doctor collection first, then organizations; stop at the first hit."""
    doctor = db.get(Doctor, subject)
    if doctor is not None:
        return Principal(DOCTOR, doctor)
    organization = db.get(Organization, subject)
    if organization is not None:
        return Principal(ORGANIZATION, organization)
    return None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


# -----------------------------
# Dependencies
# -----------------------------
async def get_current_principal(
    token: Optional[str] = Depends(oauth2_scheme), db: Session = Depends(get_db)
) -> Principal:
    if not token:
        raise _unauthorized("Not authorized, no token")

    subject = decode_subject(token)
    if subject is None:
        raise _unauthorized("Not authorized, token failed")

    principal = resolve_principal(db, subject)
    if principal is None:
        logger.warning("Valid token for unknown account %s", subject)
        raise _unauthorized("Not authorized, user not found")
    return principal


async def get_current_doctor(principal: Principal = Depends(get_current_principal)) -> Doctor:
    if not principal.is_doctor:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Doctor account required")
    return principal.account


async def get_current_organization(principal: Principal = Depends(get_current_principal)) -> Organization:
    if not principal.is_organization:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Organization account required")
    return principal.account


def email_taken(db: Session, email: str, exclude_id: Optional[str] = None) -> bool:
    """Emails identify logins, so they are unique across doctors and organizations."""
    for model in (Doctor, Organization):
        query = db.query(model.id).filter(model.email == email)
        if exclude_id is not None:
            query = query.filter(model.id != exclude_id)
        if query.first() is not None:
            return True
    return False
