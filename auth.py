"""
Admin accounts, session tokens and the access gate

Passwords are stored as salted passlib hashes; sessions are HS256 JWTs
carrying the account id and role.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, Header
from jose import JWTError, jwt
from loguru import logger
from passlib.context import CryptContext
from pydantic import BaseModel
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from config import settings
from database import find_by_id, get_db, to_object_id, update_document, utcnow
from errors import ConflictError, ForbiddenError, NotFoundError, UnauthorizedError, ValidationError
from schemas import Admin

# Use pbkdf2_sha256 to avoid external bcrypt dependency issues
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

USERS = "users"
INVALID_CREDENTIALS = "Invalid credentials"

# Verified against when the email is unknown so both paths cost the same
_DUMMY_HASH = pwd_context.hash("portfolio-dummy-password")


class Identity(BaseModel):
    id: str
    email: str
    name: str = ""
    role: str


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def public_account(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": str(doc["_id"]),
        "name": doc.get("name", ""),
        "email": doc["email"],
        "role": doc.get("role", "admin"),
        "createdAt": doc.get("createdAt"),
    }


class CredentialStore:
    """Admin accounts in the users collection."""

    def __init__(self, db: Database):
        self.db = db
        self.users = db[USERS]

    def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return self.users.find_one({"email": email.strip().lower()})

    def get(self, account_id: str) -> Optional[Dict[str, Any]]:
        return find_by_id(self.db, USERS, account_id)

    def create(self, name: str, email: str, password: str, role: str = "admin") -> Dict[str, Any]:
        account = Admin(name=name, email=email.strip().lower(), password=password, role=role)
        if self.find_by_email(account.email):
            raise ConflictError(f'User with email "{account.email}" already exists')
        doc = {
            "name": account.name,
            "email": account.email,
            "password": hash_password(account.password),
            "role": account.role,
            "createdAt": utcnow(),
        }
        try:
            doc["_id"] = self.users.insert_one(doc).inserted_id
        except DuplicateKeyError:
            raise ConflictError(f'User with email "{account.email}" already exists')
        logger.info(f"Created {account.role} account {account.email}")
        return doc

    def set_password(self, email: str, password: str) -> Dict[str, Any]:
        if len(password) < 6:
            raise ValidationError("Password must be at least 6 characters")
        doc = self.users.find_one_and_update(
            {"email": email.strip().lower()},
            {"$set": {"password": hash_password(password), "updatedAt": utcnow()}},
        )
        if not doc:
            raise NotFoundError(f'No user with email "{email}"')
        logger.info(f"Password reset for {email}")
        return doc

    def verify(self, email: str, password: str) -> Dict[str, Any]:
        doc = self.find_by_email(email or "")
        if doc is None:
            verify_password(password or "", _DUMMY_HASH)
            raise UnauthorizedError(INVALID_CREDENTIALS)
        if not verify_password(password or "", doc["password"]):
            raise UnauthorizedError(INVALID_CREDENTIALS)
        return doc

    def change_password(self, account_id: str, current_password: str, new_password: str) -> Dict[str, Any]:
        doc = self.get(account_id)
        if doc is None:
            raise NotFoundError("User not found")
        if not verify_password(current_password, doc["password"]):
            raise UnauthorizedError("Password is incorrect")
        return update_document(self.db, USERS, {"_id": doc["_id"]}, {"password": hash_password(new_password)})

    def update_details(self, account_id: str, name: Optional[str] = None, email: Optional[str] = None) -> Dict[str, Any]:
        doc = self.get(account_id)
        if doc is None:
            raise NotFoundError("User not found")
        changes: Dict[str, Any] = {}
        if name:
            changes["name"] = name
        if email and email.lower() != doc["email"]:
            email = email.lower()
            if self.find_by_email(email):
                raise ConflictError(f'User with email "{email}" already exists')
            changes["email"] = email
        if not changes:
            return doc
        return update_document(self.db, USERS, {"_id": doc["_id"]}, changes)


# ======
# Tokens
# ======

def issue_token(account: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {
        "sub": str(account["_id"]),
        "email": account["email"],
        "role": account.get("role", "admin"),
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def authenticate(token: str, store: CredentialStore) -> Identity:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        logger.info(f"Rejected token: {e}")
        raise UnauthorizedError("Not authorized to access this route")
    account_id = payload.get("sub")
    if not account_id or to_object_id(account_id) is None:
        raise UnauthorizedError("Not authorized to access this route")
    doc = store.get(account_id)
    if doc is None:
        raise UnauthorizedError("User not found")
    return Identity(id=str(doc["_id"]), email=doc["email"], name=doc.get("name", ""), role=doc.get("role", "admin"))


def authorize(identity: Identity, required_role: str = "admin") -> Identity:
    if identity.role != required_role:
        raise ForbiddenError(f"User role {identity.role} is not authorized to access this route")
    return identity


# =================
# FastAPI wiring
# =================

def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.lower().startswith("bearer "):
        return None
    return authorization.split(" ", 1)[1].strip() or None


def get_current_user(authorization: Optional[str] = Header(None), db: Database = Depends(get_db)) -> Identity:
    token = bearer_token(authorization)
    if not token:
        raise UnauthorizedError("Not authorized to access this route")
    return authenticate(token, CredentialStore(db))


def get_current_admin(identity: Identity = Depends(get_current_user)) -> Identity:
    return authorize(identity, "admin")


def get_optional_admin(authorization: Optional[str] = Header(None), db: Database = Depends(get_db)) -> Optional[Identity]:
    """Admin identity when a valid admin token is sent, otherwise None."""
    token = bearer_token(authorization)
    if not token:
        return None
    try:
        return authorize(authenticate(token, CredentialStore(db)), "admin")
    except (UnauthorizedError, ForbiddenError):
        return None
