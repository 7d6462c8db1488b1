"""
Security Module - Caller Identity & Permission Gate

Identity is issued elsewhere; this module only decodes the bearer token
into a ``Caller`` and decides whether it may invoke an operation. The
ledger services never look at permissions themselves.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, List, Iterable
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from pettycash.core.config import settings
from pettycash.schemas import Caller

# Bearer token scheme
bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token"""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt


def create_caller_token(username: str, user_id: int = None, permissions: Iterable[str] = (),
                        is_superuser: bool = False,
                        expires_delta: Optional[timedelta] = None) -> str:
    """Token carrying everything ``get_current_caller`` needs"""
    return create_access_token(
        {
            "sub": username,
            "uid": user_id,
            "permissions": sorted(permissions),
            "is_superuser": is_superuser,
        },
        expires_delta=expires_delta
    )


def decode_access_token(token: str) -> Optional[dict]:
    """Decode and validate a JWT token"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        return payload
    except JWTError:
        return None


async def get_current_caller(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme)
) -> Caller:
    """
    Dependency to get the caller identity from a JWT token.
    Supports both Authorization header and cookies.
    """
    token = None

    # Try Authorization header first
    if credentials:
        token = credentials.credentials

    # Fall back to cookie
    if not token:
        token = request.cookies.get("access_token")

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_access_token(token)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    username: str = payload.get("sub")
    if username is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return Caller(
        user_id=payload.get("uid"),
        username=username,
        permissions=set(payload.get("permissions") or []),
        is_superuser=bool(payload.get("is_superuser", False))
    )


class PermissionChecker:
    """Dependency for checking caller permissions"""

    def __init__(self, required_permissions: List[str]):
        self.required_permissions = set(required_permissions)

    def __call__(self, caller: Caller = Depends(get_current_caller)):
        # Superusers have all permissions
        if caller.has_permissions(self.required_permissions):
            return

        missing = self.required_permissions - caller.permissions
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Missing required permissions: {', '.join(sorted(missing))}"
        )


class Permissions:
    """Permission names understood by the routers"""
    PETTY_CASH_VIEW = "petty_cash:view"
    PETTY_CASH_CREATE = "petty_cash:create"
    PETTY_CASH_UPDATE = "petty_cash:update"
    PETTY_CASH_CREDIT = "petty_cash:credit"
    PETTY_CASH_DEBIT = "petty_cash:debit"
    PETTY_CASH_TRANSFER = "petty_cash:transfer"
    PETTY_CASH_DELETE = "petty_cash:delete"
    CUSTOMERS_VIEW = "customers:view"
    CUSTOMERS_CREATE = "customers:create"
    CUSTOMER_TRANSACTIONS_CREATE = "customer_transactions:create"
    CUSTOMER_TRANSACTIONS_UPDATE = "customer_transactions:update"
    INVOICES_CREATE = "invoices:create"
    INVOICES_UPDATE = "invoices:update"
    MARK_MOVED_TO_SYSTEM = "finance:mark_moved_to_system"
    AUDIT_VIEW = "audit:view"
