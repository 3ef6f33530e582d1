# dreamsaver/api/deps.py
from typing import Optional
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt

from dreamsaver.core.config import settings
from dreamsaver.core.security import decode_access_token
from dreamsaver.utils.delivery import DeliveryClient
from dreamsaver.utils.payment_gateway import PaymentGateway, StripeGateway

# Security schemes
optional_security = HTTPBearer(auto_error=False)


async def get_current_user_id(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security)
) -> str:
    """
    Resolve the caller's user id from a bearer token found in:
    - Authorization header
    - Query parameters
    - Cookies
    """
    token = None

    if credentials and credentials.credentials:
        token = credentials.credentials

    if not token:
        token = request.query_params.get("token") or request.query_params.get("access_token")

    if not token:
        token = request.cookies.get("access_token")
        if token and token.startswith("Bearer "):
            token = token[7:]

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = decode_access_token(token)
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing user ID",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return str(user_id)


def get_payment_gateway() -> PaymentGateway:
    return StripeGateway()


def get_delivery_client() -> DeliveryClient:
    return DeliveryClient()


def get_request_origin(request: Request) -> str:
    """Where checkout redirects the browser back to."""
    return (request.headers.get("origin") or settings.FRONTEND_URL).rstrip("/")
