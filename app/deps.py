"""
FastAPI dependencies for authentication, database, and services.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import get_db
from app.security import Caller, TokenError, decode_access_token
from app.services.accounts import AccountDirectory
from app.services.dispatch import WEBPUSH_NO_RECIPIENTS_MESSAGE, DispatchEngine
from app.services.providers import DeliveryProvider, UnavailableProvider
from app.services.registrar import SubscriptionRegistrar, TokenRegistrar
from app.services.token_store import SubscriptionStore, TokenStore
from app.settings import settings

# Type alias for database dependency
DBSession = Annotated[AsyncSession, Depends(get_db)]

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_caller(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> Caller:
    """Resolve the caller from the Authorization header (401 if missing or invalid)."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No authorization token provided",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        caller = decode_access_token(credentials.credentials)
    except TokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc

    request.state.user = caller
    return caller


# Type alias for authenticated caller dependency
CurrentCaller = Annotated[Caller, Depends(get_current_caller)]


async def require_admin(caller: CurrentCaller) -> Caller:
    """Require the ADMIN role."""
    if not caller.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions",
        )
    return caller


AdminCaller = Annotated[Caller, Depends(require_admin)]


def get_provider(request: Request) -> DeliveryProvider:
    """Provider created at startup; unavailable until the lifespan sets it."""
    return getattr(request.app.state, "push_provider", None) or UnavailableProvider()


async def get_token_store(db: DBSession) -> TokenStore:
    return TokenStore(db)


async def get_registrar(
    db: DBSession,
    store: Annotated[TokenStore, Depends(get_token_store)],
) -> TokenRegistrar:
    return TokenRegistrar(store, AccountDirectory(db))


async def get_dispatch_engine(
    store: Annotated[TokenStore, Depends(get_token_store)],
    provider: Annotated[DeliveryProvider, Depends(get_provider)],
) -> DispatchEngine:
    return DispatchEngine(
        store,
        provider,
        max_concurrency=settings.fcm_max_concurrency,
        timeout=settings.fcm_dispatch_timeout_seconds,
    )


Registrar = Annotated[TokenRegistrar, Depends(get_registrar)]
Dispatcher = Annotated[DispatchEngine, Depends(get_dispatch_engine)]
Provider = Annotated[DeliveryProvider, Depends(get_provider)]


# Web push channel

def get_webpush_provider(request: Request) -> DeliveryProvider:
    return getattr(request.app.state, "webpush_provider", None) or UnavailableProvider("VAPID keys not configured")


async def get_subscription_store(db: DBSession) -> SubscriptionStore:
    return SubscriptionStore(db)


async def get_subscription_registrar(
    db: DBSession,
    store: Annotated[SubscriptionStore, Depends(get_subscription_store)],
) -> SubscriptionRegistrar:
    return SubscriptionRegistrar(store, AccountDirectory(db))


async def get_webpush_dispatch_engine(
    store: Annotated[SubscriptionStore, Depends(get_subscription_store)],
    provider: Annotated[DeliveryProvider, Depends(get_webpush_provider)],
) -> DispatchEngine:
    return DispatchEngine(
        store,
        provider,
        max_concurrency=settings.fcm_max_concurrency,
        timeout=settings.fcm_dispatch_timeout_seconds,
        no_recipients_message=WEBPUSH_NO_RECIPIENTS_MESSAGE,
        channel="webpush",
    )


Subscriptions = Annotated[SubscriptionRegistrar, Depends(get_subscription_registrar)]
WebPushDispatcher = Annotated[DispatchEngine, Depends(get_webpush_dispatch_engine)]
