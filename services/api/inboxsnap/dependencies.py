"""FastAPI dependency injection."""

import uuid
from typing import AsyncGenerator

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from inboxsnap.config import Settings, get_settings
from inboxsnap.models.user import User
from inboxsnap.services.ai_service import get_summarizer
from inboxsnap.services.crypto_service import get_crypto_service
from inboxsnap.services.gmail_service import MailboxClient, get_mailbox
from inboxsnap.services.quota_service import QuotaService
from inboxsnap.services.sender_registry import SenderRegistry
from inboxsnap.services.snapshot_service import SnapshotService

# Database engine and session factory (initialized in lifespan)
_engine = None
_session_factory = None

security = HTTPBearer()


def _create_engine(settings: Settings):
    return create_async_engine(
        settings.database_url,
        echo=settings.debug,
        pool_size=20,
        max_overflow=10,
        pool_pre_ping=True,
    )


def get_session_factory(settings: Settings | None = None):
    global _engine, _session_factory
    if _session_factory is None:
        _engine = _create_engine(settings or get_settings())
        _session_factory = async_sessionmaker(_engine, expire_on_commit=False)
    return _session_factory


async def get_db(settings: Settings = Depends(get_settings)) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async session; commit on success, roll back on error."""
    factory = get_session_factory(settings)
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    settings: Settings = Depends(get_settings),
) -> uuid.UUID:
    """Extract and validate user_id from an access token issued by the identity service."""
    token = credentials.credentials
    try:
        payload = jwt.decode(
            token,
            settings.jwt_private_key.get_secret_value(),
            algorithms=[settings.jwt_algorithm],
        )
        user_id = payload.get("sub")
        token_type = payload.get("type")
        if user_id is None or token_type != "access":
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token payload",
            )
        return uuid.UUID(user_id)
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from e
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user ID in token",
        ) from e


async def get_current_user(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> User:
    """The authenticated, active user record."""
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")
    return user


def get_quota_service(settings: Settings = Depends(get_settings)) -> QuotaService:
    return QuotaService(settings)


def get_mailbox_client(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> MailboxClient:
    return get_mailbox(settings, get_crypto_service(settings), db)


def get_snapshot_service(
    settings: Settings = Depends(get_settings),
    quota: QuotaService = Depends(get_quota_service),
    mailbox: MailboxClient = Depends(get_mailbox_client),
) -> SnapshotService:
    return SnapshotService(settings, quota, SenderRegistry(), mailbox, get_summarizer(settings))


def init_db(settings: Settings) -> tuple:
    """Initialize database engine and session factory. Called from lifespan."""
    global _engine, _session_factory
    _engine = _create_engine(settings)
    _session_factory = async_sessionmaker(_engine, expire_on_commit=False)
    return _engine, _session_factory


async def shutdown_db():
    """Dispose of the database engine. Called from lifespan."""
    global _engine, _session_factory
    if _engine:
        await _engine.dispose()
    _engine = None
    _session_factory = None
