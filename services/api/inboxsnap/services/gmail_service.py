"""Gmail mailbox collaborator.

Fetches unread inbox messages for a user and removes messages from the inbox
on request. google-api-python-client is synchronous, so every API call runs
in the default executor.
"""

import asyncio
import logging
from typing import Any, Protocol

from google.auth.exceptions import GoogleAuthError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from inboxsnap.config import Settings
from inboxsnap.exceptions import MailboxError
from inboxsnap.models.oauth_token import OAuthToken
from inboxsnap.models.user import User
from inboxsnap.services.crypto_service import CryptoService
from inboxsnap.services.gmail_parser import MailboxMessage, parse_gmail_message

logger = logging.getLogger(__name__)

UNREAD_QUERY = "is:unread in:inbox"


class MailboxClient(Protocol):
    async def fetch_unread_messages(self, user: User, max_count: int) -> list[MailboxMessage]: ...

    async def remove_from_inbox(self, user: User, message_id: str) -> None: ...


class GmailMailbox:
    """``MailboxClient`` backed by the Gmail API."""

    def __init__(self, settings: Settings, crypto: CryptoService, db: AsyncSession) -> None:
        self._settings = settings
        self._crypto = crypto
        self._db = db

    async def _get_token(self, user: User) -> OAuthToken | None:
        result = await self._db.execute(select(OAuthToken).where(OAuthToken.user_id == user.id))
        return result.scalar_one_or_none()

    def _get_credentials(self, token: OAuthToken) -> Credentials:
        return Credentials(
            token=self._crypto.decrypt(token.encrypted_access_token),
            refresh_token=self._crypto.decrypt(token.encrypted_refresh_token),
            token_uri="https://oauth2.googleapis.com/token",
            client_id=self._settings.google_client_id,
            client_secret=self._settings.google_client_secret.get_secret_value(),
        )

    def _build_service(self, credentials: Credentials):
        return build("gmail", "v1", credentials=credentials, cache_discovery=False)

    async def _run(self, request) -> dict[str, Any]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, request.execute)

    async def fetch_unread_messages(self, user: User, max_count: int) -> list[MailboxMessage]:
        """Up to ``max_count`` unread inbox messages, newest first.

        A user without stored Gmail tokens has no mailbox; that yields an
        empty list rather than an error.
        """
        if max_count <= 0:
            return []

        token = await self._get_token(user)
        if token is None:
            logger.warning("User %s has no Gmail tokens", user.id)
            return []

        try:
            service = self._build_service(self._get_credentials(token))
            listing = await self._run(
                service.users().messages().list(userId="me", q=UNREAD_QUERY, maxResults=max_count)
            )
            messages: list[MailboxMessage] = []
            for ref in listing.get("messages", [])[:max_count]:
                raw = await self._run(service.users().messages().get(userId="me", id=ref["id"], format="full"))
                messages.append(parse_gmail_message(raw))
        except (HttpError, GoogleAuthError) as e:
            raise MailboxError(f"Gmail fetch failed for user {user.id}: {type(e).__name__}") from e

        logger.info("Fetched %d unread messages for user=%s", len(messages), user.id)
        return messages

    async def remove_from_inbox(self, user: User, message_id: str) -> None:
        """Archive a message by removing its INBOX label."""
        token = await self._get_token(user)
        if token is None:
            raise MailboxError(f"User {user.id} has no Gmail tokens")

        try:
            service = self._build_service(self._get_credentials(token))
            await self._run(
                service.users().messages().modify(userId="me", id=message_id, body={"removeLabelIds": ["INBOX"]})
            )
        except (HttpError, GoogleAuthError) as e:
            raise MailboxError(f"Gmail modify failed for user {user.id}: {type(e).__name__}") from e

        logger.info("Removed message from inbox for user=%s", user.id)


def get_mailbox(settings: Settings, crypto: CryptoService, db: AsyncSession) -> MailboxClient:
    return GmailMailbox(settings, crypto, db)
