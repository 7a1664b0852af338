import logging

import httpx
from pydantic import ValidationError as PydanticValidationError

from tracker.api_client import APIClient
from tracker.errors import (
    AuthError,
    ConnectivityError,
    ValidationError,
    describe_http_error,
    message_from_payload,
)
from tracker.models.schemas import ConnectivityState, RegistrationForm, Session, UserProfile
from tracker.token_store import TokenStore

logger = logging.getLogger(__name__)

BACKEND_UNAVAILABLE = "Backend server is currently unavailable. Please try again later."


class SessionManager:
    """Owns the bearer token and the authenticated identity.

    ``session`` is the only shared mutable state in the client: it is written
    here (login, register, verify, logout) and read by every component that
    makes authenticated calls.
    """

    def __init__(self, api_client: APIClient, token_store: TokenStore):
        self._api = api_client
        self._store = token_store
        self.session = Session.anonymous()

    async def login(self, email: str, password: str) -> Session:
        try:
            data = await self._api.login(email, password)
        except httpx.HTTPError as exc:
            message = describe_http_error(exc, "Login failed")
            logger.error("Login failed for %s: %s", email, message)
            raise AuthError(message) from exc
        return self._establish(data, "Login failed")

    async def register(
        self,
        profile: RegistrationForm,
        connectivity: ConnectivityState | None = None,
    ) -> Session:
        if connectivity is not None and connectivity.is_disconnected:
            raise ConnectivityError(BACKEND_UNAVAILABLE)
        if profile.password != profile.confirm_password:
            raise ValidationError("Passwords do not match")

        try:
            data = await self._api.register(profile.name, profile.email, profile.password)
        except httpx.HTTPError as exc:
            message = describe_http_error(exc, "Registration failed")
            logger.error("Registration failed for %s: %s", profile.email, message)
            raise AuthError(message) from exc
        return self._establish(data, "Registration failed")

    async def verify(self, stored_token: str | None) -> Session:
        """Resolve a persisted token into a live session.

        Any failure is recovered here: the stored token is dropped and the
        session falls back to anonymous. Nothing is raised to the caller.
        """
        if not stored_token:
            self.session = Session.anonymous()
            return self.session

        verifying = Session.verifying()
        self.session = verifying
        try:
            data = await self._api.get_profile(stored_token)
            user = UserProfile.model_validate(data.get("user"))
        except (httpx.HTTPError, PydanticValidationError, UnicodeError) as exc:
            logger.warning("Token verification failed: %s", exc)
            if self.session is verifying:
                self._store.clear()
                self.session = Session.anonymous()
            return self.session

        # logout or login while the profile call was in flight
        if self.session is not verifying:
            logger.info("Session changed during verification; discarding restored token")
            return self.session

        self.session = Session.authenticated(stored_token, user)
        logger.info("Restored session for %s", user.email)
        return self.session

    async def restore(self) -> Session:
        return await self.verify(self._store.load())

    def logout(self):
        self._store.clear()
        if self.session.is_authenticated:
            logger.info("Logged out %s", self.session.user.email)
        self.session = Session.anonymous()

    def _establish(self, data: dict, fallback: str) -> Session:
        message = message_from_payload(data, fallback)
        token = data.get("token")
        try:
            user = UserProfile.model_validate(data.get("user"))
        except PydanticValidationError as exc:
            logger.error("%s: malformed user in auth reply (%s)", fallback, exc)
            raise AuthError(message) from exc
        if not isinstance(token, str) or not token:
            logger.error("%s: auth reply carried no token", fallback)
            raise AuthError(message)

        self._store.save(token)
        self.session = Session.authenticated(token, user)
        logger.info("Authenticated as %s", user.email)
        return self.session
