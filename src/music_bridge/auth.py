from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping
import logging
from typing import Generic, TypeVar
from urllib.parse import parse_qs, urlsplit

from music_bridge.credentials import AccessToken, CredentialStore, calculate_expiry
from music_bridge.errors import AuthorizationPendingError, CredentialRejectedError
from music_bridge.notifications import Notifier


SessionT = TypeVar("SessionT")
T = TypeVar("T")
LOGGER = logging.getLogger(__name__)


class AuthStrategy(ABC, Generic[SessionT]):
    """Backend specific half of the authorization lifecycle."""

    target: str = ""
    display_name: str = ""
    credential_key: str = ""

    @abstractmethod
    def create_session(self, credentials: CredentialStore) -> SessionT: ...

    @abstractmethod
    async def verify_session(self, session: SessionT) -> None:
        """Make a cheap authenticated call, starting an interactive login if needed."""

    @abstractmethod
    async def exchange_code(self, session: SessionT, code: str) -> AccessToken: ...

    def has_credential(self, credentials: CredentialStore) -> bool:
        return credentials.get(self.credential_key) is not None

    def is_credential_rejected(self, exc: BaseException) -> bool:
        return isinstance(exc, CredentialRejectedError)

    def invalidate(self, credentials: CredentialStore) -> None:
        credentials.remove(self.credential_key)

    async def close_session(self, session: SessionT) -> None:
        return None


class AuthCoordinator(Generic[SessionT]):
    def __init__(
        self,
        strategy: AuthStrategy[SessionT],
        credentials: CredentialStore,
        notifier: Notifier,
    ) -> None:
        self._strategy = strategy
        self._credentials = credentials
        self._notifier = notifier
        self._session: SessionT | None = None

    @property
    def target(self) -> str:
        return self._strategy.target

    @property
    def display_name(self) -> str:
        return self._strategy.display_name or self._strategy.target

    @property
    def session(self) -> SessionT:
        if self._session is None:
            self._session = self._strategy.create_session(self._credentials)
        return self._session

    def has_credential(self) -> bool:
        return self._strategy.has_credential(self._credentials)

    async def perform_authorization(self, *, silent: bool) -> None:
        session = self.session
        if not silent:
            await self._strategy.verify_session(session)

    async def with_authentication(
        self,
        *,
        silent: bool,
        on_authenticated: Callable[[SessionT], Awaitable[T]],
        on_failure: Callable[[], Awaitable[T]],
    ) -> T:
        if silent:
            return await self._with_silent_authentication(on_authenticated, on_failure)

        for attempt in range(2):
            try:
                await self.perform_authorization(silent=False)
                return await on_authenticated(self.session)
            except AuthorizationPendingError as exc:
                self._notifier.notify(f"{self.display_name}: {exc}")
                break
            except Exception as exc:  # noqa: BLE001
                if not self._strategy.is_credential_rejected(exc):
                    self._notifier.notify(f"{self.display_name}: {exc}")
                    break
                LOGGER.info("%s credential rejected, invalidating it", self.display_name)
                self._strategy.invalidate(self._credentials)
                if attempt == 0:
                    continue
                self._notifier.notify(f"{self.display_name}: {exc}")
        return await on_failure()

    async def _with_silent_authentication(
        self,
        on_authenticated: Callable[[SessionT], Awaitable[T]],
        on_failure: Callable[[], Awaitable[T]],
    ) -> T:
        # Background callers must never trigger an interactive login.
        if not self.has_credential():
            return await on_failure()
        try:
            await self.perform_authorization(silent=True)
            return await on_authenticated(self.session)
        except Exception as exc:  # noqa: BLE001
            if self._strategy.is_credential_rejected(exc):
                LOGGER.info("Invalidating rejected %s credential", self.display_name)
                self._strategy.invalidate(self._credentials)
            else:
                LOGGER.warning("Silent %s request failed: %s", self.display_name, exc)
        return await on_failure()

    async def receive_auth_flow(self, parameters: Mapping[str, str]) -> bool:
        if parameters.get("target") != self.target:
            return False

        error = parameters.get("error")
        if error:
            self._notifier.notify(f"{self.display_name}: authorization failed ({error})")
            return True
        code = parameters.get("code")
        if not code:
            self._notifier.notify(f"{self.display_name}: authorization code missing")
            return True

        LOGGER.debug("Received %s auth flow parameters", self.target)
        try:
            token = await self._strategy.exchange_code(self.session, code)
        except Exception as exc:  # noqa: BLE001
            self._notifier.notify(f"{self.display_name}: could not complete login: {exc}")
            return True

        expiry = calculate_expiry(token)
        token.expires_at = expiry
        self._credentials.set(self._strategy.credential_key, token.to_dict(), expires=expiry)
        self._notifier.notify(f"{self.display_name}: Successfully authenticated")
        return True

    async def log_out(self) -> None:
        self._strategy.invalidate(self._credentials)
        LOGGER.info("Logged out of %s", self.display_name)

    async def close(self) -> None:
        if self._session is not None:
            await self._strategy.close_session(self._session)
            self._session = None


class AuthManager:
    def __init__(self) -> None:
        self._coordinators: dict[str, AuthCoordinator] = {}

    def register(self, key: str, coordinator: AuthCoordinator) -> None:
        self._coordinators[key] = coordinator

    def get(self, key: str) -> AuthCoordinator:
        try:
            return self._coordinators[key]
        except KeyError:
            raise KeyError(f"No auth coordinator registered for {key!r}") from None

    def keys(self) -> list[str]:
        return list(self._coordinators)

    async def receive_auth_flow(self, parameters: Mapping[str, str]) -> bool:
        handled = False
        for coordinator in self._coordinators.values():
            if await coordinator.receive_auth_flow(parameters):
                handled = True
        if not handled:
            LOGGER.debug("Ignoring auth flow for target %r", parameters.get("target"))
        return handled

    async def close(self) -> None:
        for coordinator in self._coordinators.values():
            await coordinator.close()


def parse_redirect(url: str) -> dict[str, str]:
    query = parse_qs(urlsplit(url).query, keep_blank_values=True)
    return {key: values[0] for key, values in query.items() if values}
