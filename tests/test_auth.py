"""Tests for the authorization coordinator."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from music_bridge.auth import AuthCoordinator, AuthManager, parse_redirect
from music_bridge.credentials import CredentialStore
from music_bridge.errors import AuthorizationPendingError, CredentialRejectedError

from tests.conftest import FakeStrategy, RecordingNotifier


@pytest.fixture
def strategy() -> FakeStrategy:
    return FakeStrategy()


@pytest.fixture
def coordinator(
    strategy: FakeStrategy, credentials: CredentialStore, notifier: RecordingNotifier
) -> AuthCoordinator:
    return AuthCoordinator(strategy, credentials, notifier)


def _log_in(credentials: CredentialStore) -> None:
    credentials.set("fake:token", {"access_token": "abc"})


class TestSilentAuthentication:
    async def test_without_credential_goes_straight_to_failure(
        self, coordinator: AuthCoordinator, strategy: FakeStrategy, notifier: RecordingNotifier
    ) -> None:
        on_authenticated = AsyncMock(return_value="ok")
        on_failure = AsyncMock(return_value="fallback")

        result = await coordinator.with_authentication(
            silent=True, on_authenticated=on_authenticated, on_failure=on_failure
        )

        assert result == "fallback"
        on_authenticated.assert_not_awaited()
        assert strategy.sessions_created == 0
        assert strategy.verify_calls == 0
        assert notifier.messages == []

    async def test_with_credential_skips_verification(
        self, coordinator: AuthCoordinator, strategy: FakeStrategy, credentials: CredentialStore
    ) -> None:
        _log_in(credentials)
        on_authenticated = AsyncMock(return_value="ok")
        on_failure = AsyncMock(return_value="fallback")

        result = await coordinator.with_authentication(
            silent=True, on_authenticated=on_authenticated, on_failure=on_failure
        )

        assert result == "ok"
        assert strategy.verify_calls == 0
        on_failure.assert_not_awaited()

    async def test_rejection_invalidates_without_retry_or_notification(
        self,
        coordinator: AuthCoordinator,
        credentials: CredentialStore,
        notifier: RecordingNotifier,
    ) -> None:
        _log_in(credentials)
        on_authenticated = AsyncMock(side_effect=CredentialRejectedError("Bad or expired token."))
        on_failure = AsyncMock(return_value=None)

        result = await coordinator.with_authentication(
            silent=True, on_authenticated=on_authenticated, on_failure=on_failure
        )

        assert result is None
        assert on_authenticated.await_count == 1
        on_failure.assert_awaited_once()
        assert credentials.get("fake:token") is None
        assert notifier.messages == []

    async def test_other_failures_keep_the_credential(
        self,
        coordinator: AuthCoordinator,
        credentials: CredentialStore,
        notifier: RecordingNotifier,
    ) -> None:
        _log_in(credentials)
        on_authenticated = AsyncMock(side_effect=RuntimeError("network down"))
        on_failure = AsyncMock(return_value="fallback")

        result = await coordinator.with_authentication(
            silent=True, on_authenticated=on_authenticated, on_failure=on_failure
        )

        assert result == "fallback"
        assert credentials.get("fake:token") == {"access_token": "abc"}
        assert notifier.messages == []


class TestInteractiveAuthentication:
    async def test_rejected_credential_is_retried_exactly_once(
        self,
        coordinator: AuthCoordinator,
        strategy: FakeStrategy,
        credentials: CredentialStore,
        notifier: RecordingNotifier,
    ) -> None:
        _log_in(credentials)
        on_authenticated = AsyncMock(
            side_effect=[CredentialRejectedError("Bad or expired token."), "ok"]
        )
        on_failure = AsyncMock(return_value="fallback")

        result = await coordinator.with_authentication(
            silent=False, on_authenticated=on_authenticated, on_failure=on_failure
        )

        assert result == "ok"
        assert on_authenticated.await_count == 2
        assert strategy.verify_calls == 2
        assert credentials.get("fake:token") is None
        on_failure.assert_not_awaited()
        assert notifier.messages == []

    async def test_second_rejection_gives_up(
        self, coordinator: AuthCoordinator, credentials: CredentialStore, notifier: RecordingNotifier
    ) -> None:
        _log_in(credentials)
        on_authenticated = AsyncMock(side_effect=CredentialRejectedError("Bad or expired token."))
        on_failure = AsyncMock(return_value="fallback")

        result = await coordinator.with_authentication(
            silent=False, on_authenticated=on_authenticated, on_failure=on_failure
        )

        assert result == "fallback"
        assert on_authenticated.await_count == 2
        assert notifier.messages == ["Fake: Bad or expired token."]

    async def test_other_errors_notify_and_keep_credential(
        self, coordinator: AuthCoordinator, credentials: CredentialStore, notifier: RecordingNotifier
    ) -> None:
        _log_in(credentials)
        on_authenticated = AsyncMock(side_effect=RuntimeError("rate limited"))
        on_failure = AsyncMock(return_value="fallback")

        result = await coordinator.with_authentication(
            silent=False, on_authenticated=on_authenticated, on_failure=on_failure
        )

        assert result == "fallback"
        assert on_authenticated.await_count == 1
        assert credentials.get("fake:token") == {"access_token": "abc"}
        assert notifier.messages == ["Fake: rate limited"]

    async def test_pending_login_notifies_and_fails(
        self, coordinator: AuthCoordinator, strategy: FakeStrategy, notifier: RecordingNotifier
    ) -> None:
        strategy.pending = True
        on_authenticated = AsyncMock(return_value="ok")
        on_failure = AsyncMock(return_value="fallback")

        result = await coordinator.with_authentication(
            silent=False, on_authenticated=on_authenticated, on_failure=on_failure
        )

        assert result == "fallback"
        on_authenticated.assert_not_awaited()
        assert notifier.messages == ["Fake: Complete the login in your browser"]

    async def test_perform_authorization_raises_pending(
        self, coordinator: AuthCoordinator, strategy: FakeStrategy
    ) -> None:
        strategy.pending = True

        await coordinator.perform_authorization(silent=True)
        with pytest.raises(AuthorizationPendingError):
            await coordinator.perform_authorization(silent=False)

    async def test_silent_and_interactive_calls_can_overlap(
        self, coordinator: AuthCoordinator, credentials: CredentialStore
    ) -> None:
        _log_in(credentials)

        async def slow(session: object) -> str:
            await asyncio.sleep(0)
            return "ok"

        async def fallback() -> str:
            return "fallback"

        results = await asyncio.gather(
            coordinator.with_authentication(silent=True, on_authenticated=slow, on_failure=fallback),
            coordinator.with_authentication(silent=False, on_authenticated=slow, on_failure=fallback),
        )

        assert results == ["ok", "ok"]


class TestAuthFlow:
    async def test_ignores_other_targets(
        self, coordinator: AuthCoordinator, strategy: FakeStrategy, notifier: RecordingNotifier
    ) -> None:
        handled = await coordinator.receive_auth_flow({"target": "other", "code": "c"})

        assert handled is False
        assert strategy.exchanged == []
        assert notifier.messages == []

    async def test_stores_exchanged_token_with_expiry(
        self,
        coordinator: AuthCoordinator,
        strategy: FakeStrategy,
        credentials: CredentialStore,
        notifier: RecordingNotifier,
    ) -> None:
        handled = await coordinator.receive_auth_flow({"target": "fake", "code": "xyz"})

        assert handled is True
        assert strategy.exchanged == ["xyz"]
        stored = credentials.get("fake:token")
        assert stored["access_token"] == "token-xyz"
        assert stored["expires_at"] == credentials.expires("fake:token")
        assert credentials.expires("fake:token") is not None
        assert notifier.messages == ["Fake: Successfully authenticated"]

    async def test_error_parameter_is_reported(
        self, coordinator: AuthCoordinator, strategy: FakeStrategy, notifier: RecordingNotifier
    ) -> None:
        handled = await coordinator.receive_auth_flow({"target": "fake", "error": "access_denied"})

        assert handled is True
        assert strategy.exchanged == []
        assert notifier.messages == ["Fake: authorization failed (access_denied)"]

    async def test_exchange_failure_is_reported(
        self,
        coordinator: AuthCoordinator,
        strategy: FakeStrategy,
        credentials: CredentialStore,
        notifier: RecordingNotifier,
    ) -> None:
        strategy.exchange_error = RuntimeError("invalid code")

        handled = await coordinator.receive_auth_flow({"target": "fake", "code": "xyz"})

        assert handled is True
        assert credentials.get("fake:token") is None
        assert notifier.messages == ["Fake: could not complete login: invalid code"]

    async def test_log_out_removes_credential(
        self, coordinator: AuthCoordinator, credentials: CredentialStore
    ) -> None:
        _log_in(credentials)

        await coordinator.log_out()

        assert not coordinator.has_credential()


class TestAuthManager:
    async def test_fans_out_to_registered_coordinators(
        self, coordinator: AuthCoordinator, strategy: FakeStrategy
    ) -> None:
        manager = AuthManager()
        manager.register("fake", coordinator)

        assert await manager.receive_auth_flow({"target": "fake", "code": "1"}) is True
        assert await manager.receive_auth_flow({"target": "nobody", "code": "2"}) is False
        assert strategy.exchanged == ["1"]
        assert manager.keys() == ["fake"]
        assert manager.get("fake") is coordinator

    def test_unknown_key_raises(self) -> None:
        with pytest.raises(KeyError):
            AuthManager().get("spotify")


def test_parse_redirect() -> None:
    params = parse_redirect("music-bridge://auth-flow?target=spotify&code=abc&state=")

    assert params == {"target": "spotify", "code": "abc", "state": ""}
