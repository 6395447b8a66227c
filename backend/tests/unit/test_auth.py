"""
Unit tests for the authentication module.

Tests email helpers, error mapping, listener bookkeeping and the Firebase
gateway with the network and Admin SDK mocked out.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from core.auth import (
    AUTH_ERROR_MESSAGES,
    AuthGateway,
    FirebaseAuthGateway,
    Identity,
    UserRole,
    auth_error_message,
    email_local_part,
    validate_email,
)
from core.errors import AuthenticationError, InvalidInputError


class TestEmailHelpers:
    """Tests for email validation and local parts"""

    def test_valid_emails(self):
        assert validate_email("sarah@uni.edu") is True
        assert validate_email(" john.doe@mail.uni.edu ") is True

    def test_invalid_emails(self):
        assert validate_email(None) is False
        assert validate_email("") is False
        assert validate_email("not-an-email") is False
        assert validate_email("@uni.edu") is False
        assert validate_email("user@localhost") is False

    def test_local_part(self):
        assert email_local_part("jane.doe@uni.edu") == "jane.doe"
        assert email_local_part(None) is None
        assert email_local_part("@uni.edu") is None


class TestAuthErrorMessages:
    """Tests for Identity Toolkit error mapping"""

    def test_known_codes(self):
        assert auth_error_message("EMAIL_EXISTS") == AUTH_ERROR_MESSAGES["EMAIL_EXISTS"]
        assert auth_error_message("INVALID_LOGIN_CREDENTIALS") == "Invalid email or password."

    def test_code_with_detail(self):
        """Should map codes that carry a detail suffix"""
        message = auth_error_message("WEAK_PASSWORD : Password should be at least 6 characters")
        assert message == AUTH_ERROR_MESSAGES["WEAK_PASSWORD"]

    def test_unknown_code(self):
        assert auth_error_message("SOMETHING_NEW") == "Authentication failed: SOMETHING_NEW"
        assert auth_error_message(None) == "Authentication failed."

    def test_roles(self):
        assert UserRole.STAFF == "staff"
        assert UserRole.STUDENT.value == "student"


class TestAuthStateListeners:
    """Tests for on_auth_state_change bookkeeping"""

    @pytest.mark.asyncio
    async def test_sync_and_async_listeners(self):
        gateway = AuthGateway()
        seen = []
        async_listener = AsyncMock()
        gateway.on_auth_state_change(seen.append)
        gateway.on_auth_state_change(async_listener)

        identity = Identity("u1", "u1@uni.edu")
        await gateway._set_identity(identity)

        assert seen == [identity]
        async_listener.assert_awaited_once_with(identity)
        assert gateway.current_identity == identity

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        gateway = AuthGateway()
        listener = MagicMock()
        unsubscribe = gateway.on_auth_state_change(listener)

        unsubscribe()
        unsubscribe()
        await gateway._set_identity(None)

        listener.assert_not_called()

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_stop_others(self):
        gateway = AuthGateway()
        after = MagicMock()
        gateway.on_auth_state_change(MagicMock(side_effect=RuntimeError("boom")))
        gateway.on_auth_state_change(after)

        await gateway._set_identity(None)

        after.assert_called_once_with(None)

    def test_identity_equality_ignores_tokens(self):
        assert Identity("u1", "a@b.co", id_token="x") == Identity("u1", "a@b.co", id_token="y")


class TestFirebaseAuthGateway:
    """Tests for the Identity Toolkit gateway"""

    @pytest.fixture
    def gateway(self):
        return FirebaseAuthGateway(api_key="test-key", base_url="https://example.test/v1/")

    @pytest.mark.asyncio
    async def test_sign_in(self, gateway):
        listener = MagicMock()
        gateway.on_auth_state_change(listener)
        gateway._post = AsyncMock(return_value={
            "localId": "uid123", "email": "sarah@uni.edu", "idToken": "tok", "refreshToken": "ref"
        })

        identity = await gateway.sign_in("sarah@uni.edu", "staff123")

        assert identity.uid == "uid123"
        assert identity.id_token == "tok"
        gateway._post.assert_awaited_once()
        endpoint, payload = gateway._post.call_args[0]
        assert endpoint == "accounts:signInWithPassword"
        assert payload["returnSecureToken"] is True
        listener.assert_called_once_with(identity)

    @pytest.mark.asyncio
    async def test_register(self, gateway):
        gateway._post = AsyncMock(return_value={"localId": "new1", "email": "amy@uni.edu"})

        identity = await gateway.register("amy@uni.edu", "secret12")

        assert gateway._post.call_args[0][0] == "accounts:signUp"
        assert gateway.current_identity == identity

    @pytest.mark.asyncio
    async def test_invalid_email_rejected_locally(self, gateway):
        gateway._post = AsyncMock()

        with pytest.raises(InvalidInputError):
            await gateway.sign_in("nope", "secret12")
        gateway._post.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        with patch.dict("core.auth.FIREBASE_CONFIG", {"apiKey": None}):
            gateway = FirebaseAuthGateway()

        with pytest.raises(AuthenticationError):
            await gateway._post("accounts:signUp", {})

    @pytest.mark.asyncio
    async def test_api_error_mapped(self, gateway):
        response = MagicMock()
        response.json = AsyncMock(return_value={"error": {"message": "EMAIL_EXISTS"}})
        session = MagicMock()
        session.post.return_value.__aenter__.return_value = response

        with patch("core.auth.aiohttp.ClientSession") as mock_session_cls:
            mock_session_cls.return_value.__aenter__.return_value = session

            with pytest.raises(AuthenticationError) as exc_info:
                await gateway._post("accounts:signUp", {"email": "a@b.co"})

        assert exc_info.value.message == AUTH_ERROR_MESSAGES["EMAIL_EXISTS"]
        url = session.post.call_args[0][0]
        assert url == "https://example.test/v1/accounts:signUp"
        assert session.post.call_args[1]["params"] == {"key": "test-key"}

    @pytest.mark.asyncio
    async def test_sign_out_revokes_tokens(self, gateway):
        gateway._current = Identity("uid123", "sarah@uni.edu")

        with patch("core.auth.auth.revoke_refresh_tokens") as mock_revoke:
            await gateway.sign_out()

        mock_revoke.assert_called_once_with("uid123")
        assert gateway.current_identity is None

    @pytest.mark.asyncio
    async def test_sign_out_clears_state_even_if_revoke_fails(self, gateway):
        gateway._current = Identity("uid123", "sarah@uni.edu")
        listener = MagicMock()
        gateway.on_auth_state_change(listener)

        with patch("core.auth.auth.revoke_refresh_tokens", side_effect=ValueError("no app")):
            with pytest.raises(AuthenticationError):
                await gateway.sign_out()

        assert gateway.current_identity is None
        listener.assert_called_once_with(None)
