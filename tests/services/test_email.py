"""Email backend and code dispatcher tests."""

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import aiosmtplib
import httpx
import pytest

from authcore.config import Settings
from authcore.services.email import (
    ConsoleEmailBackend,
    EmailCodeDispatcher,
    ResendEmailBackend,
    SMTPEmailBackend,
    get_email_backend,
)


class TestConsoleEmailBackend:
    """Tests for console email backend."""

    @pytest.mark.asyncio
    async def test_send_logs_email(self, caplog):
        backend = ConsoleEmailBackend()

        with caplog.at_level(logging.INFO):
            result = await backend.send(
                to="test@example.com",
                subject="Test Subject",
                html="<p>Hello</p>",
                text="Hello",
            )

        assert result is True
        assert "test@example.com" in caplog.text
        assert "Test Subject" in caplog.text


class TestSMTPEmailBackend:
    """Tests for SMTP email backend."""

    @pytest.fixture
    def backend(self) -> SMTPEmailBackend:
        return SMTPEmailBackend(
            host="smtp.example.com",
            port=587,
            username="user",
            password="pass",
            from_address="noreply@example.com",
        )

    @pytest.mark.asyncio
    async def test_send_success(self, backend):
        with patch("authcore.services.email.aiosmtplib.send", new_callable=AsyncMock) as mock_send:
            result = await backend.send(
                to="test@example.com",
                subject="Test",
                html="<p>Hello</p>",
                text="Hello",
            )

            assert result is True
            mock_send.assert_called_once()
            assert mock_send.call_args[1]["hostname"] == "smtp.example.com"

    @pytest.mark.asyncio
    async def test_send_smtp_failure(self, backend):
        with patch(
            "authcore.services.email.aiosmtplib.send",
            new_callable=AsyncMock,
            side_effect=aiosmtplib.SMTPException("Relay denied"),
        ):
            result = await backend.send(to="test@example.com", subject="Test", html="<p>Hello</p>")

            assert result is False

    @pytest.mark.asyncio
    async def test_send_connection_failure(self, backend):
        with patch(
            "authcore.services.email.aiosmtplib.send",
            new_callable=AsyncMock,
            side_effect=ConnectionRefusedError("Connection refused"),
        ):
            result = await backend.send(to="test@example.com", subject="Test", html="<p>Hello</p>")

            assert result is False


class TestResendEmailBackend:
    """Tests for Resend email backend."""

    @pytest.fixture
    def backend(self) -> ResendEmailBackend:
        return ResendEmailBackend(api_key="re_test_key", from_address="noreply@example.com")

    @pytest.mark.asyncio
    async def test_send_success(self, backend):
        mock_response = MagicMock()
        mock_response.raise_for_status = MagicMock()

        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = mock_response

            result = await backend.send(
                to="test@example.com",
                subject="Test",
                html="<p>Hello</p>",
                text="Hello",
            )

            assert result is True
            call_kwargs = mock_post.call_args[1]
            assert call_kwargs["json"]["to"] == ["test@example.com"]
            assert call_kwargs["headers"]["Authorization"] == "Bearer re_test_key"

    @pytest.mark.asyncio
    async def test_send_http_error(self, backend):
        mock_response = MagicMock()
        mock_response.status_code = 401
        mock_response.text = "Unauthorized"
        mock_response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "Unauthorized",
            request=MagicMock(),
            response=mock_response,
        )

        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = mock_response

            result = await backend.send(to="test@example.com", subject="Test", html="<p>Hello</p>")

            assert result is False

    @pytest.mark.asyncio
    async def test_send_network_error(self, backend):
        with patch(
            "httpx.AsyncClient.post",
            new_callable=AsyncMock,
            side_effect=httpx.ConnectError("Network error"),
        ):
            result = await backend.send(to="test@example.com", subject="Test", html="<p>Hello</p>")

            assert result is False


class TestGetEmailBackend:
    """Tests for get_email_backend factory."""

    def test_console_backend(self):
        backend = get_email_backend(Settings(email_backend="console"))

        assert isinstance(backend, ConsoleEmailBackend)

    def test_smtp_backend(self):
        settings = Settings(
            email_backend="smtp",
            smtp_host="smtp.example.com",
            email_from="noreply@example.com",
            email_from_name="Authcore",
        )

        backend = get_email_backend(settings)

        assert isinstance(backend, SMTPEmailBackend)
        assert backend.host == "smtp.example.com"
        assert backend.from_address == "Authcore <noreply@example.com>"

    def test_resend_backend(self):
        backend = get_email_backend(Settings(email_backend="resend", resend_api_key="re_test_key"))

        assert isinstance(backend, ResendEmailBackend)
        assert backend.api_key == "re_test_key"

    def test_invalid_backend(self):
        settings = MagicMock(email_backend="carrier-pigeon")

        with pytest.raises(ValueError, match="Unknown email backend"):
            get_email_backend(settings)


class TestEmailCodeDispatcher:
    """Tests for rendering and sending code emails."""

    @pytest.mark.asyncio
    async def test_send_code(self):
        mock_backend = AsyncMock()
        mock_backend.send.return_value = True
        dispatcher = EmailCodeDispatcher(backend=mock_backend, app_name="Authcore")

        result = await dispatcher.send("test@example.com", "reset_password", "482913")

        assert result is True
        call_kwargs = mock_backend.send.call_args[1]
        assert call_kwargs["to"] == "test@example.com"
        assert call_kwargs["subject"] == "[Authcore] Your password reset code"
        assert "482913" in call_kwargs["html"]
        assert "482913" in call_kwargs["text"]
        assert "10 minutes" in call_kwargs["text"]

    @pytest.mark.asyncio
    async def test_send_code_failure_propagates_false(self):
        mock_backend = AsyncMock()
        mock_backend.send.return_value = False
        dispatcher = EmailCodeDispatcher(backend=mock_backend)

        assert await dispatcher.send("test@example.com", "login", "123456") is False

    def test_unknown_purpose_uses_generic_label(self):
        dispatcher = EmailCodeDispatcher(backend=ConsoleEmailBackend(), app_name="Authcore")

        subject, _html, _text = dispatcher.render("something_else", "123456")

        assert subject == "[Authcore] Your verification code"
