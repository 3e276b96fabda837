"""
Tests for the SMTP email service and the Celery email task.
"""

import pytest
from unittest.mock import MagicMock, patch

from unipal_events.workers import tasks
from unipal_events.workers.mailer import EmailService


@pytest.fixture
def smtp_config():
    return {
        "smtp_host": "smtp.unipal.edu",
        "smtp_port": 587,
        "smtp_username": "mailer",
        "smtp_password": "secret",
        "smtp_use_tls": True,
        "from_email": "noreply@unipal.edu",
        "from_name": "UniPal MIT",
    }


class TestEmailService:
    """Test cases for SMTP delivery."""

    def test_send_with_starttls(self, smtp_config):
        service = EmailService(smtp_config)

        with patch("unipal_events.workers.mailer.smtplib.SMTP") as mock_smtp:
            result = service.send_email("dean@unipal.edu", "Report", "Body")

        assert result is True
        mock_smtp.assert_called_once_with("smtp.unipal.edu", 587)
        server = mock_smtp.return_value
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("mailer", "secret")
        message = server.__enter__.return_value.send_message.call_args[0][0]
        assert message["To"] == "dean@unipal.edu"
        assert message["Subject"] == "Report"
        assert message["From"] == "UniPal MIT <noreply@unipal.edu>"

    def test_send_with_ssl_and_no_login(self, smtp_config):
        smtp_config.update(smtp_use_tls=False, smtp_username=None, smtp_password=None, smtp_port=465)
        service = EmailService(smtp_config)

        with patch("unipal_events.workers.mailer.smtplib.SMTP_SSL") as mock_ssl:
            result = service.send_email("dean@unipal.edu", "Report", "Body", "<p>Body</p>")

        assert result is True
        mock_ssl.assert_called_once_with("smtp.unipal.edu", 465)
        mock_ssl.return_value.login.assert_not_called()

    def test_smtp_failure_returns_false(self, smtp_config):
        service = EmailService(smtp_config)

        with patch("unipal_events.workers.mailer.smtplib.SMTP", side_effect=OSError("refused")):
            assert service.send_email("dean@unipal.edu", "Report", "Body") is False


class TestEmailTasks:
    """Test cases for the Celery task wrapper."""

    def test_deliver_email_success(self):
        with patch.object(tasks, "email_service") as mock_service:
            mock_service.send_email.return_value = True

            result = tasks.deliver_email("dean@unipal.edu", "Report", "Body")

        assert result["success"] is True
        assert result["to"] == "dean@unipal.edu"
        assert "error" not in result
        mock_service.send_email.assert_called_once_with("dean@unipal.edu", "Report", "Body")

    def test_deliver_email_failure(self):
        with patch.object(tasks, "email_service") as mock_service:
            mock_service.send_email.return_value = False

            result = tasks.deliver_email("dean@unipal.edu", "Report", "Body")

        assert result["success"] is False
        assert result["error"] == "SMTP delivery failed"

    def test_missing_recipient(self):
        with patch.object(tasks, "email_service") as mock_service:
            result = tasks.deliver_email("", "Report", "Body")

        assert result == {"success": False, "error": "Recipient missing", "timestamp": result["timestamp"]}
        mock_service.send_email.assert_not_called()

    def test_task_is_registered_on_email_queue(self):
        assert tasks.send_email.name == "unipal_events.workers.tasks.send_email"
        assert tasks.send_email.max_retries == 3
        assert tasks.celery_app.conf.task_routes == {
            "unipal_events.workers.tasks.*": {"queue": "email_notifications"}
        }

    def test_task_returns_delivery_result(self):
        with patch.object(tasks, "deliver_email", MagicMock(return_value={"success": True})):
            assert tasks.send_email("dean@unipal.edu", "Report", "Body") == {"success": True}
