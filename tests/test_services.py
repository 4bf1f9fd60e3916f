"""
Shared services tests
Settings validation and audit logging
"""

import json
import logging
import pytest
from unittest.mock import Mock
from google.api_core import exceptions
from services.audit import AuditAction, AuditLogger
from services.config import Settings, validate_settings, get_environment_info
from services.secrets import SecretError, SecretManager

def test_default_settings_are_valid():
    is_valid, errors = validate_settings(Settings(calendar_backend="memory"))
    assert is_valid
    assert errors == []

def test_google_backend_needs_oauth_client():
    is_valid, errors = validate_settings(Settings(
        calendar_backend="google",
        google_client_id=None,
        google_client_secret=None,
        google_redirect_uri=None
    ))
    assert not is_valid
    assert len(errors) == 2

def test_unknown_backend_rejected():
    is_valid, errors = validate_settings(Settings(calendar_backend="sqlite"))
    assert not is_valid
    assert "Invalid calendar backend" in errors[0]

def test_environment_info_hides_token():
    info = get_environment_info(Settings(bearer_token="s3cret"))
    assert info["bearer_token_required"] is True
    assert "s3cret" not in json.dumps(info)

def test_audit_entry_redacts_secrets(caplog):
    audit = AuditLogger()

    with caplog.at_level(logging.INFO, logger="audit"):
        entry = audit.log_operation(
            operation="create_event",
            action=AuditAction.CREATE,
            calendar_id="primary",
            event_id="e1",
            after_state={"title": "Standup", "access_token": "abc"}
        )

    assert entry.after_state == {"title": "Standup", "access_token": "***REDACTED***"}
    record = json.loads(caplog.records[-1].getMessage())
    assert record["action"] == "create"
    assert record["event_id"] == "e1"
    assert record["success"] is True

def test_audit_file_handler(tmp_path):
    log_file = tmp_path / "audit.log"
    audit_logger = logging.getLogger("audit")
    handlers_before = list(audit_logger.handlers)

    try:
        audit = AuditLogger(str(log_file))
        audit.log_operation(operation="delete_event", action=AuditAction.DELETE, event_id="e2", success=False, error="boom")
        for handler in audit_logger.handlers:
            handler.flush()

        line = json.loads(log_file.read_text().strip().splitlines()[-1])
        assert line["action"] == "delete"
        assert line["error"] == "boom"
    finally:
        for handler in list(audit_logger.handlers):
            if handler not in handlers_before:
                audit_logger.removeHandler(handler)
                handler.close()
        audit_logger.propagate = True

class TestSecretManager:
    """Test Secret Manager reads and writes through the client"""

    def make_manager(self):
        manager = SecretManager("proj")
        manager._client = Mock()
        return manager

    @pytest.mark.asyncio
    async def test_get_secret(self):
        manager = self.make_manager()
        manager._client.access_secret_version.return_value = Mock(payload=Mock(data=b'{"token": "t"}'))

        assert await manager.get_secret("calendar-token") == '{"token": "t"}'
        manager._client.access_secret_version.assert_called_once_with(
            request={"name": "projects/proj/secrets/calendar-token/versions/latest"}
        )

    @pytest.mark.asyncio
    async def test_missing_secret_is_none(self):
        manager = self.make_manager()
        manager._client.access_secret_version.side_effect = exceptions.NotFound("missing")

        assert await manager.get_secret("calendar-token") is None

    @pytest.mark.asyncio
    async def test_store_secret_existing(self):
        manager = self.make_manager()
        manager._client.create_secret.side_effect = exceptions.AlreadyExists("exists")
        manager._client.add_secret_version.return_value = Mock()
        manager._client.add_secret_version.return_value.name = "projects/proj/secrets/calendar-token/versions/2"

        name = await manager.store_secret("calendar-token", "{}")

        assert name.endswith("/versions/2")
        manager._client.add_secret_version.assert_called_once_with(request={
            "parent": "projects/proj/secrets/calendar-token",
            "payload": {"data": b"{}"}
        })

    @pytest.mark.asyncio
    async def test_read_failure_raises_secret_error(self):
        manager = self.make_manager()
        manager._client.access_secret_version.side_effect = exceptions.PermissionDenied("denied")

        with pytest.raises(SecretError):
            await manager.get_secret("calendar-token")
