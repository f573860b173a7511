"""
Unit tests for owner scoping, sessions, the sign-in policy and upload rules.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from shared.errors import AuthorizationError, UpstreamError, ValidationError
from service_portal.app.domain.owner_scope import (
    ALL_OWNERS,
    default_owner_email,
    resolve_owner_email,
    scope_body,
    scope_params,
)
from service_portal.app.domain.session import SessionManager, SessionUser, UserRole
from service_portal.app.domain.sign_in import SignInPolicy
from service_portal.app.domain.upload import build_upload_name, validate_upload

EXECUTIVE = SessionUser(email="ana.torres@transperuana.com.pe", role=UserRole.EJECUTIVO)
ADMIN = SessionUser(email="admin.portal@transperuana.com.pe", role=UserRole.ADMIN)


class TestOwnerScope:
    @pytest.mark.parametrize("requested", [None, "ALL", "all", "otro@transperuana.com.pe"])
    def test_executive_is_always_scoped_to_self(self, requested):
        assert resolve_owner_email(EXECUTIVE, requested) == EXECUTIVE.email

    def test_admin_may_request_everything(self):
        assert resolve_owner_email(ADMIN, "all") == ALL_OWNERS

    @pytest.mark.parametrize("requested", [None, "", "otro@transperuana.com.pe"])
    def test_admin_spoofing_another_owner_gets_own_email(self, requested):
        assert resolve_owner_email(ADMIN, requested) == ADMIN.email

    def test_default_scope_per_role(self):
        assert default_owner_email(ADMIN) == ALL_OWNERS
        assert default_owner_email(EXECUTIVE) == EXECUTIVE.email

    def test_scope_params_and_body_overwrite_owner(self):
        params = scope_params(EXECUTIVE, {"limite": "10", "ownerEmail": "ALL"})
        body = scope_body(EXECUTIVE, {"action": "reprocesar", "ownerEmail": "ALL"})

        assert params == {"limite": "10", "ownerEmail": EXECUTIVE.email}
        assert body == {"action": "reprocesar", "ownerEmail": EXECUTIVE.email}


class TestSessionManager:
    @pytest.fixture
    def manager(self):
        return SessionManager("test-secret", max_age=3600)

    def test_round_trip(self, manager):
        user = SessionUser(email=ADMIN.email, role=UserRole.ADMIN, name="Admin")

        decoded = manager.decode(manager.encode(user))

        assert decoded == user
        assert decoded.is_admin

    def test_expired_cookie_is_rejected(self, manager):
        token = manager.encode(EXECUTIVE, now=0)
        assert manager.decode(token) is None

    def test_foreign_signature_is_rejected(self, manager):
        token = SessionManager("other-secret").encode(EXECUTIVE)
        assert manager.decode(token) is None

    def test_unknown_role_falls_back_to_executive(self):
        assert UserRole.parse("SUPERUSER") == UserRole.EJECUTIVO
        assert UserRole.parse("admin") == UserRole.ADMIN


class TestSignInPolicy:
    @pytest.fixture
    def apps_script(self):
        client = MagicMock()
        client.validate_user = AsyncMock(return_value={"success": True, "allowed": True, "rol": "ADMIN"})
        return client

    @pytest.fixture
    def policy(self, apps_script):
        return SignInPolicy("transperuana.com.pe", apps_script)

    @pytest.mark.asyncio
    async def test_allowed_user_gets_role_from_allow_list(self, policy):
        assert await policy.authorize("Admin.Portal@Transperuana.com.pe") == UserRole.ADMIN

    @pytest.mark.asyncio
    async def test_foreign_domain_is_denied_without_lookup(self, policy, apps_script):
        with pytest.raises(AuthorizationError) as exc_info:
            await policy.authorize("intruso@gmail.com")

        assert exc_info.value.details == {"reason": "domain"}
        apps_script.validate_user.assert_not_called()

    @pytest.mark.asyncio
    async def test_lookalike_domain_is_denied(self, policy):
        with pytest.raises(AuthorizationError):
            await policy.authorize("ana@transperuana.com.pe.evil.com")

    @pytest.mark.asyncio
    async def test_not_in_allow_list_is_denied(self, policy, apps_script):
        apps_script.validate_user.return_value = {"success": True, "allowed": False}

        with pytest.raises(AuthorizationError):
            await policy.authorize(EXECUTIVE.email)

    @pytest.mark.asyncio
    async def test_validation_failure_fails_closed(self, policy, apps_script):
        apps_script.validate_user.side_effect = UpstreamError("Error en la API")

        with pytest.raises(AuthorizationError) as exc_info:
            await policy.authorize(EXECUTIVE.email)

        assert exc_info.value.details == {"reason": "validation_error"}


class TestUploadRules:
    def test_accepts_spreadsheets(self):
        assert validate_upload("renovacion.XLSX", 1024) == "xlsx"

    def test_rejects_pdf_naming_its_extension(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_upload("reporte.pdf", 1024)
        assert exc_info.value.message == "Extensión .pdf no permitida"

    def test_rejects_files_over_the_limit(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_upload("grande.xlsx", 15 * 1024 * 1024)
        assert exc_info.value.message == "Archivo muy grande. Máximo 10MB"

    def test_rejects_missing_file(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_upload(None, 0)
        assert exc_info.value.message == "No se recibió archivo"

    def test_upload_name(self):
        now = datetime(2025, 1, 15, 10, 30, 45, 123000, tzinfo=timezone.utc)

        name = build_upload_name("alejandro.fernandez@transperuana.com.pe", "base.xlsx", now)

        assert name == "CM_2025-01-15T10-30-45_alejandro._base.xlsx"
