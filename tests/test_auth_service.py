"""Tests del ciclo de sesión: login, logout, logout-all, sesiones y verificación de email."""

from datetime import timedelta

import pytest

from placement_portal.core.exceptions import (
    EmailAlreadyVerifiedError,
    EmailNotVerifiedError,
    InvalidCredentialsError,
    InvalidVerificationTokenError,
)
from placement_portal.core.time import now_utc
from placement_portal.domain.refresh_token import DeviceInfo
from placement_portal.domain.roles import Role
from placement_portal.services.auth_service import (
    LOGOUT_ALL_REASON,
    LOGOUT_REASON,
    AuthService,
    hash_password,
    verify_password,
)
from placement_portal.services.token_service import ACCESS

from conftest import PASSWORD, RecordingEmailClient, principal_doc

DEVICE = DeviceInfo.from_user_agent("Mozilla/5.0 (Android) Mobile", "10.1.1.1")


@pytest.fixture
def service(settings, codec, principals, store, email_client):
    return AuthService(
        settings=settings, codec=codec, principals=principals, refresh_tokens=store, email=email_client
    )


async def _student(principals, **kwargs):
    kwargs.setdefault("institution_id", "inst1")
    return await principals.insert(Role.STUDENT, principal_doc("ana@uni.edu", **kwargs))


class TestPasswords:
    def test_hash_is_argon2id_and_salted(self):
        a = hash_password(PASSWORD)
        b = hash_password(PASSWORD)
        assert a.startswith("$argon2id$")
        assert a != b

    def test_verify(self):
        h = hash_password(PASSWORD)
        assert verify_password(PASSWORD, h) is True
        assert verify_password("wrong-pass", h) is False
        assert verify_password(PASSWORD, "not-a-hash") is False
        assert verify_password(PASSWORD, "") is False


class TestLogin:
    async def test_student_login_issues_pair_and_persists_session(self, service, principals, store, codec):
        pid = await _student(principals)

        res = await service.login(Role.STUDENT, "ana@uni.edu", PASSWORD, DEVICE, institution_id="inst1")

        claims = codec.verify(res.access_token, ACCESS)
        assert claims.sub == pid
        assert claims.role == Role.STUDENT
        record = await store.find_by_token(res.refresh_token)
        assert record is not None
        assert record.principal_id == pid
        assert record.device_info.device == "Mobile"
        assert principals.docs[Role.STUDENT][pid]["last_login"] is not None
        assert res.principal.summary()["email"] == "ana@uni.edu"

    async def test_wrong_password_and_unknown_email_fail_the_same(self, service, principals):
        await _student(principals)

        with pytest.raises(InvalidCredentialsError) as wrong:
            await service.login(Role.STUDENT, "ana@uni.edu", "bad-password", DEVICE, institution_id="inst1")
        with pytest.raises(InvalidCredentialsError) as unknown:
            await service.login(Role.STUDENT, "ghost@uni.edu", PASSWORD, DEVICE, institution_id="inst1")

        assert wrong.value.message == unknown.value.message
        assert wrong.value.code == unknown.value.code == "INVALID_CREDENTIALS"

    async def test_unverified_account_is_rejected_before_minting(self, service, principals, store):
        await _student(principals, verified=False)

        with pytest.raises(EmailNotVerifiedError):
            await service.login(Role.STUDENT, "ana@uni.edu", PASSWORD, DEVICE, institution_id="inst1")

        assert store.records == {}

    async def test_unverified_rejected_even_with_wrong_password(self, service, principals):
        await principals.insert(Role.INSTITUTION, principal_doc("hr@uni.edu", verified=False))

        with pytest.raises(EmailNotVerifiedError):
            await service.login(Role.INSTITUTION, "hr@uni.edu", "bad-password", DEVICE)

    async def test_inactive_account_cannot_login(self, service, principals, store):
        await _student(principals, is_active=False)

        with pytest.raises(InvalidCredentialsError):
            await service.login(Role.STUDENT, "ana@uni.edu", PASSWORD, DEVICE, institution_id="inst1")
        assert store.records == {}

    async def test_student_from_other_institution(self, service, principals):
        await _student(principals)

        with pytest.raises(InvalidCredentialsError):
            await service.login(Role.STUDENT, "ana@uni.edu", PASSWORD, DEVICE, institution_id="inst2")

    async def test_admin_requires_admin_code(self, service, principals):
        await principals.insert(Role.ADMIN, principal_doc("root@portal.dev", admin_code="CODE-1"))

        with pytest.raises(InvalidCredentialsError):
            await service.login(Role.ADMIN, "root@portal.dev", PASSWORD, DEVICE)
        with pytest.raises(InvalidCredentialsError):
            await service.login(Role.ADMIN, "root@portal.dev", PASSWORD, DEVICE, admin_code="CODE-2")

        res = await service.login(Role.ADMIN, "root@portal.dev", PASSWORD, DEVICE, admin_code="CODE-1")
        assert res.principal.role == Role.ADMIN

    async def test_admin_unverified_email_still_logs_in(self, service, principals):
        await principals.insert(Role.ADMIN, principal_doc("root@portal.dev", verified=False, admin_code="C"))

        res = await service.login(Role.ADMIN, "root@portal.dev", PASSWORD, DEVICE, admin_code="C")

        assert res.access_token


class TestLogout:
    async def test_logout_revokes_current_session(self, service, principals, store):
        await _student(principals)
        res = await service.login(Role.STUDENT, "ana@uni.edu", PASSWORD, DEVICE, institution_id="inst1")

        assert await service.logout(res.refresh_token) is True

        record = await store.find_by_token(res.refresh_token)
        assert record.is_valid() is False
        assert record.revoked_reason == LOGOUT_REASON

    async def test_logout_without_session(self, service):
        assert await service.logout(None) is False
        assert await service.logout("unknown") is False

    async def test_logout_all_revokes_every_device(self, service, principals, store):
        await _student(principals)
        sessions = [
            await service.login(Role.STUDENT, "ana@uni.edu", PASSWORD, DEVICE, institution_id="inst1")
            for _ in range(3)
        ]

        count = await service.logout_all(sessions[0].principal.identity())

        assert count == 3
        for s in sessions:
            record = await store.find_by_token(s.refresh_token)
            assert record.revoked_reason == LOGOUT_ALL_REASON

    async def test_list_sessions_excludes_revoked(self, service, principals):
        await _student(principals)
        first = await service.login(Role.STUDENT, "ana@uni.edu", PASSWORD, DEVICE, institution_id="inst1")
        second = await service.login(Role.STUDENT, "ana@uni.edu", PASSWORD, DEVICE, institution_id="inst1")
        await service.logout(first.refresh_token)

        active = await service.list_active_sessions(second.principal.identity())

        assert [s.token for s in active] == [second.refresh_token]


class TestEmailVerification:
    async def test_issue_verification_stores_token_and_sends_link(self, service, principals, email_client):
        pid = await _student(principals, verified=False)
        principal = await principals.get_by_id(Role.STUDENT, pid)

        result = await service.issue_verification(principal)

        assert result.success
        ev = principals.docs[Role.STUDENT][pid]["email_verification"]
        assert len(ev["token"]) == 64
        assert ev["token_expiry"] - now_utc() > timedelta(hours=23)
        [mail] = email_client.sent
        assert mail["to"] == "ana@uni.edu"
        assert f"http://portal.test/verify-email/student/{ev['token']}" in mail["text"]

    async def test_verify_email_flips_flag_and_clears_token(self, service, principals, email_client):
        pid = await _student(principals, verified=False)
        await service.issue_verification(await principals.get_by_id(Role.STUDENT, pid))
        token = principals.docs[Role.STUDENT][pid]["email_verification"]["token"]

        principal = await service.verify_email(Role.STUDENT, token)

        assert principal.email_verification.verified is True
        ev = principals.docs[Role.STUDENT][pid]["email_verification"]
        assert ev["verified"] is True
        assert "token" not in ev
        assert email_client.sent[-1]["subject"] == "Email Verification"

    async def test_verified_account_can_login(self, service, principals):
        pid = await _student(principals, verified=False)
        await service.issue_verification(await principals.get_by_id(Role.STUDENT, pid))
        token = principals.docs[Role.STUDENT][pid]["email_verification"]["token"]
        await service.verify_email(Role.STUDENT, token)

        res = await service.login(Role.STUDENT, "ana@uni.edu", PASSWORD, DEVICE, institution_id="inst1")

        assert res.refresh_token

    async def test_unknown_or_expired_token(self, service, principals):
        pid = await _student(principals, verified=False)
        await principals.set_verification_token(Role.STUDENT, pid, "t" * 64, now_utc() - timedelta(minutes=1))

        with pytest.raises(InvalidVerificationTokenError):
            await service.verify_email(Role.STUDENT, "t" * 64)
        with pytest.raises(InvalidVerificationTokenError):
            await service.verify_email(Role.STUDENT, "other")

    async def test_token_is_role_scoped(self, service, principals):
        pid = await _student(principals, verified=False)
        await principals.set_verification_token(Role.STUDENT, pid, "s" * 64, now_utc() + timedelta(hours=1))

        with pytest.raises(InvalidVerificationTokenError):
            await service.verify_email(Role.INSTITUTION, "s" * 64)

    async def test_resend_for_unknown_account_is_silent(self, service, email_client):
        await service.resend_verification(Role.INSTITUTION, "ghost@uni.edu")
        assert email_client.sent == []

    async def test_resend_for_verified_account(self, service, principals):
        await principals.insert(Role.INSTITUTION, principal_doc("hr@uni.edu"))

        with pytest.raises(EmailAlreadyVerifiedError):
            await service.resend_verification(Role.INSTITUTION, "hr@uni.edu")

    async def test_resend_replaces_token(self, service, principals, email_client):
        pid = await principals.insert(Role.INSTITUTION, principal_doc("hr@uni.edu", verified=False))
        await principals.set_verification_token(Role.INSTITUTION, pid, "old", now_utc() + timedelta(hours=1))

        await service.resend_verification(Role.INSTITUTION, "hr@uni.edu")

        assert principals.docs[Role.INSTITUTION][pid]["email_verification"]["token"] != "old"
        assert len(email_client.sent) == 1

    async def test_email_failure_does_not_raise(self, settings, codec, principals, store):
        failing = RecordingEmailClient(fail=True)
        service = AuthService(
            settings=settings, codec=codec, principals=principals, refresh_tokens=store, email=failing
        )
        pid = await principals.insert(Role.INSTITUTION, principal_doc("hr@uni.edu", verified=False))

        result = await service.issue_verification(await principals.get_by_id(Role.INSTITUTION, pid))

        assert result.success is False
        assert principals.docs[Role.INSTITUTION][pid]["email_verification"]["token"]
