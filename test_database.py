"""
Unit tests for the SQLite account, role and session store.
"""

from datetime import datetime, timedelta, timezone

import pytest

from hris.auth.exceptions import (
    ConflictError,
    EmailAlreadyRegisteredError,
    MalformedPermissionError,
    NotFoundError,
    ProtectedRoleError,
    SessionStoreError,
)
from hris.auth.models import LoginStatus, SessionMetadata, SessionState
from hris.auth.seed import seed_defaults


def _now():
    return datetime.now(timezone.utc)


@pytest.fixture
def account(db):
    return db.create_account("staff@example.com", "$2b$04$hash", "Staff Member", employee_id="E1")


class TestAccounts:
    """Test account persistence."""

    def test_create_and_fetch(self, db, account):
        by_email = db.get_account_by_email("staff@example.com")
        by_id = db.get_account_by_id(account.user_id)

        assert by_email == by_id
        assert by_email.display_name == "Staff Member"
        assert by_email.employee_id == "E1"
        assert by_email.is_active and not by_email.is_suspended

    def test_duplicate_email_conflicts(self, db, account):
        with pytest.raises(EmailAlreadyRegisteredError):
            db.create_account("staff@example.com", "$2b$04$other", "Someone Else")

    def test_suspend_and_unsuspend(self, db, account):
        assert db.suspend_account(account.user_id, "policy violation")

        suspended = db.get_account_by_id(account.user_id)
        assert suspended.is_suspended
        assert suspended.suspended_reason == "policy violation"
        assert suspended.suspended_at is not None
        assert not suspended.can_login

        assert db.unsuspend_account(account.user_id)
        assert db.get_account_by_id(account.user_id).can_login

    def test_deactivate(self, db, account):
        db.set_account_active(account.user_id, False)

        assert not db.get_account_by_id(account.user_id).can_login

    def test_last_login(self, db, account):
        when = _now()
        db.update_last_login(account.user_id, when)

        assert db.get_account_by_id(account.user_id).last_login_at == when


class TestRoles:
    """Test roles, grants and assignments."""

    def test_permissions_are_unioned_and_deduplicated(self, db, account):
        db.create_role("employee")
        db.create_role("manager")
        db.grant_permission("employee", "leave:read:own")
        db.grant_permission("manager", "leave:read:own")
        db.grant_permission("manager", "leave:approve:department")
        db.assign_role(account.user_id, "employee")
        db.assign_role(account.user_id, "manager")

        permissions = db.get_user_permissions(account.user_id)

        assert sorted(permissions) == ["leave:approve:department", "leave:read:own"]
        assert db.get_user_roles(account.user_id) == ["employee", "manager"]

    def test_granting_twice_is_a_noop(self, db):
        db.create_role("auditor")
        db.grant_permission("auditor", "payroll:read:all")
        db.grant_permission("auditor", "payroll:read:all")

        assert db.get_role_permissions("auditor") == ["payroll:read:all"]

    def test_malformed_grant_rejected(self, db):
        db.create_role("auditor")

        with pytest.raises(MalformedPermissionError):
            db.grant_permission("auditor", "payroll-read")

    def test_grant_to_missing_role(self, db):
        with pytest.raises(NotFoundError):
            db.grant_permission("ghost", "payroll:read:all")

    def test_revoke_permission(self, db):
        db.create_role("auditor")
        db.grant_permission("auditor", "payroll:read:all")

        assert db.revoke_permission("auditor", "payroll:read:all")
        assert db.get_role_permissions("auditor") == []

    def test_duplicate_role_conflicts(self, db):
        db.create_role("auditor")

        with pytest.raises(ConflictError):
            db.create_role("auditor")

    def test_system_roles_cannot_be_deleted(self, db):
        seed_defaults(db)

        with pytest.raises(ProtectedRoleError):
            db.delete_role("super_admin")

        assert db.get_role("super_admin") is not None

    def test_custom_role_deletion_drops_grants(self, db, account):
        db.create_role("temp")
        db.grant_permission("temp", "employee:read:all")
        db.assign_role(account.user_id, "temp")

        assert db.delete_role("temp")
        assert db.get_user_permissions(account.user_id) == []

    def test_assignment_validity_window(self, db, account):
        db.create_role("acting_manager")
        db.grant_permission("acting_manager", "leave:approve:department")
        db.create_role("former")
        db.grant_permission("former", "payroll:read:all")

        db.assign_role(account.user_id, "acting_manager", valid_from=_now() + timedelta(days=1))
        db.assign_role(account.user_id, "former", valid_until=_now() - timedelta(days=1))

        assert db.get_user_permissions(account.user_id) == []
        assert db.get_user_permissions(account.user_id, now=_now() + timedelta(days=2)) == ["leave:approve:department"]

    def test_assignment_records_actor(self, db, account):
        db.create_role("employee")
        db.assign_role(account.user_id, "employee", assigned_by="admin-1")

        (assignment,) = db.get_role_assignments(account.user_id)
        assert assignment.role_name == "employee"
        assert assignment.assigned_by == "admin-1"

    def test_assignment_windows_read_back(self, db, account):
        now = _now()
        db.create_role("employee")
        db.create_role("acting_manager")
        db.create_role("former")
        db.assign_role(account.user_id, "employee")
        db.assign_role(account.user_id, "acting_manager", valid_from=now + timedelta(days=1))
        db.assign_role(account.user_id, "former", valid_until=now - timedelta(days=1))

        assignments = {a.role_name: a for a in db.get_role_assignments(account.user_id)}

        assert assignments["acting_manager"].valid_from == now + timedelta(days=1)
        for when in (now, now + timedelta(days=2)):
            effective = sorted(name for name, a in assignments.items() if a.is_effective(when))
            assert effective == db.get_user_roles(account.user_id, now=when)

    def test_assignment_effective_bounds(self, db, account):
        start, end = _now(), _now() + timedelta(days=30)
        db.create_role("contractor")
        db.assign_role(account.user_id, "contractor", valid_from=start, valid_until=end)

        (assignment,) = db.get_role_assignments(account.user_id)

        assert not assignment.is_effective(start - timedelta(microseconds=1))
        assert assignment.is_effective(start)
        assert assignment.is_effective(end - timedelta(microseconds=1))
        assert not assignment.is_effective(end)

    def test_unassign(self, db, account):
        db.create_role("employee")
        db.assign_role(account.user_id, "employee")

        assert db.unassign_role(account.user_id, "employee")
        assert db.get_user_roles(account.user_id) == []


class TestSessions:
    """Test refresh token sessions."""

    def test_create_and_find(self, db, account):
        metadata = SessionMetadata(ip_address="10.0.0.1", user_agent="pytest", device_id="laptop")
        db.create_session(account.user_id, "token-1", _now() + timedelta(days=7), metadata)

        session = db.find_session_by_token("token-1")

        assert session.user_id == account.user_id
        assert session.ip_address == "10.0.0.1"
        assert session.device_id == "laptop"
        assert session.expires_at > session.created_at
        assert session.state(_now()) is SessionState.ACTIVE

    def test_unknown_token(self, db):
        assert db.find_session_by_token("missing") is None

    def test_duplicate_token_fails_loudly(self, db, account):
        db.create_session(account.user_id, "token-1", _now() + timedelta(days=7))

        with pytest.raises(SessionStoreError):
            db.create_session(account.user_id, "token-1", _now() + timedelta(days=7))

    def test_expiry_must_follow_creation(self, db, account):
        now = _now()

        with pytest.raises(ValueError):
            db.create_session(account.user_id, "token-1", now, created_at=now)

    def test_multiple_devices_get_independent_sessions(self, db, account):
        db.create_session(account.user_id, "phone", _now() + timedelta(days=7))
        db.create_session(account.user_id, "laptop", _now() + timedelta(days=7))

        assert len(db.list_sessions(account.user_id)) == 2

    def test_revoke_is_visible_and_idempotent(self, db, account):
        db.create_session(account.user_id, "token-1", _now() + timedelta(days=7))

        assert db.revoke_session("token-1", account.user_id)
        assert db.find_session_by_token("token-1").state(_now()) is SessionState.REVOKED
        assert not db.revoke_session("token-1", account.user_id)

    def test_revoke_for_other_account_is_noop(self, db, account):
        db.create_session(account.user_id, "token-1", _now() + timedelta(days=7))

        assert not db.revoke_session("token-1", "someone-else")
        assert not db.revoke_session("missing", account.user_id)
        assert not db.find_session_by_token("token-1").is_revoked

    def test_expired_state(self, db, account):
        db.create_session(
            account.user_id, "old",
            expires_at=_now() - timedelta(days=1),
            created_at=_now() - timedelta(days=8),
        )

        assert db.find_session_by_token("old").state(_now()) is SessionState.EXPIRED

    def test_cleanup_only_removes_revoked_and_expired(self, db, account):
        past, long_ago = _now() - timedelta(days=1), _now() - timedelta(days=8)
        db.create_session(account.user_id, "expired-revoked", past, created_at=long_ago)
        db.create_session(account.user_id, "expired-only", past, created_at=long_ago)
        db.create_session(account.user_id, "revoked-only", _now() + timedelta(days=7))
        db.revoke_session("expired-revoked", account.user_id)
        db.revoke_session("revoked-only", account.user_id)

        assert db.cleanup_expired_sessions() == 1
        remaining = {s.token for s in db.list_sessions(account.user_id)}
        assert remaining == {"expired-only", "revoked-only"}


class TestLoginHistory:
    """Test the login audit trail."""

    def test_append_and_read(self, db, account):
        db.record_login_attempt(account.user_id, "10.0.0.1", "pytest", LoginStatus.FAILED, "invalid_password")
        db.record_login_attempt(account.user_id, "10.0.0.1", "pytest", LoginStatus.SUCCESS)

        history = db.get_login_history(account.user_id)

        assert [h.status for h in history] == [LoginStatus.FAILED, LoginStatus.SUCCESS]
        assert history[0].fail_reason == "invalid_password"

    def test_missing_ip_recorded_as_unknown(self, db, account):
        entry = db.record_login_attempt(account.user_id, None, None, LoginStatus.SUCCESS)

        assert entry.ip_address == "unknown"

    def test_record_logout_stamps_latest_success(self, db, account):
        db.record_login_attempt(account.user_id, "10.0.0.1", None, LoginStatus.SUCCESS)

        assert db.record_logout(account.user_id)
        assert db.get_login_history(account.user_id)[0].logout_at is not None
        assert not db.record_logout(account.user_id)
