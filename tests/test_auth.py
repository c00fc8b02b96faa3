"""Tests for user accounts, sessions and admin safeguards."""

from __future__ import annotations

import pytest

import auth
from db import RecordNotFound, RecordStore


@pytest.fixture
def seeded(store: RecordStore) -> RecordStore:
    auth.init_users(store, auth.hash_password("admin123"))
    return store


def _admin(store: RecordStore):
    return auth.get_user_by_email(store, "admin@socagent.cz")


class TestPasswords:
    def test_hash_and_verify(self):
        hashed = auth.hash_password("secret1")
        assert hashed != "secret1"
        assert auth.verify_password("secret1", hashed)
        assert not auth.verify_password("secret2", hashed)

    def test_long_password_truncated_to_72_bytes(self):
        hashed = auth.hash_password("x" * 100)
        assert auth.verify_password("x" * 72 + "different tail", hashed)

    def test_empty_hash_never_verifies(self):
        assert not auth.verify_password("anything", "")


class TestInitUsers:
    def test_seeds_admin_and_forces_password_change(self, seeded: RecordStore):
        users = auth.get_all_users(seeded)
        assert [(u.email, u.role) for u in users] == [("admin@socagent.cz", "admin")]
        assert auth.is_force_password_change(seeded)

    def test_idempotent(self, seeded: RecordStore):
        auth.init_users(seeded, auth.hash_password("other"))
        assert len(auth.get_all_users(seeded)) == 1


class TestSession:
    def test_login_success(self, seeded: RecordStore):
        user = auth.login(seeded, "Admin@SocAgent.cz", "admin123")
        assert user is not None
        assert auth.is_authenticated(seeded)
        assert auth.has_role(seeded, "admin")
        assert auth.get_current_user(seeded).password_hash == ""

    def test_login_wrong_password(self, seeded: RecordStore):
        assert auth.login(seeded, "admin@socagent.cz", "nope") is None
        assert not auth.is_authenticated(seeded)

    def test_login_unknown_email(self, seeded: RecordStore):
        assert auth.login(seeded, "who@socagent.cz", "admin123") is None

    def test_logout(self, seeded: RecordStore):
        auth.login(seeded, "admin@socagent.cz", "admin123")
        auth.logout(seeded)
        assert auth.get_current_user(seeded) is None


class TestUserManagement:
    def test_register_worker(self, seeded: RecordStore):
        user = auth.register_user(seeded, "karel@socagent.cz", "Karel Novák", "heslo123")
        assert user.role == "worker"
        assert auth.login(seeded, "karel@socagent.cz", "heslo123") is not None

    def test_register_duplicate_email(self, seeded: RecordStore):
        with pytest.raises(auth.AuthError):
            auth.register_user(seeded, "ADMIN@socagent.cz", "Dup", "heslo123")

    def test_register_short_password(self, seeded: RecordStore):
        with pytest.raises(auth.AuthError):
            auth.register_user(seeded, "new@socagent.cz", "New", "123")

    def test_register_unknown_role(self, seeded: RecordStore):
        with pytest.raises(auth.AuthError):
            auth.register_user(seeded, "new@socagent.cz", "New", "heslo123", role="owner")

    def test_delete_last_admin_rejected(self, seeded: RecordStore):
        with pytest.raises(auth.AuthError):
            auth.delete_user(seeded, _admin(seeded).id)
        assert len(auth.get_all_users(seeded)) == 1

    def test_delete_admin_when_another_exists(self, seeded: RecordStore):
        auth.register_user(seeded, "boss@socagent.cz", "Boss", "heslo123", role="admin")
        auth.delete_user(seeded, _admin(seeded).id)
        assert [u.email for u in auth.get_all_users(seeded)] == ["boss@socagent.cz"]

    def test_delete_self_rejected(self, seeded: RecordStore):
        worker = auth.register_user(seeded, "karel@socagent.cz", "Karel", "heslo123")
        auth.login(seeded, "karel@socagent.cz", "heslo123")
        with pytest.raises(auth.AuthError):
            auth.delete_user(seeded, worker.id)

    def test_delete_unknown(self, seeded: RecordStore):
        with pytest.raises(RecordNotFound):
            auth.delete_user(seeded, "ghost")

    def test_demote_last_admin_rejected(self, seeded: RecordStore):
        with pytest.raises(auth.AuthError):
            auth.update_user(seeded, _admin(seeded).id, role="worker")

    def test_update_user(self, seeded: RecordStore):
        worker = auth.register_user(seeded, "karel@socagent.cz", "Karel", "heslo123")
        updated = auth.update_user(seeded, worker.id, name="Karel Novák", role="admin")
        assert updated.name == "Karel Novák"
        assert updated.role == "admin"
        assert updated.password_hash == worker.password_hash

    def test_update_email_taken(self, seeded: RecordStore):
        worker = auth.register_user(seeded, "karel@socagent.cz", "Karel", "heslo123")
        with pytest.raises(auth.AuthError):
            auth.update_user(seeded, worker.id, email="admin@socagent.cz")

    def test_change_password_clears_flag(self, seeded: RecordStore):
        admin = _admin(seeded)
        auth.change_password(seeded, admin.id, "novéheslo")
        assert not auth.is_force_password_change(seeded)
        assert auth.login(seeded, "admin@socagent.cz", "novéheslo") is not None
        assert auth.login(seeded, "admin@socagent.cz", "admin123") is None
