"""
auth.py
User accounts and session: bcrypt hashing, login/logout, user management rules.
"""

from __future__ import annotations

import logging
from dataclasses import replace

import bcrypt

from db import RecordNotFound, RecordStore
from models import STORAGE_KEYS, USER_ROLES, User
from utils import new_id

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
_FORCE_PASSWORD_CHANGE_KEY = "socagent_force_password_change"


class AuthError(Exception):
    """A user-management rule was violated."""


def _to_bcrypt_secret(password: str) -> bytes:
    """
    bcrypt only uses the first 72 BYTES of the password.
    """
    return password.encode("utf-8")[:72]


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(_to_bcrypt_secret(password), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    return bcrypt.checkpw(_to_bcrypt_secret(password), password_hash.encode("utf-8"))


# ---------- user records ----------

def get_all_users(store: RecordStore) -> list[User]:
    return [User.from_dict(u) for u in store.list("users")]


def get_user(store: RecordStore, user_id: str) -> User:
    data = store.find("users", user_id)
    if data is None:
        raise RecordNotFound("users", user_id)
    return User.from_dict(data)


def get_user_by_email(store: RecordStore, email: str) -> User | None:
    needle = email.strip().lower()
    for user in get_all_users(store):
        if user.email.lower() == needle:
            return user
    return None


def _check_email_free(store: RecordStore, email: str, user_id: str | None = None) -> None:
    existing = get_user_by_email(store, email)
    if existing is not None and existing.id != user_id:
        raise AuthError(f"A user with email {email} already exists.")


def _check_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise AuthError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")


def _admin_count(store: RecordStore) -> int:
    return sum(1 for u in get_all_users(store) if u.role == "admin")


def init_users(store: RecordStore, default_admin_hash: str, admin_email: str = "admin@socagent.cz") -> None:
    """
    Seed an admin account when there are no users yet and force a password
    change on its first login.
    """
    if store.list("users"):
        if store.get_item(_FORCE_PASSWORD_CHANGE_KEY) is None:
            store.set_item(_FORCE_PASSWORD_CHANGE_KEY, "0")
        return
    admin = User(id=new_id(), email=admin_email, name="Administrátor", role="admin", password_hash=default_admin_hash)
    store.save("users", admin.to_dict())
    store.set_item(_FORCE_PASSWORD_CHANGE_KEY, "1")
    logger.info("Created default admin %s", admin_email)


def is_force_password_change(store: RecordStore) -> bool:
    return store.get_item(_FORCE_PASSWORD_CHANGE_KEY) == "1"


def clear_force_password_change(store: RecordStore) -> None:
    store.set_item(_FORCE_PASSWORD_CHANGE_KEY, "0")


def register_user(store: RecordStore, email: str, name: str, password: str, role: str = "worker") -> User:
    if role not in USER_ROLES:
        raise AuthError(f"Role must be one of: {', '.join(USER_ROLES)}.")
    if not email.strip() or not name.strip():
        raise AuthError("Email and name are required.")
    _check_password(password)
    with store.transaction():
        _check_email_free(store, email)
        user = User(id=new_id(), email=email.strip(), name=name.strip(), role=role,
                    password_hash=hash_password(password))
        saved = store.save("users", user.to_dict())
    logger.info("Registered %s user %s", role, user.email)
    return User.from_dict(saved)


def update_user(
    store: RecordStore,
    user_id: str,
    name: str | None = None,
    email: str | None = None,
    role: str | None = None,
) -> User:
    with store.transaction():
        user = get_user(store, user_id)
        changes: dict = {}
        if name is not None:
            if not name.strip():
                raise AuthError("Name is required.")
            changes["name"] = name.strip()
        if email is not None:
            if not email.strip():
                raise AuthError("Email is required.")
            _check_email_free(store, email, user_id=user_id)
            changes["email"] = email.strip()
        if role is not None:
            if role not in USER_ROLES:
                raise AuthError(f"Role must be one of: {', '.join(USER_ROLES)}.")
            if user.role == "admin" and role != "admin" and _admin_count(store) <= 1:
                logger.warning("Refused to demote the last admin %s", user.email)
                raise AuthError("Cannot remove the admin role from the last admin.")
            changes["role"] = role
        saved = store.save("users", replace(user, **changes).to_dict())
    return User.from_dict(saved)


def delete_user(store: RecordStore, user_id: str) -> None:
    with store.transaction():
        user = get_user(store, user_id)
        current = get_current_user(store)
        if current is not None and current.id == user_id:
            raise AuthError("You cannot delete your own account.")
        if user.role == "admin" and _admin_count(store) <= 1:
            logger.warning("Refused to delete the last admin %s", user.email)
            raise AuthError("Cannot delete the last admin.")
        store.remove("users", user_id)
    logger.info("Deleted user %s", user.email)


def change_password(store: RecordStore, user_id: str, new_password: str) -> None:
    _check_password(new_password)
    with store.transaction():
        user = get_user(store, user_id)
        store.save("users", replace(user, password_hash=hash_password(new_password)).to_dict())
        clear_force_password_change(store)
    logger.info("Password changed for %s", user.email)


# ---------- session ----------

def login(store: RecordStore, email: str, password: str) -> User | None:
    user = get_user_by_email(store, email)
    if user is None or not verify_password(password, user.password_hash):
        logger.warning("Failed login for %s", email)
        return None
    store.set_json(STORAGE_KEYS["session"], user.public_dict())
    logger.info("User %s logged in", user.email)
    return user


def logout(store: RecordStore) -> None:
    store.remove_item(STORAGE_KEYS["session"])


def get_current_user(store: RecordStore) -> User | None:
    data = store.get_json(STORAGE_KEYS["session"])
    return User.from_dict(data) if data else None


def is_authenticated(store: RecordStore) -> bool:
    return get_current_user(store) is not None


def has_role(store: RecordStore, role: str) -> bool:
    user = get_current_user(store)
    return user is not None and user.role == role
