from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from loguru import logger

from .storage import KeyValueStore, load_json, save_json

USERS_KEY = "users"
MASTER_ADMIN_ID = "admin-default"
DEMO_PATIENT_ID = "patient-demo"


class Role(StrEnum):
    ADMIN = "admin"
    PATIENT = "patient"


@dataclass(frozen=True, slots=True)
class UserProfile:
    """Who a progress record belongs to. Credentials live outside the core."""

    user_id: str
    name: str
    role: Role = Role.PATIENT
    nickname: str = ""
    condition: str = "Amblyopia"
    amblyo_locked: bool = False
    strab_locked: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.user_id,
            "name": self.name,
            "role": str(self.role),
            "nickname": self.nickname,
            "condition": self.condition,
            "amblyoLocked": bool(self.amblyo_locked),
            "strabLocked": bool(self.strab_locked),
        }

    @classmethod
    def from_dict(cls, data: object) -> "UserProfile | None":
        if not isinstance(data, dict):
            return None
        user_id = str(data.get("id", "")).strip()
        if user_id == "":
            return None
        try:
            role = Role(str(data.get("role", Role.PATIENT)))
        except ValueError:
            role = Role.PATIENT
        name = str(data.get("name", "")).strip() or user_id
        return cls(
            user_id=user_id,
            name=name,
            role=role,
            nickname=str(data.get("nickname", "")),
            condition=str(data.get("condition", "Amblyopia")),
            amblyo_locked=bool(data.get("amblyoLocked", False)),
            strab_locked=bool(data.get("strabLocked", True)),
        )


DEFAULT_ACCOUNTS: tuple[UserProfile, ...] = (
    UserProfile(user_id=MASTER_ADMIN_ID, name="Administrator", role=Role.ADMIN),
    UserProfile(user_id=DEMO_PATIENT_ID, name="Demo Patient", nickname="Demo"),
)


def load_users(store: KeyValueStore) -> list[UserProfile]:
    raw = load_json(store, USERS_KEY, [])
    if not isinstance(raw, list):
        logger.warning("User list under {!r} is not a list; ignoring it", USERS_KEY)
        return []
    users: list[UserProfile] = []
    for item in raw:
        user = UserProfile.from_dict(item)
        if user is not None:
            users.append(user)
    return users


def save_users(store: KeyValueStore, users: list[UserProfile]) -> None:
    save_json(store, USERS_KEY, [u.to_dict() for u in users])


def seed_default_accounts(store: KeyValueStore) -> list[UserProfile]:
    """Make sure the master admin and the demo patient exist.

    Safe to call on every start: existing accounts are left untouched and
    only missing defaults are appended.
    """

    users = load_users(store)
    known = {u.user_id for u in users}
    missing = [u for u in DEFAULT_ACCOUNTS if u.user_id not in known]
    if missing:
        users.extend(missing)
        save_users(store, users)
        logger.info("Seeded default accounts: {}", ", ".join(u.user_id for u in missing))
    return users


def find_user(users: list[UserProfile], user_id: str) -> UserProfile | None:
    return next((u for u in users if u.user_id == user_id), None)
