"""Role resolution for post-login routing.

Maps a profile's role set onto a primary role, the login modes a user may
choose between, and the landing route.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum

ADMIN_ROLES = frozenset({"admin", "superadmin"})

# Highest priority first
PRIMARY_ROLE_PRIORITY = (
    "admin",
    "superadmin",
    "wakil_dekan",
    "kaprodi",
    "dosen",
    "pembimbing_lapangan",
    "mahasiswa",
)
DEFAULT_PRIMARY_ROLE = "mahasiswa"

STUDENT_MODE_ROLES = frozenset({"mahasiswa", "alumni"})
LECTURER_MODE_ROLES = frozenset({"dosen", "lektor", "kaprodi", "wakil_dekan"})

ROUTE_PRIORITY = (
    (ADMIN_ROLES, "/admin"),
    (frozenset({"wakil_dekan"}), "/wakil-dekan"),
    (frozenset({"kaprodi"}), "/kaprodi"),
    (frozenset({"dosen", "lektor"}), "/dosen"),
    (frozenset({"pembimbing_lapangan"}), "/mentor"),
    (STUDENT_MODE_ROLES, "/mahasiswa"),
)
FALLBACK_ROUTE = "/"


class LoginMode(str, Enum):
    """Persona a multi-role account signs in as."""

    STUDENT = "student"
    LECTURER = "lecturer"

    @property
    def route(self) -> str:
        return "/mahasiswa" if self is LoginMode.STUDENT else "/dosen"


def normalize_roles(roles: Iterable[object] | None) -> list[str]:
    return [str(role).lower() for role in roles or ()]


def has_admin_role(roles: Iterable[object] | None) -> bool:
    return not ADMIN_ROLES.isdisjoint(normalize_roles(roles))


def pick_primary_role(roles: Iterable[object] | None) -> str:
    """Return the highest-priority known role, defaulting to ``mahasiswa``."""
    normalized = set(normalize_roles(roles))
    for role in PRIMARY_ROLE_PRIORITY:
        if role in normalized:
            return role
    return DEFAULT_PRIMARY_ROLE


def available_login_modes(roles: Iterable[object] | None) -> list[LoginMode]:
    """Login modes a role set qualifies for, student first."""
    normalized = set(normalize_roles(roles))
    modes = []
    if not STUDENT_MODE_ROLES.isdisjoint(normalized):
        modes.append(LoginMode.STUDENT)
    if not LECTURER_MODE_ROLES.isdisjoint(normalized):
        modes.append(LoginMode.LECTURER)
    return modes


def redirect_path_for_roles(roles: Iterable[object] | None) -> str:
    """Landing route for a role set, by fixed priority."""
    normalized = set(normalize_roles(roles))
    for route_roles, route in ROUTE_PRIORITY:
        if not route_roles.isdisjoint(normalized):
            return route
    return FALLBACK_ROUTE
