"""Session model describing the signed-in user.

The session is an immutable value: profile updates produce a new instance, so
anything holding a reference keeps a consistent snapshot.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional

CANDIDATE = "candidate"
RECRUITER = "recruiter"
ROLES = (CANDIDATE, RECRUITER)

# Backend / persisted keys accepted for each field.
_ALIASES = {
    "user_id": ("user_id", "id", "_id", "userId"),
    "display_name": ("display_name", "name", "fullName", "displayName"),
    "email": ("email",),
    "role": ("role",),
    "profile_completeness": ("profile_completeness", "profileCompleteness"),
    "email_verified": ("email_verified", "isEmailVerified", "emailVerified"),
    "company_verified": ("company_verified", "isCompanyVerified", "companyVerified"),
    "first_name": ("first_name", "firstName"),
    "last_name": ("last_name", "lastName"),
    "company": ("company", "companyDisplayName"),
    "position": ("position",),
}


def _pick(data: Mapping[str, Any], field_name: str) -> Any:
    for key in _ALIASES.get(field_name, (field_name,)):
        if key in data:
            return data[key]
    return None


def normalise_profile(data: Mapping[str, Any], *, role: Optional[str] = None) -> Dict[str, Any]:
    """Map a backend or persisted user record onto :class:`Session` field names."""

    profile: Dict[str, Any] = {}
    for name in _ALIASES:
        value = _pick(data, name)
        if value is not None:
            profile[name] = value
    if role is not None:
        profile["role"] = role
    if "display_name" not in profile:
        full = " ".join(part for part in (profile.get("first_name"), profile.get("last_name")) if part)
        if full:
            profile["display_name"] = full
    company = profile.get("company")
    if isinstance(company, Mapping):
        profile["company"] = company.get("name")
    return profile


@dataclass(frozen=True)
class Session:
    """The authenticated identity and role of the current user."""

    user_id: str
    email: str
    role: str
    auth_token: str
    display_name: str = ""
    profile_completeness: int = 0
    email_verified: bool = False
    company_verified: Optional[bool] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company: Optional[str] = None
    position: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.auth_token:
            raise ValueError("A session requires a non-empty auth token")
        if self.role not in ROLES:
            raise ValueError(f"Unknown role {self.role!r}; expected one of {', '.join(ROLES)}")

    @property
    def is_candidate(self) -> bool:
        return self.role == CANDIDATE

    @property
    def is_recruiter(self) -> bool:
        return self.role == RECRUITER

    def merged(self, partial: Mapping[str, Any]) -> "Session":
        """Shallow-merge ``partial`` into a new session, keeping the token."""

        changes = normalise_profile(partial)
        changes.pop("user_id", None)
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Return the persisted profile record; the token is stored separately."""

        data = asdict(self)
        data.pop("auth_token")
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], token: str) -> "Session":
        """Hydrate a :class:`Session` from a profile record and token."""

        profile = normalise_profile(data)
        known = {f.name for f in fields(cls)}
        kwargs = {key: value for key, value in profile.items() if key in known}
        kwargs["user_id"] = str(kwargs.get("user_id") or "")
        kwargs.setdefault("email", "")
        kwargs.setdefault("role", "")
        kwargs["profile_completeness"] = int(kwargs.get("profile_completeness") or 0)
        kwargs["email_verified"] = bool(kwargs.get("email_verified", False))
        return cls(auth_token=token, **kwargs)
