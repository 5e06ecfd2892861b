"""Actor resolution for audit attribution."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from dictionary_editor.db import SYSTEM_ACTOR

_EMAIL_CLAIMS = ("email",)
_USERNAME_CLAIMS = ("cognito:username", "username", "preferred_username")
_GROUP_CLAIMS = ("cognito:groups", "groups")


@dataclass(frozen=True, slots=True)
class Principal:
    """An authenticated identity as handed over by the identity provider.

    ``groups`` is carried for the caller's authorization checks; the editor
    itself never looks at it.
    """

    name: str | None = None
    email: str | None = None
    username: str | None = None
    groups: tuple[str, ...] = ()

    @classmethod
    def from_claims(
        cls, claims: Mapping[str, Any], name: str | None = None
    ) -> Principal:
        """Build a principal from an OIDC-style claims mapping."""
        return cls(
            name=name if name is not None else _first_claim(claims, ("sub",)),
            email=_first_claim(claims, _EMAIL_CLAIMS),
            username=_first_claim(claims, _USERNAME_CLAIMS),
            groups=_groups(claims),
        )


def resolve_actor(principal: Principal | None) -> str:
    """Return the identity to attribute a mutation to.

    Preference: email, then username, then the principal's name, then
    ``"system"``. Never raises and never returns a blank string.
    """
    if principal is None:
        return SYSTEM_ACTOR
    for candidate in (principal.email, principal.username, principal.name):
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return SYSTEM_ACTOR


def _first_claim(claims: Mapping[str, Any], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = claims.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _groups(claims: Mapping[str, Any]) -> tuple[str, ...]:
    for key in _GROUP_CLAIMS:
        raw = claims.get(key)
        if raw is None:
            continue
        if isinstance(raw, str):
            return (raw,)
        if isinstance(raw, (list, tuple, set, frozenset)):
            return tuple(str(g) for g in raw)
    return ()
