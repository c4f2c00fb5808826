from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, FrozenSet, Mapping, Optional

from ..core.enums import Role

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Profile:
    """Domain entity: a roster profile, already normalized.

    Stored documents disagree on ``role`` vs ``roles`` and string vs list; that is
    sorted out once in ``profile_from_document`` so the core never sniffs types.
    """

    user_id: str
    name: str
    roles: FrozenSet[Role] = field(default_factory=frozenset)
    email: Optional[str] = None

    def has_role(self, role: Role) -> bool:
        return role in self.roles

    def to_dict(self) -> dict:
        return {
            "id": self.user_id,
            "name": self.name,
            "email": self.email,
            "roles": sorted(r.value for r in self.roles),
        }


def normalize_roles(raw: Any) -> FrozenSet[Role]:
    """Accept a role string, comma separated string, JSON array string or list."""

    if raw is None:
        return frozenset()

    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")

    if isinstance(raw, str):
        text = raw.strip()
        if text.startswith("["):
            try:
                raw = json.loads(text)
            except ValueError:
                raw = text.strip("[]").replace('"', "").split(",")
        else:
            raw = text.split(",")

    roles = set()
    for item in raw:
        value = str(item).strip().lower()
        if not value:
            continue
        try:
            roles.add(Role(value))
        except ValueError:
            logger.debug("ignoring unknown role %r", value)
    return frozenset(roles)


def profile_from_document(doc: Mapping[str, Any]) -> Profile:
    user_id = doc.get("user_id") or doc.get("$id") or doc.get("id")
    raw_roles = doc.get("roles") if doc.get("roles") is not None else doc.get("role")
    return Profile(
        user_id=str(user_id),
        name=str(doc.get("name") or doc.get("full_name") or ""),
        roles=normalize_roles(raw_roles),
        email=doc.get("email"),
    )
