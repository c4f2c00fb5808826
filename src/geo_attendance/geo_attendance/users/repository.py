from __future__ import annotations

from typing import Optional, Protocol, Sequence

from ..core.enums import Role
from .model import Profile


class ProfileRepository(Protocol):
    """Read-only access to roster profiles.

    Note (DIP): services depend on this interface, never on a concrete store.
    """

    def get_by_id(self, user_id: str) -> Optional[Profile]:
        raise NotImplementedError

    def list_by_role(self, role: Role) -> Sequence[Profile]:
        raise NotImplementedError
