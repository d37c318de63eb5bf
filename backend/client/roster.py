"""
Client-side roster view.

The server's user-list is authoritative for membership; ptt-status events
are a separate overlay of talk flags. The two are kept in independent maps
and joined only when read.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class RosterEntry:
    participant_id: str
    name: str
    is_talking: bool
    is_self: bool = False


class ClientRoster:

    def __init__(self) -> None:
        self._members: dict[str, str] = {}
        self._talking: dict[str, bool] = {}
        # Our own id on the current connection, from the session event
        self.self_id: str | None = None

    def update_members(self, users: Any) -> None:
        """
        Replace membership with a user-list payload.

        Talk flags survive for ids still present; flags of departed ids
        are forgotten so a rejoining id starts silent.
        """
        members: dict[str, str] = {}
        if isinstance(users, list):
            for user in users:
                if isinstance(user, dict) and isinstance(user.get("id"), str):
                    members[user["id"]] = str(user.get("name", user["id"]))

        self._members = members
        self._talking = {
            pid: flag for pid, flag in self._talking.items() if pid in members
        }

    def set_talking(self, participant_id: Any, is_talking: Any) -> bool:
        """
        Apply a ptt-status overlay. Unknown ids are ignored.

        Returns True if the flag was applied.
        """
        if not isinstance(participant_id, str) or participant_id not in self._members:
            return False
        self._talking[participant_id] = bool(is_talking)
        return True

    def entries(self) -> list[RosterEntry]:
        """Membership joined with talk flags, in server order."""
        return [
            RosterEntry(pid, name, self._talking.get(pid, False), pid == self.self_id)
            for pid, name in self._members.items()
        ]

    def talkers(self) -> list[str]:
        """Names of the other participants currently talking."""
        return [e.name for e in self.entries() if e.is_talking and not e.is_self]

    def __len__(self) -> int:
        return len(self._members)
