"""Pending collaboration invites, kept apart from the note tree."""
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from notesync.models.schema import Invite

logger = logging.getLogger(__name__)


class InviteStore:
    """Flat list of pending invites.

    Refreshed wholesale on demand; accept and reject remove single entries.
    At most one invite is held per (note, inviter) pair.
    """

    def __init__(self, invites: Iterable[Invite] = ()):
        self._invites: Dict[Tuple[str, str], Invite] = {}
        self.replace_all(invites)

    @property
    def invites(self) -> List[Invite]:
        return list(self._invites.values())

    def replace_all(self, invites: Iterable[Invite]) -> None:
        self._invites = {}
        for invite in invites:
            if invite.key in self._invites:
                logger.debug(f"Duplicate invite {invite.key} ignored")
                continue
            self._invites[invite.key] = invite

    def get(self, note_id: str, inviter_id: str) -> Optional[Invite]:
        return self._invites.get((note_id, inviter_id))

    def remove(self, note_id: str, inviter_id: str) -> Optional[Invite]:
        return self._invites.pop((note_id, inviter_id), None)

    def __len__(self) -> int:
        return len(self._invites)

    def __contains__(self, key: object) -> bool:
        return key in self._invites
