"""
Waiting queue and matcher.

The queue is an ordered list of people looking for a partner. A newcomer is
compared against the queue in arrival order and paired with the first entry
that fits:

1. a targeted pair (either side asked for the other by id) always fits,
2. an entry that is reserved for somebody else is skipped,
3. otherwise the two fit when one can teach something the other wants to learn.

Skills are compared case-insensitively after trimming; there is no fuzzy
matching and no ranking.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, FrozenSet, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)


def normalize_skills(skills: Optional[Iterable[str]]) -> FrozenSet[str]:
    """Lower-case and trim each tag, dropping blanks."""
    if not skills:
        return frozenset()
    return frozenset(s.strip().lower() for s in skills if isinstance(s, str) and s.strip())


def is_skill_compatible(
    teach_a: FrozenSet[str],
    learn_a: FrozenSet[str],
    teach_b: FrozenSet[str],
    learn_b: FrozenSet[str],
) -> bool:
    """True when A wants something B teaches, or B wants something A teaches."""
    return bool(learn_a & teach_b) or bool(teach_a & learn_b)


@dataclass
class WaitingEntry:
    connection_id: str
    user_id: int
    username: str
    teach: FrozenSet[str]
    learn: FrozenSet[str]
    rating: float = 0.0
    target_user_id: Optional[int] = None
    # As typed by the user, for display in invites
    skills_teach: List[str] = field(default_factory=list)
    skills_learn: List[str] = field(default_factory=list)

    @classmethod
    def for_user(cls, user, connection_id: str, target_user_id: Optional[int] = None):
        return cls(
            connection_id=connection_id,
            user_id=user.id,
            username=user.username,
            teach=normalize_skills(user.skills_teach),
            learn=normalize_skills(user.skills_learn),
            rating=user.rating or 0.0,
            target_user_id=target_user_id,
            skills_teach=list(user.skills_teach or []),
            skills_learn=list(user.skills_learn or []),
        )

    @property
    def is_targeting(self) -> bool:
        return self.target_user_id is not None

    def compatible_with(self, other: "WaitingEntry") -> bool:
        return is_skill_compatible(self.teach, self.learn, other.teach, other.learn)

    def public_profile(self) -> dict:
        return {"username": self.username, "id": self.user_id, "rating": self.rating, "isOnline": True}


def is_targeted_pair(a: WaitingEntry, b: WaitingEntry) -> bool:
    return (a.target_user_id is not None and a.target_user_id == b.user_id) or (
        b.target_user_id is not None and b.target_user_id == a.user_id
    )


def is_match(candidate: WaitingEntry, waiting: WaitingEntry) -> bool:
    if is_targeted_pair(candidate, waiting):
        return True
    # Someone holding out for a specific partner never takes a skill match
    if candidate.is_targeting or waiting.is_targeting:
        return False
    return candidate.compatible_with(waiting)


class MatchQueue:
    """
    Owns the waiting list. Every mutation goes through this class; the async
    methods hold ``lock`` so a scan and the mutation that follows it cannot
    interleave with another request on the event loop.
    """

    def __init__(self):
        self._entries: List[WaitingEntry] = []
        self.lock = asyncio.Lock()

    def __len__(self):
        return len(self._entries)

    def __contains__(self, user_id) -> bool:
        return any(e.user_id == user_id for e in self._entries)

    def entries(self) -> Tuple[WaitingEntry, ...]:
        return tuple(self._entries)

    def user_ids(self) -> FrozenSet[int]:
        return frozenset(e.user_id for e in self._entries)

    def _remove_where(self, predicate) -> Optional[WaitingEntry]:
        for i, entry in enumerate(self._entries):
            if predicate(entry):
                return self._entries.pop(i)
        return None

    def remove_user(self, user_id: int) -> Optional[WaitingEntry]:
        return self._remove_where(lambda e: e.user_id == user_id)

    def remove_connection(self, connection_id: str) -> Optional[WaitingEntry]:
        return self._remove_where(lambda e: e.connection_id == connection_id)

    def find_partner(self, candidate: WaitingEntry) -> Optional[WaitingEntry]:
        """
        First waiting entry, in arrival order, that pairs with the candidate.
        Each entry is judged on its own: targeting, then reservation, then skills.
        """
        for entry in self._entries:
            if entry.user_id != candidate.user_id and is_match(candidate, entry):
                return entry
        return None

    def submit_nowait(self, candidate: WaitingEntry, on_match: Optional[Callable] = None):
        """
        Pairs the candidate with the first fitting entry or queues it.

        Any previous entry for the candidate's user is replaced. When a partner
        is found, ``on_match(partner)`` runs before the queue is touched; if it
        raises, the queue is left exactly as it was.

        Returns ``(partner, on_match result)`` or ``(None, None)`` when queued.
        """
        partner = self.find_partner(candidate)
        if partner is None:
            self.remove_user(candidate.user_id)
            self._entries.append(candidate)
            logger.info(f"[MATCH] No match for {candidate.username}, queued. Queue size: {len(self._entries)}")
            return None, None

        outcome = on_match(partner) if on_match is not None else None
        self.remove_user(candidate.user_id)
        self._entries.remove(partner)
        kind = "Targeted" if is_targeted_pair(candidate, partner) else "Skill"
        logger.info(f"[MATCH] {kind} match: {candidate.username} <--> {partner.username}")
        return partner, outcome

    async def submit(self, candidate: WaitingEntry, on_match: Optional[Callable] = None):
        async with self.lock:
            return self.submit_nowait(candidate, on_match)

    async def cancel(self, connection_id: str) -> Optional[WaitingEntry]:
        """Removes whatever entry this connection has queued, if any."""
        async with self.lock:
            return self.remove_connection(connection_id)
