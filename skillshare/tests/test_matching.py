import pytest

from skillshare.services.matching import (
    MatchQueue,
    WaitingEntry,
    is_skill_compatible,
    normalize_skills,
)
from skillshare.tests.helpers import run


def entry(user_id, teach=(), learn=(), target=None, connection_id=None):
    return WaitingEntry(
        connection_id=connection_id or f"conn-{user_id}",
        user_id=user_id,
        username=f"user{user_id}",
        teach=normalize_skills(teach),
        learn=normalize_skills(learn),
        target_user_id=target,
        skills_teach=list(teach),
        skills_learn=list(learn),
    )


def test_normalize_skills_trims_lowercases_and_drops_blanks():
    assert normalize_skills(["  Python ", "GUITAR", "", "   "]) == frozenset({"python", "guitar"})
    assert normalize_skills(None) == frozenset()


def test_compatibility_is_either_direction():
    py = frozenset({"python"})
    none = frozenset()
    assert is_skill_compatible(py, none, none, py)
    assert is_skill_compatible(none, py, py, none)
    assert not is_skill_compatible(py, none, py, none)


def test_case_insensitive_skill_match():
    queue = MatchQueue()
    a = entry(1, teach=["python"])
    b = entry(2, learn=["Python "])

    assert queue.submit_nowait(a) == (None, None)
    partner, _ = queue.submit_nowait(b)

    assert partner is a
    assert len(queue) == 0


def test_disjoint_skills_both_stay_queued():
    queue = MatchQueue()
    queue.submit_nowait(entry(1, teach=["guitar"]))
    queue.submit_nowait(entry(2, teach=["driving"]))

    assert [e.user_id for e in queue.entries()] == [1, 2]


def test_targeted_match_ignores_skills():
    queue = MatchQueue()
    queue.submit_nowait(entry(1, teach=["guitar"], learn=["chess"]))

    partner, _ = queue.submit_nowait(entry(2, teach=["driving"], learn=["cooking"], target=1))
    assert partner.user_id == 1


def test_queued_user_targeting_the_requester_matches():
    queue = MatchQueue()
    queue.submit_nowait(entry(1, teach=["guitar"], target=2))

    partner, _ = queue.submit_nowait(entry(2, teach=["driving"]))
    assert partner.user_id == 1


def test_entry_reserved_for_someone_else_is_skipped():
    queue = MatchQueue()
    queue.submit_nowait(entry(1, teach=["python"], target=99))

    partner, _ = queue.submit_nowait(entry(2, learn=["python"]))
    assert partner is None
    assert [e.user_id for e in queue.entries()] == [1, 2]


def test_targeting_requester_does_not_take_skill_matches():
    queue = MatchQueue()
    queue.submit_nowait(entry(1, teach=["python"]))

    partner, _ = queue.submit_nowait(entry(2, learn=["python"], target=42))
    assert partner is None
    assert len(queue) == 2


def test_first_compatible_entry_wins():
    queue = MatchQueue()
    queue.submit_nowait(entry(1, teach=["python"]))
    queue.submit_nowait(entry(2, teach=["python", "rust"]))

    partner, _ = queue.submit_nowait(entry(3, learn=["python", "rust"]))
    assert partner.user_id == 1
    assert [e.user_id for e in queue.entries()] == [2]


def test_earlier_skill_match_wins_over_later_targeting_entry():
    queue = MatchQueue()
    queue.submit_nowait(entry(1, teach=["python"]))
    queue.submit_nowait(entry(2, teach=["knitting"], target=3))

    partner, _ = queue.submit_nowait(entry(3, learn=["python"]))
    assert partner.user_id == 1
    assert [e.user_id for e in queue.entries()] == [2]
    assert queue.entries()[0].target_user_id == 3


def test_rerequest_replaces_previous_entry():
    queue = MatchQueue()
    queue.submit_nowait(entry(1, teach=["guitar"], connection_id="old"))
    queue.submit_nowait(entry(2, teach=["driving"]))
    queue.submit_nowait(entry(1, teach=["guitar"], connection_id="new"))

    entries = queue.entries()
    assert [e.user_id for e in entries] == [2, 1]
    assert entries[1].connection_id == "new"


def test_user_never_matches_own_stale_entry():
    queue = MatchQueue()
    queue.submit_nowait(entry(1, teach=["python"], learn=["python"]))

    partner, _ = queue.submit_nowait(entry(1, teach=["python"], learn=["python"]))
    assert partner is None
    assert len(queue) == 1


def test_failed_match_callback_leaves_queue_untouched():
    queue = MatchQueue()
    waiting = entry(1, teach=["python"])
    queue.submit_nowait(waiting)
    stale = entry(2, teach=["go"])
    queue.submit_nowait(stale)

    def boom(partner):
        raise RuntimeError("store unavailable")

    with pytest.raises(RuntimeError):
        queue.submit_nowait(entry(2, learn=["python"]), on_match=boom)

    assert queue.entries() == (waiting, stale)


def test_match_callback_result_is_returned():
    queue = MatchQueue()
    queue.submit_nowait(entry(1, teach=["python"]))

    partner, room = run(queue.submit(entry(2, learn=["python"]), on_match=lambda p: f"room-{p.user_id}"))
    assert partner.user_id == 1
    assert room == "room-1"


def test_cancel_removes_only_that_connection():
    queue = MatchQueue()
    queue.submit_nowait(entry(1, teach=["a"], connection_id="c1"))
    queue.submit_nowait(entry(2, teach=["b"], connection_id="c2"))

    removed = run(queue.cancel("c1"))
    assert removed.user_id == 1
    assert run(queue.cancel("c1")) is None
    assert 2 in queue and 1 not in queue
