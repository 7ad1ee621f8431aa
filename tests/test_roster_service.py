"""Roster — join/upsert, test-account removal and bot seeding.

Invariants:
    - At most one participant per external_id, whatever the join/reconnect order
    - Reconnect updates transport, name and avatar in place; omitted fields keep their values
    - Missing external_id is rejected explicitly and leaves the roster unchanged
"""

import pytest

from core.exceptions import MalformedJoin
from core.session_state import DrawSession, DrawStatus
from services import roster_service


def _prefix_predicate(external_id):
    return roster_service.is_test_account(external_id, ["bot-", "test-"])


def test_join_appends_new_participant():
    session = DrawSession("e1")

    participant = roster_service.join(session, "u1", "Alice", "a.png", "t1")

    assert session.participants == [participant]
    assert participant.display_name == "Alice"
    assert participant.transport_id == "t1"


def test_reconnect_with_new_name_keeps_single_entry():
    """u1 joins as Alice, drops, rejoins as Bob: one entry named Bob."""
    session = DrawSession("e1")
    roster_service.join(session, "u1", "Alice", "a.png", "t1")

    roster_service.join(session, "u1", "Bob", "b.png", "t2")

    assert len(session.participants) == 1
    entry = session.participants[0]
    assert entry.display_name == "Bob"
    assert entry.avatar_ref == "b.png"
    assert entry.transport_id == "t2"


def test_reconnect_without_profile_keeps_name_and_avatar():
    """A bare reconnect (no name, no avatar) only moves the transport."""
    session = DrawSession("e1")
    roster_service.join(session, "u1", "Alice", "a.png", "t1")

    roster_service.join(session, "u1", None, None, "t2")

    entry = session.participants[0]
    assert entry.display_name == "Alice"
    assert entry.avatar_ref == "a.png"
    assert entry.transport_id == "t2"


def test_join_is_idempotent():
    session = DrawSession("e1")
    for _ in range(3):
        roster_service.join(session, "u1", "Alice", "a.png", "t1")

    assert [p.external_id for p in session.participants] == ["u1"]


def test_interleaved_joins_keep_external_ids_unique():
    session = DrawSession("e1")
    for transport, external_id in [("t1", "u1"), ("t2", "u2"), ("t3", "u1"), ("t4", "u3"), ("t5", "u2")]:
        roster_service.join(session, external_id, None, None, transport)

    ids = [p.external_id for p in session.participants]
    assert ids == ["u1", "u2", "u3"]
    assert len(set(ids)) == len(ids)


@pytest.mark.parametrize("external_id", [None, "", "   "])
def test_join_without_external_id_is_rejected(external_id):
    session = DrawSession("e1")

    with pytest.raises(MalformedJoin):
        roster_service.join(session, external_id, "Ghost", "", "t1")

    assert session.participants == []


def test_missing_display_name_gets_generated_name():
    session = DrawSession("e1")

    first = roster_service.join(session, "u1", None, None, "t1")
    second = roster_service.join(session, "u2", "  ", None, "t2")

    assert first.display_name == "狐狸 1"
    assert second.display_name == "老鷹 1"


def test_remove_test_accounts_uses_prefix_convention():
    session = DrawSession("e1")
    for external_id in ["u1", "bot-1", "test-2", "u2", "robot-3"]:
        roster_service.join(session, external_id, external_id, "", None)

    removed = roster_service.remove_test_accounts(session, _prefix_predicate)

    assert removed == 2
    assert [p.external_id for p in session.participants] == ["u1", "u2", "robot-3"]


def test_removing_rolling_winner_cancels_draw():
    session = DrawSession("e1")
    bot = roster_service.join(session, "bot-1", "Bot", "", None)
    session.current_winner = bot
    session.status = DrawStatus.ROLLING
    generation = session.generation

    roster_service.remove_test_accounts(session, _prefix_predicate)

    assert session.status == DrawStatus.IDLE
    assert session.current_winner is None
    assert session.generation > generation


def test_add_test_accounts_creates_removable_bots():
    session = DrawSession("e1")
    roster_service.join(session, "u1", "Alice", "", "t1")

    added = roster_service.add_test_accounts(session, 3, "bot-")

    assert len(added) == 3
    assert len(session.participants) == 4
    assert all(p.external_id.startswith("bot-") for p in added)
    assert roster_service.remove_test_accounts(session, _prefix_predicate) == 3


def test_clear_empties_roster():
    session = DrawSession("e1")
    roster_service.join(session, "u1", "Alice", "", "t1")

    roster_service.clear(session)

    assert session.participants == []
