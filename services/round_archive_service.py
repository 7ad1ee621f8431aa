"""
Round archive service.

Owns round boundaries of a draw session:

- new_round: archive the current round's winners, keep the roster
- clear_history: forget every winner (current and archived), keep the roster
- full_reset: empty the roster; history is kept unless the caller asks otherwise

Every operation also cancels an unrevealed draw through
``DrawSession.invalidate_draw`` so a pending reveal cannot write into the
new round.
"""
import logging
import uuid
from typing import Optional

from core.exceptions import RoundNotFound
from core.session_state import DrawSession, RoundRecord, utcnow
from services import roster_service

logger = logging.getLogger(__name__)


def new_round(session: DrawSession) -> Optional[RoundRecord]:
    """
    Close the current round.

    A RoundRecord is appended only when the round produced winners; an
    empty round just returns the session to IDLE. Participants are untouched.
    """
    record = None
    if session.current_round_winners:
        session.round_counter += 1
        record = RoundRecord(
            id=uuid.uuid4().hex,
            round_number=session.round_counter,
            created_at=utcnow(),
            winners=[p.snapshot_copy() for p in session.current_round_winners],
        )
        session.past_rounds.append(record)
        logger.info(
            f"Archived round {record.round_number} of session {session.session_id} "
            f"with {len(record.winners)} winners"
        )

    session.current_round_winners = []
    session.invalidate_draw()
    return record


def clear_history(session: DrawSession) -> None:
    """Drop current winners and every archived round. Irreversible."""
    session.current_round_winners = []
    session.past_rounds = []
    session.invalidate_draw()
    logger.info(f"Cleared winner history of session {session.session_id}")


def full_reset(session: DrawSession, clear_history: bool = False) -> None:
    session.invalidate_draw()
    roster_service.clear(session)
    if clear_history:
        session.current_round_winners = []
        session.past_rounds = []
    logger.info(
        f"Full reset of session {session.session_id} (history {'cleared' if clear_history else 'kept'})"
    )


def set_round_archived(session: DrawSession, round_id: str, archived: bool) -> RoundRecord:
    """
    Toggle the archived (hidden from display) flag of a past round.

    Archived rounds still count for eligibility.
    """
    for record in session.past_rounds:
        if record.id == round_id:
            record.archived = archived
            return record
    raise RoundNotFound(round_id)
