"""Session state machine: lobby -> revealed -> cleared -> lobby.

Each function is one stateless request against the store. Guards read the
current row, then a single UPDATE applies the transition. The read and the
write are not wrapped in a transaction, so two overlapping host actions can
both pass their guards; the last write wins. ``step_reveal`` can instead
make its write conditional on the index it read (``compare_and_swap=True``),
which is the upgrade path for hosts tapping from several devices at once.
"""
import enum
import logging
from dataclasses import dataclass

from namegame.errors import (
    ConflictError,
    Forbidden,
    InvalidState,
    PreconditionFailed,
    ResourceExhausted,
    ValidationError,
)
from .authorization import require_host
from .tokens import (
    DEFAULT_CODE_LENGTH,
    digest,
    generate_bearer_token,
    generate_session_code,
    normalize_code,
    shuffled,
)

logger = logging.getLogger(__name__)

SUBMISSION_MIN_LENGTH = 2
SUBMISSION_MAX_LENGTH = 80
DISPLAY_NAME_MAX_LENGTH = 40


class SessionStatus(str, enum.Enum):
    LOBBY = 'lobby'
    REVEALED = 'revealed'
    CLEARED = 'cleared'


class Direction(str, enum.Enum):
    NEXT = 'next'
    PREV = 'prev'
    RESET = 'reset'

    @classmethod
    def parse(cls, raw):
        try:
            return cls(str(raw or '').strip().lower())
        except ValueError:
            raise ValidationError('Direction must be one of next, prev, reset') from None


@dataclass(frozen=True)
class CreatedSession:
    session_id: str
    code: str
    host_token: str


@dataclass(frozen=True)
class JoinedSession:
    session_id: str
    member_id: str


def create_session(store, max_attempts=10, code_length=DEFAULT_CODE_LENGTH) -> CreatedSession:
    for attempt in range(1, max_attempts + 1):
        code = generate_session_code(code_length)
        host_token = generate_bearer_token()
        try:
            session_id = store.create_session(code, digest(host_token))
        except ConflictError:
            logger.info(f"[create] code collision code={code} attempt={attempt}")
            continue
        logger.info(f"[create] session={session_id} code={code}")
        return CreatedSession(session_id=session_id, code=code, host_token=host_token)
    logger.warning(f"[create] gave up after {max_attempts} code collisions")
    raise ResourceExhausted()


def join(store, code, display_name, client_id, code_length=DEFAULT_CODE_LENGTH) -> JoinedSession:
    """Add a member, or rename the existing member for this device."""
    name = str(display_name or '').strip()
    if not name or not client_id:
        raise ValidationError('Missing fields')
    if len(name) > DISPLAY_NAME_MAX_LENGTH:
        raise ValidationError(f'Name must be at most {DISPLAY_NAME_MAX_LENGTH} characters.')
    gs = store.get_session_by_code(normalize_code(code, code_length))
    member_id = store.upsert_member(gs.id, client_id, name)
    logger.info(f"[join] session={gs.id} member={member_id}")
    return JoinedSession(session_id=gs.id, member_id=member_id)


def clean_submission(text):
    cleaned = str(text or '').strip()
    if not (SUBMISSION_MIN_LENGTH <= len(cleaned) <= SUBMISSION_MAX_LENGTH):
        raise ValidationError(
            f'Name must be {SUBMISSION_MIN_LENGTH}-{SUBMISSION_MAX_LENGTH} characters.'
        )
    return cleaned


def submit(store, session_id, member_id, text):
    if not session_id or not member_id or not text:
        raise ValidationError('Missing fields')
    cleaned = clean_submission(text)
    member = store.get_member(str(member_id))
    if member.session_id != str(session_id):
        raise Forbidden('Player does not belong to this game.')
    gs = store.get_session_by_id(member.session_id)
    if gs.status != SessionStatus.LOBBY.value:
        raise InvalidState('Submissions are closed for this round.')
    # Last write wins for a member resubmitting
    store.upsert_submission(gs.id, member.id, cleaned)
    logger.info(f"[submit] session={gs.id} member={member.id}")


def reveal(store, session_id, host_token, min_members=2, rng=None):
    require_host(store, session_id, host_token)
    gs = store.get_session_by_id(str(session_id))
    if gs.status != SessionStatus.LOBBY.value:
        raise InvalidState('The list can only be revealed from the lobby.')
    member_count = store.count_members(gs.id)
    if member_count < min_members:
        raise PreconditionFailed(f'Need at least {min_members} players to reveal.')
    if store.count_submissions(gs.id) != member_count:
        raise PreconditionFailed('Everyone must submit before revealing.')
    order = shuffled(store.list_submission_texts(gs.id), rng=rng)
    store.update_session(
        gs.id,
        status=SessionStatus.REVEALED.value,
        reveal_order=order,
        reveal_index=0,
    )
    logger.info(f"[reveal] session={gs.id} entries={len(order)}")


def next_reveal_index(current, total, direction):
    if total <= 0:
        return current
    if direction is Direction.NEXT:
        return min(current + 1, total - 1)
    if direction is Direction.PREV:
        return max(current - 1, 0)
    return 0


def step_reveal(store, session_id, host_token, direction, compare_and_swap=False, max_attempts=5) -> int:
    """Move the reveal cursor and return the index now stored."""
    direction = Direction.parse(direction)
    require_host(store, session_id, host_token)
    attempts = max_attempts if compare_and_swap else 1
    for _ in range(attempts):
        gs = store.get_session_by_id(str(session_id))
        if gs.status != SessionStatus.REVEALED.value:
            raise InvalidState('Nothing is being revealed right now.')
        current = gs.reveal_index or 0
        total = len(gs.reveal_list or [])
        new_index = next_reveal_index(current, total, direction)
        if new_index == current:
            return current
        expected = {'reveal_index': current} if compare_and_swap else None
        if store.update_session(gs.id, expected=expected, reveal_index=new_index):
            logger.info(f"[step] session={gs.id} dir={direction.value} index={current}->{new_index}")
            return new_index
        logger.info(f"[step-retry] session={gs.id} index moved from {current}")
    raise ConflictError('The reveal moved on; try again.')


def clear(store, session_id, host_token):
    require_host(store, session_id, host_token)
    gs = store.get_session_by_id(str(session_id))
    if gs.status == SessionStatus.CLEARED.value:
        return
    if gs.status != SessionStatus.REVEALED.value:
        raise InvalidState('Only a revealed list can be cleared.')
    store.update_session(gs.id, status=SessionStatus.CLEARED.value, reveal_order=None, reveal_index=0)
    logger.info(f"[clear] session={gs.id}")


def new_round(store, session_id, host_token):
    """Return to the lobby and drop the previous round's submissions."""
    require_host(store, session_id, host_token)
    gs = store.get_session_by_id(str(session_id))
    if gs.status == SessionStatus.LOBBY.value:
        return
    if gs.status != SessionStatus.CLEARED.value:
        raise InvalidState('Clear the list before starting a new round.')
    # Purge before reopening the lobby so a stale full house never looks reveal-ready
    removed = store.delete_submissions(gs.id)
    store.update_session(gs.id, status=SessionStatus.LOBBY.value, reveal_order=None, reveal_index=0)
    logger.info(f"[new-round] session={gs.id} purged_submissions={removed}")
