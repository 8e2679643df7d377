import enum
import logging

from namegame.errors import NotFound, Unauthorized, ValidationError
from .tokens import digests_match

logger = logging.getLogger(__name__)


class HostCheck(enum.Enum):
    AUTHORIZED = 'authorized'
    UNAUTHORIZED = 'unauthorized'
    SESSION_NOT_FOUND = 'session_not_found'


def verify_host(store, session_id, presented_token) -> HostCheck:
    """Compare the digest of a presented host token with the stored one."""
    try:
        gs = store.get_session_by_id(session_id)
    except NotFound:
        return HostCheck.SESSION_NOT_FOUND
    if not digests_match(presented_token, gs.host_token_hash):
        return HostCheck.UNAUTHORIZED
    return HostCheck.AUTHORIZED


def require_host(store, session_id, presented_token):
    """Raise ``Unauthorized`` unless the token belongs to the session's host.

    A missing session and a wrong token answer identically so that host
    endpoints cannot be used to probe which session ids exist.
    """
    if not session_id or not presented_token:
        raise ValidationError('Missing fields')
    check = verify_host(store, str(session_id), str(presented_token))
    if check is not HostCheck.AUTHORIZED:
        logger.info(f"[host-denied] session={session_id} reason={check.value}")
        raise Unauthorized('Not authorized')
