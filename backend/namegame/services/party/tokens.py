import hashlib
import hmac
import random
import secrets

from namegame.errors import ValidationError

# No 0/O or 1/I: codes are read aloud and typed on phones
CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
DEFAULT_CODE_LENGTH = 4


def generate_session_code(length=DEFAULT_CODE_LENGTH):
    """Draw a random session code. Not collision-free; callers retry on conflict."""
    return ''.join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def normalize_code(raw, length=DEFAULT_CODE_LENGTH):
    """Upper-case user input and reject anything that cannot be a session code."""
    code = str(raw or '').strip().upper()
    if len(code) != length or any(ch not in CODE_ALPHABET for ch in code):
        raise ValidationError('Invalid code')
    return code


def generate_bearer_token():
    # 256 bits, hex encoded; handed to the host once and never stored
    return secrets.token_hex(32)


def digest(secret):
    return hashlib.sha256(str(secret).encode('utf-8')).hexdigest()


def digests_match(presented_token, stored_digest):
    if not stored_digest:
        return False
    return hmac.compare_digest(digest(presented_token), stored_digest)


def shuffled(items, rng=None):
    """Return a uniformly random permutation of ``items`` (Fisher-Yates)."""
    rng = rng or random.SystemRandom()
    out = list(items)
    for i in range(len(out) - 1, 0, -1):
        j = rng.randint(0, i)
        out[i], out[j] = out[j], out[i]
    return out
