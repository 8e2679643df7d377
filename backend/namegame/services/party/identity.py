"""Device identity for members.

A member is whoever presents the same ``client_id`` again. The id is an
opaque string the client generates once and keeps in local storage; it is
not a credential. Routes resolve it through a ``DeviceIdentity`` so that a
signed-cookie scheme can replace it without touching the state machine.
"""
from namegame.errors import ValidationError

MAX_CLIENT_ID_LENGTH = 128


class DeviceIdentity:
    def resolve(self, claimed):
        raise NotImplementedError


class ClientSuppliedIdentity(DeviceIdentity):
    """Trust whatever device id the client sends."""

    def resolve(self, claimed):
        client_id = str(claimed or '').strip()
        if not client_id:
            raise ValidationError('Missing fields')
        if len(client_id) > MAX_CLIENT_ID_LENGTH:
            raise ValidationError('Client id is too long')
        return client_id
