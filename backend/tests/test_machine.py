import random
from collections import Counter

import pytest

from namegame.errors import (
    ConflictError,
    InvalidState,
    NotFound,
    PreconditionFailed,
    ResourceExhausted,
    Unauthorized,
    ValidationError,
)
from namegame.services.party import machine
from namegame.services.party.authorization import HostCheck, verify_host
from namegame.services.party.projection import project, project_by_code


def _session_with_entries(store, texts):
    created = machine.create_session(store)
    for i, text in enumerate(texts):
        joined = machine.join(store, created.code, f'Player {i}', f'device-{i}')
        machine.submit(store, created.session_id, joined.member_id, text)
    return created


def test_create_retries_on_code_collision(store, monkeypatch):
    first = machine.create_session(store)
    codes = iter([first.code, first.code, 'WXYZ'])
    monkeypatch.setattr(machine, 'generate_session_code', lambda length: next(codes))
    second = machine.create_session(store, max_attempts=3)
    assert second.code == 'WXYZ'


def test_create_gives_up_after_max_attempts(store, monkeypatch):
    first = machine.create_session(store)
    monkeypatch.setattr(machine, 'generate_session_code', lambda length: first.code)
    with pytest.raises(ResourceExhausted):
        machine.create_session(store, max_attempts=4)


def test_host_token_is_stored_as_digest(store):
    created = machine.create_session(store)
    gs = store.get_session_by_id(created.session_id)
    assert gs.host_token_hash != created.host_token
    assert verify_host(store, created.session_id, created.host_token) is HostCheck.AUTHORIZED
    assert verify_host(store, created.session_id, 'wrong') is HostCheck.UNAUTHORIZED
    assert verify_host(store, 'missing', created.host_token) is HostCheck.SESSION_NOT_FOUND


def test_join_validates_name(store):
    created = machine.create_session(store)
    with pytest.raises(ValidationError):
        machine.join(store, created.code, '   ', 'device')
    with pytest.raises(ValidationError):
        machine.join(store, created.code, 'x' * 41, 'device')
    with pytest.raises(NotFound):
        machine.join(store, 'ZZZZ', 'Alice', 'device')


def test_reveal_order_is_permutation_of_submissions(store):
    texts = ['Alice', 'Bob', 'Alice', 'Dana']
    created = _session_with_entries(store, texts)
    machine.reveal(store, created.session_id, created.host_token, rng=random.Random(7))
    snap = project(store, store.get_session_by_id(created.session_id))
    assert snap['status'] == 'revealed'
    assert snap['reveal_index'] == 0
    assert Counter(snap['reveal_order']) == Counter(texts)


def test_reveal_rejects_wrong_token_without_side_effects(store):
    created = _session_with_entries(store, ['Alice', 'Bob'])
    before = project_by_code(store, created.code)
    with pytest.raises(Unauthorized):
        machine.reveal(store, created.session_id, 'not-the-token')
    assert project_by_code(store, created.code) == before


def test_reveal_guards(store):
    created = _session_with_entries(store, ['Alice'])
    with pytest.raises(PreconditionFailed):
        machine.reveal(store, created.session_id, created.host_token)
    machine.join(store, created.code, 'Bob', 'device-bob')
    with pytest.raises(PreconditionFailed):
        machine.reveal(store, created.session_id, created.host_token)
    assert store.get_session_by_id(created.session_id).status == 'lobby'


def test_reveal_honours_min_members(store):
    created = _session_with_entries(store, ['Alice', 'Bob'])
    with pytest.raises(PreconditionFailed):
        machine.reveal(store, created.session_id, created.host_token, min_members=3)


def test_invalid_state_is_a_precondition_failure(store):
    created = _session_with_entries(store, ['Alice', 'Bob'])
    machine.reveal(store, created.session_id, created.host_token)
    with pytest.raises(InvalidState) as excinfo:
        machine.reveal(store, created.session_id, created.host_token)
    assert isinstance(excinfo.value, PreconditionFailed)


@pytest.mark.parametrize('current,total,direction,expected', [
    (0, 3, machine.Direction.NEXT, 1),
    (2, 3, machine.Direction.NEXT, 2),
    (0, 3, machine.Direction.PREV, 0),
    (2, 3, machine.Direction.PREV, 1),
    (2, 3, machine.Direction.RESET, 0),
    (0, 0, machine.Direction.NEXT, 0),
])
def test_next_reveal_index(current, total, direction, expected):
    assert machine.next_reveal_index(current, total, direction) == expected


def test_direction_parse():
    assert machine.Direction.parse(' NEXT ') is machine.Direction.NEXT
    with pytest.raises(ValidationError):
        machine.Direction.parse('up')


def test_step_with_compare_and_swap(store):
    created = _session_with_entries(store, ['A1', 'B2', 'C3'])
    machine.reveal(store, created.session_id, created.host_token)
    idx = machine.step_reveal(store, created.session_id, created.host_token, 'next', compare_and_swap=True)
    assert idx == 1
    assert store.get_session_by_id(created.session_id).reveal_index == 1


def test_step_compare_and_swap_gives_up_when_index_keeps_moving(store, monkeypatch):
    created = _session_with_entries(store, ['A1', 'B2', 'C3'])
    machine.reveal(store, created.session_id, created.host_token)
    # Every conditional write loses the race
    monkeypatch.setattr(store, 'update_session', lambda *args, **kwargs: False)
    with pytest.raises(ConflictError):
        machine.step_reveal(store, created.session_id, created.host_token, 'next',
                            compare_and_swap=True, max_attempts=3)


def test_new_round_purges_submissions(store):
    created = _session_with_entries(store, ['Alice', 'Bob'])
    machine.reveal(store, created.session_id, created.host_token)
    machine.clear(store, created.session_id, created.host_token)
    gs = store.get_session_by_id(created.session_id)
    assert gs.status == 'cleared'
    assert gs.reveal_list is None
    machine.new_round(store, created.session_id, created.host_token)
    assert store.count_submissions(created.session_id) == 0
    assert store.count_members(created.session_id) == 2
    assert store.get_session_by_id(created.session_id).status == 'lobby'


def test_shuffle_reaches_every_permutation(store):
    created = _session_with_entries(store, ['A1', 'B2', 'C3'])
    rng = random.Random(1234)
    seen = set()
    for _ in range(120):
        machine.reveal(store, created.session_id, created.host_token, rng=rng)
        seen.add(tuple(store.get_session_by_id(created.session_id).reveal_list))
        # Back to the lobby without losing the entries
        store.update_session(created.session_id, status='lobby', reveal_order=None, reveal_index=0)
    assert len(seen) == 6
