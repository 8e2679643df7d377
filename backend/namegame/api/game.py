from flask import Blueprint, jsonify, request, current_app
from namegame import db
from namegame.errors import ValidationError
from namegame.store import SessionStore
from namegame.services.party import machine
from namegame.services.party.identity import ClientSuppliedIdentity
from namegame.services.party.projection import project_by_code


game = Blueprint('game', __name__)

_identity = ClientSuppliedIdentity()


def _store() -> SessionStore:
    return SessionStore(db.session)


def _payload() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _require(data: dict, *fields: str) -> list:
    values = [data.get(f) for f in fields]
    if not all(values):
        raise ValidationError('Missing fields')
    return [str(v) for v in values]


@game.route('/create', methods=['POST'])
def create_session():
    cfg = current_app.config
    created = machine.create_session(
        _store(),
        max_attempts=int(cfg.get('CODE_MAX_ATTEMPTS', 10)),
        code_length=int(cfg.get('SESSION_CODE_LENGTH', 4)),
    )
    # The plaintext host token is returned exactly once
    return jsonify({
        'session_id': created.session_id,
        'code': created.code,
        'host_token': created.host_token,
    }), 201


@game.route('/join', methods=['POST'])
def join_session():
    data = _payload()
    code, display_name, claimed_client = _require(data, 'code', 'display_name', 'client_id')
    joined = machine.join(
        _store(),
        code,
        display_name,
        _identity.resolve(claimed_client),
        code_length=int(current_app.config.get('SESSION_CODE_LENGTH', 4)),
    )
    return jsonify({'session_id': joined.session_id, 'member_id': joined.member_id})


@game.route('/submit', methods=['POST'])
def submit_entry():
    data = _payload()
    session_id, member_id, text = _require(data, 'session_id', 'member_id', 'text')
    machine.submit(_store(), session_id, member_id, text)
    return jsonify({'ok': True})


@game.route('/reveal', methods=['POST'])
def reveal_entries():
    data = _payload()
    session_id, host_token = _require(data, 'session_id', 'host_token')
    machine.reveal(
        _store(),
        session_id,
        host_token,
        min_members=int(current_app.config.get('MIN_PLAYERS', 2)),
    )
    return jsonify({'ok': True})


@game.route('/reveal-step', methods=['POST'])
def step_reveal():
    data = _payload()
    session_id, host_token, direction = _require(data, 'session_id', 'host_token', 'direction')
    cfg = current_app.config
    index = machine.step_reveal(
        _store(),
        session_id,
        host_token,
        direction,
        compare_and_swap=bool(cfg.get('REVEAL_STEP_CAS', False)),
        max_attempts=int(cfg.get('REVEAL_STEP_MAX_ATTEMPTS', 5)),
    )
    return jsonify({'ok': True, 'reveal_index': index})


@game.route('/clear', methods=['POST'])
def clear_list():
    data = _payload()
    session_id, host_token = _require(data, 'session_id', 'host_token')
    machine.clear(_store(), session_id, host_token)
    return jsonify({'ok': True})


@game.route('/new-round', methods=['POST'])
def start_new_round():
    data = _payload()
    session_id, host_token = _require(data, 'session_id', 'host_token')
    machine.new_round(_store(), session_id, host_token)
    return jsonify({'ok': True})


@game.route('/state', methods=['GET'])
def get_state():
    payload = project_by_code(
        _store(),
        request.args.get('code', ''),
        code_length=int(current_app.config.get('SESSION_CODE_LENGTH', 4)),
    )
    return jsonify(payload)
