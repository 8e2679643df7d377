"""HTTP client and polling loop for players and hosts.

The browser client re-fetches ``/state`` about once a second and renders
whatever came back; actions are user-triggered, one request each, guarded
by a busy flag. ``PollingLoop`` reproduces that consumption pattern so the
server's concurrency guarantees can be exercised from Python.
"""
import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

import click
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)


class ClientError(Exception):
    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _retrying_session(read_retries):
    http = requests.Session()
    # Only idempotent reads are retried; actions are fire-and-forget
    retry = Retry(
        total=read_retries,
        backoff_factor=0.2,
        status_forcelist=(502, 503, 504),
        allowed_methods=frozenset({'GET'}),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    http.mount('http://', adapter)
    http.mount('https://', adapter)
    return http


class NameGameClient:
    def __init__(self, base_url, http=None, timeout=5.0, read_retries=3):
        self.base_url = base_url.rstrip('/')
        self.http = http if http is not None else _retrying_session(read_retries)
        self.timeout = timeout

    def _url(self, path):
        return f"{self.base_url}/api/game/{path}"

    def _handle(self, resp):
        try:
            data = resp.json()
        except ValueError:
            data = {}
        if resp.status_code >= 400:
            raise ClientError(data.get('error') or f'Request failed ({resp.status_code})', resp.status_code)
        return data

    def _post(self, path, body=None):
        try:
            resp = self.http.post(self._url(path), json=body or {}, timeout=self.timeout)
        except requests.RequestException as exc:
            raise ClientError(f'Network error: {exc}') from exc
        return self._handle(resp)

    def state(self, code):
        try:
            resp = self.http.get(self._url('state'), params={'code': code}, timeout=self.timeout)
        except requests.RequestException as exc:
            raise ClientError(f'Network error: {exc}') from exc
        return self._handle(resp)

    def create(self):
        return self._post('create')

    def join(self, code, display_name, client_id):
        return self._post('join', {'code': code, 'display_name': display_name, 'client_id': client_id})

    def submit(self, session_id, member_id, text):
        return self._post('submit', {'session_id': session_id, 'member_id': member_id, 'text': text})

    def reveal(self, session_id, host_token):
        return self._post('reveal', {'session_id': session_id, 'host_token': host_token})

    def step(self, session_id, host_token, direction):
        return self._post('reveal-step', {'session_id': session_id, 'host_token': host_token, 'direction': direction})

    def clear(self, session_id, host_token):
        return self._post('clear', {'session_id': session_id, 'host_token': host_token})

    def new_round(self, session_id, host_token):
        return self._post('new-round', {'session_id': session_id, 'host_token': host_token})


@dataclass
class SeatInfo:
    session_id: Optional[str] = None
    member_id: Optional[str] = None
    display_name: Optional[str] = None
    host_token: Optional[str] = None


@dataclass
class LocalState:
    """What a device remembers between polls, keyed by session code."""
    client_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    seats: Dict[str, SeatInfo] = field(default_factory=dict)

    def seat(self, code):
        return self.seats.setdefault(code.upper(), SeatInfo())


class PollingLoop:
    def __init__(self, client: NameGameClient, code: str, render: Callable[[dict], None],
                 interval: float = 1.0, local: Optional[LocalState] = None):
        self.client = client
        self.code = code.strip().upper()
        self.render = render
        self.interval = interval
        self.local = local or LocalState()
        self.snapshot: Optional[dict] = None
        self.last_error: Optional[str] = None
        self.pending_text = ''
        self.busy: Optional[str] = None
        self._busy_lock = threading.Lock()

    @property
    def seat(self) -> SeatInfo:
        return self.local.seat(self.code)

    @property
    def is_host(self) -> bool:
        return bool(self.seat.host_token)

    def can_reveal(self) -> bool:
        s = self.snapshot
        return bool(
            self.is_host and s and s['status'] == 'lobby'
            and s['member_count'] >= 2 and s['submitted_count'] == s['member_count']
        )

    def poll_once(self) -> Optional[dict]:
        try:
            self.snapshot = self.client.state(self.code)
            self.last_error = None
        except ClientError as exc:
            self.last_error = exc.message
            logger.info(f"[poll] code={self.code} failed: {exc.message}")
            return None
        self.render(self.snapshot)
        return self.snapshot

    def run(self, stop_event: Optional[threading.Event] = None, max_polls: Optional[int] = None):
        stop_event = stop_event or threading.Event()
        polls = 0
        while not stop_event.is_set():
            self.poll_once()
            polls += 1
            if max_polls is not None and polls >= max_polls:
                break
            stop_event.wait(self.interval)

    def dispatch(self, name: str, action: Callable[[], dict], refresh: bool = True):
        """Run one user action unless another is still in flight.

        Returns the action's response, or None when the action was skipped
        or failed (the error lands in ``last_error``). Refreshes the snapshot
        after a successful action.
        """
        with self._busy_lock:
            if self.busy is not None:
                return None
            self.busy = name
        try:
            result = action()
        except ClientError as exc:
            self.last_error = exc.message
            return None
        finally:
            with self._busy_lock:
                self.busy = None
        self.last_error = None
        if refresh:
            self.poll_once()
        return result

    # ---- player and host actions with local bookkeeping ----

    def host_new_session(self, display_name):
        created = self.dispatch('create', self.client.create, refresh=False)
        if not created:
            return None
        self.code = created['code']
        seat = self.seat
        seat.host_token = created['host_token']
        seat.session_id = created['session_id']
        self.join(display_name)
        return created

    def join(self, display_name):
        def _do():
            return self.client.join(self.code, display_name, self.local.client_id)
        joined = self.dispatch('join', _do)
        if joined:
            seat = self.seat
            seat.session_id = joined['session_id']
            seat.member_id = joined['member_id']
            seat.display_name = display_name.strip()
        return joined

    def submit(self, text=None):
        if text is not None:
            self.pending_text = text
        seat = self.seat
        if not seat.session_id or not seat.member_id:
            self.last_error = 'Join the game first.'
            return None
        if self.snapshot and self.snapshot.get('status') != 'lobby':
            self.last_error = 'Submissions are closed for this round.'
            return None
        body = self.pending_text
        result = self.dispatch('submit', lambda: self.client.submit(seat.session_id, seat.member_id, body))
        if result:
            # Keep the typed text unless the server confirmed it
            self.pending_text = ''
        return result

    def _host(self, name, call):
        seat = self.seat
        if not seat.session_id or not seat.host_token:
            self.last_error = 'Only the host can do that.'
            return None
        return self.dispatch(name, lambda: call(seat.session_id, seat.host_token))

    def reveal(self):
        return self._host('reveal', self.client.reveal)

    def step(self, direction):
        return self._host(f'step-{direction}', lambda sid, tok: self.client.step(sid, tok, direction))

    def clear(self):
        return self._host('clear', self.client.clear)

    def new_round(self):
        return self._host('new-round', self.client.new_round)


def render_to_terminal(snapshot):
    names = ', '.join(m['display_name'] for m in snapshot['members']) or '-'
    line = (f"[{snapshot['code']}] {snapshot['status']} players={snapshot['member_count']} "
            f"submitted={snapshot['submitted_count']} ({names})")
    order = snapshot.get('reveal_order')
    if snapshot['status'] == 'revealed' and order:
        idx = snapshot['reveal_index']
        line += f" now showing {idx + 1}/{len(order)}: {order[idx]}"
    click.echo(line)


@click.command('namegame-watch')
@click.argument('code')
@click.option('--url', default='http://localhost:5000', show_default=True, help='Server base URL.')
@click.option('--interval', default=1.0, show_default=True, help='Seconds between polls.')
@click.option('--count', type=int, default=None, help='Stop after this many polls.')
def watch(code, url, interval, count):
    """Poll a session and print each snapshot."""
    loop = PollingLoop(NameGameClient(url), code, render_to_terminal, interval=interval)
    try:
        loop.run(max_polls=count)
    except KeyboardInterrupt:
        pass
    if loop.last_error:
        click.echo(f"error: {loop.last_error}", err=True)


if __name__ == '__main__':
    watch()
