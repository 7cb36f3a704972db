import pytest
from collections import Counter, deque
from typing import Deque, Dict, List, Optional, Sequence, Tuple

from typer.testing import CliRunner

from wsmux.core.multiplexer import RequestMultiplexer
from wsmux.domain.interfaces.transport import Transport
from wsmux.domain.models.common import RequestId, TransportHealth
from wsmux.domain.models.request import TransportCompletion, TransportOperation
from wsmux.infrastructure.config import settings
from wsmux.infrastructure.config.settings import clear_test_config

# (status_code, body, error_detail)
Outcome = Tuple[int, str, str]
OK: Outcome = (200, "OK body", "")


class ScriptedTransport(Transport):
    """In-memory transport answering each attempt from a per-URL script.

    The last outcome of a script repeats once the script is exhausted. With
    ``auto_complete`` operations finish as soon as progress is driven;
    otherwise they finish on the next ``wait``.
    """

    def __init__(
        self,
        scripts: Optional[Dict[str, Sequence[Outcome]]] = None,
        default: Outcome = OK,
        auto_complete: bool = True,
        reverse_completion: bool = False,
        fail_on_registration: Optional[int] = None,
    ):
        self.scripts = {url: list(outcomes) for url, outcomes in (scripts or {}).items()}
        self.default = default
        self.auto_complete = auto_complete
        self.reverse_completion = reverse_completion
        self.fail_on_registration = fail_on_registration

        self.registered: List[TransportOperation] = []
        self.deregistered: List[RequestId] = []
        self.attempts: Counter = Counter()
        self.live: set = set()
        self.max_live = 0
        self.closed = 0
        self.drive_calls = 0
        self._in_flight: List[Tuple[TransportOperation, Outcome]] = []
        self._completed: Deque[TransportCompletion] = deque()
        self._fatal_reason: Optional[str] = None

    @property
    def fatal_reason(self) -> Optional[str]:
        return self._fatal_reason

    def _outcome_for(self, url: str) -> Outcome:
        script = self.scripts.get(url)
        if not script:
            return self.default
        attempt = self.attempts[url]
        return script[min(attempt, len(script) - 1)]

    def register(self, operation: TransportOperation) -> None:
        self.registered.append(operation)
        self.live.add(operation.id)
        self.max_live = max(self.max_live, len(self.live))
        if self.fail_on_registration is not None and len(self.registered) >= self.fail_on_registration:
            self._fatal_reason = "multi handle broken"
            return
        outcome = self._outcome_for(operation.url)
        self.attempts[operation.url] += 1
        self._in_flight.append((operation, outcome))

    def deregister(self, operation_id: RequestId) -> None:
        self.deregistered.append(operation_id)
        self.live.discard(operation_id)

    def _complete_in_flight(self) -> None:
        finished = list(reversed(self._in_flight)) if self.reverse_completion else list(self._in_flight)
        self._in_flight.clear()
        for operation, (status, body, detail) in finished:
            self._completed.append(TransportCompletion(operation.id, status, detail, body))

    def drive_progress(self) -> TransportHealth:
        self.drive_calls += 1
        if self._fatal_reason is not None:
            return TransportHealth.FATAL
        if self.auto_complete:
            self._complete_in_flight()
        return TransportHealth.OK

    def wait(self, timeout: float) -> bool:
        if self._fatal_reason is not None:
            return False
        self._complete_in_flight()
        return bool(self._completed)

    def next_completed(self) -> Optional[TransportCompletion]:
        return self._completed.popleft() if self._completed else None

    def inject(self, completion: TransportCompletion) -> None:
        self._completed.append(completion)

    def close(self) -> None:
        self.closed += 1


class FakeClock:
    """Monotonic clock advancing a fixed step per reading."""

    def __init__(self, step: float = 0.25):
        self.now = 0.0
        self.step = step

    def __call__(self) -> float:
        self.now += self.step
        return self.now


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture
def sleeps() -> List[float]:
    """Records every blocking sleep the engine asks for."""
    return []


@pytest.fixture
def make_engine(sleeps):
    """Builds an engine over a transport with recorded sleeps and a fake clock."""
    def _make(transport: Transport, **kwargs) -> RequestMultiplexer:
        kwargs.setdefault("retry_delay", 0.0)
        kwargs.setdefault("sleep", sleeps.append)
        kwargs.setdefault("clock", FakeClock())
        return RequestMultiplexer(transport, **kwargs)
    return _make


@pytest.fixture(autouse=True)
def isolate_config(monkeypatch, tmp_path):
    """Keep tests away from the user's ~/.wsmux config and any real API key."""
    monkeypatch.delenv("WSAPI_KEY", raising=False)
    monkeypatch.setattr(settings, "DEFAULT_CONFIG_FILE", tmp_path / "missing.yaml")
    monkeypatch.setattr(settings, "_config", {})
    monkeypatch.setattr(settings, "_runtime_config", {})
    monkeypatch.setattr(settings, "_loaded", False)
    monkeypatch.setattr(settings, "find_dotenv_path", lambda: None)
    yield
    clear_test_config()
