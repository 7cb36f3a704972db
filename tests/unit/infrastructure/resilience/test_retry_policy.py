import pytest

from wsmux.infrastructure.resilience.pacer import LaunchPacer
from wsmux.infrastructure.resilience.retry_policy import FailureKind, RetryPolicy, classify, is_success
from wsmux.infrastructure.resilience.status_text import http_response_message


@pytest.mark.parametrize("code, kind", [
    (200, FailureKind.SUCCESS),
    (204, FailureKind.SUCCESS),
    (0, FailureKind.TRANSPORT_ERROR),
    (500, FailureKind.RECOVERABLE_SERVER_ERROR),
    (503, FailureKind.RECOVERABLE_SERVER_ERROR),
    (504, FailureKind.RECOVERABLE_SERVER_ERROR),
    (502, FailureKind.TERMINAL_ERROR),
    (404, FailureKind.TERMINAL_ERROR),
    (301, FailureKind.TERMINAL_ERROR),
])
def test_classify(code, kind):
    assert classify(code) is kind


def test_is_success_covers_the_whole_2xx_range():
    assert is_success(200)
    assert is_success(299)
    assert not is_success(300)
    assert not is_success(0)


def test_should_retry_respects_budget():
    policy = RetryPolicy(max_retries=2, retry_delay=0)

    assert policy.should_retry(503, 0)
    assert policy.should_retry(0, 1)
    assert not policy.should_retry(503, 2)
    assert not policy.should_retry(404, 0)
    assert not policy.should_retry(200, 0)


def test_zero_budget_never_retries():
    policy = RetryPolicy(max_retries=0)
    assert not policy.should_retry(500, 0)


@pytest.mark.parametrize("kwargs", [{"max_retries": -1}, {"retry_delay": -0.1}])
def test_policy_rejects_negative_values(kwargs):
    with pytest.raises(ValueError):
        RetryPolicy(**kwargs)


# --- Status Text ---

@pytest.mark.parametrize("code, text", [
    (404, "Not Found"),
    (500, "Internal Server Error"),
    (503, "Service Unavailable"),
    (504, "Gateway Time-out"),
    (799, "Unknown status"),
    (None, "Unknown status"),
])
def test_status_text(code, text):
    assert http_response_message(code) == text


def test_connection_error_text_includes_detail():
    assert http_response_message(0) == "Connection Error"
    assert http_response_message(0, "timed out") == "Connection Error: timed out"


# --- Launch Pacing ---

def test_pacer_sleeps_interval_per_launch():
    slept = []
    pacer = LaunchPacer(interval=0.25, sleep=slept.append)

    pacer.pace()
    pacer.pace()

    assert slept == [0.25, 0.25]
    assert pacer.launches == 2
    assert pacer.total_wait == 0.5


def test_pacer_disabled_at_zero():
    slept = []
    pacer = LaunchPacer(sleep=slept.append)

    pacer.pace()

    assert slept == []
    assert pacer.launches == 1


def test_pacer_rejects_negative_interval():
    pacer = LaunchPacer()
    with pytest.raises(ValueError):
        pacer.interval = -1
