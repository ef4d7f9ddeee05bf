import random

import httpx
import pytest

from src.services.job_errors import MIN_RETRY_DELAY_MINUTES, classify_job_error, retry_delay_minutes


@pytest.mark.parametrize(
    "error, expected_type, retryable",
    [
        ("Everflow rate limit exceeded (429)", "rate_limit", True),
        ("socket hang up", "timeout", True),
        (httpx.ReadTimeout("read"), "timeout", True),
        (httpx.ConnectError("refused"), "network", True),
        ("API request failed: 502 Bad Gateway", "external_api", True),
        ("Unauthorized: Everflow API key is not configured", "permission", False),
        ("Offer record failed validation", "data_corruption", False),
        ("something odd happened", "unknown", True),
    ],
)
def test_classify_job_error(error, expected_type, retryable):
    classified = classify_job_error(error)
    assert classified.type == expected_type
    assert classified.retryable is retryable


def test_classified_message_is_prefixed_with_a_label():
    assert classify_job_error("429 from upstream").message == "Rate limit exceeded: 429 from upstream"
    assert classify_job_error("plain failure").message == "plain failure"
    assert classify_job_error(RuntimeError()).message == "RuntimeError"


def test_retry_delay_grows_exponentially_within_jitter():
    rng = random.Random(1)
    for retry_count, base in [(0, 1), (1, 2), (2, 4), (3, 8)]:
        delay = retry_delay_minutes("network", retry_count, rng=rng)
        assert base * 0.9 <= delay <= base * 1.1

    assert 9 <= retry_delay_minutes("rate_limit", 0, rng=rng) <= 11
    assert 4.5 <= retry_delay_minutes("not-a-type", 0, rng=rng) <= 5.5


def test_retry_delay_never_drops_below_the_floor():
    assert retry_delay_minutes("permission", 0, rng=random.Random(3)) >= MIN_RETRY_DELAY_MINUTES
