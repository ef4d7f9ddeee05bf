"""Classification of job failures and the retry policy derived from it."""

from __future__ import annotations

from dataclasses import dataclass
import random


NETWORK = "network"
RATE_LIMIT = "rate_limit"
TIMEOUT = "timeout"
EXTERNAL_API = "external_api"
DATA_CORRUPTION = "data_corruption"
PERMISSION = "permission"
SYSTEM = "system"
UNKNOWN = "unknown"

# Base delay before the first automatic retry, in minutes.
RETRY_BASE_DELAY_MINUTES: dict[str, float] = {
    NETWORK: 1,
    RATE_LIMIT: 10,
    TIMEOUT: 2,
    EXTERNAL_API: 5,
    DATA_CORRUPTION: 0,
    PERMISSION: 0,
    SYSTEM: 5,
    UNKNOWN: 5,
}

MIN_RETRY_DELAY_MINUTES = 0.1
RETRY_JITTER = 0.1


@dataclass(frozen=True)
class JobError:
    type: str
    message: str
    retryable: bool
    severity: str


# Checked in order; the first rule with a matching keyword wins.
_RULES: tuple[tuple[tuple[str, ...], str, bool, str, str | None], ...] = (
    (("429", "rate limit", "too many requests"), RATE_LIMIT, True, "medium", "Rate limit exceeded"),
    (("timeout", "timed out", "socket hang up", "504"), TIMEOUT, True, "medium", "Operation timed out"),
    (("network", "econnrefused", "dns", "fetch failed", "connection refused", "connecterror"), NETWORK, True, "high", "Network error"),
    (("500", "502", "503", "bad gateway", "service unavailable"), EXTERNAL_API, True, "high", "External API error"),
    (("401", "403", "unauthorized", "forbidden"), PERMISSION, False, "high", "Permission denied"),
    (("validation", "parse error", "integrity constraint", "schema"), DATA_CORRUPTION, False, "critical", "Data validation or integrity error"),
)


def classify_job_error(error: BaseException | str) -> JobError:
    if isinstance(error, BaseException):
        message = str(error) or type(error).__name__
        # httpx exceptions carry the failure kind in the class name (ReadTimeout, ConnectError).
        haystack = f"{type(error).__name__} {message}".lower()
    else:
        message = str(error)
        haystack = message.lower()

    for keywords, error_type, retryable, severity, label in _RULES:
        if any(k in haystack for k in keywords):
            return JobError(type=error_type, message=f"{label}: {message}", retryable=retryable, severity=severity)

    return JobError(type=UNKNOWN, message=message, retryable=True, severity="medium")


def retry_delay_minutes(error_type: str, retry_count: int, *, rng: random.Random | None = None) -> float:
    """Exponential backoff with +/-10% jitter, never below MIN_RETRY_DELAY_MINUTES."""

    base = RETRY_BASE_DELAY_MINUTES.get(error_type, RETRY_BASE_DELAY_MINUTES[UNKNOWN]) or 1
    delay = base * (2 ** retry_count)
    jitter = (rng or random).uniform(-RETRY_JITTER, RETRY_JITTER) * delay
    return max(MIN_RETRY_DELAY_MINUTES, delay + jitter)
