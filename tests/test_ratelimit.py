import time

import pytest

from servicekit.ratelimit import RateLimitExceeded, delaying_limiter, erroring_limiter


class TokenBucket:
    """A small token bucket limiter: ``rate`` tokens per second, ``burst`` max."""

    def __init__(self, rate, burst):
        self.rate = rate
        self.burst = burst
        self.tokens = float(burst)
        self.last = time.monotonic()

    def _refill(self):
        now = time.monotonic()
        self.tokens = min(self.burst, self.tokens + (now - self.last) * self.rate)
        self.last = now

    def allow(self):
        self._refill()
        if self.tokens >= 1:
            self.tokens -= 1
            return True
        return False

    def wait(self, ctx):
        self._refill()
        if self.tokens >= 1:
            self.tokens -= 1
            return
        delay = (1 - self.tokens) / self.rate
        deadline = ctx.get("deadline") if ctx else None
        if deadline is not None and time.monotonic() + delay > deadline:
            raise TimeoutError("rate: Wait(n=1) would exceed context deadline")
        time.sleep(delay)
        self._refill()
        self.tokens -= 1


def nop_endpoint(ctx, request):
    return {}


def success_then_failure(endpoint, fail_contains):
    ctx = {"deadline": time.monotonic() + 0.5}
    assert endpoint(ctx, {}) == {}
    with pytest.raises(Exception) as info:
        endpoint(ctx, {})
    assert fail_contains in str(info.value)
    return info.value


def test_erroring_limiter():
    limit = TokenBucket(rate=1 / 60, burst=1)
    err = success_then_failure(erroring_limiter(limit)(nop_endpoint), "rate limit exceeded")
    assert isinstance(err, RateLimitExceeded)


def test_delaying_limiter():
    limit = TokenBucket(rate=1 / 60, burst=1)
    err = success_then_failure(delaying_limiter(limit)(nop_endpoint), "exceed context deadline")
    assert isinstance(err, TimeoutError)


def test_erroring_limiter_accepts_plain_callable():
    answers = iter([True, False])
    wrapped = erroring_limiter(lambda: next(answers))(lambda ctx, req: req * 2)
    assert wrapped(None, 21) == 42
    with pytest.raises(RateLimitExceeded):
        wrapped(None, 21)


def test_delaying_limiter_accepts_plain_callable_and_passes_context():
    seen = []
    calls = []

    def waiter(ctx):
        seen.append(ctx)

    def endpoint(ctx, request):
        calls.append(request)
        return "done"

    wrapped = delaying_limiter(waiter)(endpoint)
    assert wrapped("context", "req") == "done"
    assert seen == ["context"]
    assert calls == ["req"]


def test_delaying_limiter_does_not_call_endpoint_on_wait_error():
    calls = []

    def waiter(ctx):
        raise RuntimeError("cancelled")

    wrapped = delaying_limiter(waiter)(lambda ctx, req: calls.append(req))
    with pytest.raises(RuntimeError, match="cancelled"):
        wrapped(None, "req")
    assert calls == []


def test_rate_limit_exceeded_message():
    assert str(RateLimitExceeded()) == "rate limit exceeded"