# backend/tests/unit/test_booking_lock.py
"""
Unit tests for the per-provider booking lock.

Threads stand in for concurrent requests; Redis is mocked.
"""

import threading
import time
from unittest.mock import Mock, patch

import pytest

from masterbook.core import booking_lock
from masterbook.core.booking_lock import provider_booking_lock
from masterbook.core.exceptions import ConflictException


class TestLocalLock:
    def test_serializes_same_provider(self):
        inside = 0
        max_inside = 0
        guard = threading.Lock()

        def worker():
            nonlocal inside, max_inside
            with provider_booking_lock("provider-serial", timeout=5):
                with guard:
                    inside += 1
                    max_inside = max(max_inside, inside)
                time.sleep(0.01)
                with guard:
                    inside -= 1

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert max_inside == 1

    def test_timeout_raises_booking_in_progress(self):
        held = threading.Event()
        release = threading.Event()

        def holder():
            with provider_booking_lock("provider-busy"):
                held.set()
                release.wait(5)

        t = threading.Thread(target=holder)
        t.start()
        try:
            assert held.wait(5)
            with pytest.raises(ConflictException) as exc_info:
                with provider_booking_lock("provider-busy", timeout=0.05):
                    pass
            assert exc_info.value.code == "BOOKING_IN_PROGRESS"
            assert exc_info.value.status_code == 409
        finally:
            release.set()
            t.join()

    def test_other_providers_are_not_blocked(self):
        with provider_booking_lock("provider-a"):
            with provider_booking_lock("provider-b", timeout=0.05):
                pass

    def test_lock_released_after_exception(self):
        with pytest.raises(RuntimeError):
            with provider_booking_lock("provider-error"):
                raise RuntimeError("boom")

        with provider_booking_lock("provider-error", timeout=0.05):
            pass


class TestRedisLock:
    def test_redis_key_is_set_and_released(self):
        client = Mock()
        client.set.return_value = True

        with patch.object(booking_lock, "_get_sync_redis", return_value=client):
            with provider_booking_lock("provider-redis"):
                pass

        key = client.set.call_args.args[0]
        assert key == "masterbook:lock:provider:provider-redis:booking"
        assert client.set.call_args.kwargs["nx"] is True
        token = client.set.call_args.args[1]
        client.eval.assert_called_once_with(booking_lock._RELEASE_SCRIPT, 1, key, token)
        client.delete.assert_not_called()

    def test_redis_contention_times_out(self):
        client = Mock()
        client.set.return_value = False

        with patch.object(booking_lock, "_get_sync_redis", return_value=client):
            with pytest.raises(ConflictException):
                with provider_booking_lock("provider-contended", timeout=0.1):
                    pass

        client.eval.assert_not_called()
        # The local lock must have been released on the way out
        with provider_booking_lock("provider-contended", timeout=0.05):
            pass

    def test_redis_errors_fall_back_to_local_lock(self):
        client = Mock()
        client.set.side_effect = ConnectionError("redis down")

        ran = False
        with patch.object(booking_lock, "_get_sync_redis", return_value=client):
            with provider_booking_lock("provider-flaky"):
                ran = True

        assert ran
        client.eval.assert_not_called()

    def test_no_redis_without_url(self):
        with patch.object(booking_lock.settings, "booking_lock_redis_url", None):
            assert booking_lock._get_sync_redis() is None
