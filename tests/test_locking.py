import threading

import pytest

from stockledger.exceptions import LockTimeoutError
from stockledger.locking import ProductLocks


def test_hold_times_out_while_another_thread_holds_the_lock():
    locks = ProductLocks()
    held = threading.Event()
    release = threading.Event()

    def holder():
        with locks.hold("p1", timeout=1):
            held.set()
            release.wait(timeout=5)

    t = threading.Thread(target=holder)
    t.start()
    try:
        assert held.wait(timeout=5)
        with pytest.raises(LockTimeoutError) as exc:
            with locks.hold("p1", timeout=0.05):
                pass
        assert exc.value.product_id == "p1"
        assert exc.value.http_status == 503
    finally:
        release.set()
        t.join()

    assert not locks.is_locked("p1")


def test_keys_are_independent():
    locks = ProductLocks()
    with locks.hold("p1", timeout=0.1):
        with locks.hold("p2", timeout=0.1):
            assert locks.is_locked("p1") and locks.is_locked("p2")
    assert not locks.is_locked("p1")
    assert not locks.is_locked("p2")


def test_lock_is_released_when_the_body_raises():
    locks = ProductLocks()
    with pytest.raises(RuntimeError):
        with locks.hold("p1", timeout=0.1):
            raise RuntimeError("boom")
    assert not locks.is_locked("p1")
    with locks.hold("p1", timeout=0.1):
        pass


def test_registry_drops_entries_once_released():
    locks = ProductLocks()
    for i in range(100):
        with locks.hold(f"p{i}", timeout=0.1):
            assert len(locks) == 1
    assert len(locks) == 0


def test_waiter_keeps_the_entry_until_it_is_done():
    locks = ProductLocks()
    order = []
    waiting = threading.Event()

    def waiter():
        waiting.set()
        with locks.hold("p1", timeout=5):
            order.append("waiter")

    with locks.hold("p1", timeout=0.1):
        t = threading.Thread(target=waiter)
        t.start()
        assert waiting.wait(timeout=5)
        order.append("holder")
    t.join()

    assert order == ["holder", "waiter"]
    assert len(locks) == 0


def test_timed_out_waiter_leaves_no_entry():
    locks = ProductLocks()
    with locks.hold("p1", timeout=0.1):
        with pytest.raises(LockTimeoutError):
            with locks.hold("p1", timeout=0.01):
                pass
        assert len(locks) == 1
    assert len(locks) == 0
