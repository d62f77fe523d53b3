from __future__ import annotations

import threading

from engine.core.locks import KeyedLocks


def _hold_in_thread(locks: KeyedLocks, key: str, entered: threading.Event, release: threading.Event) -> threading.Thread:
    def run() -> None:
        with locks.hold(key):
            entered.set()
            release.wait(5)

    t = threading.Thread(target=run, daemon=True)
    t.start()
    return t


def test_same_key_is_exclusive():
    locks = KeyedLocks()
    first_in, first_out = threading.Event(), threading.Event()
    second_in, second_out = threading.Event(), threading.Event()

    t1 = _hold_in_thread(locks, "c-1", first_in, first_out)
    assert first_in.wait(2)
    t2 = _hold_in_thread(locks, "c-1", second_in, second_out)

    assert not second_in.wait(0.1)
    first_out.set()
    assert second_in.wait(2)
    second_out.set()
    t1.join(2)
    t2.join(2)


def test_different_keys_do_not_block():
    locks = KeyedLocks()
    a_in, a_out = threading.Event(), threading.Event()
    b_in, b_out = threading.Event(), threading.Event()

    t1 = _hold_in_thread(locks, "c-1", a_in, a_out)
    assert a_in.wait(2)
    t2 = _hold_in_thread(locks, "c-2", b_in, b_out)
    assert b_in.wait(2)

    assert len(locks) == 2
    a_out.set()
    b_out.set()
    t1.join(2)
    t2.join(2)


def test_entries_are_dropped_after_last_holder():
    locks = KeyedLocks()
    counter = {"n": 0}

    def bump() -> None:
        for _ in range(200):
            with locks.hold("shared"):
                n = counter["n"]
                counter["n"] = n + 1

    threads = [threading.Thread(target=bump) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(10)

    assert counter["n"] == 800
    assert len(locks) == 0
