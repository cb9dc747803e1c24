# tests/test_locks.py

import threading

from kg_citations.extraction.locks import KeyedLock


def test_nested_holds_on_different_keys_clean_up():
    locks = KeyedLock()

    with locks.hold("a"):
        assert locks.is_held("a")
        with locks.hold("b"):
            assert len(locks) == 2

    assert len(locks) == 0
    assert not locks.is_held("a")


def test_different_keys_do_not_block_each_other():
    locks = KeyedLock()
    entered = threading.Event()

    def other():
        with locks.hold("b"):
            entered.set()

    with locks.hold("a"):
        t = threading.Thread(target=other)
        t.start()
        assert entered.wait(timeout=2)
        t.join()


def test_same_key_blocks_until_released():
    locks = KeyedLock()
    entered = threading.Event()

    def other():
        with locks.hold("a"):
            entered.set()

    with locks.hold("a"):
        t = threading.Thread(target=other)
        t.start()
        assert not entered.wait(timeout=0.2)

    t.join(timeout=2)
    assert entered.is_set()
    assert len(locks) == 0


def test_lock_released_on_error():
    locks = KeyedLock()
    try:
        with locks.hold("a"):
            raise RuntimeError("boom")
    except RuntimeError:
        pass

    assert len(locks) == 0
