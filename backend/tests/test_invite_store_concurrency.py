# backend/tests/test_invite_store_concurrency.py
from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

from invite_service.services.invites import InviteStore, generate_invite_token


def _run_concurrently(fn, n: int = 32):
    barrier = threading.Barrier(n)

    def _task(i):
        barrier.wait()
        return fn(i)

    with ThreadPoolExecutor(max_workers=n) as pool:
        return list(pool.map(_task, range(n)))


def test_concurrent_creation_for_same_user_yields_one_token():
    calls = []

    def _counting_factory():
        calls.append(1)
        return generate_invite_token()

    store = InviteStore(token_factory=_counting_factory)

    invites = _run_concurrently(
        lambda i: store.create_invite(
            user_id="race@example.com",
            client_id=i,
            app_key=f"key-{i}",
            app_url="https://test.example.com/2.1",
        )
    )

    assert len({inv.token for inv in invites}) == 1
    assert len({inv.client_id for inv in invites}) == 1
    assert len(calls) == 1
    assert len(store) == 1


def test_concurrent_validation_activates_once_and_all_succeed(caplog):
    store = InviteStore()
    invite = store.create_invite(
        user_id="race@example.com",
        client_id=50,
        app_key="K",
        app_url="U",
    )

    with caplog.at_level("INFO", logger="invite_service.store"):
        results = _run_concurrently(lambda i: store.validate_invite(invite.token))

    assert all(r is not None and r.active is True for r in results)
    activations = [r for r in caplog.records if r.getMessage().startswith("Invite activated")]
    assert len(activations) == 1


def test_concurrent_creation_for_distinct_users_yields_unique_tokens():
    store = InviteStore()

    invites = _run_concurrently(
        lambda i: store.create_invite(
            user_id=f"user-{i}@example.com",
            client_id=50,
            app_key="K",
            app_url="U",
        ),
        n=64,
    )

    assert len(store) == 64
    assert len({inv.token for inv in invites}) == 64
