"""
Review session store tests
"""

import pytest

from claimdoc.core.exceptions import NotFoundError, ValidationError
from claimdoc.services.review_store import ReviewSessionStore, ReviewSource, fingerprint_notes


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


async def test_create_and_get(clock):
    store = ReviewSessionStore(ttl_seconds=60, max_entries=10, clock=clock)

    session = await store.create(ReviewSource.OPENAI, notes="Headache", feedback="Missing elements: allergies")
    fetched = await store.get(session.review_id)

    assert fetched == session
    assert fetched.feedback == "Missing elements: allergies"
    assert fetched.notes_fingerprint == fingerprint_notes("  Headache ")
    assert not hasattr(fetched, "notes")


async def test_unknown_id_is_not_found(clock):
    store = ReviewSessionStore(ttl_seconds=60, max_entries=10, clock=clock)

    with pytest.raises(NotFoundError):
        await store.get("missing")


async def test_sessions_expire_after_ttl(clock):
    store = ReviewSessionStore(ttl_seconds=60, max_entries=10, clock=clock)
    session = await store.create(ReviewSource.OPENAI, notes="Headache", feedback="")

    clock.now += 59
    assert (await store.get(session.review_id)).review_id == session.review_id

    clock.now += 1
    with pytest.raises(NotFoundError):
        await store.get(session.review_id)
    assert await store.size() == 0


async def test_oldest_session_evicted_at_capacity(clock):
    store = ReviewSessionStore(ttl_seconds=60, max_entries=2, clock=clock)
    first = await store.create(ReviewSource.OPENAI, notes="a", feedback="")
    clock.now += 1
    second = await store.create(ReviewSource.OPENAI, notes="b", feedback="")
    clock.now += 1
    third = await store.create(ReviewSource.OPENAI, notes="c", feedback="")

    assert await store.size() == 2
    with pytest.raises(NotFoundError):
        await store.get(first.review_id)
    assert (await store.get(second.review_id)).review_id == second.review_id
    assert (await store.get(third.review_id)).review_id == third.review_id


async def test_source_mismatch_is_rejected(clock):
    store = ReviewSessionStore(ttl_seconds=60, max_entries=10, clock=clock)
    session = await store.create(ReviewSource.OPENAI, notes="Headache", feedback="")

    with pytest.raises(ValidationError):
        await store.get(session.review_id, source=ReviewSource.CLAIMKIT)


async def test_partner_request_id_is_kept(clock):
    store = ReviewSessionStore(ttl_seconds=60, max_entries=10, clock=clock)
    session = await store.create(ReviewSource.CLAIMKIT, notes="Headache", feedback="", partner_request_id="CK-9")

    fetched = await store.get(session.review_id, source=ReviewSource.CLAIMKIT)

    assert fetched.partner_request_id == "CK-9"
