import sqlite3
from datetime import datetime, timezone
from uuid import uuid4

import pytest

from companion_store.schema import connect
from companion_store.wallets import WalletLinkRepo

WALLET = "BvHvbHBeF2zXa1pT5eExMzTAydPGFTyhqMAbPyuMTfQt"


def ts(secs):
    return datetime.fromtimestamp(secs, timezone.utc)


@pytest.fixture
def conn():
    connection = connect(":memory:")
    yield connection
    connection.close()


@pytest.fixture
def repo(conn):
    return WalletLinkRepo(conn)


def stored(conn, user_id, wallet):
    return conn.execute(
        "SELECT linked, source_updated_at FROM wallet_links "
        "WHERE user_id = ? AND wallet_pubkey = ?",
        (str(user_id), wallet),
    ).fetchone()


def test_upsert_applies_then_drops_stale(conn, repo):
    u = uuid4()
    assert repo.upsert(u, WALLET, True, ts(100)) is True
    assert repo.upsert(u, WALLET, True, ts(200)) is True
    assert repo.upsert(u, WALLET, False, ts(150)) is False

    links = repo.since(ts(0), "", 10)
    assert len(links) == 1
    assert links[0].linked is True
    assert links[0].source_updated_at == ts(200)
    assert stored(conn, u, WALLET)["linked"] == 1


def test_unlink_writes_tombstone_not_delete(conn, repo):
    u = uuid4()
    repo.upsert(u, WALLET, True, ts(100))
    repo.upsert(u, WALLET, False, ts(200))
    row = stored(conn, u, WALLET)
    assert row is not None
    assert row["linked"] == 0


def test_equal_timestamp_is_stale(repo):
    u = uuid4()
    assert repo.upsert(u, WALLET, True, ts(100)) is True
    assert repo.upsert(u, WALLET, False, ts(100)) is False


def test_since_paginates_compound_cursor(repo):
    u1, u2 = uuid4(), uuid4()
    w1 = "11111111111111111111111111111111"
    w2 = "11111111111111111111111111111112"
    repo.upsert(u1, w1, True, ts(100))
    repo.upsert(u2, w2, True, ts(100))

    page1 = repo.since(ts(0), "", 1)
    assert len(page1) == 1
    last = page1[0]
    page2 = repo.since(last.source_updated_at, f"{last.user_id}:{last.wallet_pubkey}", 10)
    assert len(page2) == 1

    seen = {page1[0].user_id, page2[0].user_id}
    assert seen == {u1, u2}


def test_since_with_unparsable_user_starts_from_nil(repo):
    u = uuid4()
    repo.upsert(u, WALLET, True, ts(100))
    links = repo.since(ts(100), "not-a-uuid:", 10)
    assert [link.user_id for link in links] == [u]


def test_since_rejects_negative_limit(repo):
    with pytest.raises(ValueError):
        repo.since(ts(0), "", -1)


def test_tombstone_for_other_user_is_allowed(repo):
    assert repo.upsert(uuid4(), WALLET, True, ts(100)) is True
    assert repo.upsert(uuid4(), WALLET, False, ts(100)) is True
    assert len(repo.since(ts(0), "", 10)) == 2


def test_wallet_cannot_be_actively_linked_twice(repo):
    repo.upsert(uuid4(), WALLET, True, ts(100))
    with pytest.raises(sqlite3.IntegrityError):
        repo.upsert(uuid4(), WALLET, True, ts(200))