from datetime import datetime, timezone
from uuid import uuid4

import pytest

from companion_store.ownership import OwnershipRepo
from companion_store.schema import connect
from companion_store.wallets import WalletLinkRepo

ASSET = "11111111111111111111111111111111"
WALLET = "BvHvbHBeF2zXa1pT5eExMzTAydPGFTyhqMAbPyuMTfQt"


def ts(secs: int) -> datetime:
    return datetime.fromtimestamp(secs, timezone.utc)


@pytest.fixture
def conn():
    connection = connect(":memory:")
    yield connection
    connection.close()


def test_ownership_upsert_drops_stale(conn):
    repo = OwnershipRepo(conn)
    wallet_old = "OwnerOld1111111111111111111111111"
    wallet_new = "OwnerNew2222222222222222222222222"

    assert repo.upsert(ASSET, "p-1", wallet_old, ts(100)) is True
    assert repo.upsert(ASSET, "p-1", wallet_new, ts(200)) is True
    assert repo.upsert(ASSET, "p-1", wallet_old, ts(150)) is False

    (owner,) = conn.execute(
        "SELECT owner_wallet FROM persona_ownership WHERE asset_id = ?", (ASSET,)
    ).fetchone()
    assert owner == wallet_new


def test_equal_timestamp_is_stale(conn):
    repo = OwnershipRepo(conn)
    assert repo.upsert(ASSET, "p-1", "A", ts(100)) is True
    assert repo.upsert(ASSET, "p-2", "B", ts(100)) is False
    rows = repo.since(ts(0), "", 10)
    assert [(r.persona_id, r.owner_wallet) for r in rows] == [("p-1", "A")]


def test_owns_passes_for_linked_owner(conn):
    own = OwnershipRepo(conn)
    wl = WalletLinkRepo(conn)
    user = uuid4()
    wl.upsert(user, WALLET, True, ts(100))
    own.upsert(ASSET, "p-1", WALLET, ts(100))
    assert own.owns(user, ASSET) is True


def test_owns_rejects_unlinked_owner(conn):
    own = OwnershipRepo(conn)
    wl = WalletLinkRepo(conn)
    user = uuid4()
    wl.upsert(user, WALLET, True, ts(100))
    own.upsert(ASSET, "p-1", WALLET, ts(100))
    wl.upsert(user, WALLET, False, ts(200))
    assert own.owns(user, ASSET) is False


def test_owns_rejects_when_someone_else_owns(conn):
    own = OwnershipRepo(conn)
    wl = WalletLinkRepo(conn)
    user = uuid4()
    wl.upsert(user, "MyWallet111111111111111111111111", True, ts(100))
    own.upsert(ASSET, "p-1", "TheirWallet22222222222222222222", ts(100))
    assert own.owns(user, ASSET) is False


def test_owns_false_for_unknown_asset(conn):
    own = OwnershipRepo(conn)
    assert own.owns(uuid4(), ASSET) is False


def test_since_paginates_compound_cursor(conn):
    repo = OwnershipRepo(conn)
    a1 = "11111111111111111111111111111111"
    a2 = "11111111111111111111111111111112"
    repo.upsert(a2, "p-2", WALLET, ts(100))
    repo.upsert(a1, "p-1", WALLET, ts(100))

    page1 = repo.since(ts(0), "", 1)
    assert [r.asset_id for r in page1] == [a1]
    last = page1[0]
    page2 = repo.since(last.source_updated_at, last.asset_id, 10)
    assert [r.asset_id for r in page2] == [a2]
    assert page2[0].source_updated_at == ts(100)
    assert repo.since(page2[0].source_updated_at, page2[0].asset_id, 10) == []


def test_since_rejects_negative_limit(conn):
    with pytest.raises(ValueError):
        OwnershipRepo(conn).since(ts(0), "", -1)