from uuid import uuid4

import pytest

from companion_store.affinity import (
    AffinityDeltas,
    AffinityRepo,
    RelationshipLabel,
    label_from_str,
    label_to_str,
)
from companion_store.chat import ChatRepo
from companion_store.schema import connect


@pytest.fixture
def conn():
    connection = connect(":memory:")
    yield connection
    connection.close()


@pytest.fixture
def setup(conn):
    user_id = uuid4()
    instance_id = uuid4()
    session = ChatRepo(conn).create_session(user_id, instance_id)
    return AffinityRepo(conn), session.id, user_id, instance_id


def test_load_or_create_idempotent(setup):
    repo, session_id, user_id, instance_id = setup
    a1 = repo.load_or_create(session_id, user_id, instance_id)
    a2 = repo.load_or_create(session_id, user_id, instance_id)
    assert a1.id == a2.id
    assert abs(a1.warmth - 0.3) < 1e-9
    assert abs(a1.intrigue - 0.5) < 1e-9
    assert a1.relationship_label is None


def test_load_unknown_session_is_none(conn):
    assert AffinityRepo(conn).load(uuid4()) is None


def test_save_with_event_updates_vector_and_logs(setup):
    repo, session_id, user_id, instance_id = setup
    a = repo.load_or_create(session_id, user_id, instance_id)
    before = a.warmth
    deltas = AffinityDeltas(warmth=0.4, trust=0.2)
    a.warmth += deltas.warmth
    a.trust += deltas.trust
    repo.save_with_event(a, deltas, "message", {"source": "test"})

    assert a.warmth > before
    reloaded = repo.load(session_id)
    assert abs(reloaded.warmth - a.warmth) < 1e-9
    assert abs(reloaded.trust - a.trust) < 1e-9
    assert repo.count_events(a.id) == 1


def test_save_with_event_persists_label(setup):
    repo, session_id, user_id, instance_id = setup
    a = repo.load_or_create(session_id, user_id, instance_id)
    a.relationship_label = RelationshipLabel.SLOW_BURN
    repo.save_with_event(a, AffinityDeltas(), "message", {})
    assert repo.load(session_id).relationship_label is RelationshipLabel.SLOW_BURN


def test_record_ghost_increments_counters(setup):
    repo, session_id, user_id, instance_id = setup
    a = repo.load_or_create(session_id, user_id, instance_id)
    assert a.ghost_streak == 0
    assert a.total_ghosts == 0
    repo.record_ghost(a)
    repo.record_ghost(a)
    reloaded = repo.load(session_id)
    assert reloaded.ghost_streak == 2
    assert reloaded.total_ghosts == 2
    assert reloaded.last_ghost_at is not None
    assert repo.count_events(a.id) == 2


@pytest.mark.parametrize(
    "text,label",
    [
        ("stranger", RelationshipLabel.STRANGER),
        ("romantic", RelationshipLabel.ROMANTIC),
        ("friend", RelationshipLabel.FRIEND),
        ("frenemy", RelationshipLabel.FRENEMY),
        ("slow_burn", RelationshipLabel.SLOW_BURN),
    ],
)
def test_label_roundtrip(text, label):
    assert label_from_str(text) is label
    assert label_to_str(label) == text


def test_unknown_label_is_none():
    assert label_from_str("nemesis") is None
    assert label_from_str(None) is None


def test_deltas_to_dict():
    d = AffinityDeltas(warmth=0.4, trust=0.2)
    assert d.to_dict() == {
        "warmth": 0.4,
        "trust": 0.2,
        "intrigue": 0.0,
        "intimacy": 0.0,
        "patience": 0.0,
        "tension": 0.0,
    }