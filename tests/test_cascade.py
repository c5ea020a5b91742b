"""Reputation cascades."""
import pytest

from helpers import link, make_store
from cascade import ReputationCascadeManager, base_impact
from config import EngineConfig
from profiles import InteractionKind, Outcome


def chain_store(affinity=0.9, config=None):
    store = make_store(["x", "y", "z"], config=config)
    link(store, "x", "y", affinity)
    link(store, "y", "z", affinity)
    link(store, "x", "z", 0.0)
    return store


def test_depth_one_beats_depth_two():
    store = chain_store()
    cascade = ReputationCascadeManager(store).trigger_cascade("x", InteractionKind.HELP, Outcome.POSITIVE)
    by_id = {n.agent_id: n for n in cascade.nodes}
    assert by_id["y"].depth == 1
    assert by_id["z"].depth == 2
    assert abs(by_id["y"].reputation_change) > abs(by_id["z"].reputation_change) > 0
    assert by_id["y"].reputation_change == pytest.approx(15 * 0.6 * 0.45)
    assert by_id["z"].reputation_change == pytest.approx(15 * 0.36 * 0.2025)


def test_reputation_and_relationship_updates():
    store = chain_store()
    store.profile("x").faction = "settlers"
    store.profile("x").group_affiliation = "IF"
    ReputationCascadeManager(store).trigger_cascade("x", InteractionKind.HELP, Outcome.POSITIVE)
    rep = store.profile("y").reputation
    assert rep.global_score == pytest.approx(4.05)
    assert rep.categories["social"] == pytest.approx(4.05)
    assert rep.faction_scores["settlers"] == pytest.approx(4.05)
    assert rep.gang_scores["IF"] == pytest.approx(4.05)
    assert store.relationship("x", "y").affinity == pytest.approx(0.9 + 4.05 * 0.01)
    assert store.profile("x").reputation.global_score == 0.0


def test_negative_affinity_halts_propagation():
    store = chain_store(affinity=-0.5)
    cascade = ReputationCascadeManager(store).trigger_cascade("x", InteractionKind.BETRAYAL, Outcome.NEGATIVE)
    assert cascade.total_reach == 0
    assert cascade.avg_impact == 0.0


def test_cycles_visit_each_agent_once():
    store = make_store(["a", "b", "c", "d"])
    for u, v in [("a", "b"), ("b", "c"), ("c", "d"), ("d", "a"), ("a", "c"), ("b", "d")]:
        link(store, u, v, 1.0)
    cascade = ReputationCascadeManager(store).trigger_cascade("a", InteractionKind.COMBAT, Outcome.POSITIVE)
    ids = [n.agent_id for n in cascade.nodes]
    assert sorted(ids) == ["b", "c", "d"]


def test_depth_is_capped():
    config = EngineConfig(cascade_hop_decay=1.0, cascade_depth_decay=1.0)
    ids = [f"n{i}" for i in range(7)]
    store = make_store(ids, config=config)
    for u, v in zip(ids, ids[1:]):
        link(store, u, v, 1.0)
    cascade = ReputationCascadeManager(store).trigger_cascade("n0", InteractionKind.GIFT, Outcome.POSITIVE)
    assert [n.depth for n in cascade.nodes] == [1, 2, 3]


def test_significant_changes_are_flagged():
    store = chain_store(affinity=1.0)
    cascade = ReputationCascadeManager(store).trigger_cascade("x", InteractionKind.BETRAYAL, Outcome.NEGATIVE)
    first = cascade.nodes[0]
    assert first.reputation_change == pytest.approx(-30 * 0.6 * 0.5)
    assert first.influenced
    assert store.profile("y").reputation.categories["reliability"] == pytest.approx(-9.0)


def test_neutral_outcome_has_no_effect():
    store = chain_store()
    cascade = ReputationCascadeManager(store).trigger_cascade("x", InteractionKind.HELP, Outcome.NEUTRAL)
    assert cascade.nodes == ()
    assert base_impact(InteractionKind.TRADE, Outcome.NEGATIVE) == -10.0


def test_reputation_summary():
    store = chain_store()
    rep = store.profile("y").reputation
    for i in range(7):
        rep.adjust_faction(f"f{i}", float(i))
    manager = ReputationCascadeManager(store)
    summary = manager.reputation_summary("y")
    assert [f["faction"] for f in summary["top_factions"]] == ["f6", "f5", "f4", "f3", "f2"]
    assert summary["top_gangs"] == []
    assert manager.reputation_summary("ghost") is None


def test_cascade_export():
    store = chain_store()
    cascade = ReputationCascadeManager(store).trigger_cascade("x", InteractionKind.HELP, Outcome.POSITIVE, target_id="y")
    data = cascade.as_dict()
    assert data["source_action"] == {"actor_id": "x", "action": "help", "target_id": "y", "outcome": "positive"}
    assert data["total_reach"] == 2
