"""Influence spreading and opinion cascades."""
import pytest

from helpers import link, make_profile, make_store
from errors import UnknownAgentError
from influence import InfluenceSpreadingSystem, susceptibility
from profiles import InfluenceKind


def chain(influence=90.0, tail_loyalty=0.0):
    store = make_store(["s", "a"], influence=influence, sociability=1.0, loyalty=0.0)
    store.add_profile(make_profile("b", influence=influence, sociability=1.0, loyalty=tail_loyalty))
    link(store, "s", "a", 1.0, trust=1.0)
    link(store, "a", "b", 1.0, trust=1.0)
    return store


def test_spread_reaches_along_the_chain():
    store = chain()
    event = InfluenceSpreadingSystem(store).spread("s", InfluenceKind.OPINION, "ride at dawn")
    assert event.target_ids == ("a", "b")
    assert event.propagation_depth == 3
    assert event.kind is InfluenceKind.OPINION
    assert store.profile("s").influence == pytest.approx(90.2)


def test_low_influence_source_reaches_nobody():
    store = chain(influence=10.0)
    event = InfluenceSpreadingSystem(store).spread("s", InfluenceKind.OPINION, "hello")
    assert event.propagation_depth == 1
    assert event.target_ids == ()
    assert store.profile("s").influence == 10.0


def test_depth_limit_from_influence():
    store = chain(influence=30.0)
    system = InfluenceSpreadingSystem(store)
    assert system.max_depth(store.profile("s")) == 1
    store.profile("s").influence = 31.0
    assert system.max_depth(store.profile("s")) == 2


def test_unknown_source_raises():
    with pytest.raises(UnknownAgentError):
        InfluenceSpreadingSystem(chain()).spread("ghost", InfluenceKind.BEHAVIOR, "x")


def test_susceptibility_by_kind():
    loyal = make_profile("l", loyalty=1.0, sociability=0.0, patience=1.0)
    fickle = make_profile("f", loyalty=0.0, sociability=1.0, patience=0.0)
    for kind in InfluenceKind:
        assert susceptibility(fickle, kind) > susceptibility(loyal, kind)
    assert susceptibility(loyal, InfluenceKind.BEHAVIOR) == pytest.approx(0.5)
    assert susceptibility(fickle, InfluenceKind.EMOTION) == pytest.approx(1.0)


def test_opinion_cascade_partitions_neighbours():
    store = chain(tail_loyalty=1.0)
    result = InfluenceSpreadingSystem(store).simulate_opinion_cascade("s", "the sheriff is crooked")
    assert result.adopters == ("s", "a")
    assert result.resisters == ("b",)
    assert result.undecided == ()
    assert result.final_adoption == pytest.approx(2 / 3)
    # read-only
    assert store.profile("s").influence == 90.0


def test_top_influencers():
    store = chain()
    store.profile("a").influence = 95.0
    store.profile("b").active = False
    ranked = InfluenceSpreadingSystem(store).top_influencers(5)
    assert [r["agent_id"] for r in ranked] == ["a", "s"]
    assert ranked[0]["reach"] == 1


def square_with_chord():
    ids = ["s", "a", "b", "c"]
    store = make_store(ids, influence=100.0, sociability=1.0, loyalty=0.0)
    for u, v in (("s", "a"), ("a", "b"), ("b", "c"), ("c", "s"), ("a", "c")):
        link(store, u, v, 1.0, trust=1.0)
    return store


def test_spread_on_cycle_reaches_each_agent_once():
    store = square_with_chord()
    event = InfluenceSpreadingSystem(store).spread("s", InfluenceKind.OPINION, "meet at the mill")
    assert sorted(event.target_ids) == ["a", "b", "c"]
    assert len(event.target_ids) == len(set(event.target_ids))
    assert "s" not in event.target_ids


def test_opinion_cascade_on_cycle_places_each_agent_once():
    store = square_with_chord()
    result = InfluenceSpreadingSystem(store).simulate_opinion_cascade("s", "trust the ferryman", initial_adoption=1.0)
    placed = result.adopters + result.resisters + result.undecided
    assert sorted(placed) == ["a", "b", "c", "s"]
    assert result.adopters[0] == "s"
    assert set(result.adopters) == {"s", "a", "c"}
    assert result.undecided == ("b",)
