"""Orchestrator behaviour: registration, interactions, steps and export."""
import json
import os
import sys
import threading

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from model import SocialDynamicsModel, StepResult
from errors import DuplicateAgentError, UnknownAgentError
from profiles import (
    InteractionKind,
    Outcome,
    PersonalityTraits,
    RelationshipType,
)


def social():
    return PersonalityTraits.from_archetype("social")


def test_scenario_cooperation_builds_alliance():
    model = SocialDynamicsModel(seed=1)
    model.register("a", "Ana", social(), faction="settlers")
    model.register("b", "Bea", social(), faction="settlers")
    rel = model.get_relationship("a", "b")
    assert rel.relationship_type not in (RelationshipType.ENEMY, RelationshipType.RIVAL)
    for _ in range(10):
        model.record_interaction("a", "b", InteractionKind.COOPERATION, Outcome.POSITIVE)
    assert rel.affinity > 0.5
    assert rel.relationship_type in (RelationshipType.ALLY, RelationshipType.FRIEND)
    assert rel.interactions == 10


def test_single_canonical_relationship():
    model = SocialDynamicsModel(n_agents=6, seed=3)
    ids = model.store.ids()
    assert model.store.relationship_count() == 15
    for a in ids:
        for b in ids:
            if a != b:
                assert model.get_relationship(a, b) is model.get_relationship(b, a)
    model.record_interaction(ids[0], ids[1], InteractionKind.TRADE, Outcome.NEGATIVE)
    assert model.get_relationship(ids[1], ids[0]).interactions == 1


def test_register_errors():
    model = SocialDynamicsModel(seed=0)
    model.register("a", "A", social())
    with pytest.raises(DuplicateAgentError):
        model.register("a", "A again", social())
    with pytest.raises(UnknownAgentError):
        model.record_interaction("a", "ghost", InteractionKind.CHAT, Outcome.POSITIVE)
    assert model.get_relationship("a", "ghost") is None
    assert model.get_agent_context("ghost") is None


def test_self_interaction_is_ignored():
    model = SocialDynamicsModel(n_agents=2, seed=0)
    assert model.record_interaction("agent-0", "agent-0", InteractionKind.GIFT, Outcome.POSITIVE) is None
    assert model.get_relationship("agent-0", "agent-1").interactions == 0


def test_history_is_bounded_and_memory_updated():
    model = SocialDynamicsModel(n_agents=2, seed=0)
    for i in range(25):
        model.record_interaction("agent-0", "agent-1", InteractionKind.CHAT, Outcome.POSITIVE, context=str(i))
    rel = model.get_relationship("agent-0", "agent-1")
    assert len(rel.history) == 20
    assert rel.history[0].context == "5"
    memory = model.store.profile("agent-1").social_memory
    assert len(memory.positive_interactions["agent-0"]) == 20


def test_betrayal_triggers_cascade_and_grudge():
    model = SocialDynamicsModel(seed=0)
    for agent_id in ("a", "b", "c"):
        model.register(agent_id, agent_id, social(), faction="settlers")
    cascade = model.record_interaction("a", "b", InteractionKind.BETRAYAL, Outcome.NEGATIVE)
    assert cascade is not None
    assert "b" in {n.agent_id for n in cascade.nodes}
    memory = model.store.profile("b").social_memory
    assert memory.betrayals == ["a"]
    assert memory.grudges["a"].severity == pytest.approx(0.5)
    assert model.event_log[-1][0] == "cascade"


def test_small_changes_do_not_cascade():
    model = SocialDynamicsModel(n_agents=3, seed=0)
    assert model.record_interaction("agent-0", "agent-1", InteractionKind.CHAT, Outcome.POSITIVE) is None


def test_favors_and_popularity():
    model = SocialDynamicsModel(n_agents=2, seed=0)
    model.record_interaction("agent-0", "agent-1", InteractionKind.GIFT, Outcome.POSITIVE)
    assert model.store.profile("agent-0").social_memory.favors["agent-1"]["given"] == 1
    assert model.store.profile("agent-1").social_memory.favors["agent-0"]["received"] == 1
    assert model.store.profile("agent-1").popularity == pytest.approx(0.5)


def test_agent_context_buckets():
    model = SocialDynamicsModel(seed=0)
    model.register("a", "A", social(), faction="nahi")
    model.register("b", "B", social(), faction="nahi")
    model.register("c", "C", PersonalityTraits(sociability=0.0, aggression=1.0, loyalty=0.0), faction="frontera")
    context = model.get_agent_context("a")
    assert context["friends"] == ["b"]
    assert context["enemies"] == ["c"]
    assert context["group_members"] == []
    assert context["influence"] == 10.0
    assert model.agent("a").context() == context


def test_run_step_forms_and_plans():
    model = SocialDynamicsModel(seed=4)
    for i in range(4):
        model.register(f"s{i}", f"S{i}", social(), faction="settlers")
    result = model.run_step()
    assert isinstance(result, StepResult)
    assert len(result.gang_proposals) == 1
    assert len(result.formed_gangs) == 1
    tag = result.formed_gangs[0]
    assert sorted(model.store.group_members(tag)) == ["s0", "s1", "s2", "s3"]
    assert result.coordinated_actions
    assert all(a.status.value == "planned" for a in result.coordinated_actions)
    assert result.network_analysis is not None
    assert len(result.influence_events) == 1
    json.dumps(result.as_dict())


def test_run_step_without_agents():
    model = SocialDynamicsModel(seed=0)
    result = model.run_step()
    assert result.gang_proposals == []
    assert result.network_analysis.nodes == []
    assert model.step_count == 1


def test_deactivated_agents_are_kept_but_skipped():
    model = SocialDynamicsModel(n_agents=5, seed=2)
    model.deactivate("agent-0")
    assert "agent-0" in model.store
    result = model.run_step()
    assert "agent-0" not in {n.id for n in result.network_analysis.nodes}
    assert model.analytics()["active_agents"] == 4


def test_export_state_round_trip():
    model = SocialDynamicsModel(n_agents=8, seed=11)
    ids = model.store.ids()
    for a, b in zip(ids, ids[1:]):
        model.record_interaction(a, b, InteractionKind.HELP, Outcome.POSITIVE)
    model.step()
    state = json.loads(json.dumps(model.export_state()))
    clone = SocialDynamicsModel.from_state(state, seed=11)
    assert len(clone.store) == len(model.store)
    assert clone.store.relationship_count() == model.store.relationship_count()
    assert clone.relationship_stats()["avg_affinity"] == pytest.approx(model.relationship_stats()["avg_affinity"])
    assert clone.store.groups() == model.store.groups()
    assert clone.step_count == model.step_count
    assert state["analytics"]["total_relationships"] == 28


def test_export_visualization():
    model = SocialDynamicsModel(n_agents=4, seed=0)
    viz = model.export_visualization()
    assert len(viz["nodes"]) == 4
    assert all({"source", "target", "value", "color"} <= set(link) for link in viz["links"])


def test_manual_gang_actions():
    model = SocialDynamicsModel(seed=5)
    for i in range(3):
        model.register(f"g{i}", f"G{i}", social(), faction="nahi")
    proposal = model.formation.identify_potential_gangs()[0]
    tag = model.execute_proposal(proposal)
    action = model.plan_action(tag, "defense", "g0")
    assert action is not None
    result = model.execute_action(action)
    assert result.action_id == action.action_id
    assert model.event_log[-1][0] == "action"


def test_repeated_steps_keep_one_plan_per_gang():
    model = SocialDynamicsModel(seed=4)
    for i in range(4):
        model.register(f"s{i}", f"S{i}", social(), faction="settlers")
    first = model.run_step().coordinated_actions
    for _ in range(3):
        model.run_step()
    gangs = model.store.groups()
    assert len(model.coordination.actions) <= len(gangs)
    assert all(a.status.value == "cancelled" for a in first)


def test_export_visualization_reuses_last_analysis():
    def trajectory(export):
        model = SocialDynamicsModel(n_agents=8, seed=21)
        ids = model.store.ids()
        for a, b in zip(ids, ids[1:]):
            model.record_interaction(a, b, InteractionKind.HELP, Outcome.POSITIVE)
        values = []
        for _ in range(3):
            model.step()
            if export:
                model.export_visualization()
            values.append(model.last_metrics["avg_path_length"])
        return values

    assert trajectory(True) == trajectory(False)


def test_readers_tolerate_concurrent_registration():
    model = SocialDynamicsModel(seed=0)
    errors = []
    done = threading.Event()

    def read_loop():
        try:
            while not done.is_set():
                model.store.groups()
                model.store.profiles(active_only=True)
                model.relationship_stats()
        except RuntimeError as exc:
            errors.append(exc)

    reader = threading.Thread(target=read_loop)
    reader.start()
    try:
        for i in range(150):
            model.register(f"r{i}", f"R{i}", social(), faction="settlers")
    finally:
        done.set()
        reader.join()
    assert errors == []
    assert model.relationship_stats()["total_relationships"] == 150 * 149 // 2
