from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List

import numpy as np
from mesa import Agent, DataCollector, Model

from affinity import AffinityCalculator
from cascade import ReputationCascade, ReputationCascadeManager
from config import ARCHETYPES, EngineConfig, config_from_dict
from coordination import ActionResult, GangCoordinationAction, GangCoordinationSystem
from formation import GangFormationProposal, OrganicGangFormation
from influence import InfluenceEvent, InfluenceSpreadingSystem
from network import FriendshipNetworkAnalyzer, NetworkAnalysis, compute_network_metrics
from profiles import (
    ActionKind,
    AgentProfile,
    InfluenceKind,
    InteractionKind,
    InteractionRecord,
    Outcome,
    PersonalityTraits,
    RelationshipType,
    Relationship,
    ReputationScores,
    infer_archetype,
    pair_key,
)
from store import SocialStore

logger = logging.getLogger(__name__)

DEFAULT_FACTIONS = ("settlers", "nahi", "frontera")

INFLUENCE_MESSAGES = (
    "Let's coordinate our next move",
    "I found a great opportunity",
    "We should watch out for that gang",
    "Anyone want to team up?",
)

FAVOR_KINDS = (InteractionKind.GIFT, InteractionKind.HELP)


@dataclass
class StepResult:
    gang_proposals: List[GangFormationProposal] = field(default_factory=list)
    network_analysis: NetworkAnalysis | None = None
    influence_events: List[InfluenceEvent] = field(default_factory=list)
    coordinated_actions: List[GangCoordinationAction] = field(default_factory=list)
    formed_gangs: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, object]:
        return {
            "gang_proposals": [p.as_dict() for p in self.gang_proposals],
            "network_analysis": self.network_analysis.as_dict() if self.network_analysis else None,
            "influence_events": [e.as_dict() for e in self.influence_events],
            "coordinated_actions": [a.as_dict() for a in self.coordinated_actions],
            "formed_gangs": list(self.formed_gangs),
        }


class SocialAgent(Agent):
    """mesa handle for one registered profile; all state lives in the store."""

    def __init__(self, model: "SocialDynamicsModel", agent_id: str):
        super().__init__(model)
        self.agent_id = agent_id

    @property
    def profile(self) -> AgentProfile:
        return self.model.store.profile(self.agent_id)

    @property
    def active(self) -> bool:
        return self.profile.active

    def context(self) -> Dict[str, object] | None:
        return self.model.get_agent_context(self.agent_id)


class SocialDynamicsModel(Model):
    def __init__(
        self,
        n_agents: int = 0,
        seed: int | None = None,
        config: EngineConfig | None = None,
        factions: List[str] | None = None,
        trait_spread: float = 0.1,
        clock=None,
        **kwargs,
    ):
        super().__init__(seed=seed)
        self.rng = np.random.default_rng(seed)
        self.config = config or EngineConfig()
        self.store = SocialStore(self.config, clock=clock)
        self.factions = list(factions) if factions is not None else list(DEFAULT_FACTIONS)
        self.trait_spread = trait_spread
        self.step_count = 0
        self.event_log: List[tuple] = []
        self.last_metrics: Dict[str, float] = {}
        self.last_result: StepResult | None = None
        self.last_analysis: NetworkAnalysis | None = None
        self._agent_by_id: Dict[str, SocialAgent] = {}

        self.affinity = AffinityCalculator(self.config)
        self.analyzer = FriendshipNetworkAnalyzer(self.store, self.rng)
        self.formation = OrganicGangFormation(self.store, self.rng)
        self.cascades = ReputationCascadeManager(self.store)
        self.influence = InfluenceSpreadingSystem(self.store)
        self.coordination = GangCoordinationSystem(self.store, self.rng)

        self.run_metadata = {
            "seed": seed,
            "n_agents": n_agents,
            "factions": list(self.factions),
            "trait_spread": trait_spread,
        }

        for i in range(n_agents):
            self.spawn(f"agent-{i}")

        self.datacollector = DataCollector(
            model_reporters={
                "agents": lambda m: len(m.store.profiles(active_only=True)),
                "relationships": lambda m: m.store.relationship_count(),
                "avg_affinity": lambda m: m.last_metrics.get("avg_affinity", 0.0),
                "friend_count": lambda m: m.last_metrics.get("friend_count", 0.0),
                "rival_count": lambda m: m.last_metrics.get("rival_count", 0.0),
                "gang_count": lambda m: len(m.store.groups()),
                "density": lambda m: m.last_metrics.get("density", 0.0),
                "clustering": lambda m: m.last_metrics.get("clustering", 0.0),
                "avg_path_length": lambda m: m.last_metrics.get("avg_path_length", 0.0),
                "degree_mean": lambda m: m.last_metrics.get("degree_mean", 0.0),
                "degree_gini": lambda m: m.last_metrics.get("degree_gini", 0.0),
                "clusters": lambda m: m.last_metrics.get("clusters", 0.0),
                "gang_proposals": lambda m: m.last_metrics.get("gang_proposals", 0.0),
                "influence_reach": lambda m: m.last_metrics.get("influence_reach", 0.0),
                "planned_actions": lambda m: m.last_metrics.get("planned_actions", 0.0),
                "reputation_mean": lambda m: float(np.mean([p.reputation.global_score for p in m.store.profiles(True)])) if len(m.store) else 0.0,
                "influence_mean": lambda m: float(np.mean([p.influence for p in m.store.profiles(True)])) if len(m.store) else 0.0,
            }
        )

    # registration

    def register(
        self,
        agent_id: str,
        name: str,
        personality: PersonalityTraits,
        faction: str | None = None,
        archetype: str | None = None,
    ) -> AgentProfile:
        """Add a profile and one relationship to every agent already registered."""
        profile = AgentProfile(
            agent_id=agent_id,
            name=name,
            personality=personality,
            archetype=archetype or infer_archetype(personality),
            faction=faction,
            influence=self.config.base_influence,
            trustworthiness=self.config.base_trustworthiness,
        )
        with self.store.lock:
            self.store.add_profile(profile)
            for other in self.store.profiles():
                if other.agent_id == agent_id:
                    continue
                affinity = self.affinity.initial_affinity(profile, other)
                trust = self.config.initial_trust
                self.store.add_relationship(
                    Relationship(
                        agents=pair_key(agent_id, other.agent_id),
                        affinity=affinity,
                        trust=trust,
                        relationship_type=AffinityCalculator.classify(affinity, trust),
                        shared_faction=faction if faction and faction == other.faction else None,
                    )
                )
        agent = SocialAgent(self, agent_id)
        self._agent_by_id[agent_id] = agent
        self.log_event("register", {"agent_id": agent_id, "archetype": profile.archetype, "faction": faction})
        return profile

    def spawn(self, agent_id: str, archetype: str | None = None, faction: str | None = None) -> AgentProfile:
        """Register an agent with archetype-jittered traits drawn from the model rng."""
        names = sorted(ARCHETYPES)
        archetype = archetype or names[int(self.rng.integers(0, len(names)))]
        if faction is None and self.factions:
            faction = self.factions[int(self.rng.integers(0, len(self.factions)))]
        traits = PersonalityTraits.variant(archetype, self.rng, spread=self.trait_spread)
        return self.register(agent_id, agent_id, traits, faction=faction, archetype=archetype)

    def deactivate(self, agent_id: str) -> None:
        with self.store.lock:
            self.store.profile(agent_id).active = False
        self.log_event("deactivate", {"agent_id": agent_id})

    def agent(self, agent_id: str) -> SocialAgent | None:
        return self._agent_by_id.get(agent_id)

    # interactions

    def get_relationship(self, agent_a: str, agent_b: str) -> Relationship | None:
        return self.store.relationship(agent_a, agent_b)

    def record_interaction(
        self,
        agent_a: str,
        agent_b: str,
        kind: InteractionKind,
        outcome: Outcome,
        context: str | None = None,
    ) -> ReputationCascade | None:
        """Apply one interaction to the pair's shared relationship.

        Returns the reputation cascade when the affinity shift was large enough
        to trigger one. Interacting with oneself is ignored.
        """
        kind = InteractionKind(kind)
        outcome = Outcome(outcome)
        cfg = self.config
        with self.store.lock:
            profile_a = self.store.profile(agent_a)
            profile_b = self.store.profile(agent_b)
            if agent_a == agent_b:
                return None

            rel = self.store.relationship(agent_a, agent_b)
            if rel is None:
                affinity = self.affinity.initial_affinity(profile_a, profile_b)
                rel = self.store.add_relationship(
                    Relationship(agents=pair_key(agent_a, agent_b), affinity=affinity, trust=cfg.initial_trust)
                )

            d_aff, d_trust = self.affinity.interaction_delta(kind, outcome, rel.affinity, rel.trust)
            d_aff, d_trust = rel.apply(d_aff, d_trust)
            now = self.store.now()
            rel.interactions += 1
            rel.last_interaction = now
            rel.relationship_type = AffinityCalculator.classify(rel.affinity, rel.trust)

            record = InteractionRecord(
                timestamp=now,
                kind=kind,
                outcome=outcome,
                affinity_delta=d_aff,
                trust_delta=d_trust,
                initiator=agent_a,
                context=context,
            )
            rel.append(record, cfg.history_cap)
            profile_a.social_memory.remember(agent_b, record, cfg.history_cap)
            profile_b.social_memory.remember(agent_a, record, cfg.history_cap)

            if kind is InteractionKind.BETRAYAL and outcome is not Outcome.NEUTRAL:
                profile_b.social_memory.record_betrayal(agent_a, abs(d_aff), now)
            if kind in FAVOR_KINDS and outcome is Outcome.POSITIVE:
                profile_a.social_memory.record_favor(agent_b, given=True)
                profile_b.social_memory.record_favor(agent_a, given=False)
                profile_b.popularity += cfg.popularity_step
            is_ally = rel.relationship_type is RelationshipType.ALLY
            profile_a.social_memory.set_ally(agent_b, is_ally)
            profile_b.social_memory.set_ally(agent_a, is_ally)

            cascade = None
            if abs(d_aff) > cfg.cascade_trigger_threshold:
                cascade = self.cascades.trigger_cascade(agent_a, kind, outcome, target_id=agent_b)
        if cascade is not None:
            self.log_event("cascade", cascade.as_dict())
        return cascade

    # simulation step

    def run_step(self) -> StepResult:
        """One analysis tick over a frozen snapshot of the store.

        Gang proposals are only detected; the strongest ones above the
        auto-execute bar are formed. Coordinated actions are planned, never
        executed.
        """
        cfg = self.config
        graph = self.store.snapshot()

        analysis = self.analyzer.analyze(graph)
        proposals = self.formation.identify_potential_gangs(graph)
        formed = []
        for proposal in proposals[: cfg.auto_execute_limit]:
            if proposal.avg_affinity > cfg.auto_execute_affinity:
                formed.append(self.formation.execute_formation(proposal))

        events = []
        for seed_id in analysis.central_nodes[: cfg.influence_seeds_per_step]:
            message = INFLUENCE_MESSAGES[int(self.rng.integers(0, len(INFLUENCE_MESSAGES)))]
            events.append(self.influence.spread(seed_id, InfluenceKind.OPINION, message))

        actions = []
        with self.store.lock:
            for gang_id, member_ids in self.store.groups().items():
                kind = self.coordination.suggest_action_kind(gang_id)
                if kind is None:
                    continue
                # a gang has at most one outstanding plan
                for stale in self.coordination.pending(gang_id):
                    self.coordination.cancel_action(stale)
                active = [self.store.profile(m) for m in member_ids if self.store.profile(m).active]
                coordinator = max(active, key=lambda p: p.influence)
                action = self.coordination.plan_action(gang_id, kind, coordinator.agent_id)
                if action is not None:
                    actions.append(action)

        self.step_count += 1
        self.last_analysis = analysis
        result = StepResult(
            gang_proposals=proposals,
            network_analysis=analysis,
            influence_events=events,
            coordinated_actions=actions,
            formed_gangs=formed,
        )
        self._update_metrics(graph, result)
        for tag in formed:
            self.log_event("gang_formed", {"tag": tag, "members": self.store.group_members(tag)})
        logger.info(
            "step %d: %d nodes, %d edges, %d clusters, density %.1f%%, %d proposals, %d formed, %d influence events, %d actions",
            self.step_count,
            len(analysis.nodes),
            len(analysis.edges),
            len(analysis.clusters),
            analysis.density * 100,
            len(proposals),
            len(formed),
            len(events),
            len(actions),
        )
        return result

    def step(self):
        self.last_result = self.run_step()
        self.datacollector.collect(self)

    def _update_metrics(self, graph, result: StepResult) -> None:
        analysis = result.network_analysis
        stats = self.relationship_stats()
        metrics = compute_network_metrics(graph, analysis=analysis)
        self.last_metrics = {
            "avg_affinity": stats["avg_affinity"],
            "friend_count": float(stats["friend_count"]),
            "rival_count": float(stats["rival_count"]),
            "density": analysis.density,
            "clustering": analysis.clustering_coefficient,
            "avg_path_length": analysis.avg_path_length,
            "degree_mean": metrics.degree_mean,
            "degree_gini": metrics.degree_gini,
            "clusters": float(len(analysis.clusters)),
            "gang_proposals": float(len(result.gang_proposals)),
            "influence_reach": float(sum(len(e.target_ids) for e in result.influence_events)),
            "planned_actions": float(len(result.coordinated_actions)),
        }

    # gang actions

    def execute_proposal(self, proposal: GangFormationProposal) -> str:
        tag = self.formation.execute_formation(proposal)
        self.log_event("gang_formed", {"tag": tag, "members": self.store.group_members(tag)})
        return tag

    def plan_action(self, gang_id: str, kind: ActionKind, coordinator_id: str, **options) -> GangCoordinationAction | None:
        return self.coordination.plan_action(gang_id, ActionKind(kind), coordinator_id, **options)

    def execute_action(self, action: GangCoordinationAction) -> ActionResult:
        result = self.coordination.execute_action(action)
        self.log_event("action", {"action": action.as_dict(), "success": result.success})
        return result

    # queries and export

    def get_agent_context(self, agent_id: str) -> Dict[str, object] | None:
        profile = self.store.get_profile(agent_id)
        if profile is None:
            return None
        buckets: Dict[RelationshipType, List[str]] = {t: [] for t in RelationshipType}
        for other_id, rel in self.store.relationships_of(agent_id):
            buckets[rel.relationship_type].append(other_id)
        group_members = []
        if profile.group_affiliation:
            group_members = [m for m in self.store.group_members(profile.group_affiliation) if m != agent_id]
        return {
            "friends": buckets[RelationshipType.FRIEND],
            "allies": buckets[RelationshipType.ALLY],
            "rivals": buckets[RelationshipType.RIVAL],
            "enemies": buckets[RelationshipType.ENEMY],
            "group_members": group_members,
            "influence": profile.influence,
            "reputation": profile.reputation.global_score,
        }

    def relationship_stats(self) -> Dict[str, float]:
        friendly = (RelationshipType.FRIEND, RelationshipType.ALLY)
        hostile = (RelationshipType.RIVAL, RelationshipType.ENEMY)
        with self.store.lock:
            rels = self.store.relationships()
            affinities = [r.affinity for r in rels]
            types = [r.relationship_type for r in rels]
        return {
            "total_relationships": len(rels),
            "avg_affinity": float(np.mean(affinities)) if rels else 0.0,
            "friend_count": sum(1 for t in types if t in friendly),
            "rival_count": sum(1 for t in types if t in hostile),
        }

    def analytics(self, analysis: NetworkAnalysis | None = None) -> Dict[str, object]:
        analysis = analysis or self.last_analysis or self.analyzer.analyze()
        stats = self.relationship_stats()
        return {
            "total_agents": len(self.store),
            "active_agents": len(self.store.profiles(active_only=True)),
            **stats,
            "gang_count": len(self.store.groups()),
            "top_influencers": self.influence.top_influencers(10),
            "network_metrics": {
                "density": analysis.density,
                "avg_path_length": analysis.avg_path_length,
                "clustering_coefficient": analysis.clustering_coefficient,
            },
        }

    def export_visualization(self) -> Dict[str, List[Dict[str, object]]]:
        return self.analyzer.visualization(self.last_analysis)

    def export_state(self) -> Dict[str, object]:
        """JSON-friendly snapshot: profiles, relationships, analytics and a fresh analysis."""
        with self.store.lock:
            profiles = []
            for p in self.store.profiles():
                entry = p.summary()
                entry["relationship_count"] = self.store.degree(p.agent_id)
                entry["reputation_scores"] = p.reputation.as_dict()
                profiles.append(entry)
            relationships = [r.as_dict() for r in self.store.relationships()]
        analysis = self.analyzer.analyze()
        return {
            "step": self.step_count,
            "config": self.config.as_dict(),
            "profiles": profiles,
            "relationships": relationships,
            "analytics": self.analytics(analysis),
            "network_analysis": analysis.as_dict(),
        }

    @classmethod
    def from_state(cls, state: Dict[str, object], seed: int | None = None) -> "SocialDynamicsModel":
        """Rebuild a model from ``export_state`` output without recomputing affinities."""
        model = cls(seed=seed, config=config_from_dict(state.get("config") or {}))
        with model.store.lock:
            for entry in state.get("profiles", []):
                scores = entry.get("reputation_scores") or {}
                reputation = ReputationScores(
                    global_score=float(scores.get("global", entry.get("reputation", 0.0))),
                    categories=dict(scores.get("categories") or ReputationScores().categories),
                    faction_scores=dict(scores.get("factions") or {}),
                    gang_scores=dict(scores.get("gangs") or {}),
                    law_enforcement=float(scores.get("law_enforcement", 0.0)),
                )
                profile = AgentProfile(
                    agent_id=entry["id"],
                    name=entry.get("name", entry["id"]),
                    personality=PersonalityTraits(**entry.get("traits", {})),
                    archetype=entry.get("personality", "chaos"),
                    faction=entry.get("faction"),
                    group_affiliation=entry.get("gang"),
                    reputation=reputation,
                    influence=float(entry.get("influence", model.config.base_influence)),
                    popularity=float(entry.get("popularity", 0.0)),
                    trustworthiness=float(entry.get("trustworthiness", model.config.base_trustworthiness)),
                    active=bool(entry.get("active", True)),
                )
                model.store.add_profile(profile)
                model._agent_by_id[profile.agent_id] = SocialAgent(model, profile.agent_id)
            for entry in state.get("relationships", []):
                a, b = entry["agents"]
                model.store.add_relationship(
                    Relationship(
                        agents=pair_key(a, b),
                        affinity=float(entry.get("affinity", 0.0)),
                        trust=float(entry.get("trust", model.config.initial_trust)),
                        interactions=int(entry.get("interactions", 0)),
                        last_interaction=datetime.fromisoformat(entry["last_interaction"]) if entry.get("last_interaction") else None,
                        relationship_type=RelationshipType(entry.get("relationship_type", "stranger")),
                        shared_faction=entry.get("shared_faction"),
                    )
                )
        model.step_count = int(state.get("step", 0))
        return model

    def log_event(self, tag: str, payload: object):
        self.event_log.append((tag, payload))
