"""Reputation cascades: one action's reputation effect rippling through the graph."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Tuple

from affinity import AffinityCalculator
from profiles import InteractionKind, Outcome, clamp

logger = logging.getLogger(__name__)

# (positive, negative) base reputation impact per action kind
IMPACT_VALUES: Dict[InteractionKind, Tuple[float, float]] = {
    InteractionKind.CHAT: (0.0, 0.0),
    InteractionKind.COMBAT: (10.0, -5.0),
    InteractionKind.TRADE: (5.0, -10.0),
    InteractionKind.HELP: (15.0, -15.0),
    InteractionKind.COOPERATION: (10.0, -10.0),
    InteractionKind.GIFT: (8.0, -8.0),
    InteractionKind.BETRAYAL: (-30.0, -30.0),
}

CATEGORY_MAP: Dict[InteractionKind, str] = {
    InteractionKind.COMBAT: "combat",
    InteractionKind.TRADE: "trade",
    InteractionKind.HELP: "social",
    InteractionKind.COOPERATION: "social",
    InteractionKind.GIFT: "social",
    InteractionKind.CHAT: "social",
    InteractionKind.BETRAYAL: "reliability",
}


@dataclass(frozen=True)
class CascadeNode:
    agent_id: str
    depth: int
    reputation_change: float
    relationship_change: float
    influenced: bool

    def as_dict(self) -> Dict[str, object]:
        return {
            "agent_id": self.agent_id,
            "depth": self.depth,
            "reputation_change": self.reputation_change,
            "relationship_change": self.relationship_change,
            "influenced": self.influenced,
        }


@dataclass(frozen=True)
class ReputationCascade:
    actor_id: str
    action: InteractionKind
    target_id: str | None
    outcome: Outcome
    nodes: Tuple[CascadeNode, ...]
    timestamp: datetime

    @property
    def total_reach(self) -> int:
        return len(self.nodes)

    @property
    def avg_impact(self) -> float:
        if not self.nodes:
            return 0.0
        return sum(abs(n.reputation_change) for n in self.nodes) / len(self.nodes)

    def as_dict(self) -> Dict[str, object]:
        return {
            "source_action": {
                "actor_id": self.actor_id,
                "action": self.action.value,
                "target_id": self.target_id,
                "outcome": self.outcome.value,
            },
            "nodes": [n.as_dict() for n in self.nodes],
            "total_reach": self.total_reach,
            "avg_impact": self.avg_impact,
            "timestamp": self.timestamp.isoformat(),
        }


def base_impact(kind: InteractionKind, outcome: Outcome) -> float:
    if outcome is Outcome.NEUTRAL:
        return 0.0
    positive, negative = IMPACT_VALUES[kind]
    return positive if outcome is Outcome.POSITIVE else negative


class ReputationCascadeManager:
    def __init__(self, store):
        self.store = store
        self.config = store.config

    def trigger_cascade(
        self,
        actor_id: str,
        kind: InteractionKind,
        outcome: Outcome,
        target_id: str | None = None,
    ) -> ReputationCascade:
        """Breadth-first spread of the action's reputation effect from ``actor_id``.

        Each hop multiplies the carried strength by the edge affinity and the
        hop decay; hops that fall under the minimum strength are dropped, so
        non-positive affinity stops the spread on that edge. Every agent is
        visited at most once.
        """
        cfg = self.config
        actor = self.store.profile(actor_id)
        impact = base_impact(kind, outcome)
        category = CATEGORY_MAP.get(kind)
        nodes: List[CascadeNode] = []

        with self.store.lock:
            if impact != 0.0:
                visited = {actor_id}
                queue = deque([(actor_id, 0, 1.0)])
                while queue:
                    current, depth, strength = queue.popleft()
                    if depth >= cfg.cascade_max_depth:
                        continue
                    for neighbor_id, rel in self.store.relationships_of(current):
                        if neighbor_id in visited:
                            continue
                        hop_strength = strength * rel.affinity * cfg.cascade_hop_decay
                        if hop_strength < cfg.cascade_min_strength:
                            continue
                        visited.add(neighbor_id)
                        hop_depth = depth + 1
                        change = impact * cfg.cascade_depth_decay ** hop_depth * hop_strength
                        relationship_change = self.apply_reputation_change(
                            neighbor_id, actor, change, category
                        )
                        nodes.append(
                            CascadeNode(
                                agent_id=neighbor_id,
                                depth=hop_depth,
                                reputation_change=change,
                                relationship_change=relationship_change,
                                influenced=abs(change) > cfg.cascade_significance,
                            )
                        )
                        logger.debug(
                            "cascade %s -> %s depth=%d strength=%.3f change=%.3f",
                            actor_id,
                            neighbor_id,
                            hop_depth,
                            hop_strength,
                            change,
                        )
                        queue.append((neighbor_id, hop_depth, hop_strength))

        cascade = ReputationCascade(
            actor_id=actor_id,
            action=kind,
            target_id=target_id,
            outcome=outcome,
            nodes=tuple(nodes),
            timestamp=self.store.now(),
        )
        if nodes:
            logger.info(
                "reputation cascade from %s (%s/%s): reach=%d avg_impact=%.2f",
                actor_id,
                kind.value,
                outcome.value,
                cascade.total_reach,
                cascade.avg_impact,
            )
        return cascade

    def apply_reputation_change(self, agent_id: str, actor, change: float, category: str | None) -> float:
        """Apply ``change`` to one visited agent; returns the affinity shift toward the actor."""
        profile = self.store.profile(agent_id)
        profile.reputation.adjust(change, category)
        if actor.faction:
            profile.reputation.adjust_faction(actor.faction, change)
        if actor.group_affiliation:
            profile.reputation.adjust_gang(actor.group_affiliation, change)

        rel = self.store.relationship(agent_id, actor.agent_id)
        if rel is None:
            return 0.0
        before = rel.affinity
        rel.affinity = clamp(rel.affinity + change * self.config.cascade_affinity_nudge, -1.0, 1.0)
        rel.relationship_type = AffinityCalculator.classify(rel.affinity, rel.trust)
        return rel.affinity - before

    def reputation_summary(self, agent_id: str) -> Dict[str, object] | None:
        profile = self.store.get_profile(agent_id)
        if profile is None:
            return None
        rep = profile.reputation
        top_factions = sorted(rep.faction_scores.items(), key=lambda kv: kv[1], reverse=True)[:5]
        top_gangs = sorted(rep.gang_scores.items(), key=lambda kv: kv[1], reverse=True)[:5]
        return {
            "global": rep.global_score,
            "categories": dict(rep.categories),
            "top_factions": [{"faction": f, "rep": r} for f, r in top_factions],
            "top_gangs": [{"gang": g, "rep": r} for g, r in top_gangs],
        }
