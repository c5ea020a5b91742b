"""Influence spreading and opinion adoption over the relationship graph."""

from __future__ import annotations

import logging
import math
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Tuple

from profiles import AgentProfile, InfluenceKind, Relationship, clamp01

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InfluenceEvent:
    source_id: str
    target_ids: Tuple[str, ...]
    kind: InfluenceKind
    strength: float
    message: str
    timestamp: datetime
    propagation_depth: int

    def as_dict(self) -> Dict[str, object]:
        return {
            "source_id": self.source_id,
            "target_ids": list(self.target_ids),
            "kind": self.kind.value,
            "strength": self.strength,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "propagation_depth": self.propagation_depth,
        }


@dataclass(frozen=True)
class OpinionCascadeResult:
    opinion: str
    adopters: Tuple[str, ...]
    resisters: Tuple[str, ...]
    undecided: Tuple[str, ...]
    final_adoption: float

    def as_dict(self) -> Dict[str, object]:
        return {
            "opinion": self.opinion,
            "adopters": list(self.adopters),
            "resisters": list(self.resisters),
            "undecided": list(self.undecided),
            "final_adoption": self.final_adoption,
        }


def susceptibility(profile: AgentProfile, kind: InfluenceKind) -> float:
    t = profile.personality
    if kind is InfluenceKind.BEHAVIOR:
        return 1.0 - t.loyalty * 0.5
    if kind is InfluenceKind.OPINION:
        return t.sociability * 0.7 + (1.0 - t.loyalty) * 0.3
    if kind is InfluenceKind.ACTION:
        return (1.0 - t.patience) * 0.6 + t.sociability * 0.4
    if kind is InfluenceKind.EMOTION:
        return t.sociability * 0.5 + (1.0 - t.patience) * 0.5
    return 0.5


class InfluenceSpreadingSystem:
    def __init__(self, store):
        self.store = store
        self.config = store.config

    def propagation_strength(
        self,
        source: AgentProfile,
        target: AgentProfile,
        rel: Relationship,
        kind: InfluenceKind,
        current: float,
    ) -> float:
        strength = current
        strength *= (rel.affinity + 1.0) / 2.0
        strength *= rel.trust
        strength *= source.influence / 100.0
        strength *= susceptibility(target, kind)
        strength *= self.config.influence_decay
        return clamp01(strength)

    def max_depth(self, profile: AgentProfile) -> int:
        return math.ceil(profile.influence / self.config.influence_depth_divisor)

    def spread(
        self,
        source_id: str,
        kind: InfluenceKind,
        message: str,
        initial_strength: float = 1.0,
    ) -> InfluenceEvent:
        """Push an influence outward from ``source_id``.

        Reach is bounded by the source's influence. Each target reached nudges the
        source's influence up, so repeated use widens future spreads.
        """
        cfg = self.config
        source = self.store.profile(source_id)
        depth_limit = self.max_depth(source)
        reached: List[str] = []

        with self.store.lock:
            visited = {source_id}
            queue = deque([(source_id, 0, initial_strength)])
            while queue:
                current_id, depth, strength = queue.popleft()
                if depth >= depth_limit:
                    continue
                current = self.store.profile(current_id)
                for neighbor_id, rel in self.store.relationships_of(current_id):
                    if neighbor_id in visited:
                        continue
                    visited.add(neighbor_id)
                    target = self.store.profile(neighbor_id)
                    hop = self.propagation_strength(current, target, rel, kind, strength)
                    if hop < cfg.influence_min_strength:
                        continue
                    reached.append(neighbor_id)
                    source.influence = min(100.0, source.influence + cfg.influence_nudge)
                    logger.debug(
                        "%s influenced by %s (%s): %s [strength %.1f%%]",
                        target.name,
                        source_id,
                        kind.value,
                        message,
                        hop * 100,
                    )
                    queue.append((neighbor_id, depth + 1, hop))

        return InfluenceEvent(
            source_id=source_id,
            target_ids=tuple(reached),
            kind=kind,
            strength=initial_strength,
            message=message,
            timestamp=self.store.now(),
            propagation_depth=depth_limit,
        )

    def simulate_opinion_cascade(
        self,
        source_id: str,
        opinion: str,
        initial_adoption: float = 0.8,
    ) -> OpinionCascadeResult:
        """Binary adoption model; reads the store without changing it.

        A neighbor adopts when the incoming strength reaches ``0.5 + loyalty * 0.3``
        and keeps spreading; below half that threshold it resists.
        """
        self.store.profile(source_id)
        adopters = [source_id]
        resisters: List[str] = []
        undecided: List[str] = []

        with self.store.lock:
            visited = {source_id}
            queue = deque([(source_id, initial_adoption)])
            while queue:
                current_id, strength = queue.popleft()
                current = self.store.profile(current_id)
                for neighbor_id, rel in self.store.relationships_of(current_id):
                    if neighbor_id in visited:
                        continue
                    visited.add(neighbor_id)
                    target = self.store.profile(neighbor_id)
                    hop = self.propagation_strength(current, target, rel, InfluenceKind.OPINION, strength)
                    threshold = 0.5 + target.personality.loyalty * 0.3
                    if hop >= threshold:
                        adopters.append(neighbor_id)
                        queue.append((neighbor_id, hop))
                    elif hop < threshold * 0.5:
                        resisters.append(neighbor_id)
                    else:
                        undecided.append(neighbor_id)
            total = len(self.store.profiles(active_only=True))

        return OpinionCascadeResult(
            opinion=opinion,
            adopters=tuple(adopters),
            resisters=tuple(resisters),
            undecided=tuple(undecided),
            final_adoption=len(adopters) / total if total else 0.0,
        )

    def top_influencers(self, count: int = 10) -> List[Dict[str, object]]:
        ranked = sorted(self.store.profiles(active_only=True), key=lambda p: p.influence, reverse=True)
        return [
            {"agent_id": p.agent_id, "influence": p.influence, "reach": self.store.degree(p.agent_id)}
            for p in ranked[:count]
        ]
