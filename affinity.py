"""Personality compatibility and interaction scoring."""

from __future__ import annotations

from typing import Dict, Tuple

from config import EngineConfig
from profiles import (
    AgentProfile,
    InteractionKind,
    Outcome,
    PersonalityTraits,
    RelationshipType,
    clamp,
)

# similarity weights; greed is scored separately
TRAIT_WEIGHTS: Tuple[Tuple[str, float], ...] = (
    ("sociability", 3.0),
    ("aggression", 2.0),
    ("loyalty", 2.0),
    ("risk_tolerance", 1.5),
    ("patience", 1.0),
)
GREED_WEIGHT = 1.0

# (positive, negative) pairs of (affinity delta, trust delta); None means the
# negative outcome mirrors the positive affinity and keeps its trust delta
INTERACTION_DELTAS: Dict[InteractionKind, Tuple[Tuple[float, float], Tuple[float, float] | None]] = {
    InteractionKind.CHAT: ((0.02, 0.0), (-0.01, 0.0)),
    InteractionKind.TRADE: ((0.05, 0.03), (-0.10, -0.15)),
    InteractionKind.COMBAT: ((0.05, -0.05), (-0.20, -0.05)),
    InteractionKind.COOPERATION: ((0.08, 0.10), None),
    InteractionKind.BETRAYAL: ((-0.50, -0.70), None),
    InteractionKind.GIFT: ((0.10, 0.05), None),
    InteractionKind.HELP: ((0.07, 0.08), None),
}


class AffinityCalculator:
    def __init__(self, config: EngineConfig | None = None):
        self.config = config or EngineConfig()

    def base_affinity(self, traits_a: PersonalityTraits, traits_b: PersonalityTraits) -> float:
        """Weighted trait similarity mapped to [-1, 1].

        Two agents that are both greedier than the rivalry threshold lose the
        greed term instead of gaining it.
        """
        score = 0.0
        weight_sum = 0.0
        for key, weight in TRAIT_WEIGHTS:
            diff = abs(getattr(traits_a, key) - getattr(traits_b, key))
            score += (1.0 - diff) * weight
            weight_sum += weight
        threshold = self.config.greed_rivalry_threshold
        if traits_a.greed > threshold and traits_b.greed > threshold:
            score -= GREED_WEIGHT
        else:
            score += (1.0 - abs(traits_a.greed - traits_b.greed)) * GREED_WEIGHT
        weight_sum += GREED_WEIGHT
        return clamp((score / weight_sum - 0.5) * 2.0, -1.0, 1.0)

    def apply_faction_modifier(self, affinity: float, faction_a: str | None, faction_b: str | None) -> float:
        if not faction_a or not faction_b:
            return affinity
        if faction_a == faction_b:
            return affinity + self.config.faction_bonus
        if faction_b in self.config.faction_rivalries.get(faction_a, ()):
            return affinity - self.config.faction_penalty
        return affinity

    def initial_affinity(self, profile_a: AgentProfile, profile_b: AgentProfile) -> float:
        base = self.base_affinity(profile_a.personality, profile_b.personality)
        return clamp(self.apply_faction_modifier(base, profile_a.faction, profile_b.faction), -1.0, 1.0)

    def interaction_delta(
        self,
        kind: InteractionKind,
        outcome: Outcome,
        current_affinity: float,
        current_trust: float,
    ) -> Tuple[float, float]:
        if outcome is Outcome.NEUTRAL:
            return 0.0, 0.0
        positive, negative = INTERACTION_DELTAS[kind]
        if outcome is Outcome.POSITIVE:
            affinity_delta, trust_delta = positive
        elif negative is not None:
            affinity_delta, trust_delta = negative
        else:
            affinity_delta, trust_delta = -abs(positive[0]), positive[1]
        if affinity_delta > 0 and current_affinity > 0.5:
            affinity_delta *= 1.0 - current_affinity * 0.5
        return affinity_delta, trust_delta

    @staticmethod
    def classify(affinity: float, trust: float) -> RelationshipType:
        if affinity < -0.5:
            return RelationshipType.ENEMY
        if affinity < -0.2:
            return RelationshipType.RIVAL
        if affinity > 0.5 and trust > 0.6:
            return RelationshipType.ALLY
        if affinity > 0.3:
            return RelationshipType.FRIEND
        if affinity > -0.2 and trust < 0.3:
            return RelationshipType.ACQUAINTANCE
        return RelationshipType.STRANGER
