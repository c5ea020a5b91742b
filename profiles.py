"""Agent profiles, relationships and interaction records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Tuple

import numpy as np

from config import ARCHETYPES, TRAIT_KEYS


def clamp(value: float, lo: float, hi: float) -> float:
    return float(np.clip(value, lo, hi))


def clamp01(value: float) -> float:
    return clamp(value, 0.0, 1.0)


class InteractionKind(str, Enum):
    CHAT = "chat"
    TRADE = "trade"
    COMBAT = "combat"
    COOPERATION = "cooperation"
    BETRAYAL = "betrayal"
    GIFT = "gift"
    HELP = "help"


class Outcome(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class RelationshipType(str, Enum):
    STRANGER = "stranger"
    ACQUAINTANCE = "acquaintance"
    FRIEND = "friend"
    RIVAL = "rival"
    ENEMY = "enemy"
    ALLY = "ally"


class InfluenceKind(str, Enum):
    BEHAVIOR = "behavior"
    OPINION = "opinion"
    ACTION = "action"
    EMOTION = "emotion"


class ActionKind(str, Enum):
    WAR = "war"
    RAID = "raid"
    DEFENSE = "defense"
    RECRUITMENT = "recruitment"
    MISSION = "mission"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ActionStatus(str, Enum):
    PLANNED = "planned"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ClusterType(str, Enum):
    COMBAT = "combat"
    SOCIAL = "social"
    ECONOMIC = "economic"
    CRIMINAL = "criminal"
    MIXED = "mixed"


REPUTATION_CATEGORIES = ("combat", "trade", "social", "reliability")

PairKey = Tuple[str, str]


def pair_key(agent_a: str, agent_b: str) -> PairKey:
    """Canonical key of an unordered agent pair."""
    return (agent_a, agent_b) if agent_a <= agent_b else (agent_b, agent_a)


@dataclass
class PersonalityTraits:
    sociability: float = 0.5
    aggression: float = 0.5
    loyalty: float = 0.5
    risk_tolerance: float = 0.5
    greed: float = 0.5
    curiosity: float = 0.5
    patience: float = 0.5

    def __post_init__(self):
        for key in TRAIT_KEYS:
            setattr(self, key, clamp01(float(getattr(self, key))))

    @classmethod
    def from_archetype(cls, archetype: str) -> "PersonalityTraits":
        try:
            template = ARCHETYPES[archetype]
        except KeyError:
            raise ValueError(f"unknown archetype: {archetype}") from None
        return cls(**template)

    @classmethod
    def variant(cls, archetype: str, rng: np.random.Generator, spread: float = 0.1) -> "PersonalityTraits":
        """Archetype template with uniform jitter of +/- spread on every axis."""
        base = cls.from_archetype(archetype)
        jitter = rng.uniform(-spread, spread, size=len(TRAIT_KEYS))
        return cls(**{k: getattr(base, k) + float(j) for k, j in zip(TRAIT_KEYS, jitter)})

    def vector(self) -> np.ndarray:
        return np.array([getattr(self, k) for k in TRAIT_KEYS], dtype=float)

    def as_dict(self) -> Dict[str, float]:
        return {k: getattr(self, k) for k in TRAIT_KEYS}


def infer_archetype(traits: PersonalityTraits, archetypes: Dict[str, Dict[str, float]] | None = None) -> str:
    """Nearest archetype template by Euclidean distance over all trait axes."""
    archetypes = archetypes or ARCHETYPES
    vec = traits.vector()
    best_name = "chaos"
    best_dist = float("inf")
    for name, template in archetypes.items():
        ref = np.array([template.get(k, 0.5) for k in TRAIT_KEYS], dtype=float)
        dist = float(np.linalg.norm(vec - ref))
        if dist < best_dist:
            best_name, best_dist = name, dist
    return best_name


@dataclass
class ReputationScores:
    global_score: float = 0.0
    categories: Dict[str, float] = field(default_factory=lambda: {c: 0.0 for c in REPUTATION_CATEGORIES})
    faction_scores: Dict[str, float] = field(default_factory=dict)
    gang_scores: Dict[str, float] = field(default_factory=dict)
    law_enforcement: float = 0.0

    def adjust(self, delta: float, category: str | None = None) -> None:
        self.global_score = clamp(self.global_score + delta, -100.0, 100.0)
        if category is not None:
            self.categories[category] = clamp(self.categories.get(category, 0.0) + delta, -100.0, 100.0)

    def adjust_faction(self, faction: str, delta: float) -> None:
        self.faction_scores[faction] = clamp(self.faction_scores.get(faction, 0.0) + delta, -100.0, 100.0)

    def adjust_gang(self, gang: str, delta: float) -> None:
        self.gang_scores[gang] = clamp(self.gang_scores.get(gang, 0.0) + delta, -100.0, 100.0)

    def as_dict(self) -> Dict[str, object]:
        return {
            "global": self.global_score,
            "categories": dict(self.categories),
            "factions": dict(self.faction_scores),
            "gangs": dict(self.gang_scores),
            "law_enforcement": self.law_enforcement,
        }


@dataclass(frozen=True)
class InteractionRecord:
    timestamp: datetime
    kind: InteractionKind
    outcome: Outcome
    affinity_delta: float
    trust_delta: float
    initiator: str | None = None
    context: str | None = None

    def as_dict(self) -> Dict[str, object]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "kind": self.kind.value,
            "outcome": self.outcome.value,
            "affinity_delta": self.affinity_delta,
            "trust_delta": self.trust_delta,
            "initiator": self.initiator,
            "context": self.context,
        }


@dataclass
class Grudge:
    reason: str
    severity: float
    timestamp: datetime


@dataclass
class SocialMemory:
    positive_interactions: Dict[str, List[InteractionRecord]] = field(default_factory=dict)
    negative_interactions: Dict[str, List[InteractionRecord]] = field(default_factory=dict)
    favors: Dict[str, Dict[str, int]] = field(default_factory=dict)
    betrayals: List[str] = field(default_factory=list)
    allies: List[str] = field(default_factory=list)
    grudges: Dict[str, Grudge] = field(default_factory=dict)

    def remember(self, other_id: str, record: InteractionRecord, cap: int) -> None:
        if record.outcome is Outcome.POSITIVE:
            bucket = self.positive_interactions.setdefault(other_id, [])
        elif record.outcome is Outcome.NEGATIVE:
            bucket = self.negative_interactions.setdefault(other_id, [])
        else:
            return
        bucket.append(record)
        del bucket[:-cap]

    def record_favor(self, other_id: str, given: bool) -> None:
        entry = self.favors.setdefault(other_id, {"given": 0, "received": 0})
        entry["given" if given else "received"] += 1

    def record_betrayal(self, betrayer_id: str, severity: float, when: datetime) -> None:
        if betrayer_id not in self.betrayals:
            self.betrayals.append(betrayer_id)
        previous = self.grudges.get(betrayer_id)
        total = severity + (previous.severity if previous else 0.0)
        self.grudges[betrayer_id] = Grudge(reason="betrayal", severity=total, timestamp=when)

    def set_ally(self, other_id: str, is_ally: bool) -> None:
        if is_ally and other_id not in self.allies:
            self.allies.append(other_id)
        elif not is_ally and other_id in self.allies:
            self.allies.remove(other_id)


@dataclass
class Relationship:
    """The single shared record between two agents, keyed by ``pair_key``."""

    agents: PairKey
    affinity: float = 0.0
    trust: float = 0.5
    interactions: int = 0
    last_interaction: datetime | None = None
    relationship_type: RelationshipType = RelationshipType.STRANGER
    shared_faction: str | None = None
    history: List[InteractionRecord] = field(default_factory=list)

    def other(self, agent_id: str) -> str:
        a, b = self.agents
        if agent_id == a:
            return b
        if agent_id == b:
            return a
        raise ValueError(f"{agent_id} is not part of relationship {self.agents}")

    def apply(self, affinity_delta: float, trust_delta: float) -> Tuple[float, float]:
        """Shift affinity and trust with clamping; returns the change actually applied."""
        old_affinity, old_trust = self.affinity, self.trust
        self.affinity = clamp(self.affinity + affinity_delta, -1.0, 1.0)
        self.trust = clamp01(self.trust + trust_delta)
        return self.affinity - old_affinity, self.trust - old_trust

    def append(self, record: InteractionRecord, cap: int) -> None:
        self.history.append(record)
        del self.history[:-cap]

    def as_dict(self) -> Dict[str, object]:
        return {
            "agents": list(self.agents),
            "affinity": self.affinity,
            "trust": self.trust,
            "interactions": self.interactions,
            "last_interaction": self.last_interaction.isoformat() if self.last_interaction else None,
            "relationship_type": self.relationship_type.value,
            "shared_faction": self.shared_faction,
        }


@dataclass
class AgentProfile:
    agent_id: str
    name: str
    personality: PersonalityTraits
    archetype: str = "chaos"
    faction: str | None = None
    group_affiliation: str | None = None
    reputation: ReputationScores = field(default_factory=ReputationScores)
    influence: float = 10.0
    popularity: float = 0.0
    trustworthiness: float = 50.0
    social_memory: SocialMemory = field(default_factory=SocialMemory)
    active: bool = True

    def summary(self) -> Dict[str, object]:
        return {
            "id": self.agent_id,
            "name": self.name,
            "personality": self.archetype,
            "traits": self.personality.as_dict(),
            "influence": self.influence,
            "popularity": self.popularity,
            "trustworthiness": self.trustworthiness,
            "reputation": self.reputation.global_score,
            "gang": self.group_affiliation,
            "faction": self.faction,
            "active": self.active,
        }
