"""Organic gang formation from mutual high-affinity groups."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Tuple

import networkx as nx
import numpy as np

from config import TRAIT_KEYS
from errors import InvalidGroupSizeError

logger = logging.getLogger(__name__)

# checked in this order; the first hit names the gang
DOMINANT_TRAITS: Tuple[Tuple[str, str], ...] = (
    ("aggression", "combative"),
    ("risk_tolerance", "daring"),
    ("sociability", "social"),
    ("greed", "ambitious"),
    ("loyalty", "loyal"),
    ("curiosity", "exploratory"),
    ("patience", "strategic"),
)

NAME_TEMPLATES: Dict[str, List[str]] = {
    "combative": ["Iron Fists", "Thunder Riders", "Crimson Blades", "Steel Wolves"],
    "daring": ["Risk Takers", "Wild Cards", "Fortune Seekers", "Chaos Crew"],
    "social": ["Brotherhood", "United Front", "Circle of Trust", "Alliance"],
    "ambitious": ["Gold Rush", "Empire Builders", "Destiny Seekers", "Crown Chasers"],
    "loyal": ["Sworn Brothers", "Blood Pact", "Faithful Few", "Honor Guard"],
    "exploratory": ["Wanderers", "Trail Blazers", "Horizon Riders", "Pathfinders"],
    "strategic": ["Masterminds", "Grand Scheme", "Long Game", "Chess Masters"],
}

FORMATION_REASONS: Tuple[Tuple[str, str], ...] = (
    ("combative", "Mutual combat prowess and desire for dominance"),
    ("ambitious", "Shared economic goals and wealth accumulation"),
    ("social", "Strong friendship bonds and community values"),
    ("daring", "Love of risk-taking and high-stakes ventures"),
    ("loyal", "Deep mutual trust and shared values"),
    ("exploratory", "Common interest in discovery and adventure"),
)
DEFAULT_REASON = "High mutual affinity and compatible personalities"


@dataclass(frozen=True)
class GangFormationProposal:
    proposer_id: str
    member_ids: Tuple[str, ...]
    avg_affinity: float
    common_traits: Tuple[str, ...]
    name: str
    tag: str
    reason: str
    timestamp: datetime

    def as_dict(self) -> Dict[str, object]:
        return {
            "proposer_id": self.proposer_id,
            "member_ids": list(self.member_ids),
            "avg_affinity": self.avg_affinity,
            "common_traits": list(self.common_traits),
            "name": self.name,
            "tag": self.tag,
            "reason": self.reason,
            "timestamp": self.timestamp.isoformat(),
        }


def _affinity(graph: nx.Graph, a: str, b: str) -> float | None:
    data = graph.get_edge_data(a, b)
    if data is None:
        return None
    return data.get("affinity", data.get("weight"))


class OrganicGangFormation:
    def __init__(self, store, rng: np.random.Generator | None = None):
        self.store = store
        self.config = store.config
        self.rng = rng if rng is not None else np.random.default_rng()

    def identify_potential_gangs(self, graph: nx.Graph | None = None) -> List[GangFormationProposal]:
        """Scan ungrouped agents for near-cliques; never mutates the store."""
        graph = graph if graph is not None else self.store.snapshot()
        proposals: List[GangFormationProposal] = []
        processed: set[str] = set()
        for agent_id, data in graph.nodes(data=True):
            if agent_id in processed or data.get("group"):
                continue
            group = self.find_high_affinity_group(graph, agent_id, processed)
            if len(group) + 1 < self.config.min_group_size:
                continue
            proposals.append(self.create_proposal(graph, agent_id, group))
            processed.add(agent_id)
            processed.update(group)
        return sorted(proposals, key=lambda p: p.avg_affinity, reverse=True)

    def find_high_affinity_group(self, graph: nx.Graph, agent_id: str, excluded: set[str]) -> List[str]:
        threshold = self.config.gang_affinity_threshold
        candidates = []
        for other_id, data in graph.adj[agent_id].items():
            if other_id in excluded or graph.nodes[other_id].get("group"):
                continue
            affinity = data.get("affinity", data.get("weight", 0.0))
            if affinity >= threshold:
                candidates.append((other_id, affinity))
        candidates.sort(key=lambda c: c[1], reverse=True)

        accepted: List[str] = []
        for candidate_id, _ in candidates:
            if len(accepted) + 1 >= self.config.max_group_size:
                break
            mutual = True
            for member_id in accepted:
                affinity = _affinity(graph, candidate_id, member_id)
                if affinity is None or affinity < threshold:
                    mutual = False
                    break
            if mutual:
                accepted.append(candidate_id)
        return accepted

    def common_traits(self, graph: nx.Graph, member_ids: List[str]) -> List[str]:
        traits = [graph.nodes[m].get("traits", {}) for m in member_ids]
        averages = {k: float(np.mean([t.get(k, 0.5) for t in traits])) for k in TRAIT_KEYS}
        found = [label for key, label in DOMINANT_TRAITS if averages[key] > self.config.dominant_trait_threshold]
        archetypes = [graph.nodes[m].get("archetype") for m in member_ids if graph.nodes[m].get("archetype")]
        if archetypes:
            found.append(Counter(archetypes).most_common(1)[0][0])
        return found

    def generate_identity(self, traits: List[str]) -> Tuple[str, str]:
        dominant = traits[0] if traits else "social"
        templates = NAME_TEMPLATES.get(dominant, NAME_TEMPLATES["social"])
        name = templates[int(self.rng.integers(0, len(templates)))]
        tag = "".join(word[0] for word in name.split()).upper()[:4]
        return name, tag

    @staticmethod
    def formation_reason(traits: List[str]) -> str:
        for trait, reason in FORMATION_REASONS:
            if trait in traits:
                return reason
        return DEFAULT_REASON

    def create_proposal(self, graph: nx.Graph, proposer_id: str, group: List[str]) -> GangFormationProposal:
        members = [proposer_id, *group]
        if not self.config.min_group_size <= len(members) <= self.config.max_group_size:
            raise InvalidGroupSizeError(len(members), self.config.min_group_size, self.config.max_group_size)

        affinities = []
        for i, a in enumerate(members):
            for b in members[i + 1:]:
                value = _affinity(graph, a, b)
                if value is not None:
                    affinities.append(value)
        avg_affinity = float(np.mean(affinities)) if affinities else 0.0

        traits = self.common_traits(graph, members)
        name, tag = self.generate_identity(traits)
        return GangFormationProposal(
            proposer_id=proposer_id,
            member_ids=tuple(members),
            avg_affinity=avg_affinity,
            common_traits=tuple(traits),
            name=name,
            tag=tag,
            reason=self.formation_reason(traits),
            timestamp=self.store.now(),
        )

    def execute_formation(self, proposal: GangFormationProposal) -> str:
        """Affiliate the proposal's still-ungrouped members; returns the tag used.

        The tag gets a numeric suffix when another gang already holds it.
        """
        with self.store.lock:
            taken = set(self.store.groups())
            tag = proposal.tag
            suffix = 2
            while tag in taken:
                tag = f"{proposal.tag}{suffix}"
                suffix += 1
            joined = []
            for member_id in proposal.member_ids:
                profile = self.store.get_profile(member_id)
                if profile is None or profile.group_affiliation or not profile.active:
                    continue
                profile.group_affiliation = tag
                joined.append(member_id)
        logger.info(
            "formed gang %s [%s] with %d members (avg affinity %.2f): %s",
            proposal.name,
            tag,
            len(joined),
            proposal.avg_affinity,
            proposal.reason,
        )
        return tag
