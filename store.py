"""Profile store and canonical relationship table shared by every component."""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Callable, Dict, Iterator, List, Tuple

import networkx as nx

from config import EngineConfig
from errors import DuplicateAgentError, UnknownAgentError
from profiles import AgentProfile, PairKey, Relationship, pair_key


class SocialStore:
    """Owns every profile and exactly one relationship per unordered agent pair.

    Profiles refer to each other only by id; relationships live in one table keyed
    by ``pair_key``. Mutations and the collection readers hold ``lock``; readers
    return copies. ``snapshot`` takes it briefly and returns a frozen graph that
    analysis can read without it.
    """

    def __init__(self, config: EngineConfig | None = None, clock: Callable[[], datetime] | None = None):
        self.config = config or EngineConfig()
        self.clock = clock or datetime.now
        self.lock = threading.RLock()
        self._profiles: Dict[str, AgentProfile] = {}
        self._relationships: Dict[PairKey, Relationship] = {}
        # dict-as-ordered-set keeps traversal order independent of hash seeds
        self._neighbors: Dict[str, Dict[str, None]] = {}

    def now(self) -> datetime:
        return self.clock()

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._profiles

    def __len__(self) -> int:
        return len(self._profiles)

    def add_profile(self, profile: AgentProfile) -> None:
        with self.lock:
            if profile.agent_id in self._profiles:
                raise DuplicateAgentError(profile.agent_id)
            self._profiles[profile.agent_id] = profile
            self._neighbors[profile.agent_id] = {}

    def profile(self, agent_id: str) -> AgentProfile:
        try:
            return self._profiles[agent_id]
        except KeyError:
            raise UnknownAgentError(agent_id) from None

    def get_profile(self, agent_id: str) -> AgentProfile | None:
        return self._profiles.get(agent_id)

    def profiles(self, active_only: bool = False) -> List[AgentProfile]:
        with self.lock:
            return [p for p in self._profiles.values() if p.active or not active_only]

    def ids(self) -> List[str]:
        with self.lock:
            return list(self._profiles.keys())

    def add_relationship(self, relationship: Relationship) -> Relationship:
        a, b = relationship.agents
        key = pair_key(a, b)
        with self.lock:
            for agent_id in key:
                if agent_id not in self._profiles:
                    raise UnknownAgentError(agent_id)
            existing = self._relationships.get(key)
            if existing is not None:
                return existing
            relationship.agents = key
            self._relationships[key] = relationship
            self._neighbors[a][b] = None
            self._neighbors[b][a] = None
            return relationship

    def relationship(self, agent_a: str, agent_b: str) -> Relationship | None:
        return self._relationships.get(pair_key(agent_a, agent_b))

    def relationships(self) -> List[Relationship]:
        with self.lock:
            return list(self._relationships.values())

    def relationship_count(self) -> int:
        return len(self._relationships)

    def relationships_of(self, agent_id: str, active_only: bool = True) -> Iterator[Tuple[str, Relationship]]:
        with self.lock:
            pairs = [
                (other_id, self._relationships[pair_key(agent_id, other_id)])
                for other_id in self._neighbors.get(agent_id, {})
                if not active_only or self._profiles[other_id].active
            ]
        return iter(pairs)

    def degree(self, agent_id: str) -> int:
        return sum(1 for _ in self.relationships_of(agent_id))

    def groups(self) -> Dict[str, List[str]]:
        gangs: Dict[str, List[str]] = {}
        with self.lock:
            for profile in self._profiles.values():
                if profile.group_affiliation:
                    gangs.setdefault(profile.group_affiliation, []).append(profile.agent_id)
        return gangs

    def group_members(self, group: str) -> List[str]:
        with self.lock:
            return [p.agent_id for p in self._profiles.values() if p.group_affiliation == group]

    def snapshot(self) -> nx.Graph:
        """Frozen graph of active agents; one edge per relationship above the weight floor."""
        floor = self.config.edge_weight_floor
        graph = nx.Graph()
        with self.lock:
            for profile in self._profiles.values():
                if not profile.active:
                    continue
                graph.add_node(
                    profile.agent_id,
                    name=profile.name,
                    influence=profile.influence,
                    popularity=profile.popularity,
                    archetype=profile.archetype,
                    faction=profile.faction,
                    group=profile.group_affiliation,
                    traits=profile.personality.as_dict(),
                )
            for (a, b), rel in self._relationships.items():
                if a not in graph or b not in graph:
                    continue
                weight = abs(rel.affinity)
                if weight <= floor:
                    continue
                graph.add_edge(
                    a,
                    b,
                    weight=weight,
                    affinity=rel.affinity,
                    trust=rel.trust,
                    type=rel.relationship_type.value,
                )
        return nx.freeze(graph)
