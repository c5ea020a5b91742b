"""Tunable simulation parameters and personality archetype templates."""

from __future__ import annotations

import dataclasses
import json
import os
from dataclasses import dataclass, field
from typing import Dict, List

TRAIT_KEYS = (
    "sociability",
    "aggression",
    "loyalty",
    "risk_tolerance",
    "greed",
    "curiosity",
    "patience",
)

DEFAULT_ARCHETYPES: Dict[str, Dict[str, float]] = {
    "grinder": dict(risk_tolerance=0.2, sociability=0.2, patience=0.9, greed=0.8, aggression=0.4, loyalty=0.5, curiosity=0.1),
    "social": dict(risk_tolerance=0.3, sociability=0.95, patience=0.7, greed=0.3, aggression=0.1, loyalty=0.8, curiosity=0.6),
    "explorer": dict(risk_tolerance=0.6, sociability=0.5, patience=0.4, greed=0.4, aggression=0.3, loyalty=0.2, curiosity=0.95),
    "combat": dict(risk_tolerance=0.85, sociability=0.4, patience=0.5, greed=0.6, aggression=0.9, loyalty=0.6, curiosity=0.3),
    "economist": dict(risk_tolerance=0.3, sociability=0.3, patience=0.95, greed=0.95, aggression=0.1, loyalty=0.4, curiosity=0.5),
    "criminal": dict(risk_tolerance=0.9, sociability=0.4, patience=0.2, greed=0.8, aggression=0.7, loyalty=0.2, curiosity=0.6),
    "roleplayer": dict(risk_tolerance=0.5, sociability=0.8, patience=0.85, greed=0.3, aggression=0.4, loyalty=0.8, curiosity=0.7),
    "chaos": dict(risk_tolerance=0.5, sociability=0.5, patience=0.5, greed=0.5, aggression=0.5, loyalty=0.5, curiosity=0.5),
}


def _default_rivalries() -> Dict[str, List[str]]:
    return {
        "frontera": ["nahi"],
        "nahi": ["settlers", "frontera"],
        "settlers": ["nahi"],
    }


@dataclass
class EngineConfig:
    # affinity
    faction_bonus: float = 0.2
    faction_penalty: float = 0.3
    faction_rivalries: Dict[str, List[str]] = field(default_factory=_default_rivalries)
    greed_rivalry_threshold: float = 0.7
    initial_trust: float = 0.5
    history_cap: int = 20

    # agents
    base_influence: float = 10.0
    base_trustworthiness: float = 50.0
    popularity_step: float = 0.5

    # network analysis
    edge_weight_floor: float = 0.0
    eigenvector_tolerance: float = 1e-4
    eigenvector_max_iter: int = 100
    label_propagation_max_iter: int = 50
    path_samples: int = 100
    top_fraction: float = 0.1
    analysis_workers: int = 1

    # gang formation
    gang_affinity_threshold: float = 0.75
    min_group_size: int = 3
    max_group_size: int = 8
    dominant_trait_threshold: float = 0.7
    auto_execute_affinity: float = 0.8
    auto_execute_limit: int = 3

    # reputation cascade
    cascade_max_depth: int = 3
    cascade_hop_decay: float = 0.5
    cascade_depth_decay: float = 0.6
    cascade_min_strength: float = 0.1
    cascade_significance: float = 5.0
    cascade_trigger_threshold: float = 0.1
    cascade_affinity_nudge: float = 0.01

    # influence
    influence_decay: float = 0.7
    influence_min_strength: float = 0.1
    influence_depth_divisor: float = 30.0
    influence_nudge: float = 0.1
    influence_seeds_per_step: int = 5

    # coordination
    willingness_cutoff: float = 0.3
    min_participants: int = 2
    action_delay_seconds: float = 60.0
    action_base_success: float = 0.6
    action_success_per_participant: float = 0.05

    def replace(self, **overrides) -> "EngineConfig":
        return dataclasses.replace(self, **overrides)

    def as_dict(self) -> Dict[str, object]:
        return dataclasses.asdict(self)


def _read_json(path: str):
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except UnicodeDecodeError:
        with open(path, "r", encoding="utf-8-sig") as f:
            return json.load(f)


def load_config(path: str = "engine.json") -> EngineConfig:
    """Read overrides from a JSON object; unknown keys are ignored.

    A missing or unreadable file yields the defaults.
    """
    if not os.path.exists(path):
        return EngineConfig()
    try:
        data = _read_json(path)
    except (OSError, ValueError):
        return EngineConfig()
    if not isinstance(data, dict):
        return EngineConfig()
    return config_from_dict(data)


def config_from_dict(data: Dict[str, object]) -> EngineConfig:
    known = {f.name for f in dataclasses.fields(EngineConfig)}
    return EngineConfig(**{k: v for k, v in data.items() if k in known})


def load_archetypes(path: str = "archetypes.json") -> Dict[str, Dict[str, float]]:
    archetypes = {name: dict(traits) for name, traits in DEFAULT_ARCHETYPES.items()}
    if not os.path.exists(path):
        return archetypes
    try:
        data = _read_json(path)
    except (OSError, ValueError):
        return archetypes
    if not isinstance(data, dict):
        return archetypes
    for entry in data.get("archetypes", []):
        name = str(entry.get("id", "")).strip()
        if not name:
            continue
        raw = entry.get("traits") or {}
        base = archetypes.get(name, {k: 0.5 for k in TRAIT_KEYS})
        for key in TRAIT_KEYS:
            if key in raw:
                base[key] = min(1.0, max(0.0, float(raw[key])))
        archetypes[name] = base
    return archetypes


ARCHETYPES = load_archetypes()
