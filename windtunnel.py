from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

import pandas as pd

from config import EngineConfig
from model import SocialDynamicsModel
from run import contact_pairs, feed_interactions


@dataclass
class VariantConfig:
    name: str
    overrides: Dict[str, object] = field(default_factory=dict)


def evaluate_variants(
    variants: List[VariantConfig],
    seeds: List[int],
    n_agents: int,
    steps: int,
    interactions_per_step: int = 40,
    topology: str = "small_world",
    base_config: EngineConfig | None = None,
) -> pd.DataFrame:
    """Runs every configuration variant on every seed and returns one row per run."""
    base_config = base_config or EngineConfig()
    rows = []
    for variant in variants:
        for seed in seeds:
            config = base_config.replace(**variant.overrides)
            model = SocialDynamicsModel(n_agents=n_agents, seed=seed, config=config)
            pairs = contact_pairs(model, topology)
            for _ in range(steps):
                feed_interactions(model, pairs, interactions_per_step)
                model.step()
            last = model.last_metrics or {}
            stats = model.relationship_stats()
            rows.append(
                dict(
                    variant=variant.name,
                    seed=seed,
                    n_agents=n_agents,
                    steps=steps,
                    gang_count=len(model.store.groups()),
                    avg_affinity=stats["avg_affinity"],
                    friend_count=stats["friend_count"],
                    rival_count=stats["rival_count"],
                    density=last.get("density", 0.0),
                    clustering=last.get("clustering", 0.0),
                    clusters=last.get("clusters", 0.0),
                    influence_reach=last.get("influence_reach", 0.0),
                    degree_gini=last.get("degree_gini", 0.0),
                )
            )
    return pd.DataFrame(rows)
