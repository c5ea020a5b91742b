import argparse
import csv
import json
import os

import numpy as np

from config import load_config
from model import SocialDynamicsModel
from network import build_social_graph
from profiles import InteractionKind, Outcome

# relative frequency of each interaction kind in the synthetic feed
KIND_WEIGHTS = {
    InteractionKind.CHAT: 0.35,
    InteractionKind.TRADE: 0.2,
    InteractionKind.COOPERATION: 0.15,
    InteractionKind.HELP: 0.1,
    InteractionKind.GIFT: 0.08,
    InteractionKind.COMBAT: 0.1,
    InteractionKind.BETRAYAL: 0.02,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser()
    parser.add_argument("--steps", type=int, default=50)
    parser.add_argument("--agents", type=int, default=40)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--interactions", type=int, default=60, help="interacciones sintéticas por paso")
    parser.add_argument("--topology", type=str, default="small_world",
                        choices=["complete", "small_world", "scale_free", "random"])
    parser.add_argument("--topologyp", type=float, default=None)
    parser.add_argument("--topologyk", type=int, default=None)
    parser.add_argument("--topologym", type=int, default=None)
    parser.add_argument("--config", type=str, default="engine.json")
    parser.add_argument("--workers", type=int, default=None)
    parser.add_argument("--output", type=str, default="results")
    return parser


def contact_pairs(model: SocialDynamicsModel, topology: str, params=None):
    """Who meets whom: edges of a generated topology mapped onto registered ids."""
    ids = model.store.ids()
    graph = build_social_graph(topology, len(ids), model.rng, params=params)
    return [(ids[a], ids[b]) for a, b in graph.edges()]


def feed_interactions(model: SocialDynamicsModel, pairs, count: int) -> int:
    """Record ``count`` random interactions; friendlier pairs succeed more often."""
    if not pairs:
        return 0
    kinds = list(KIND_WEIGHTS)
    weights = np.array([KIND_WEIGHTS[k] for k in kinds])
    weights = weights / weights.sum()
    recorded = 0
    for _ in range(count):
        a, b = pairs[int(model.rng.integers(0, len(pairs)))]
        if model.rng.random() < 0.5:
            a, b = b, a
        rel = model.get_relationship(a, b)
        if rel is None:
            continue
        kind = kinds[int(model.rng.choice(len(kinds), p=weights))]
        p_positive = (rel.affinity + 1) / 2 * 0.6 + rel.trust * 0.4
        roll = model.rng.random()
        if roll < p_positive:
            outcome = Outcome.POSITIVE
        elif roll < p_positive + 0.1:
            outcome = Outcome.NEUTRAL
        else:
            outcome = Outcome.NEGATIVE
        model.record_interaction(a, b, kind, outcome, context="synthetic")
        recorded += 1
    return recorded


def main(argv=None) -> None:
    args, unknown = build_parser().parse_known_args(argv)

    topologyparams = {}
    if args.topologyp is not None:
        topologyparams["p"] = float(args.topologyp)
    if args.topologyk is not None:
        topologyparams["k"] = int(args.topologyk)
    if args.topologym is not None:
        topologyparams["m"] = int(args.topologym)

    config = load_config(args.config)
    if args.workers is not None:
        config = config.replace(analysis_workers=args.workers)

    model = SocialDynamicsModel(n_agents=args.agents, seed=args.seed, config=config)
    model.run_metadata.update(topology=args.topology, interactions_per_step=args.interactions)
    pairs = contact_pairs(model, args.topology, topologyparams)

    print("Iniciando simulación social...")
    for step in range(args.steps):
        feed_interactions(model, pairs, args.interactions)
        model.step()
        if step % 10 == 0:
            m = model.last_metrics
            print(
                f"Step {step} | Bandas={len(model.store.groups())} "
                f"Afinidad={m.get('avg_affinity', 0.0):.2f} "
                f"Densidad={m.get('density', 0.0):.2f} "
                f"Clusters={int(m.get('clusters', 0))}"
            )

    analytics = model.analytics()
    print("\n" + "=" * 30 + " REPORTE SOCIAL " + "=" * 30)
    print(f"Agentes={analytics['total_agents']} Relaciones={analytics['total_relationships']}")
    print(f"Afinidad media={analytics['avg_affinity']:.3f}")
    print(f"Amistades={analytics['friend_count']} Rivalidades={analytics['rival_count']}")
    net = analytics["network_metrics"]
    print(
        f"Densidad={net['density']:.3f} Camino medio={net['avg_path_length']:.2f} "
        f"Clustering={net['clustering_coefficient']:.3f}"
    )

    print("-- Influyentes --")
    for entry in analytics["top_influencers"][:5]:
        print(f"{entry['agent_id']:12} influencia={entry['influence']:.1f} alcance={entry['reach']}")

    gang_rows = []
    print(f"\nBandas activas={analytics['gang_count']}")
    for gang_id in sorted(model.store.groups()):
        stats = model.coordination.gang_stats(gang_id)
        if stats is None:
            continue
        gang_rows.append(dict(gang=gang_id, **stats))
        print(
            f" - {gang_id} miembros={stats['member_count']} cohesión={stats['avg_cohesion']:.2f} "
            f"perfil={stats['dominant_personality']} actividad={stats['activity_level']}"
        )

    df = model.datacollector.get_model_vars_dataframe()
    os.makedirs(args.output, exist_ok=True)
    meta = model.run_metadata
    for k, v in meta.items():
        df[k] = v if not isinstance(v, (list, dict)) else json.dumps(v)
    df.to_csv(os.path.join(args.output, "summary_evolution.csv"))

    with open(os.path.join(args.output, "social_state.json"), "w", encoding="utf-8") as f:
        json.dump({"metadata": meta, "state": model.export_state()}, f, ensure_ascii=False, indent=2)

    with open(os.path.join(args.output, "gang_stats.csv"), "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(
            f,
            fieldnames=["gang", "member_count", "avg_cohesion", "avg_influence", "dominant_personality", "activity_level"],
        )
        writer.writeheader()
        for row in gang_rows:
            writer.writerow(row)

    print(
        f"Datos guardados en {args.output}/summary_evolution.csv, "
        f"{args.output}/social_state.json y {args.output}/gang_stats.csv"
    )


if __name__ == "__main__":
    main()
