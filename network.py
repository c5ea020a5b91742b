"""Friendship network construction and graph analytics.

Every function here reads a graph snapshot (see ``SocialStore.snapshot``) and
never touches live profiles, so the heavy passes can run outside the store lock.
"""

from __future__ import annotations

import logging
import math
from collections import Counter, deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from functools import partial
from typing import Dict, List, Tuple

import networkx as nx
import numpy as np

from config import TRAIT_KEYS, EngineConfig
from profiles import ClusterType

logger = logging.getLogger(__name__)

ARCHETYPE_COLORS = {
    "grinder": "#FFA500",
    "social": "#00CED1",
    "explorer": "#32CD32",
    "combat": "#DC143C",
    "economist": "#FFD700",
    "criminal": "#8B0000",
    "roleplayer": "#9370DB",
    "chaos": "#FF1493",
}
EDGE_COLORS = {
    "friend": "#00FF00",
    "ally": "#0000FF",
    "rival": "#FFA500",
    "enemy": "#FF0000",
}
DEFAULT_NODE_COLOR = "#999999"
DEFAULT_EDGE_COLOR = "#CCCCCC"


@dataclass
class NetworkNode:
    id: str
    name: str
    influence: float
    popularity: float
    degree: int
    archetype: str = "chaos"
    betweenness: float = 0.0
    eigenvector: float = 0.0
    cluster: str | None = None


@dataclass
class NetworkEdge:
    source: str
    target: str
    weight: float
    type: str


@dataclass
class SocialCluster:
    cluster_id: str
    member_ids: List[str]
    center_of_mass: Dict[str, float]
    dominant_personality: str
    cohesion: float
    avg_influence: float
    cluster_type: ClusterType


@dataclass
class NetworkAnalysis:
    """Result of one analysis pass.

    ``eigenvector_converged`` and ``communities_converged`` are False when the
    iteration cap was hit; the values are then best-effort approximations.
    """

    nodes: List[NetworkNode]
    edges: List[NetworkEdge]
    clusters: List[SocialCluster]
    central_nodes: List[str]
    bridges: List[str]
    isolates: List[str]
    density: float
    avg_path_length: float
    clustering_coefficient: float
    eigenvector_converged: bool = True
    communities_converged: bool = True

    def node(self, node_id: str) -> NetworkNode | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def as_dict(self) -> Dict[str, object]:
        return asdict(self)


@dataclass
class NetworkMetrics:
    clustering: float
    avg_path_len: float
    degree_mean: float
    degree_std: float
    degree_gini: float
    density: float = 0.0
    components: int = 0
    extras: Dict[str, float] = field(default_factory=dict)


def gini(values: List[float]) -> float:
    arr = np.array(values, dtype=float)
    if arr.size == 0:
        return 0.0
    mean = arr.mean()
    if mean == 0:
        return 0.0
    diff_sum = np.abs(np.subtract.outer(arr, arr)).sum()
    return float(diff_sum / (2 * arr.size**2 * mean))


def build_social_graph(
    topology: str,
    n: int,
    rng: np.random.Generator,
    params: Dict[str, float] | None = None,
) -> nx.Graph:
    """Synthetic contact topology over nodes ``0..n-1`` used to pick interaction partners."""
    params = params or {}
    seed = int(rng.integers(0, 2**31 - 1))
    if n < 2:
        return nx.empty_graph(n)
    if topology == "complete":
        return nx.complete_graph(n)
    if topology == "small_world":
        k = int(params.get("k", 4))
        k = max(2, min(k, n - 1))
        return nx.watts_strogatz_graph(n, k, float(params.get("p", 0.1)), seed=seed)
    if topology == "scale_free":
        m = max(1, min(int(params.get("m", 2)), n - 1))
        return nx.barabasi_albert_graph(n, m, seed=seed)
    if topology == "random":
        return nx.erdos_renyi_graph(n, float(params.get("p", 0.2)), seed=seed)
    raise ValueError(f"unknown topology: {topology}")


def _source_dependencies(graph: nx.Graph, source: str) -> Dict[str, float]:
    stack: List[str] = []
    preds: Dict[str, List[str]] = {v: [] for v in graph}
    sigma = dict.fromkeys(graph, 0.0)
    sigma[source] = 1.0
    dist = {source: 0}
    queue = deque([source])
    while queue:
        v = queue.popleft()
        stack.append(v)
        for w in graph.adj[v]:
            if w not in dist:
                dist[w] = dist[v] + 1
                queue.append(w)
            if dist[w] == dist[v] + 1:
                sigma[w] += sigma[v]
                preds[w].append(v)
    delta = dict.fromkeys(graph, 0.0)
    while stack:
        w = stack.pop()
        for v in preds[w]:
            delta[v] += sigma[v] / sigma[w] * (1.0 + delta[w])
    delta[source] = 0.0
    return delta


def betweenness_centrality(graph: nx.Graph, workers: int = 1) -> Dict[str, float]:
    """Brandes betweenness over the unweighted adjacency, normalised by (n-1)(n-2)."""
    scores = dict.fromkeys(graph, 0.0)
    nodes = list(graph)
    if workers > 1 and len(nodes) > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            passes = list(pool.map(partial(_source_dependencies, graph), nodes))
    else:
        passes = [_source_dependencies(graph, s) for s in nodes]
    for delta in passes:
        for v, value in delta.items():
            scores[v] += value
    n = len(nodes)
    if n > 2:
        scale = 1.0 / ((n - 1) * (n - 2))
        for v in scores:
            scores[v] *= scale
    return scores


def eigenvector_centrality(
    graph: nx.Graph,
    max_iter: int = 100,
    tol: float = 1e-4,
) -> Tuple[Dict[str, float], bool]:
    """Power iteration on the weighted adjacency plus identity from a uniform start.

    The identity shift keeps the same eigenvectors and stops the iterate from
    oscillating on bipartite graphs (paths, stars, trees). Returns the scores
    and whether the max-coordinate change fell below ``tol``.
    """
    nodes = list(graph)
    if not nodes:
        return {}, True
    adj = nx.to_numpy_array(graph, nodelist=nodes, weight="weight")
    x = np.full(len(nodes), 1.0 / len(nodes))
    converged = False
    for _ in range(max_iter):
        nxt = adj @ x + x
        norm = float(np.linalg.norm(nxt))
        if norm > 0:
            nxt = nxt / norm
        diff = float(np.max(np.abs(nxt - x)))
        x = nxt
        if diff < tol:
            converged = True
            break
    return {v: float(val) for v, val in zip(nodes, x)}, converged


def label_propagation(
    graph: nx.Graph,
    rng: np.random.Generator,
    max_iter: int = 50,
    initial: Dict[str, str] | None = None,
) -> Tuple[Dict[str, str], bool]:
    """Weighted label propagation; each round visits nodes in a fresh random order.

    Nodes start from ``initial`` (default: their own id). A node keeps its label
    when that label ties the heaviest neighbour label.
    """
    nodes = list(graph)
    initial = initial or {}
    labels = {v: initial.get(v, v) for v in nodes}
    for _ in range(max_iter):
        changed = False
        for idx in rng.permutation(len(nodes)):
            node = nodes[int(idx)]
            weights: Dict[str, float] = {}
            for neighbor, data in graph.adj[node].items():
                label = labels[neighbor]
                weights[label] = weights.get(label, 0.0) + data.get("weight", 1.0)
            if not weights:
                continue
            best_weight = max(weights.values())
            current = labels[node]
            if weights.get(current, -1.0) >= best_weight:
                continue
            best = next(label for label, w in weights.items() if w == best_weight)
            labels[node] = best
            changed = True
        if not changed:
            return labels, True
    return labels, False


def average_path_length(graph: nx.Graph, rng: np.random.Generator, samples: int = 100) -> float:
    """Mean BFS distance over randomly sampled pairs; unreachable pairs are skipped."""
    nodes = list(graph)
    n = len(nodes)
    if n < 2:
        return 0.0
    sample_size = int(min(samples, n * (n - 1) / 2))
    total = 0
    count = 0
    for _ in range(sample_size):
        i, j = rng.integers(0, n, size=2)
        if i == j:
            continue
        try:
            total += nx.shortest_path_length(graph, nodes[int(i)], nodes[int(j)])
        except nx.NetworkXNoPath:
            continue
        count += 1
    return total / count if count else 0.0


def clustering_coefficient(graph: nx.Graph) -> float:
    """Mean local clustering over nodes with at least two neighbours."""
    eligible = [v for v in graph if graph.degree(v) >= 2]
    if not eligible:
        return 0.0
    local = nx.clustering(graph, nodes=eligible)
    return float(np.mean([local[v] for v in eligible]))


def compute_network_metrics(
    graph: nx.Graph,
    rng: np.random.Generator | None = None,
    sample_size: int = 200,
    analysis: NetworkAnalysis | None = None,
) -> NetworkMetrics:
    """Degree statistics plus the global metrics.

    With ``analysis`` the clustering, path length and density come from it and
    no random draws are made.
    """
    degrees = [d for _, d in graph.degree()]
    if analysis is not None:
        clustering = analysis.clustering_coefficient
        path_len = analysis.avg_path_length
        dens = analysis.density
    else:
        clustering = clustering_coefficient(graph)
        path_len = average_path_length(graph, rng if rng is not None else np.random.default_rng(), samples=sample_size)
        dens = nx.density(graph)
    return NetworkMetrics(
        clustering=clustering,
        avg_path_len=path_len,
        degree_mean=float(np.mean(degrees)) if degrees else 0.0,
        degree_std=float(np.std(degrees)) if degrees else 0.0,
        degree_gini=gini(degrees),
        density=dens,
        components=nx.number_connected_components(graph) if graph.number_of_nodes() else 0,
    )


def _most_common(items: List[str]) -> str | None:
    if not items:
        return None
    return Counter(items).most_common(1)[0][0]


def _top_fraction(nodes: List[NetworkNode], key: str, fraction: float) -> List[str]:
    count = math.ceil(len(nodes) * fraction)
    ranked = sorted(nodes, key=lambda n: getattr(n, key), reverse=True)
    return [n.id for n in ranked[:count]]


class FriendshipNetworkAnalyzer:
    def __init__(self, store, rng: np.random.Generator | None = None):
        self.store = store
        self.config: EngineConfig = store.config
        self.rng = rng if rng is not None else np.random.default_rng()

    def build_graph(self) -> nx.Graph:
        return self.store.snapshot()

    def graph_view(self, graph: nx.Graph) -> Tuple[List[NetworkNode], List[NetworkEdge]]:
        nodes = [
            NetworkNode(
                id=v,
                name=data.get("name", v),
                influence=data.get("influence", 0.0),
                popularity=data.get("popularity", 0.0),
                degree=graph.degree(v),
                archetype=data.get("archetype", "chaos"),
            )
            for v, data in graph.nodes(data=True)
        ]
        edges = [
            NetworkEdge(source=a, target=b, weight=data.get("weight", 1.0), type=data.get("type", "stranger"))
            for a, b, data in graph.edges(data=True)
        ]
        return nodes, edges

    def make_cluster(self, graph: nx.Graph, index: int, member_ids: List[str]) -> SocialCluster:
        traits = [graph.nodes[m].get("traits", {}) for m in member_ids]
        center = {k: float(np.mean([t.get(k, 0.5) for t in traits])) for k in TRAIT_KEYS}
        dominant = _most_common([graph.nodes[m].get("archetype", "chaos") for m in member_ids]) or "mixed"

        weights = []
        for i, a in enumerate(member_ids):
            for b in member_ids[i + 1:]:
                data = graph.get_edge_data(a, b)
                if data is not None:
                    weights.append(abs(data.get("affinity", data.get("weight", 1.0))))
        cohesion = float(np.mean(weights)) if weights else 0.0
        avg_influence = float(np.mean([graph.nodes[m].get("influence", 0.0) for m in member_ids]))

        if center["aggression"] > 0.6:
            cluster_type = ClusterType.COMBAT
        elif center["sociability"] > 0.6:
            cluster_type = ClusterType.SOCIAL
        elif dominant == "economist":
            cluster_type = ClusterType.ECONOMIC
        elif dominant == "criminal":
            cluster_type = ClusterType.CRIMINAL
        else:
            cluster_type = ClusterType.MIXED

        return SocialCluster(
            cluster_id=f"cluster-{index}",
            member_ids=list(member_ids),
            center_of_mass=center,
            dominant_personality=dominant,
            cohesion=cohesion,
            avg_influence=avg_influence,
            cluster_type=cluster_type,
        )

    def detect_communities(self, graph: nx.Graph) -> Tuple[List[SocialCluster], List[str], bool]:
        labels, converged = label_propagation(graph, self.rng, max_iter=self.config.label_propagation_max_iter)
        groups: Dict[str, List[str]] = {}
        for node in graph:
            groups.setdefault(labels[node], []).append(node)
        clusters: List[SocialCluster] = []
        isolates: List[str] = []
        for members in groups.values():
            if len(members) < 2:
                isolates.extend(members)
                continue
            clusters.append(self.make_cluster(graph, len(clusters), members))
        return clusters, isolates, converged

    def analyze(self, graph: nx.Graph | None = None) -> NetworkAnalysis:
        graph = graph if graph is not None else self.build_graph()
        nodes, edges = self.graph_view(graph)

        betweenness = betweenness_centrality(graph, workers=self.config.analysis_workers)
        eigenvector, eig_converged = eigenvector_centrality(
            graph,
            max_iter=self.config.eigenvector_max_iter,
            tol=self.config.eigenvector_tolerance,
        )
        for node in nodes:
            node.betweenness = betweenness.get(node.id, 0.0)
            node.eigenvector = eigenvector.get(node.id, 0.0)

        clusters, isolates, lp_converged = self.detect_communities(graph)
        membership = {m: c.cluster_id for c in clusters for m in c.member_ids}
        for node in nodes:
            node.cluster = membership.get(node.id)

        if not eig_converged or not lp_converged:
            logger.debug("analysis hit iteration cap (eigenvector=%s, communities=%s)", eig_converged, lp_converged)

        return NetworkAnalysis(
            nodes=nodes,
            edges=edges,
            clusters=clusters,
            central_nodes=_top_fraction(nodes, "eigenvector", self.config.top_fraction),
            bridges=_top_fraction(nodes, "betweenness", self.config.top_fraction),
            isolates=isolates,
            density=nx.density(graph),
            avg_path_length=average_path_length(graph, self.rng, samples=self.config.path_samples),
            clustering_coefficient=clustering_coefficient(graph),
            eigenvector_converged=eig_converged,
            communities_converged=lp_converged,
        )

    def visualization(self, analysis: NetworkAnalysis | None = None) -> Dict[str, List[Dict[str, object]]]:
        """Renderer-agnostic node/link lists with size and colour hints."""
        analysis = analysis if analysis is not None else self.analyze()
        nodes = [
            {
                "id": n.id,
                "label": n.name,
                "size": 10 + n.influence * 2,
                "color": ARCHETYPE_COLORS.get(n.archetype, DEFAULT_NODE_COLOR),
                "group": n.cluster,
            }
            for n in analysis.nodes
        ]
        links = [
            {
                "source": e.source,
                "target": e.target,
                "value": e.weight * 10,
                "color": EDGE_COLORS.get(e.type, DEFAULT_EDGE_COLOR),
            }
            for e in analysis.edges
        ]
        return {"nodes": nodes, "links": links}
