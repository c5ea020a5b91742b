"""Batch evaluation and the command-line driver."""
import json
import os
import sys

import pandas as pd

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import run
from windtunnel import VariantConfig, evaluate_variants


def test_evaluate_variants_shape():
    variants = [
        VariantConfig("baseline"),
        VariantConfig("loose_gangs", {"gang_affinity_threshold": 0.5, "auto_execute_affinity": 0.6}),
    ]
    df = evaluate_variants(variants, seeds=[1, 2], n_agents=8, steps=3, interactions_per_step=10)
    assert isinstance(df, pd.DataFrame)
    assert len(df) == 4
    assert set(df["variant"]) == {"baseline", "loose_gangs"}
    assert {"gang_count", "avg_affinity", "density", "clusters"} <= set(df.columns)


def test_same_seed_same_row():
    variants = [VariantConfig("a"), VariantConfig("b")]
    df = evaluate_variants(variants, seeds=[3], n_agents=6, steps=2, interactions_per_step=5)
    assert df.iloc[0]["avg_affinity"] == df.iloc[1]["avg_affinity"]


def test_run_main_writes_results(tmp_path, capsys):
    out = tmp_path / "results"
    run.main([
        "--steps", "3",
        "--agents", "8",
        "--interactions", "10",
        "--output", str(out),
        "--config", str(tmp_path / "missing.json"),
    ])
    assert (out / "summary_evolution.csv").exists()
    assert (out / "gang_stats.csv").exists()
    with open(out / "social_state.json", encoding="utf-8") as f:
        payload = json.load(f)
    assert len(payload["state"]["profiles"]) == 8
    assert "REPORTE SOCIAL" in capsys.readouterr().out
