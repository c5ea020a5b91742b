"""Affinity scoring, faction modifiers and relationship classification."""
import numpy as np
import pytest

from helpers import make_profile
from affinity import AffinityCalculator
from config import EngineConfig
from profiles import InteractionKind, Outcome, PersonalityTraits, RelationshipType


@pytest.fixture
def calc():
    return AffinityCalculator(EngineConfig())


def test_identical_traits_same_faction_are_compatible(calc):
    a = make_profile("a", faction="settlers", **PersonalityTraits.from_archetype("social").as_dict())
    b = make_profile("b", faction="settlers", **PersonalityTraits.from_archetype("social").as_dict())
    assert calc.initial_affinity(a, b) > 0.5


def test_opposed_core_traits_are_negative(calc):
    a = PersonalityTraits(sociability=0.0, aggression=0.0, loyalty=0.0)
    b = PersonalityTraits(sociability=1.0, aggression=1.0, loyalty=1.0)
    assert calc.base_affinity(a, b) < 0


def test_base_affinity_is_symmetric_and_bounded(calc):
    rng = np.random.default_rng(7)
    for _ in range(50):
        a = PersonalityTraits(*rng.random(7))
        b = PersonalityTraits(*rng.random(7))
        value = calc.base_affinity(a, b)
        assert -1.0 <= value <= 1.0
        assert value == pytest.approx(calc.base_affinity(b, a))


def test_two_greedy_agents_are_rivals(calc):
    greedy = PersonalityTraits(greed=0.9)
    modest = PersonalityTraits(greed=0.6)
    assert calc.base_affinity(greedy, greedy) < calc.base_affinity(modest, modest)


def test_faction_modifier(calc):
    assert calc.apply_faction_modifier(0.1, "nahi", "nahi") == pytest.approx(0.3)
    assert calc.apply_faction_modifier(0.1, "frontera", "nahi") == pytest.approx(-0.2)
    assert calc.apply_faction_modifier(0.1, "frontera", "settlers") == pytest.approx(0.1)
    assert calc.apply_faction_modifier(0.1, None, "nahi") == pytest.approx(0.1)


def test_initial_affinity_is_clamped(calc):
    a = make_profile("a", faction="nahi")
    b = make_profile("b", faction="nahi")
    assert calc.initial_affinity(a, b) == 1.0


def test_interaction_deltas(calc):
    assert calc.interaction_delta(InteractionKind.BETRAYAL, Outcome.POSITIVE, 0.0, 0.5) == (-0.5, -0.7)
    assert calc.interaction_delta(InteractionKind.TRADE, Outcome.NEGATIVE, 0.0, 0.5) == (-0.10, -0.15)
    assert calc.interaction_delta(InteractionKind.GIFT, Outcome.NEGATIVE, 0.0, 0.5) == (-0.10, 0.05)
    assert calc.interaction_delta(InteractionKind.HELP, Outcome.NEUTRAL, 0.0, 0.5) == (0.0, 0.0)


def test_diminishing_returns_above_half(calc):
    low, _ = calc.interaction_delta(InteractionKind.COOPERATION, Outcome.POSITIVE, 0.2, 0.5)
    high, _ = calc.interaction_delta(InteractionKind.COOPERATION, Outcome.POSITIVE, 0.8, 0.5)
    assert low == pytest.approx(0.08)
    assert high == pytest.approx(0.08 * (1 - 0.8 * 0.5))


@pytest.mark.parametrize(
    "affinity, trust, expected",
    [
        (-0.9, 0.9, RelationshipType.ENEMY),
        (-0.3, 0.5, RelationshipType.RIVAL),
        (0.6, 0.7, RelationshipType.ALLY),
        (0.6, 0.5, RelationshipType.FRIEND),
        (0.1, 0.1, RelationshipType.ACQUAINTANCE),
        (0.1, 0.5, RelationshipType.STRANGER),
    ],
)
def test_classify_ladder(affinity, trust, expected):
    assert AffinityCalculator.classify(affinity, trust) is expected


def test_classify_is_total():
    for affinity in np.linspace(-1.0, 1.0, 41):
        for trust in np.linspace(0.0, 1.0, 21):
            assert AffinityCalculator.classify(float(affinity), float(trust)) in set(RelationshipType)
