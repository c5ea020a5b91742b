"""Small builders shared by the test modules."""
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from config import EngineConfig
from profiles import AgentProfile, PersonalityTraits, Relationship, pair_key
from store import SocialStore


def make_profile(agent_id, faction=None, influence=10.0, archetype="chaos", group=None, **traits):
    return AgentProfile(
        agent_id=agent_id,
        name=agent_id.upper(),
        personality=PersonalityTraits(**traits),
        archetype=archetype,
        faction=faction,
        group_affiliation=group,
        influence=influence,
    )


def make_store(ids, config=None, **profile_kwargs):
    store = SocialStore(config or EngineConfig())
    for agent_id in ids:
        store.add_profile(make_profile(agent_id, **profile_kwargs))
    return store


def link(store, a, b, affinity, trust=0.5):
    return store.add_relationship(Relationship(agents=pair_key(a, b), affinity=affinity, trust=trust))
