"""Coordinated actions among members of an existing gang."""

from __future__ import annotations

import itertools
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Tuple

import numpy as np

from affinity import AffinityCalculator
from errors import ActionStatusError
from profiles import ActionKind, ActionStatus, AgentProfile, Priority, clamp, clamp01

logger = logging.getLogger(__name__)

TYPE_PRIORITY: Dict[ActionKind, float] = {
    ActionKind.DEFENSE: 4.0,
    ActionKind.WAR: 3.0,
    ActionKind.RAID: 2.0,
    ActionKind.MISSION: 2.0,
    ActionKind.RECRUITMENT: 1.0,
}


@dataclass
class GangCoordinationAction:
    action_id: str
    gang_id: str
    kind: ActionKind
    coordinator_id: str
    participant_ids: Tuple[str, ...]
    scheduled_time: datetime
    priority: Priority
    status: ActionStatus = ActionStatus.PLANNED
    target_gang: str | None = None
    target_location: str | None = None

    def as_dict(self) -> Dict[str, object]:
        return {
            "action_id": self.action_id,
            "gang_id": self.gang_id,
            "kind": self.kind.value,
            "coordinator_id": self.coordinator_id,
            "participant_ids": list(self.participant_ids),
            "target_gang": self.target_gang,
            "target_location": self.target_location,
            "scheduled_time": self.scheduled_time.isoformat(),
            "priority": self.priority.value,
            "status": self.status.value,
        }


@dataclass(frozen=True)
class ActionResult:
    action_id: str
    success: bool
    participants: Tuple[str, ...]
    outcome: str


def alignment(profile: AgentProfile, kind: ActionKind) -> float:
    t = profile.personality
    if kind is ActionKind.WAR:
        return t.aggression * 0.3 + t.loyalty * 0.2
    if kind is ActionKind.RAID:
        return t.risk_tolerance * 0.3 + t.aggression * 0.2
    if kind is ActionKind.DEFENSE:
        return t.loyalty * 0.4 + t.patience * 0.1
    if kind is ActionKind.RECRUITMENT:
        return t.sociability * 0.3 + t.loyalty * 0.2
    return t.curiosity * 0.2 + t.loyalty * 0.3


def priority_for(score: float) -> Priority:
    if score >= 4:
        return Priority.CRITICAL
    if score >= 3:
        return Priority.HIGH
    if score >= 2:
        return Priority.MEDIUM
    return Priority.LOW


class GangCoordinationSystem:
    """Plans and resolves gang actions. Membership is read from the store on every call."""

    def __init__(self, store, rng: np.random.Generator | None = None):
        self.store = store
        self.config = store.config
        self.rng = rng if rng is not None else np.random.default_rng()
        # planned actions only; entries leave once they reach a terminal status
        self.actions: Dict[str, GangCoordinationAction] = {}
        self._counter = itertools.count(1)

    def members(self, gang_id: str) -> List[AgentProfile]:
        return [p for p in self.store.profiles(active_only=True) if p.group_affiliation == gang_id]

    def pending(self, gang_id: str | None = None) -> List[GangCoordinationAction]:
        return [a for a in self.actions.values() if gang_id is None or a.gang_id == gang_id]

    def willingness(self, member: AgentProfile, coordinator: AgentProfile, kind: ActionKind) -> float:
        score = 0.5
        rel = self.store.relationship(member.agent_id, coordinator.agent_id)
        if rel is not None:
            score += rel.affinity * 0.3 + rel.trust * 0.2
        score += alignment(member, kind)
        score += member.personality.loyalty * 0.2
        return clamp01(score)

    def willing_participants(self, gang_id: str, coordinator: AgentProfile, kind: ActionKind) -> List[str]:
        scored = []
        for member in self.members(gang_id):
            if member.agent_id == coordinator.agent_id:
                scored.append((member.agent_id, 1.0))
                continue
            value = self.willingness(member, coordinator, kind)
            if value > self.config.willingness_cutoff:
                scored.append((member.agent_id, value))
        scored.sort(key=lambda s: s[1], reverse=True)
        return [agent_id for agent_id, _ in scored]

    def cohesion(self, gang_id: str) -> float:
        """Mean signed affinity over member pairs that have a relationship."""
        ids = [p.agent_id for p in self.members(gang_id)]
        values = []
        for a, b in itertools.combinations(ids, 2):
            rel = self.store.relationship(a, b)
            if rel is not None:
                values.append(rel.affinity)
        return float(np.mean(values)) if values else 0.0

    def action_priority(self, gang_id: str, kind: ActionKind) -> Priority:
        return priority_for(TYPE_PRIORITY.get(kind, 1.0) + self.cohesion(gang_id) * 2)

    def plan_action(
        self,
        gang_id: str,
        kind: ActionKind,
        coordinator_id: str,
        target_gang: str | None = None,
        target_location: str | None = None,
        min_participants: int | None = None,
    ) -> GangCoordinationAction | None:
        coordinator = self.store.get_profile(coordinator_id)
        if coordinator is None or not coordinator.active or coordinator.group_affiliation != gang_id:
            return None
        needed = min_participants if min_participants is not None else self.config.min_participants
        with self.store.lock:
            participants = self.willing_participants(gang_id, coordinator, kind)
            if len(participants) < needed:
                return None
            priority = self.action_priority(gang_id, kind)
        action = GangCoordinationAction(
            action_id=f"{gang_id}-{next(self._counter)}",
            gang_id=gang_id,
            kind=kind,
            coordinator_id=coordinator_id,
            participant_ids=tuple(participants),
            scheduled_time=self.store.now() + timedelta(seconds=self.config.action_delay_seconds),
            priority=priority,
            target_gang=target_gang,
            target_location=target_location,
        )
        self.actions[action.action_id] = action
        return action

    def execute_action(self, action: GangCoordinationAction) -> ActionResult:
        """Resolve a planned action; success effects are applied all at once or not at all."""
        if action.status is not ActionStatus.PLANNED:
            raise ActionStatusError(action.status)
        cfg = self.config
        chance = cfg.action_base_success + len(action.participant_ids) * cfg.action_success_per_participant
        success = bool(self.rng.random() < chance)

        with self.store.lock:
            if success:
                for agent_id in action.participant_ids:
                    rep = self.store.profile(agent_id).reputation
                    rep.adjust(5.0)
                    rep.categories["reliability"] = clamp(rep.categories.get("reliability", 0.0) + 3.0, -100.0, 100.0)
                for a, b in itertools.combinations(action.participant_ids, 2):
                    rel = self.store.relationship(a, b)
                    if rel is None:
                        continue
                    rel.apply(0.05, 0.03)
                    rel.relationship_type = AffinityCalculator.classify(rel.affinity, rel.trust)
            action.status = ActionStatus.COMPLETED if success else ActionStatus.FAILED
        self.actions.pop(action.action_id, None)

        if success:
            outcome = f"{action.kind.value} successful! Gang cohesion strengthened."
        else:
            outcome = f"{action.kind.value} failed. Gang morale affected."
        logger.info(
            "gang %s %s by %s with %d participants (%s): %s",
            action.gang_id,
            action.kind.value,
            action.coordinator_id,
            len(action.participant_ids),
            action.priority.value,
            action.status.value,
        )
        return ActionResult(
            action_id=action.action_id,
            success=success,
            participants=action.participant_ids,
            outcome=outcome,
        )

    def cancel_action(self, action: GangCoordinationAction) -> None:
        if action.status is not ActionStatus.PLANNED:
            raise ActionStatusError(action.status)
        action.status = ActionStatus.CANCELLED
        self.actions.pop(action.action_id, None)

    def gang_stats(self, gang_id: str) -> Dict[str, object] | None:
        members = self.members(gang_id)
        if not members:
            return None
        archetypes = Counter(p.archetype for p in members)
        aggression = np.mean([p.personality.aggression for p in members])
        risk = np.mean([p.personality.risk_tolerance for p in members])
        activity_score = float(aggression * 0.5 + risk * 0.5)
        if activity_score > 0.6:
            activity = "high"
        elif activity_score < 0.4:
            activity = "low"
        else:
            activity = "medium"
        return {
            "member_count": len(members),
            "avg_cohesion": self.cohesion(gang_id),
            "avg_influence": float(np.mean([p.influence for p in members])),
            "dominant_personality": archetypes.most_common(1)[0][0],
            "activity_level": activity,
        }

    def suggest_action_kind(self, gang_id: str) -> ActionKind | None:
        stats = self.gang_stats(gang_id)
        if stats is None:
            return None
        if stats["member_count"] < self.config.min_group_size or stats["avg_cohesion"] < 0.3:
            return ActionKind.RECRUITMENT
        if stats["activity_level"] == "high":
            return ActionKind.RAID
        if stats["activity_level"] == "low":
            return ActionKind.DEFENSE
        return ActionKind.MISSION
