"""Priority engine: a fixed pipeline of scoring stages over a task document.

Stages run in order and each one reads the previous stage's output:

1. dependency boost
2. time decay
3. effort weighting
4. distribution optimization (clamp, de-duplicate, optional rescale)

Every run starts from each task's ``basePriority`` (its last manual value), so
recalculating twice with the same configuration, task set and clock yields the
same result.
"""

from __future__ import annotations

import math
import statistics
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional

from loguru import logger

from ..config import DistributionConfig, EffortWeightingConfig, PriorityEngineConfig, TimeDecayConfig
from ..constants import PRIORITY_BANDS, PRIORITY_LOG_MIN_DELTA, PRIORITY_MAX, PRIORITY_MIN
from ..utils import _age_days, _now
from .errors import InvalidInput
from .model import Task, TaskDocument, TaskStatus, clamp_priority

Priorities = dict[int, int]

# Dependency boost: per open dependent, a flat amount plus a share of its priority.
DEPENDENT_FLAT_BOOST = 25
DEPENDENT_PRIORITY_SHARE = 0.05
MAX_DEPENDENCY_BOOST = 250

# Time decay model constants (days).
LOG_REFERENCE_SPAN = 90
SIGMOID_MIDPOINT = 30

EFFORT_BOOST = 50
EFFORT_SCALE = 10.0


# ---------------------------------------------------------------------------
# Stage 1: dependency boost
# ---------------------------------------------------------------------------

def dependency_boost(tasks: list[Task], priorities: Priorities) -> Priorities:
    """Raise tasks that unblock other open work."""
    open_dependents: dict[int, list[int]] = {}
    for task in tasks:
        if task.is_done:
            continue
        for dep in task.depends_on:
            open_dependents.setdefault(dep, []).append(task.id)

    out = dict(priorities)
    for task in tasks:
        if task.is_done:
            continue
        dependents = open_dependents.get(task.id, [])
        if not dependents:
            continue
        boost = sum(
            DEPENDENT_FLAT_BOOST + round(DEPENDENT_PRIORITY_SHARE * priorities[d])
            for d in dependents
        )
        current = out[task.id]
        boost = min(boost, MAX_DEPENDENCY_BOOST, PRIORITY_MAX - current)
        if boost > 0:
            out[task.id] = current + boost
            logger.debug("Dependency boost task {}: +{} ({} open dependents)", task.id, boost, len(dependents))
    return out


# ---------------------------------------------------------------------------
# Stage 2: time decay
# ---------------------------------------------------------------------------

def decay_boost(model: str, excess_days: float, current: int, cfg: TimeDecayConfig) -> float:
    """Raw (unweighted) boost for a task *excess_days* past the threshold."""
    if excess_days <= 0 or cfg.max_boost <= 0:
        return 0.0
    max_boost = float(cfg.max_boost)
    rate = cfg.rate
    if model == "adaptive":
        model = "exponential" if current >= cfg.adaptive_split else "linear"
    if model == "linear":
        return min(max_boost, rate * excess_days)
    if model == "exponential":
        return max_boost * (1.0 - math.exp(-rate * excess_days))
    if model == "logarithmic":
        scaled = math.log1p(rate * excess_days) / math.log1p(rate * LOG_REFERENCE_SPAN)
        return min(max_boost, max_boost * scaled)
    if model == "sigmoid":
        return max_boost / (1.0 + math.exp(-rate * (excess_days - SIGMOID_MIDPOINT)))
    raise ValueError(f"Unknown decay model: {model}")


def time_decay(tasks: list[Task], priorities: Priorities, cfg: TimeDecayConfig, now: datetime) -> Priorities:
    """Raise ``todo`` tasks that have waited longer than the threshold."""
    out = dict(priorities)
    for task in tasks:
        if task.status != TaskStatus.TODO:
            continue
        age = _age_days(task.status_changed_at or task.created_at, now)
        excess = age - cfg.threshold
        current = out[task.id]
        raw = decay_boost(cfg.model, excess, current, cfg)
        if raw <= 0:
            continue
        if cfg.priority_weight:
            raw *= 1.0 - 0.5 * current / PRIORITY_MAX
        boost = min(round(raw), PRIORITY_MAX - current)
        if boost > 0:
            out[task.id] = current + boost
            logger.debug("Time decay task {} ({}, {:.1f}d old): +{}", task.id, cfg.model, age, boost)
    return out


# ---------------------------------------------------------------------------
# Stage 3: effort weighting
# ---------------------------------------------------------------------------

def _normalized(value: Optional[float]) -> float:
    if value is None:
        return 0.0
    return max(0.0, min(1.0, float(value) / EFFORT_SCALE))


def effort_score(task: Task, cfg: EffortWeightingConfig, now: datetime) -> float:
    """Weighted complexity/impact/urgency score in [0, 1], decayed by age."""
    weighted = (
        cfg.complexity_weight * _normalized(task.complexity)
        + cfg.impact_weight * _normalized(task.impact)
        + cfg.urgency_weight * _normalized(task.urgency)
    )
    score = cfg.score_weight * weighted
    return score * math.exp(-cfg.decay_rate * _age_days(task.created_at, now))


def effort_weighting(tasks: list[Task], priorities: Priorities, cfg: EffortWeightingConfig, now: datetime) -> Priorities:
    out = dict(priorities)
    for task in tasks:
        if task.is_done:
            continue
        if task.complexity is None and task.impact is None and task.urgency is None:
            continue
        score = effort_score(task, cfg, now)
        if score > cfg.boost_threshold:
            current = out[task.id]
            out[task.id] = min(PRIORITY_MAX, current + EFFORT_BOOST)
            logger.debug("Effort weighting task {}: score {:.3f} -> +{}", task.id, score, out[task.id] - current)
    return out


# ---------------------------------------------------------------------------
# Stage 4: distribution optimization
# ---------------------------------------------------------------------------

def optimize_distribution(priorities: Priorities, cfg: DistributionConfig) -> Priorities:
    """Clamp, make values unique and optionally spread out a tight cluster."""
    out = {tid: clamp_priority(value) for tid, value in priorities.items()}
    if not out:
        return out

    if cfg.enforce_unique:
        ordered = sorted(out, key=lambda tid: (out[tid], tid))
        previous: Optional[int] = None
        for tid in ordered:
            if previous is not None and out[tid] <= previous:
                out[tid] = previous + 1
            previous = out[tid]
        if out[ordered[-1]] > PRIORITY_MAX:
            ceiling = PRIORITY_MAX
            for tid in reversed(ordered):
                if out[tid] <= ceiling:
                    break
                out[tid] = ceiling
                ceiling -= 1
            if len(ordered) > PRIORITY_MAX - PRIORITY_MIN + 1:
                logger.warning(
                    "{} tasks exceed the {} available priority values; duplicates remain",
                    len(ordered),
                    PRIORITY_MAX - PRIORITY_MIN + 1,
                )
            out = {tid: clamp_priority(value) for tid, value in out.items()}

    if cfg.rescale and len(out) >= cfg.min_tasks:
        low, high = min(out.values()), max(out.values())
        spread = high - low
        if 0 < spread < cfg.cluster_spread:
            span = cfg.upper_bound - cfg.lower_bound
            out = {
                tid: cfg.lower_bound + round((value - low) * span / spread)
                for tid, value in out.items()
            }
            logger.debug("Rescaled {} priorities from [{}, {}] to [{}, {}]", len(out), low, high, cfg.lower_bound, cfg.upper_bound)
    return out


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

@dataclass
class RecalculationResult:
    """Outcome of one pipeline run."""

    stages: list[str] = field(default_factory=list)
    changes: list[dict[str, int]] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.changes)

    def to_dict(self) -> dict[str, Any]:
        return {"stages": list(self.stages), "changes": list(self.changes), "changedCount": len(self.changes)}


def _stage_flags(config: PriorityEngineConfig, overrides: Optional[Mapping[str, Optional[bool]]]) -> dict[str, bool]:
    flags = {
        "dependency_boost": config.dependency_boost,
        "time_decay": config.time_decay.enabled,
        "effort_weighting": config.effort_weighting.enabled,
        "distribution": True,
    }
    override_keys = {
        "apply_dependency_boosts": "dependency_boost",
        "apply_time_decay": "time_decay",
        "apply_effort_weighting": "effort_weighting",
        "optimize_distribution": "distribution",
    }
    for key, value in (overrides or {}).items():
        if key not in override_keys:
            raise InvalidInput(f"Unknown priority stage override: {key}")
        if value is not None:
            flags[override_keys[key]] = bool(value)
    return flags


def recalculate(
    document: TaskDocument,
    config: PriorityEngineConfig,
    now: Optional[datetime] = None,
    overrides: Optional[Mapping[str, Optional[bool]]] = None,
) -> RecalculationResult:
    """Run the enabled stages and write the results back onto *document*.

    *overrides* maps ``apply_dependency_boosts``, ``apply_time_decay``,
    ``apply_effort_weighting`` and ``optimize_distribution`` to a bool that
    replaces the configured toggle for this run only.
    """
    now = now or _now()
    flags = _stage_flags(config, overrides)
    tasks = document.tasks
    priorities: Priorities = {t.id: clamp_priority(t.effective_base) for t in tasks}

    result = RecalculationResult()
    if flags["dependency_boost"]:
        priorities = dependency_boost(tasks, priorities)
        result.stages.append("dependency_boost")
    if flags["time_decay"]:
        priorities = time_decay(tasks, priorities, config.time_decay, now)
        result.stages.append("time_decay")
    if flags["effort_weighting"]:
        priorities = effort_weighting(tasks, priorities, config.effort_weighting, now)
        result.stages.append("effort_weighting")
    if flags["distribution"]:
        priorities = optimize_distribution(priorities, config.distribution)
        result.stages.append("distribution")
    else:
        priorities = {tid: clamp_priority(v) for tid, v in priorities.items()}

    for task in tasks:
        new = priorities[task.id]
        old = task.priority
        if task.base_priority is None:
            task.base_priority = clamp_priority(task.effective_base)
        if new == old:
            continue
        task.priority = new
        task.touch(now)
        if abs(new - old) >= PRIORITY_LOG_MIN_DELTA:
            task.log(f"Priority recalculated from {old} to {new}.", now)
        result.changes.append({"id": task.id, "from": old, "to": new})

    logger.info("Recalculated priorities ({}): {} change(s)", ", ".join(result.stages) or "no stages", len(result.changes))
    return result


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------

def priority_statistics(document: TaskDocument) -> dict[str, Any]:
    """Summary of the current priority values; never mutates the document."""
    values = [t.priority for t in document.tasks]
    histogram = {name: 0 for name, _, _ in PRIORITY_BANDS}
    for value in values:
        for name, low, high in PRIORITY_BANDS:
            if low <= value <= high:
                histogram[name] += 1
                break
    if not values:
        return {
            "count": 0, "min": None, "max": None, "mean": None, "median": None,
            "histogram": histogram, "duplicates": 0, "unique": 0,
        }
    unique = len(set(values))
    return {
        "count": len(values),
        "min": min(values),
        "max": max(values),
        "mean": round(statistics.fmean(values), 2),
        "median": statistics.median(values),
        "histogram": histogram,
        "duplicates": len(values) - unique,
        "unique": unique,
    }
