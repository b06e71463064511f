"""Tests for the priority pipeline (task_engine/priority.py)."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from agentic_tasks.config import (
    DistributionConfig,
    EffortWeightingConfig,
    PriorityEngineConfig,
    TimeDecayConfig,
)
from agentic_tasks.task_engine.errors import InvalidInput
from agentic_tasks.task_engine.model import Task, TaskDocument, TaskStatus
from agentic_tasks.task_engine.priority import (
    decay_boost,
    dependency_boost,
    effort_weighting,
    optimize_distribution,
    priority_statistics,
    recalculate,
    time_decay,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _ago(days: float) -> str:
    return (NOW - timedelta(days=days)).isoformat()


def _task(task_id: int, priority: int = 500, deps=(), status: str = "todo", age_days: float = 0, **kwargs) -> Task:
    return Task(
        id=task_id,
        title=f"T{task_id}",
        priority=priority,
        depends_on=list(deps),
        status=TaskStatus(status),
        created_at=_ago(age_days),
        updated_at=_ago(age_days),
        **kwargs,
    )


def _priorities(tasks: list[Task]) -> dict[int, int]:
    return {t.id: t.priority for t in tasks}


class TestDependencyBoost:
    def test_boost_grows_with_dependent_priority(self) -> None:
        tasks = [_task(1, 500), _task(2, 400, deps=[1])]
        assert dependency_boost(tasks, _priorities(tasks)) == {1: 545, 2: 400}

    def test_done_dependents_do_not_count(self) -> None:
        tasks = [_task(1, 500), _task(2, 400, deps=[1], status="done")]
        assert dependency_boost(tasks, _priorities(tasks)) == {1: 500, 2: 400}

    def test_never_exceeds_ceiling(self) -> None:
        tasks = [_task(1, 990)] + [_task(i, 900, deps=[1]) for i in range(2, 7)]
        assert dependency_boost(tasks, _priorities(tasks))[1] == 1000

    def test_boost_is_capped(self) -> None:
        tasks = [_task(1, 100)] + [_task(i, 1000, deps=[1]) for i in range(2, 12)]
        assert dependency_boost(tasks, _priorities(tasks))[1] == 350


class TestTimeDecay:
    def test_linear_without_priority_weight(self) -> None:
        cfg = TimeDecayConfig(enabled=True, rate=0.2, priority_weight=False)
        tasks = [_task(1, 500, age_days=57)]
        assert time_decay(tasks, _priorities(tasks), cfg, NOW) == {1: 510}

    def test_linear_is_rate_per_day_capped_at_max_boost(self) -> None:
        cfg = TimeDecayConfig(enabled=True, rate=0.02, max_boost=200)
        assert decay_boost("linear", 30, 500, cfg) == pytest.approx(0.6)
        capped = TimeDecayConfig(enabled=True, rate=0.2, max_boost=5)
        assert decay_boost("linear", 100, 500, capped) == pytest.approx(5.0)

    def test_priority_weight_dampens_boost(self) -> None:
        cfg = TimeDecayConfig(enabled=True, rate=0.2)
        tasks = [_task(1, 500, age_days=47)]
        assert time_decay(tasks, _priorities(tasks), cfg, NOW) == {1: 506}

    def test_only_todo_tasks_decay(self) -> None:
        cfg = TimeDecayConfig(enabled=True, model="exponential")
        tasks = [_task(1, 500, status="inprogress", age_days=60)]
        assert time_decay(tasks, _priorities(tasks), cfg, NOW) == {1: 500}

    def test_age_counts_from_last_status_change(self) -> None:
        cfg = TimeDecayConfig(enabled=True, model="exponential")
        tasks = [_task(1, 500, age_days=100, status_changed_at=_ago(3))]
        assert time_decay(tasks, _priorities(tasks), cfg, NOW) == {1: 500}

    def test_within_threshold_no_boost(self) -> None:
        cfg = TimeDecayConfig(enabled=True, model="exponential")
        tasks = [_task(1, 500, age_days=6)]
        assert time_decay(tasks, _priorities(tasks), cfg, NOW) == {1: 500}

    def test_exponential(self) -> None:
        cfg = TimeDecayConfig(enabled=True, model="exponential", priority_weight=False)
        tasks = [_task(1, 500, age_days=17)]
        assert time_decay(tasks, _priorities(tasks), cfg, NOW) == {1: 536}

    def test_adaptive_switches_on_priority(self) -> None:
        cfg = TimeDecayConfig(enabled=True, model="adaptive")
        assert decay_boost("adaptive", 10, 600, cfg) == pytest.approx(decay_boost("exponential", 10, 600, cfg))
        assert decay_boost("adaptive", 10, 400, cfg) == pytest.approx(0.2)

    def test_sigmoid_midpoint_is_half(self) -> None:
        cfg = TimeDecayConfig(enabled=True, model="sigmoid")
        assert decay_boost("sigmoid", 30, 500, cfg) == pytest.approx(100.0)

    def test_sigmoid_steepness_is_rate(self) -> None:
        cfg = TimeDecayConfig(enabled=True, model="sigmoid", rate=0.1, max_boost=200)
        assert decay_boost("sigmoid", 40, 500, cfg) == pytest.approx(146.21, abs=0.01)
        assert decay_boost("sigmoid", 20, 500, cfg) == pytest.approx(53.79, abs=0.01)

    def test_logarithmic_reaches_max_at_reference_span(self) -> None:
        cfg = TimeDecayConfig(enabled=True, model="logarithmic")
        assert decay_boost("logarithmic", 90, 500, cfg) == pytest.approx(200.0)
        assert decay_boost("logarithmic", 400, 500, cfg) == pytest.approx(200.0)

    @pytest.mark.parametrize("model", ["linear", "exponential", "logarithmic", "sigmoid", "adaptive"])
    def test_models_are_monotonic_and_bounded(self, model: str) -> None:
        cfg = TimeDecayConfig(enabled=True, model=model)
        values = [decay_boost(model, d, 500, cfg) for d in (1, 5, 20, 60, 200, 1000)]
        assert values == sorted(values)
        assert all(0 <= v <= cfg.max_boost for v in values)


class TestEffortWeighting:
    def test_high_scores_add_fixed_boost(self) -> None:
        cfg = EffortWeightingConfig(enabled=True)
        tasks = [_task(1, 500, complexity=10, impact=10, urgency=10)]
        assert effort_weighting(tasks, _priorities(tasks), cfg, NOW) == {1: 550}

    def test_low_scores_ignored(self) -> None:
        cfg = EffortWeightingConfig(enabled=True)
        tasks = [_task(1, 500, complexity=1, impact=1, urgency=1), _task(2, 500)]
        assert effort_weighting(tasks, _priorities(tasks), cfg, NOW) == {1: 500, 2: 500}

    def test_score_decays_with_age(self) -> None:
        cfg = EffortWeightingConfig(enabled=True)
        tasks = [_task(1, 500, age_days=100, complexity=10, impact=10, urgency=10)]
        assert effort_weighting(tasks, _priorities(tasks), cfg, NOW) == {1: 500}


class TestDistribution:
    def test_collision_shifts_higher_id(self) -> None:
        out = optimize_distribution({1: 500, 2: 500, 3: 499}, DistributionConfig())
        assert out == {1: 500, 2: 501, 3: 499}

    def test_overflow_walks_down_from_top(self) -> None:
        out = optimize_distribution({1: 1000, 2: 1000, 3: 999}, DistributionConfig())
        assert out == {1: 999, 2: 1000, 3: 998}

    def test_duplicates_allowed_when_not_enforced(self) -> None:
        out = optimize_distribution({1: 500, 2: 500}, DistributionConfig(enforce_unique=False))
        assert out == {1: 500, 2: 500}

    def test_rescale_clustered_values(self) -> None:
        out = optimize_distribution({1: 500, 2: 510, 3: 520}, DistributionConfig(rescale=True))
        assert out[1] == 1 and out[3] == 1000
        assert out[1] < out[2] < out[3]

    def test_rescale_needs_min_tasks(self) -> None:
        out = optimize_distribution({1: 500, 2: 510}, DistributionConfig(rescale=True))
        assert out == {1: 500, 2: 510}


class TestRecalculate:
    def _document(self) -> TaskDocument:
        return TaskDocument(
            tasks=[
                _task(1, 500, age_days=30),
                _task(2, 500, deps=[1], age_days=30),
                _task(3, 990, age_days=2, complexity=9, impact=9, urgency=9),
                _task(4, 500, deps=[3], status="done"),
            ],
            last_task_id=4,
        )

    def _config(self) -> PriorityEngineConfig:
        return PriorityEngineConfig(
            time_decay=TimeDecayConfig(enabled=True, model="exponential"),
            effort_weighting=EffortWeightingConfig(enabled=True),
        )

    def test_priorities_stay_in_bounds(self) -> None:
        doc = self._document()
        recalculate(doc, self._config(), NOW)
        assert all(1 <= t.priority <= 1000 for t in doc.tasks)
        assert len({t.priority for t in doc.tasks}) == len(doc.tasks)

    def test_idempotent_for_same_clock(self) -> None:
        doc = self._document()
        first = recalculate(doc, self._config(), NOW)
        snapshot = _priorities(doc.tasks)
        second = recalculate(doc, self._config(), NOW)
        assert first.changed
        assert not second.changed
        assert _priorities(doc.tasks) == snapshot

    def test_base_priority_preserved(self) -> None:
        doc = self._document()
        recalculate(doc, self._config(), NOW)
        assert doc.get(1).base_priority == 500
        assert doc.get(1).priority > 500

    def test_significant_changes_are_logged(self) -> None:
        doc = TaskDocument(tasks=[_task(1, 500), _task(2, 400, deps=[1])])
        result = recalculate(doc, PriorityEngineConfig(), NOW)
        assert result.changes == [{"id": 1, "from": 500, "to": 545}]
        assert doc.get(1).activity_log[-1].message == "Priority recalculated from 500 to 545."
        assert doc.get(2).activity_log == []

    def test_overrides_disable_stages(self) -> None:
        doc = TaskDocument(tasks=[_task(1, 500), _task(2, 400, deps=[1])])
        result = recalculate(doc, PriorityEngineConfig(), NOW, {"apply_dependency_boosts": False})
        assert result.stages == ["distribution"]
        assert not result.changed

    def test_unknown_override_rejected(self) -> None:
        with pytest.raises(InvalidInput):
            recalculate(TaskDocument(), PriorityEngineConfig(), NOW, {"apply_magic": True})


class TestStatistics:
    def test_summary(self) -> None:
        doc = TaskDocument(tasks=[_task(1, 300), _task(2, 500), _task(3, 500), _task(4, 900)])
        stats = priority_statistics(doc)
        assert stats["count"] == 4
        assert (stats["min"], stats["max"]) == (300, 900)
        assert stats["mean"] == 550
        assert stats["median"] == 500
        assert stats["histogram"] == {"low": 1, "medium": 2, "high": 0, "critical": 1}
        assert (stats["duplicates"], stats["unique"]) == (1, 3)

    def test_empty(self) -> None:
        stats = priority_statistics(TaskDocument())
        assert stats["count"] == 0
        assert stats["min"] is None

    def test_does_not_mutate(self) -> None:
        doc = TaskDocument(tasks=[_task(1, 300)])
        before = doc.to_dict()
        priority_statistics(doc)
        assert doc.to_dict() == before
