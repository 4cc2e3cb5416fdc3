"""Immutable exercise and workout descriptors.

An :class:`Exercise` describes one drill of a workout.  How the drill is
finished is captured by a single completion mode object so callers never
need to pattern match on loose configuration dictionaries:

``Countdown``        fixed duration counting down to zero
``StopwatchManual``  elapsed time counts up until the user marks it done
``RepsXSets``        a number of reps repeated for several sets
``TimedSets``        a fixed duration repeated for several sets

Descriptors are created when a workout is authored and are never mutated by
the engine.  They serialise to plain dictionaries so they can be embedded in
session snapshots.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field


def _check_duration(value, name: str) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number") from None
    if not math.isfinite(value) or value < 0:
        raise ValueError(f"{name} must be a non-negative number of seconds")
    return value


def _check_count(value, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"{name} must be a positive integer")
    return value


class CompletionMode:
    """Base class for the ways an exercise can be completed."""

    kind: str = ""
    is_set_based: bool = False
    auto_completes: bool = False

    @property
    def target_duration(self) -> float | None:
        """Seconds each exercise (or set) counts down from, if timed."""
        return None

    @property
    def total_sets(self) -> int | None:
        return None

    def required_inputs(self) -> tuple[str, ...]:
        """Return the controls a presentation layer must offer for this mode."""

        inputs = ["timer" if self.target_duration is not None else "stopwatch"]
        if self.is_set_based:
            inputs.append("set_counter")
        return tuple(inputs)

    def to_dict(self) -> dict:
        raise NotImplementedError

    @staticmethod
    def from_dict(data: dict) -> "CompletionMode":
        """Rebuild a completion mode from its ``kind`` tagged dictionary."""

        kind = data.get("kind")
        if kind == Countdown.kind:
            return Countdown(data["duration"])
        if kind == StopwatchManual.kind:
            return StopwatchManual()
        if kind == RepsXSets.kind:
            return RepsXSets(data["reps"], data["sets"])
        if kind == TimedSets.kind:
            return TimedSets(
                data["duration"], data["sets"], data.get("rest_between_sets")
            )
        raise ValueError(f"Unknown completion mode '{kind}'")


@dataclass(frozen=True)
class Countdown(CompletionMode):
    duration: float

    kind = "countdown"
    auto_completes = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "duration", _check_duration(self.duration, "duration"))

    @property
    def target_duration(self) -> float:
        return self.duration

    def to_dict(self) -> dict:
        return {"kind": self.kind, "duration": self.duration}


@dataclass(frozen=True)
class StopwatchManual(CompletionMode):
    kind = "stopwatch_manual"

    def to_dict(self) -> dict:
        return {"kind": self.kind}


@dataclass(frozen=True)
class RepsXSets(CompletionMode):
    reps: int
    sets: int

    kind = "reps_x_sets"
    is_set_based = True

    def __post_init__(self) -> None:
        _check_count(self.reps, "reps")
        _check_count(self.sets, "sets")

    @property
    def total_sets(self) -> int:
        return self.sets

    def to_dict(self) -> dict:
        return {"kind": self.kind, "reps": self.reps, "sets": self.sets}


@dataclass(frozen=True)
class TimedSets(CompletionMode):
    duration: float
    sets: int
    rest_between_sets: float | None = None

    kind = "timed_sets"
    is_set_based = True
    auto_completes = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "duration", _check_duration(self.duration, "duration"))
        _check_count(self.sets, "sets")
        if self.rest_between_sets is not None:
            object.__setattr__(
                self,
                "rest_between_sets",
                _check_duration(self.rest_between_sets, "rest_between_sets"),
            )

    @property
    def target_duration(self) -> float:
        return self.duration

    @property
    def total_sets(self) -> int:
        return self.sets

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "duration": self.duration,
            "sets": self.sets,
            "rest_between_sets": self.rest_between_sets,
        }


# Default rest times per drill category as (between sets, after exercise).
CATEGORY_REST_DEFAULTS: dict[str, tuple[float, float]] = {
    "stickhandling": (0, 30),
    "skill_development": (0, 30),
    "shooting": (30, 45),
    "passing": (30, 45),
    "skating": (45, 60),
    "agility": (45, 45),
    "conditioning": (90, 120),
}


@dataclass(frozen=True)
class Exercise:
    """One drill within a workout."""

    exercise_id: str
    name: str
    mode: CompletionMode
    rest_after: float | None = None
    rest_between_sets: float | None = None
    category: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.mode, CompletionMode):
            raise ValueError("mode must be a CompletionMode")
        if self.category is not None and self.category not in CATEGORY_REST_DEFAULTS:
            raise ValueError(f"Unknown category '{self.category}'")
        for name in ("rest_after", "rest_between_sets"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, _check_duration(value, name))

    def effective_rest_between_sets(self, default: float) -> float:
        """Return rest between sets: explicit, timed-set rest, category, ``default``."""

        if self.rest_between_sets is not None:
            return self.rest_between_sets
        if isinstance(self.mode, TimedSets) and self.mode.rest_between_sets is not None:
            return self.mode.rest_between_sets
        if self.category is not None:
            return CATEGORY_REST_DEFAULTS[self.category][0]
        return default

    def effective_rest_after(self, default: float) -> float:
        """Return rest before the next exercise: explicit, category, ``default``."""

        if self.rest_after is not None:
            return self.rest_after
        if self.category is not None:
            return CATEGORY_REST_DEFAULTS[self.category][1]
        return default

    def to_dict(self) -> dict:
        return {
            "exercise_id": self.exercise_id,
            "name": self.name,
            "mode": self.mode.to_dict(),
            "rest_after": self.rest_after,
            "rest_between_sets": self.rest_between_sets,
            "category": self.category,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Exercise":
        return cls(
            exercise_id=str(data["exercise_id"]),
            name=data["name"],
            mode=CompletionMode.from_dict(data["mode"]),
            rest_after=data.get("rest_after"),
            rest_between_sets=data.get("rest_between_sets"),
            category=data.get("category"),
        )


@dataclass(frozen=True)
class Workout:
    """An ordered list of exercises to perform."""

    workout_id: str
    name: str
    exercises: tuple[Exercise, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "exercises", tuple(self.exercises))

    def to_dict(self) -> dict:
        return {
            "workout_id": self.workout_id,
            "name": self.name,
            "exercises": [ex.to_dict() for ex in self.exercises],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Workout":
        return cls(
            workout_id=str(data["workout_id"]),
            name=data.get("name", ""),
            exercises=tuple(Exercise.from_dict(ex) for ex in data.get("exercises", [])),
        )
