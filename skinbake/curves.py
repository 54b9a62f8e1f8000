"""Scalar keyframe curves addressed by (path, type, property).

One curve drives one float (e.g. ``rotation.y`` of the node at
``Armature/Hips/Spine``). Multi-component glTF samplers are split into one
curve per component, so rotations are interpolated component-wise and are not
unit-length between keys.
"""

from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

import numpy as np

INTERPOLATIONS = ("STEP", "LINEAR", "CUBICSPLINE")


@dataclass(frozen=True)
class CurveBinding:
    path: str
    type: str
    property: str


class KeyframeCurve:
    """Piecewise curve over sorted key times; clamps outside the key range."""

    def __init__(self, times, values, interpolation="LINEAR", in_tangents=None, out_tangents=None):
        self.times = np.asarray(times, dtype=np.float64).reshape(-1)
        self.values = np.asarray(values, dtype=np.float64).reshape(-1)
        if self.times.size == 0:
            raise ValueError("Curve needs at least one key")
        if self.times.shape != self.values.shape:
            raise ValueError(f"{self.times.size} key times but {self.values.size} values")
        if np.any(np.diff(self.times) < 0):
            raise ValueError("Key times must be non-decreasing")
        if interpolation not in INTERPOLATIONS:
            raise ValueError(f"Unknown interpolation {interpolation!r}")
        self.interpolation = interpolation

        if interpolation == "CUBICSPLINE":
            if in_tangents is None or out_tangents is None:
                raise ValueError("CUBICSPLINE curves need in and out tangents")
            self.in_tangents = np.asarray(in_tangents, dtype=np.float64).reshape(-1)
            self.out_tangents = np.asarray(out_tangents, dtype=np.float64).reshape(-1)
            if self.in_tangents.shape != self.times.shape or self.out_tangents.shape != self.times.shape:
                raise ValueError("Tangent count must match key count")
        else:
            self.in_tangents = self.out_tangents = None

    @property
    def start(self) -> float:
        return float(self.times[0])

    @property
    def end(self) -> float:
        return float(self.times[-1])

    def evaluate(self, t: float) -> float:
        times, values = self.times, self.values
        if t <= times[0]:
            return float(values[0])
        if t >= times[-1]:
            return float(values[-1])

        k = int(np.searchsorted(times, t, side="right")) - 1
        if self.interpolation == "STEP":
            return float(values[k])

        dt = times[k + 1] - times[k]
        if dt <= 0.0:
            return float(values[k + 1])
        s = (t - times[k]) / dt

        if self.interpolation == "LINEAR":
            return float(values[k] + s * (values[k + 1] - values[k]))

        # glTF cubic Hermite: tangents are per second, scaled by the key interval
        s2 = s * s
        s3 = s2 * s
        return float(
            (2 * s3 - 3 * s2 + 1) * values[k]
            + (s3 - 2 * s2 + s) * dt * self.out_tangents[k]
            + (-2 * s3 + 3 * s2) * values[k + 1]
            + (s3 - s2) * dt * self.in_tangents[k + 1]
        )


class CurveSet:
    """Ordered curve bindings of one clip."""

    def __init__(self):
        self._bindings: List[CurveBinding] = []
        self._curves: Dict[CurveBinding, KeyframeCurve] = {}

    def __len__(self):
        return len(self._bindings)

    def __iter__(self) -> Iterator[CurveBinding]:
        return iter(self._bindings)

    @property
    def bindings(self) -> List[CurveBinding]:
        return list(self._bindings)

    def add(self, path: str, type: str, property: str, curve: KeyframeCurve) -> CurveBinding:
        binding = CurveBinding(path, type, property)
        if binding in self._curves:
            raise ValueError(f"Duplicate curve binding {binding}")
        self._bindings.append(binding)
        self._curves[binding] = curve
        return binding

    def curve(self, path: str, type: str, property: str) -> Optional[KeyframeCurve]:
        return self._curves.get(CurveBinding(path, type, property))

    def evaluate(self, path: str, type: str, property: str, t: float, default: float = 0.0) -> float:
        curve = self.curve(path, type, property)
        if curve is None:
            return default
        return curve.evaluate(t)

    @property
    def end_time(self) -> float:
        return max((c.end for c in self._curves.values()), default=0.0)


@dataclass(eq=False)
class AnimationClip:
    name: str
    duration: float  # seconds
    curves: CurveSet

    @classmethod
    def from_curves(cls, name: str, curves: CurveSet) -> "AnimationClip":
        """Clip whose length is its last key time."""
        return cls(name=name, duration=curves.end_time, curves=curves)
