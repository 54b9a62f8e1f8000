"""Baked animation records handed to persistence and GPU upload."""

import math
from dataclasses import dataclass, field
from typing import List, Tuple

import numpy as np

from .transforms import to_column_major


@dataclass(eq=False)
class BakedFrame:
    bone_ids: List[int]    # skin joint indices, parallel to matrices
    matrices: np.ndarray   # (n, 4, 4) float64 local transforms

    def __post_init__(self):
        self.matrices = np.asarray(self.matrices, dtype=np.float64).reshape(-1, 4, 4)
        if len(self.bone_ids) != len(self.matrices):
            raise ValueError(f"{len(self.bone_ids)} bone ids but {len(self.matrices)} matrices")
        if len(set(self.bone_ids)) != len(self.bone_ids):
            raise ValueError(f"Duplicate bone ids in frame: {self.bone_ids}")

    def __len__(self):
        return len(self.bone_ids)


def frame_count_for(duration: float, fps: int) -> int:
    return int(math.floor(duration * fps))


@dataclass(eq=False)
class BakedAnimation:
    name: str
    fps: int
    duration: float
    hierarchy_names: List[str] = field(default_factory=list)
    frames: List[BakedFrame] = field(default_factory=list)

    @property
    def frame_count(self) -> int:
        return frame_count_for(self.duration, self.fps)

    def frame_time(self, index: int) -> float:
        return index / self.fps

    def matrix_buffer(self, dtype=np.float32) -> Tuple[np.ndarray, np.ndarray]:
        """Flat GPU layout of all frames.

        Returns
        -------
        offsets  : (F + 1,) int32 — frame ``i`` owns rows offsets[i]:offsets[i+1]
        matrices : (M, 16) — column-major 4x4 matrices of every frame, in order
        """
        counts = [len(f) for f in self.frames]
        offsets = np.zeros(len(counts) + 1, dtype=np.int32)
        offsets[1:] = np.cumsum(counts)
        if not self.frames:
            return offsets, np.zeros((0, 16), dtype=dtype)
        stacked = np.concatenate([f.matrices for f in self.frames], axis=0)
        return offsets, to_column_major(stacked).astype(dtype)
