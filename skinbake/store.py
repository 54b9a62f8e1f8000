"""Persist baked animations: one .npz per (skeleton, clip)."""

import logging
import re
from pathlib import Path
from typing import Dict, Tuple

import numpy as np

from .baked import BakedAnimation, BakedFrame

log = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^\w.\- ]+")


def safe_name(name: str) -> str:
    """File-system safe version of a skeleton or clip name ("Armature|Run" → "Armature_Run")."""
    cleaned = _UNSAFE.sub("_", name).strip(" .")
    return cleaned or "_"


class DirectoryStore:
    """Writes ``<root>/<skeleton>/<clip>.npz``."""

    def __init__(self, root):
        self.root = Path(root)

    def path_for(self, skeleton_name: str, clip_name: str) -> Path:
        return self.root / safe_name(skeleton_name) / f"{safe_name(clip_name)}.npz"

    def save(self, skeleton_name: str, clip_name: str, baked: BakedAnimation) -> Path:
        out_path = self.path_for(skeleton_name, clip_name)
        out_path.parent.mkdir(parents=True, exist_ok=True)

        offsets = np.zeros(len(baked.frames) + 1, dtype=np.int32)
        offsets[1:] = np.cumsum([len(f) for f in baked.frames])
        bone_ids = np.array([b for f in baked.frames for b in f.bone_ids], dtype=np.int32)
        if baked.frames:
            matrices = np.concatenate([f.matrices for f in baked.frames]).astype(np.float32)
        else:
            matrices = np.zeros((0, 4, 4), dtype=np.float32)

        with open(out_path, "wb") as f:
            np.savez(
                f,
                name=np.array(baked.name),
                fps=np.array(baked.fps, dtype=np.int32),
                duration=np.array(baked.duration, dtype=np.float64),
                hierarchy_names=np.array(baked.hierarchy_names, dtype=str),
                frame_offsets=offsets,
                bone_ids=bone_ids,
                matrices=matrices,
            )
        log.info(f"Saved {out_path} ({len(baked.frames)} frames)")
        return out_path


class MemoryStore:
    """Keeps baked animations keyed by (skeleton, clip)."""

    def __init__(self):
        self.items: Dict[Tuple[str, str], BakedAnimation] = {}

    def save(self, skeleton_name: str, clip_name: str, baked: BakedAnimation):
        self.items[(skeleton_name, clip_name)] = baked
        return skeleton_name, clip_name


def load_baked(path) -> BakedAnimation:
    """Read an animation written by :class:`DirectoryStore`."""
    with np.load(path) as data:
        offsets = data["frame_offsets"]
        bone_ids = data["bone_ids"]
        matrices = data["matrices"].astype(np.float64)
        frames = [
            BakedFrame(
                bone_ids=bone_ids[offsets[i]:offsets[i + 1]].tolist(),
                matrices=matrices[offsets[i]:offsets[i + 1]],
            )
            for i in range(len(offsets) - 1)
        ]
        return BakedAnimation(
            name=str(data["name"]),
            fps=int(data["fps"]),
            duration=float(data["duration"]),
            hierarchy_names=[str(n) for n in data["hierarchy_names"]],
            frames=frames,
        )
