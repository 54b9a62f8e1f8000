"""Evaluate one clip at one time into a frame of local bone matrices."""

from typing import Callable, Optional

import numpy as np

from .baked import BakedFrame
from .bake_config import ChannelNames
from .curves import AnimationClip
from .transforms import rigid_matrix

# x, y, z default to 0; w defaults to 1 so a bone without rotation curves stays unrotated
_ROTATION_DEFAULTS = (0.0, 0.0, 0.0, 1.0)


def sample_frame(
    clip: AnimationClip,
    resolve: Callable[[str], Optional[int]],
    time: float,
    channels: ChannelNames = ChannelNames(),
) -> BakedFrame:
    """Sample every animated bone of ``clip`` at ``time`` seconds.

    Bindings are visited in clip order; the first binding that resolves to a
    bone decides that bone's channel path, later bindings for the same bone
    are ignored.
    """
    curves = clip.curves
    bone_ids = []
    matrices = []
    seen = set()

    for binding in curves:
        bone = resolve(binding.path)
        if bone is None or bone in seen:
            continue
        seen.add(bone)

        rotation = [
            curves.evaluate(binding.path, channels.type, prop, time, default)
            for prop, default in zip(channels.rotation, _ROTATION_DEFAULTS)
        ]
        translation = [
            curves.evaluate(binding.path, channels.type, prop, time, 0.0)
            for prop in channels.position
        ]

        bone_ids.append(bone)
        matrices.append(rigid_matrix(translation, rotation))

    return BakedFrame(
        bone_ids=bone_ids,
        matrices=np.stack(matrices) if matrices else np.zeros((0, 4, 4)),
    )
