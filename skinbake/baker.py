"""Bake a clip into a fixed-rate sequence of per-bone local matrices."""

import logging
from typing import Optional

from .baked import BakedAnimation, frame_count_for
from .bake_config import ChannelNames, DEFAULT_FPS
from .curves import AnimationClip
from .errors import BakeError, ClipBakeError
from .path_resolver import PathResolver
from .sampler import sample_frame
from .skeleton import Skeleton

log = logging.getLogger(__name__)


def bake_clip(
    clip: AnimationClip,
    skeleton: Skeleton,
    fps: int = DEFAULT_FPS,
    resolver: Optional[PathResolver] = None,
    channels: ChannelNames = ChannelNames(),
) -> BakedAnimation:
    """
    Sample ``clip`` at ``fps`` into a BakedAnimation.

    Frame ``i`` is sampled at ``i / fps`` for ``i`` in
    ``[0, floor(duration * fps))``. ``hierarchy_names`` lists the bones found
    in frame 0 only; bones that first show up in a later frame are kept in
    that frame but get no name entry.

    Parameters
    ----------
    clip : AnimationClip
    skeleton : Skeleton — read only
    fps : int — positive sample rate
    resolver : PathResolver or None — defaults to a non-strict resolver
    channels : ChannelNames — curve properties to query per bone
    """
    if isinstance(fps, bool) or not isinstance(fps, int) or fps <= 0:
        raise ValueError(f"fps must be a positive integer, got {fps!r}")
    if clip.duration < 0:
        raise ValueError(f"Clip '{clip.name}' has negative duration {clip.duration}")
    if resolver is None:
        resolver = PathResolver(skeleton)

    baked = BakedAnimation(name=clip.name, fps=fps, duration=clip.duration)
    named = None
    unnamed = set()

    for frame_index in range(frame_count_for(clip.duration, fps)):
        second = frame_index / fps
        try:
            frame = sample_frame(clip, resolver, second, channels)
        except BakeError:
            raise
        except Exception as e:
            raise ClipBakeError(clip.name, frame_index, e) from e

        if named is None:
            baked.hierarchy_names = [skeleton.hierarchy_name(b) for b in frame.bone_ids]
            named = set(frame.bone_ids)
        else:
            unnamed.update(b for b in frame.bone_ids if b not in named)
        baked.frames.append(frame)

    if unnamed:
        log.warning(
            f"Clip '{clip.name}': bones {sorted(skeleton.bones[b].name for b in unnamed)} "
            f"are animated after frame 0 and missing from hierarchy_names"
        )
    log.debug(f"Baked '{clip.name}': {len(baked.frames)} frames @ {fps} fps, "
              f"{len(baked.hierarchy_names)} bones")
    return baked
