"""Orchestrator: load subject → build skeleton → bake every clip → persist."""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .bake_config import BakeSettings
from .baked import BakedAnimation
from .baker import bake_clip
from .errors import AmbiguousPathError, BakeError, ClipBakeError, NoSkeletonError
from .gltf_source import SkinnedSubject, load_subject
from .path_resolver import PathResolver
from .skeleton import Skeleton, build_hierarchy

log = logging.getLogger(__name__)


@dataclass
class BatchReport:
    baked: Dict[str, List[str]] = field(default_factory=dict)  # file → clip names
    failed: Dict[str, str] = field(default_factory=dict)       # file → reason

    @property
    def ok(self) -> bool:
        return not self.failed


def build_skeleton(subject: SkinnedSubject) -> Skeleton:
    if not subject.has_skeleton:
        raise NoSkeletonError(f"'{subject.name}' has no skinned mesh / bones")
    return build_hierarchy(
        subject.name, subject.bone_handles, subject.bind_poses, subject.root_handle, subject.scene
    )


def bake_subject(subject: SkinnedSubject, store, settings: Optional[BakeSettings] = None) -> List[BakedAnimation]:
    """
    Bake every clip of ``subject`` and hand each result to ``store``.

    A clip that fails is logged and skipped; the remaining clips are still
    baked and saved. Structural errors (no skeleton, missing root) propagate.
    """
    settings = settings or BakeSettings()
    skeleton = build_skeleton(subject)
    resolver = PathResolver(skeleton, sentinel=settings.armature_sentinel, strict=settings.strict_paths)

    results = []
    for clip in subject.clips:
        try:
            baked = bake_clip(clip, skeleton, settings.fps, resolver, settings.channels)
        except (ClipBakeError, AmbiguousPathError) as e:
            log.error(f"'{subject.name}': skipping clip '{clip.name}': {e}")
            continue
        try:
            store.save(subject.name, clip.name, baked)
        except OSError as e:
            log.error(f"'{subject.name}': could not save clip '{clip.name}': {e}")
            continue
        results.append(baked)

    if not subject.clips:
        log.info(f"'{subject.name}': no clips to bake")
    return results


def bake_file(path, store, settings: Optional[BakeSettings] = None) -> List[BakedAnimation]:
    settings = settings or BakeSettings()
    return bake_subject(load_subject(path, settings.channels), store, settings)


def bake_files(paths, store, settings: Optional[BakeSettings] = None) -> BatchReport:
    """Bake several files; a broken file is reported and the batch moves on."""
    report = BatchReport()
    for path in paths:
        try:
            baked = bake_file(path, store, settings)
        except BakeError as e:
            log.error(f"Skipping {path}: {e}")
            report.failed[str(path)] = str(e)
            continue
        except Exception as e:
            log.exception(f"Skipping {path}: unexpected {type(e).__name__}")
            report.failed[str(path)] = f"{type(e).__name__}: {e}"
            continue
        report.baked[str(path)] = [b.name for b in baked]
    return report
