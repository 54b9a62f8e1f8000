"""Bone records and the hierarchy builder.

Bones live in one flat list (the skin's joint order). Parent/child links are
indices into that list, discovered by walking the scene graph from the root
bone's handle.
"""

import logging
from dataclasses import dataclass, field
from typing import Hashable, Iterator, List, Optional, Protocol, Sequence, Tuple

import numpy as np

from .errors import HierarchyError, MissingRootError

log = logging.getLogger(__name__)


class SceneGraph(Protocol):
    """What the hierarchy builder needs from the host scene graph."""

    def name(self, handle) -> str: ...

    def children(self, handle) -> Sequence[Hashable]: ...


@dataclass(eq=False)
class BoneRecord:
    index: int
    name: str
    bind_pose: np.ndarray  # (4, 4) inverse bind matrix
    handle: Hashable = None
    parent: Optional[int] = None
    children: List[int] = field(default_factory=list)


@dataclass(eq=False)
class Skeleton:
    name: str
    bones: List[BoneRecord]
    root: int

    def __len__(self):
        return len(self.bones)

    def walk(self) -> Iterator[int]:
        """Pre-order depth-first bone indices, children in scene order."""
        stack = [self.root]
        while stack:
            i = stack.pop()
            yield i
            stack.extend(reversed(self.bones[i].children))

    def hierarchy_name(self, index: int) -> str:
        """Slash-joined names from the root down to bone ``index``."""
        names = []
        current = index
        while current is not None:
            names.append(self.bones[current].name)
            current = self.bones[current].parent
        return "/".join(reversed(names))

    def iter_hierarchy(self) -> Iterator[Tuple[int, str]]:
        """Lazily yield (depth, name) for every bone in the tree."""
        stack = [(self.root, 0)]
        while stack:
            i, depth = stack.pop()
            yield depth, self.bones[i].name
            stack.extend((c, depth + 1) for c in reversed(self.bones[i].children))

    def format_hierarchy(self, indent: str = "    ") -> str:
        return "\n".join(indent * depth + name for depth, name in self.iter_hierarchy())

    def bind_poses(self) -> np.ndarray:
        return np.stack([b.bind_pose for b in self.bones]) if self.bones else np.zeros((0, 4, 4))


def build_hierarchy(name, handles, bind_poses, root_handle, scene: SceneGraph) -> Skeleton:
    """Link a flat bone list into a tree rooted at ``root_handle``.

    Native children that are not bones themselves (attached props, meshes)
    are skipped.
    """
    handles = list(handles)
    bind_poses = np.asarray(bind_poses, dtype=np.float64).reshape(-1, 4, 4)
    if len(handles) != len(bind_poses):
        raise ValueError(f"{len(handles)} bone handles but {len(bind_poses)} bind poses")

    bones = [
        BoneRecord(index=i, name=scene.name(h), bind_pose=bind_poses[i], handle=h)
        for i, h in enumerate(handles)
    ]
    index_of = {}
    for i, h in enumerate(handles):
        index_of.setdefault(h, i)

    root = index_of.get(root_handle)
    if root is None:
        raise MissingRootError(f"Skeleton '{name}': root handle {root_handle!r} is not a bone")

    reached = {root}
    stack = [root]
    while stack:
        i = stack.pop()
        kids = []
        for child_handle in scene.children(bones[i].handle):
            j = index_of.get(child_handle)
            if j is None:
                continue
            if j in reached:
                raise HierarchyError(
                    f"Skeleton '{name}': bone '{bones[j].name}' reached twice from the root"
                )
            reached.add(j)
            bones[j].parent = i
            kids.append(j)
        bones[i].children = kids
        stack.extend(reversed(kids))

    detached = [b.name for b in bones if b.index not in reached]
    if detached:
        log.warning(f"Skeleton '{name}': {len(detached)} bone(s) not under the root: {detached}")

    skeleton = Skeleton(name=name, bones=bones, root=root)
    log.debug(f"Skeleton '{name}': {len(reached)}/{len(bones)} bones linked, "
              f"root '{bones[root].name}'")
    return skeleton
