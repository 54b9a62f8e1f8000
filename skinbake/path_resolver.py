"""Map curve paths ("Armature/Spine/Arm_L") onto skeleton bones.

Only the last path segment is compared, against bone simple names, searching
the tree depth-first from the root. Intermediate segments are not checked, so
two bones sharing a name anywhere in the tree make the path ambiguous; the
first depth-first match wins unless the resolver is strict.
"""

import logging
from typing import Dict, List, Optional

from .bake_config import ARMATURE_SENTINEL
from .errors import AmbiguousPathError
from .skeleton import Skeleton

log = logging.getLogger(__name__)


class PathResolver:

    def __init__(self, skeleton: Skeleton, sentinel: str = ARMATURE_SENTINEL, strict: bool = False):
        self.skeleton = skeleton
        self.sentinel = sentinel
        self.strict = strict

        self._by_name: Dict[str, List[int]] = {}
        for i in skeleton.walk():
            self._by_name.setdefault(skeleton.bones[i].name, []).append(i)
        self._warned = set()

    @property
    def ambiguous_names(self) -> Dict[str, List[str]]:
        """Colliding simple names → hierarchy paths of every bone carrying them."""
        return {
            name: [self.skeleton.hierarchy_name(i) for i in indices]
            for name, indices in self._by_name.items()
            if len(indices) > 1
        }

    def resolve(self, path: str) -> Optional[int]:
        if path == self.sentinel:
            return None

        leaf = path.split("/")[-1]
        matches = self._by_name.get(leaf)
        if not matches:
            return None

        if len(matches) > 1:
            if self.strict:
                raise AmbiguousPathError(path, leaf, [self.skeleton.hierarchy_name(i) for i in matches])
            if leaf not in self._warned:
                self._warned.add(leaf)
                log.warning(
                    f"Skeleton '{self.skeleton.name}': {len(matches)} bones named '{leaf}', "
                    f"'{path}' resolves to {self.skeleton.hierarchy_name(matches[0])}"
                )
        return matches[0]

    __call__ = resolve
