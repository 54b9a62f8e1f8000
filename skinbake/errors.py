"""Exceptions raised while building skeletons and baking clips."""


class BakeError(Exception):
    """Base exception for skinbake."""
    pass


class MissingRootError(BakeError):
    """The declared root handle matches no bone of the skeleton."""
    pass


class HierarchyError(BakeError):
    """The scene graph does not describe a tree over the skeleton bones."""
    pass


class AmbiguousPathError(BakeError):
    """A curve path names a bone whose simple name is not unique."""

    def __init__(self, path, name, candidates):
        self.path = path
        self.name = name
        self.candidates = list(candidates)
        super().__init__(
            f"Path '{path}' is ambiguous: {len(self.candidates)} bones are named '{name}'"
        )


class NoSkeletonError(BakeError):
    """The subject carries no skinned mesh / bone set."""
    pass


class ClipBakeError(BakeError):
    """Sampling a clip failed."""

    def __init__(self, clip_name, frame_index, cause):
        self.clip_name = clip_name
        self.frame_index = frame_index
        super().__init__(f"Clip '{clip_name}' failed at frame {frame_index}: {cause}")


class GLTFLoadError(BakeError):
    """The glTF input could not be read."""
    pass
