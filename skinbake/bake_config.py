import yaml
from dataclasses import dataclass, field, replace
from pathlib import Path

_CONFIG_PATH = Path(__file__).resolve().parent / "config.yaml"

with open(_CONFIG_PATH) as f:
    _cfg = yaml.safe_load(f)

AMBIGUITY_POLICIES = ("first_match", "error")

DEFAULT_FPS = int(_cfg["fps"])
ARMATURE_SENTINEL = _cfg["armature_sentinel"]
AMBIGUOUS_PATHS = _cfg["ambiguous_paths"]
OUTPUT_DIR = _cfg["output_dir"]

TRANSFORM_TYPE = _cfg["channels"]["type"]
ROTATION_PROPERTIES = tuple(_cfg["channels"]["rotation"])  # x, y, z, w
POSITION_PROPERTIES = tuple(_cfg["channels"]["position"])  # x, y, z
SCALE_PROPERTIES = tuple(_cfg["channels"]["scale"])  # x, y, z


@dataclass(frozen=True)
class ChannelNames:
    """Curve binding type and property names.

    The glTF reader stores curves under these names and the sampler queries
    them back. Scale curves are read but never sampled.
    """
    type: str = TRANSFORM_TYPE
    rotation: tuple = ROTATION_PROPERTIES
    position: tuple = POSITION_PROPERTIES
    scale: tuple = SCALE_PROPERTIES


@dataclass(frozen=True)
class BakeSettings:
    fps: int = DEFAULT_FPS
    armature_sentinel: str = ARMATURE_SENTINEL
    ambiguous_paths: str = AMBIGUOUS_PATHS
    output_dir: str = OUTPUT_DIR
    channels: ChannelNames = field(default_factory=ChannelNames)

    @property
    def strict_paths(self) -> bool:
        return self.ambiguous_paths == "error"

    def validate(self):
        if isinstance(self.fps, bool) or not isinstance(self.fps, int) or self.fps <= 0:
            raise ValueError(f"fps must be a positive integer, got {self.fps!r}")
        if self.ambiguous_paths not in AMBIGUITY_POLICIES:
            raise ValueError(
                f"ambiguous_paths must be one of {AMBIGUITY_POLICIES}, got {self.ambiguous_paths!r}"
            )
        if (len(self.channels.rotation) != 4 or len(self.channels.position) != 3
                or len(self.channels.scale) != 3):
            raise ValueError("channels need 4 rotation, 3 position and 3 scale property names")
        return self


def load_settings(path=None, **overrides) -> BakeSettings:
    """Packaged defaults, then the YAML file at ``path``, then ``overrides``.

    Overrides set to None are ignored so argparse namespaces can be passed
    through unchanged.
    """
    settings = BakeSettings()
    if path is not None:
        with open(path) as f:
            user = yaml.safe_load(f) or {}
        if not isinstance(user, dict):
            raise ValueError(f"{path}: expected a mapping at the top level")
        channels = user.pop("channels", None) or {}
        unknown = set(user) - {"fps", "armature_sentinel", "ambiguous_paths", "output_dir"}
        if unknown:
            raise ValueError(f"{path}: unknown settings {sorted(unknown)}")
        if channels:
            settings = replace(settings, channels=ChannelNames(
                type=channels.get("type", TRANSFORM_TYPE),
                rotation=tuple(channels.get("rotation", ROTATION_PROPERTIES)),
                position=tuple(channels.get("position", POSITION_PROPERTIES)),
                scale=tuple(channels.get("scale", SCALE_PROPERTIES)),
            ))
        settings = replace(settings, **user)
    settings = replace(settings, **{k: v for k, v in overrides.items() if v is not None})
    return settings.validate()
