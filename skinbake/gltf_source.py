"""Read a skinned subject from glTF: node graph, skin joints, IBMs, clips."""

import base64
import json
import logging
import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np

from .bake_config import ChannelNames
from .curves import AnimationClip, CurveSet, KeyframeCurve
from .errors import GLTFLoadError

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# GLB constants
# ---------------------------------------------------------------------------
GLB_MAGIC = 0x46546C67
GLB_VERSION = 2
CHUNK_JSON = 0x4E4F534A
CHUNK_BIN = 0x004E4942

# glTF component type → (struct fmt, byte size)
_COMP = {
    5120: ("b", 1),
    5121: ("B", 1),
    5122: ("h", 2),
    5123: ("H", 2),
    5125: ("I", 4),
    5126: ("f", 4),
}

# normalized integer → float divisor (signed results clamp at -1)
_NORM = {5120: 127.0, 5121: 255.0, 5122: 32767.0, 5123: 65535.0}

# glTF type → element count
_TYPE_COUNT = {
    "SCALAR": 1,
    "VEC2": 2,
    "VEC3": 3,
    "VEC4": 4,
    "MAT2": 4,
    "MAT3": 9,
    "MAT4": 16,
}


# ---------------------------------------------------------------------------
# Scene graph
# ---------------------------------------------------------------------------

class GLTFSceneGraph:
    """Node hierarchy of a glTF document; handles are node indices."""

    def __init__(self, nodes: List[dict]):
        self.nodes = nodes
        self.parents: Dict[int, int] = {}
        for ni, node in enumerate(nodes):
            for ci in node.get("children", []):
                if not self.has_node(ci):
                    raise GLTFLoadError(f"Node {ni} lists missing child {ci!r}")
                if ci in self.parents:
                    raise GLTFLoadError(f"Node {ci} has more than one parent")
                self.parents[ci] = ni

    def has_node(self, handle) -> bool:
        return isinstance(handle, int) and not isinstance(handle, bool) and 0 <= handle < len(self.nodes)

    def name(self, handle: int) -> str:
        return self.nodes[handle].get("name", f"node_{handle}")

    def children(self, handle: int) -> List[int]:
        return list(self.nodes[handle].get("children", []))

    def parent(self, handle: int) -> Optional[int]:
        return self.parents.get(handle)

    def path(self, handle: int) -> str:
        """Slash-joined node names from the top-level node down to ``handle``."""
        names = []
        current = handle
        seen = set()
        while current is not None:
            if current in seen:
                raise GLTFLoadError(f"Node {handle} sits on a parent cycle")
            seen.add(current)
            names.append(self.name(current))
            current = self.parents.get(current)
        return "/".join(reversed(names))


@dataclass(eq=False)
class SkinnedSubject:
    name: str
    scene: GLTFSceneGraph
    bone_handles: List[int] = field(default_factory=list)
    bind_poses: np.ndarray = field(default_factory=lambda: np.zeros((0, 4, 4)))
    root_handle: Optional[int] = None
    clips: List[AnimationClip] = field(default_factory=list)

    @property
    def has_skeleton(self) -> bool:
        return bool(self.bone_handles)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _read_accessor(gltf: dict, buffers: List[bytes], acc_idx: int) -> np.ndarray:
    """Read a glTF accessor into a (count, n_components) float64 array."""
    try:
        acc = gltf["accessors"][acc_idx]
        comp_type = acc["componentType"]
        fmt, bsz = _COMP[comp_type]
        count = acc["count"]
        n_components = _TYPE_COUNT[acc["type"]]
    except (KeyError, IndexError, TypeError) as e:
        raise GLTFLoadError(f"Bad accessor {acc_idx}: {e}") from e

    if "sparse" in acc:
        raise GLTFLoadError(f"Accessor {acc_idx}: sparse accessors are not supported")
    if "bufferView" not in acc:
        return np.zeros((count, n_components), dtype=np.float64)

    bv = gltf["bufferViews"][acc["bufferView"]]
    buf = buffers[bv.get("buffer", 0)]
    byte_offset = bv.get("byteOffset", 0) + acc.get("byteOffset", 0)
    byte_stride = bv.get("byteStride", 0)

    try:
        if byte_stride and byte_stride != bsz * n_components:
            # Strided access
            out = np.empty((count, n_components), dtype=np.float64)
            for i in range(count):
                off = byte_offset + i * byte_stride
                out[i] = struct.unpack_from(f"<{n_components}{fmt}", buf, off)
        else:
            total = count * n_components
            data = struct.unpack_from(f"<{total}{fmt}", buf, byte_offset)
            out = np.array(data, dtype=np.float64).reshape(count, n_components)
    except struct.error as e:
        raise GLTFLoadError(f"Accessor {acc_idx} runs past its buffer: {e}") from e

    if acc.get("normalized") and comp_type in _NORM:
        out = np.maximum(out / _NORM[comp_type], -1.0)
    return out


def _read_glb(raw: bytes, path) -> tuple:
    """Split a GLB container into its JSON tree and BIN chunk."""
    if len(raw) < 20:
        raise GLTFLoadError(f"Not a GLB file: {path}")
    magic, version, total_len = struct.unpack_from("<III", raw, 0)
    if magic != GLB_MAGIC:
        raise GLTFLoadError(f"Not a GLB file: {path}")
    if version != GLB_VERSION:
        raise GLTFLoadError(f"{path}: unsupported GLB version {version}")

    json_len, json_type = struct.unpack_from("<II", raw, 12)
    if json_type != CHUNK_JSON:
        raise GLTFLoadError(f"{path}: first chunk is not JSON")
    gltf = json.loads(raw[20 : 20 + json_len].decode("utf-8"))

    bin_buffer = b""
    bin_offset = 20 + json_len
    if bin_offset + 8 <= min(total_len, len(raw)):
        bin_len, bin_type = struct.unpack_from("<II", raw, bin_offset)
        if bin_type == CHUNK_BIN:
            bin_buffer = raw[bin_offset + 8 : bin_offset + 8 + bin_len]
    return gltf, bin_buffer


def _load_buffers(gltf: dict, base_dir: Path, glb_bin: Optional[bytes]) -> List[bytes]:
    buffers = []
    for i, buffer in enumerate(gltf.get("buffers", [])):
        uri = buffer.get("uri")
        if uri is None:
            if glb_bin is None or i != 0:
                raise GLTFLoadError(f"Buffer {i} has no uri and no GLB BIN chunk")
            buffers.append(glb_bin)
        elif uri.startswith("data:"):
            _, _, payload = uri.partition(",")
            buffers.append(base64.b64decode(payload))
        else:
            file = base_dir / uri
            if not file.exists():
                raise GLTFLoadError(f"Buffer file not found: {file}")
            buffers.append(file.read_bytes())
    return buffers


def _pick_skin(gltf: dict) -> Optional[int]:
    """Skin of the first skinned mesh node, else the first skin."""
    skins = gltf.get("skins", [])
    if not skins:
        return None
    for node in gltf.get("nodes", []):
        if "mesh" in node and "skin" in node:
            return node["skin"]
    return 0


def _read_clips(gltf: dict, buffers: List[bytes], scene: GLTFSceneGraph,
                channels: ChannelNames) -> List[AnimationClip]:
    properties = {
        "translation": channels.position,
        "rotation": channels.rotation,
        "scale": channels.scale,
    }
    clips = []
    for ai, anim in enumerate(gltf.get("animations", [])):
        name = anim.get("name", f"animation_{ai}")
        curves = CurveSet()
        for channel in anim.get("channels", []):
            target = channel.get("target", {})
            node = target.get("node")
            target_path = target.get("path")
            if node is None or target_path not in properties:
                log.debug(f"Clip '{name}': skipping channel {target_path!r} on node {node}")
                continue

            sampler = anim["samplers"][channel["sampler"]]
            interpolation = sampler.get("interpolation", "LINEAR")
            times = _read_accessor(gltf, buffers, sampler["input"])[:, 0]
            output = _read_accessor(gltf, buffers, sampler["output"])

            in_tangents = out_tangents = None
            if interpolation == "CUBICSPLINE":
                # per key: in-tangent, value, out-tangent
                output = output.reshape(len(times), 3, -1)
                in_tangents, output, out_tangents = output[:, 0], output[:, 1], output[:, 2]
            if len(output) != len(times):
                raise GLTFLoadError(
                    f"Clip '{name}': sampler has {len(times)} key times but {len(output)} values"
                )

            node_path = scene.path(node)
            for ci in range(output.shape[1]):
                prop = properties[target_path][ci]
                if curves.curve(node_path, channels.type, prop) is not None:
                    log.warning(f"Clip '{name}': duplicate curve {node_path} {prop}, keeping first")
                    continue
                try:
                    curve = KeyframeCurve(
                        times, output[:, ci], interpolation,
                        None if in_tangents is None else in_tangents[:, ci],
                        None if out_tangents is None else out_tangents[:, ci],
                    )
                except ValueError as e:
                    raise GLTFLoadError(f"Clip '{name}', {node_path} {prop}: {e}") from e
                curves.add(node_path, channels.type, prop, curve)
        clips.append(AnimationClip.from_curves(name, curves))
    return clips


# ---------------------------------------------------------------------------
# Main loader
# ---------------------------------------------------------------------------

def _root_joint(skin: dict, joints: List[int], scene: GLTFSceneGraph, path) -> Optional[int]:
    """``skin.skeleton`` when it is a joint, else the first joint whose parent is not one."""
    joint_set = set(joints)
    declared = skin.get("skeleton")
    if declared in joint_set:
        return declared
    if declared is not None:
        log.debug(f"{path}: skin.skeleton {declared} is not a joint, using the topmost joint")
    return next((j for j in joints if scene.parent(j) not in joint_set), None)


def load_subject(path, channels: ChannelNames = ChannelNames()) -> SkinnedSubject:
    """Load a .glb or .gltf file into a SkinnedSubject.

    Curves are bound under ``channels.type`` with the configured property
    names, so the sampler queries exactly what the reader produced.
    """
    path = Path(path)
    if not path.exists():
        raise GLTFLoadError(f"File not found: {path}")
    raw = path.read_bytes()

    try:
        if raw[:4] == struct.pack("<I", GLB_MAGIC):
            gltf, glb_bin = _read_glb(raw, path)
        else:
            gltf, glb_bin = json.loads(raw.decode("utf-8")), None
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise GLTFLoadError(f"{path}: not a glTF document: {e}") from e

    try:
        buffers = _load_buffers(gltf, path.parent, glb_bin)
        scene = GLTFSceneGraph(gltf.get("nodes", []))
        subject = SkinnedSubject(name=path.stem, scene=scene)

        skin_idx = _pick_skin(gltf)
        if skin_idx is not None:
            skin = gltf["skins"][skin_idx]
            joints = list(skin["joints"])
            bad = [j for j in joints if not scene.has_node(j)]
            if bad:
                raise GLTFLoadError(f"{path}: skin {skin_idx} references missing nodes {bad}")
            subject.bone_handles = joints

            if "inverseBindMatrices" in skin:
                ibms = _read_accessor(gltf, buffers, skin["inverseBindMatrices"])
                # glTF stores matrices column-major
                subject.bind_poses = ibms.reshape(len(joints), 4, 4).transpose(0, 2, 1)
            else:
                subject.bind_poses = np.tile(np.eye(4), (len(joints), 1, 1))

            subject.root_handle = _root_joint(skin, joints, scene, path)

        subject.clips = _read_clips(gltf, buffers, scene, channels)
    except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
        raise GLTFLoadError(f"{path}: malformed glTF: {e}") from e

    log.info(f"Loaded '{subject.name}': {len(subject.bone_handles)} bones, {len(subject.clips)} clip(s)")
    return subject
