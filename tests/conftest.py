"""
Pytest configuration and fixtures for skinbake tests.
"""

import base64
import json
import struct

import numpy as np
import pytest

from skinbake.curves import AnimationClip, CurveSet, KeyframeCurve
from skinbake.skeleton import build_hierarchy


class FakeScene:
    """Scene graph stand-in: handle → (name, child handles)."""

    def __init__(self, nodes):
        self.nodes = nodes

    def name(self, handle):
        return self.nodes[handle][0]

    def children(self, handle):
        return self.nodes[handle][1]


class GLTFBuilder:
    """Assemble small glTF documents with a single binary buffer."""

    def __init__(self):
        self.gltf = {
            "asset": {"version": "2.0"},
            "nodes": [],
            "accessors": [],
            "bufferViews": [],
            "buffers": [],
        }
        self.bin = bytearray()

    def node(self, name=None, children=(), **extra):
        node = dict(extra)
        if name is not None:
            node["name"] = name
        if children:
            node["children"] = list(children)
        self.gltf["nodes"].append(node)
        return len(self.gltf["nodes"]) - 1

    def accessor(self, data, acc_type, comp_type=5126, **extra):
        dtype = {5126: "<f4", 5122: "<i2", 5123: "<u2", 5121: "u1"}[comp_type]
        arr = np.asarray(data).astype(dtype)
        raw = arr.tobytes()
        while len(self.bin) % 4:
            self.bin.append(0)
        self.gltf["bufferViews"].append({
            "buffer": 0, "byteOffset": len(self.bin), "byteLength": len(raw),
        })
        self.bin.extend(raw)
        count = arr.shape[0]
        acc = {
            "bufferView": len(self.gltf["bufferViews"]) - 1,
            "componentType": comp_type,
            "count": count,
            "type": acc_type,
        }
        acc.update(extra)
        self.gltf["accessors"].append(acc)
        return len(self.gltf["accessors"]) - 1

    def skin(self, joints, inverse_bind_matrices=None, skeleton=None):
        skin = {"joints": list(joints)}
        if inverse_bind_matrices is not None:
            # row-major (N, 4, 4) → column-major rows of 16
            ibm = np.asarray(inverse_bind_matrices).transpose(0, 2, 1).reshape(-1, 16)
            skin["inverseBindMatrices"] = self.accessor(ibm, "MAT4")
        if skeleton is not None:
            skin["skeleton"] = skeleton
        self.gltf.setdefault("skins", []).append(skin)
        return len(self.gltf["skins"]) - 1

    def animation(self, name, channels):
        """channels: (node, path, times, values, interpolation)."""
        samplers, chans = [], []
        for node, path, times, values, interpolation in channels:
            values = np.asarray(values, dtype=np.float64)
            acc_type = {1: "SCALAR", 3: "VEC3", 4: "VEC4"}[values.shape[1]]
            samplers.append({
                "input": self.accessor(np.asarray(times).reshape(-1, 1), "SCALAR"),
                "output": self.accessor(values, acc_type),
                "interpolation": interpolation,
            })
            chans.append({"sampler": len(samplers) - 1, "target": {"node": node, "path": path}})
        anim = {"samplers": samplers, "channels": chans}
        if name is not None:
            anim["name"] = name
        self.gltf.setdefault("animations", []).append(anim)

    def _tree(self, uri=None):
        tree = json.loads(json.dumps(self.gltf))
        buffer = {"byteLength": len(self.bin)}
        if uri is not None:
            buffer["uri"] = uri
        tree["buffers"] = [buffer]
        return tree

    def write_glb(self, path):
        json_bytes = json.dumps(self._tree(), separators=(",", ":")).encode("utf-8")
        json_bytes += b" " * ((4 - len(json_bytes) % 4) % 4)
        bin_bytes = bytes(self.bin) + b"\x00" * ((4 - len(self.bin) % 4) % 4)
        total = 12 + 8 + len(json_bytes) + 8 + len(bin_bytes)
        with open(path, "wb") as f:
            f.write(struct.pack("<III", 0x46546C67, 2, total))
            f.write(struct.pack("<II", len(json_bytes), 0x4E4F534A))
            f.write(json_bytes)
            f.write(struct.pack("<II", len(bin_bytes), 0x004E4942))
            f.write(bin_bytes)
        return path

    def write_gltf(self, path):
        uri = "data:application/octet-stream;base64," + base64.b64encode(bytes(self.bin)).decode()
        path.write_text(json.dumps(self._tree(uri)))
        return path


def curve_set(tracks):
    """tracks: {(path, property): (times, values)} → CurveSet, in dict order."""
    curves = CurveSet()
    for (path, prop), (times, values) in tracks.items():
        curves.add(path, "Transform", prop, KeyframeCurve(times, values))
    return curves


@pytest.fixture
def arm_scene():
    """Armature(0) → Root(1) → Spine(2) → Arm_L(3) → Sword(4, not a bone)."""
    return FakeScene({
        0: ("Armature", [1]),
        1: ("Root", [2]),
        2: ("Spine", [3]),
        3: ("Arm_L", [4]),
        4: ("Sword", []),
    })


@pytest.fixture
def arm_skeleton(arm_scene):
    """Flat bone order deliberately differs from tree order: Arm_L, Root, Spine."""
    return build_hierarchy("Hero", [3, 1, 2], np.tile(np.eye(4), (3, 1, 1)), 1, arm_scene)


@pytest.fixture
def hands_scene():
    """Root → (ArmL → Hand, ArmR → Hand)."""
    return FakeScene({
        10: ("Root", [11, 12]),
        11: ("ArmL", [13]),
        12: ("ArmR", [14]),
        13: ("Hand", []),
        14: ("Hand", []),
    })


@pytest.fixture
def hands_skeleton(hands_scene):
    return build_hierarchy("Twins", [14, 13, 12, 11, 10], np.tile(np.eye(4), (5, 1, 1)), 10, hands_scene)


@pytest.fixture
def wave_clip():
    """1 s clip, only Arm_L rotation animated, constant identity."""
    identity = ([0.0, 1.0], [0.0, 0.0])
    return AnimationClip("Wave", 1.0, curve_set({
        ("Armature/Root/Spine/Arm_L", "rotation.x"): identity,
        ("Armature/Root/Spine/Arm_L", "rotation.y"): identity,
        ("Armature/Root/Spine/Arm_L", "rotation.z"): identity,
        ("Armature/Root/Spine/Arm_L", "rotation.w"): ([0.0, 1.0], [1.0, 1.0]),
    }))


@pytest.fixture
def gltf_builder():
    return GLTFBuilder()


@pytest.fixture
def hero_builder():
    """Skinned character: Armature → Root → Spine → Arm_L, a mesh node, one "Wave" clip."""
    b = GLTFBuilder()
    b.node("Armature", children=[1, 4])
    b.node("Root", children=[2])
    b.node("Spine", children=[3])
    b.node("Arm_L")
    b.node("Body", mesh=0, skin=0)
    b.gltf["meshes"] = [{"primitives": []}]

    ibms = np.tile(np.eye(4), (3, 1, 1))
    ibms[0, :3, 3] = [0.0, -2.0, 0.0]
    b.skin([3, 1, 2], inverse_bind_matrices=ibms)
    b.animation("Wave", [
        (3, "rotation", [0.0, 1.0], [[0, 0, 0, 1], [0, 0, 0, 1]], "LINEAR"),
    ])
    return b


@pytest.fixture
def hero_glb(hero_builder, tmp_path):
    return hero_builder.write_glb(tmp_path / "Hero.glb")
