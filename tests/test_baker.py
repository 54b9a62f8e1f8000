"""
Tests for clip baking.
"""

import logging

import numpy as np
import pytest

from skinbake.baked import BakedFrame
from skinbake.baker import bake_clip
from skinbake.curves import AnimationClip
from skinbake.errors import ClipBakeError
from skinbake.path_resolver import PathResolver

from conftest import curve_set

ARM = "Armature/Root/Spine/Arm_L"


class TestWaveScenario:

    def test_wave(self, arm_skeleton, wave_clip):
        baked = bake_clip(wave_clip, arm_skeleton, 60)
        assert baked.name == "Wave"
        assert baked.fps == 60
        assert baked.frame_count == 60
        assert len(baked.frames) == 60
        assert baked.hierarchy_names == ["Root/Spine/Arm_L"]
        for frame in baked.frames:
            assert frame.bone_ids == [0]
            assert np.allclose(frame.matrices[0], np.eye(4))

    def test_rebake_is_identical(self, arm_skeleton):
        clip = AnimationClip("Swing", 0.5, curve_set({
            (ARM, "rotation.x"): ([0.0, 0.5], [0.0, 0.7]),
            (ARM, "rotation.w"): ([0.0, 0.5], [1.0, 0.7]),
            ("Armature/Root", "translation.z"): ([0.0, 0.5], [0.0, 3.0]),
        }))
        a = bake_clip(clip, arm_skeleton, 30)
        b = bake_clip(clip, arm_skeleton, 30)
        assert a.hierarchy_names == b.hierarchy_names
        for fa, fb in zip(a.frames, b.frames):
            assert fa.bone_ids == fb.bone_ids
            assert np.array_equal(fa.matrices, fb.matrices)

    def test_skeleton_not_mutated(self, arm_skeleton, wave_clip):
        before = [(b.parent, list(b.children), b.bind_pose.copy()) for b in arm_skeleton.bones]
        bake_clip(wave_clip, arm_skeleton, 60)
        after = [(b.parent, list(b.children), b.bind_pose) for b in arm_skeleton.bones]
        for (p0, c0, m0), (p1, c1, m1) in zip(before, after):
            assert p0 == p1 and c0 == c1 and np.array_equal(m0, m1)


class TestFrameTiming:

    @pytest.mark.parametrize("duration,fps,expected", [
        (1.0, 60, 60),
        (0.5, 30, 15),
        (0.99, 10, 9),
        (2.0, 24, 48),
        (0.01, 60, 0),
    ])
    def test_frame_count_is_floor(self, arm_skeleton, duration, fps, expected):
        clip = AnimationClip("C", duration, curve_set({(ARM, "rotation.w"): ([0.0], [1.0])}))
        baked = bake_clip(clip, arm_skeleton, fps)
        assert baked.frame_count == len(baked.frames) == expected

    def test_sample_times(self, arm_skeleton):
        # translation.x tracks the sample time
        clip = AnimationClip("Clock", 1.0, curve_set({(ARM, "translation.x"): ([0.0, 1.0], [0.0, 1.0])}))
        baked = bake_clip(clip, arm_skeleton, 8)
        for i, frame in enumerate(baked.frames):
            assert baked.frame_time(i) == i / 8
            assert frame.matrices[0][0, 3] == pytest.approx(i / 8)

    def test_empty_clip(self, arm_skeleton):
        clip = AnimationClip("Blink", 0.0, curve_set({(ARM, "rotation.w"): ([0.0], [1.0])}))
        baked = bake_clip(clip, arm_skeleton, 60)
        assert baked.frames == []
        assert baked.hierarchy_names == []

    @pytest.mark.parametrize("fps", [0, -30, 29.97, True])
    def test_rejects_bad_fps(self, arm_skeleton, wave_clip, fps):
        with pytest.raises(ValueError):
            bake_clip(wave_clip, arm_skeleton, fps)

    def test_rejects_negative_duration(self, arm_skeleton):
        with pytest.raises(ValueError):
            bake_clip(AnimationClip("Back", -1.0, curve_set({})), arm_skeleton, 60)


class TestHierarchyNamesFromFrameZero:

    def test_late_bone_is_kept_but_not_named(self, arm_skeleton, caplog):
        clip = AnimationClip("Late", 0.5, curve_set({
            (ARM, "rotation.w"): ([0.0], [1.0]),
            ("Armature/Root/Spine", "rotation.w"): ([0.0], [1.0]),
        }))
        resolver = PathResolver(arm_skeleton)
        calls = {"n": 0}

        def hides_spine_on_frame_zero(path):
            calls["n"] += 1
            if path.endswith("Spine") and calls["n"] <= 2:
                return None
            return resolver(path)

        with caplog.at_level(logging.WARNING):
            baked = bake_clip(clip, arm_skeleton, 4, resolver=hides_spine_on_frame_zero)
        assert baked.hierarchy_names == ["Root/Spine/Arm_L"]
        assert baked.frames[0].bone_ids == [0]
        assert baked.frames[1].bone_ids == [0, 2]
        assert "Spine" in caplog.text


class TestErrors:

    def test_sampling_failure_names_clip_and_frame(self, arm_skeleton, wave_clip):
        def broken(path):
            raise RuntimeError("curve engine down")

        with pytest.raises(ClipBakeError) as exc:
            bake_clip(wave_clip, arm_skeleton, 60, resolver=broken)
        assert exc.value.clip_name == "Wave"
        assert exc.value.frame_index == 0


class TestMatrixBuffer:

    def test_offsets_and_layout(self, arm_skeleton):
        clip = AnimationClip("Slide", 0.5, curve_set({
            (ARM, "translation.x"): ([0.0], [1.0]),
            ("Armature/Root", "translation.y"): ([0.0], [2.0]),
        }))
        baked = bake_clip(clip, arm_skeleton, 4)
        offsets, matrices = baked.matrix_buffer()
        assert offsets.tolist() == [0, 2, 4]
        assert matrices.shape == (4, 16)
        assert matrices.dtype == np.float32
        assert matrices[0, 12] == 1.0
        assert matrices[1, 13] == 2.0
        assert matrices[0, 15] == 1.0

    def test_frame_rejects_mismatch(self):
        with pytest.raises(ValueError):
            BakedFrame(bone_ids=[0, 1], matrices=np.zeros((1, 4, 4)))
        with pytest.raises(ValueError):
            BakedFrame(bone_ids=[3, 3], matrices=np.zeros((2, 4, 4)))
