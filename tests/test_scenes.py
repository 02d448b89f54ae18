from __future__ import annotations

import random

from src.framescan.scenes import (
    MARKER_COLOR,
    NEUTRAL_COLOR,
    SceneConfig,
    SceneSegmenter,
    adjacent_scenes_at_cut,
    scene_for_frame,
    segment_by_difference,
    segment_by_markers,
    validate_partition,
)
from src.framescan.types import FrameSample, Marker


def _spans(scenes) -> list[tuple[int, int]]:
    return [(scene.start, scene.length) for scene in scenes]


def _segment(differences, threshold, min_length, colors=None):
    colors = colors or [(index, index, index) for index in range(len(differences))]
    segmenter = SceneSegmenter(SceneConfig(threshold=threshold, min_scene_length=min_length))
    return segmenter.from_differences(differences, colors, file_id="file-1")


def test_difference_segmentation_basic_scenario() -> None:
    scenes = _segment([0, 0, 9, 0, 0, 9, 0], threshold=5, min_length=3)

    assert _spans(scenes) == [(0, 2), (2, 3), (5, 2)]
    assert scenes[0].color == (1, 1, 1)
    assert scenes[1].color == (3, 3, 3)
    assert scenes[-1].color == NEUTRAL_COLOR
    assert all(scene.file_id == "file-1" for scene in scenes)


def test_stronger_cut_inside_window_replaces_previous_cut() -> None:
    # cut at 4 closes [0, 4); 10 at frame 5 is within the window and stronger than 9
    scenes = _segment([0, 0, 0, 0, 9, 10, 0, 0], threshold=5, min_length=3)

    assert _spans(scenes) == [(0, 5), (5, 3)]


def test_weaker_cut_inside_window_is_ignored() -> None:
    scenes = _segment([0, 0, 0, 0, 9, 8, 0, 0], threshold=5, min_length=3)

    assert _spans(scenes) == [(0, 4), (4, 4)]


def test_cut_on_first_frame_does_not_create_empty_scene() -> None:
    scenes = _segment([9, 0, 0, 0, 0], threshold=5, min_length=3)

    assert _spans(scenes) == [(0, 5)]


def test_bootstrap_scene_when_first_cut_is_short() -> None:
    scenes = _segment([0, 9, 0, 0, 0], threshold=5, min_length=3)

    assert _spans(scenes) == [(0, 1), (1, 4)]


def test_empty_input_yields_no_scenes() -> None:
    assert _segment([], threshold=5, min_length=3) == []


def test_random_inputs_always_partition_the_range() -> None:
    rng = random.Random(7)
    for _ in range(200):
        length = rng.randint(1, 60)
        differences = [rng.choice([0.0, 1.0, 5.0, 20.0, 30.0, 45.0]) for _ in range(length)]
        scenes = _segment(differences, threshold=rng.choice([5.0, 20.0]), min_length=rng.randint(0, 8))
        assert validate_partition(scenes, length)
        starts = [scene.start for scene in scenes]
        assert starts == sorted(set(starts))


def test_segment_by_difference_uses_samples() -> None:
    samples = [
        FrameSample(frame_number=index, difference_value=value, mean_color=(10, 20, 30))
        for index, value in enumerate([0.0, None, 50.0, 0.0, 0.0, 0.0])
    ]
    scenes = segment_by_difference(samples, threshold=20.0, min_scene_length=2)

    assert _spans(scenes) == [(0, 2), (2, 4)]
    assert scenes[0].color == (10, 20, 30)


def test_marker_midpoints() -> None:
    markers = [Marker("c", 40), Marker("a", 0), Marker("b", 10)]

    scenes = segment_by_markers(markers, 100, file_id="f")

    assert [scene.scene_id for scene in scenes] == ["a", "b", "c"]
    # boundaries (0 + 10) // 2 + 1 = 6 and (10 + 40) // 2 + 1 = 26
    assert _spans(scenes) == [(0, 6), (6, 20), (26, 74)]
    assert all(scene.color == MARKER_COLOR for scene in scenes)
    assert validate_partition(scenes, 100)


def test_marker_midpoint_on_odd_gap_rounds_down() -> None:
    scenes = segment_by_markers([Marker("a", 3), Marker("b", 6)], 10)

    assert _spans(scenes) == [(0, 5), (5, 5)]


def test_markers_hidden_duplicate_and_out_of_range() -> None:
    markers = [
        Marker("a", 5),
        Marker("dup", 5),
        Marker("hidden", 7, hidden=True),
        Marker("late", 500),
    ]

    scenes = segment_by_markers(markers, 20)

    assert [scene.scene_id for scene in scenes] == ["a", "late"]
    assert _spans(scenes) == [(0, 13), (13, 7)]
    assert segment_by_markers([], 20) == []
    assert segment_by_markers([Marker("only", 4)], 20)[0].length == 20


def test_scene_lookup_helpers() -> None:
    scenes = segment_by_markers([Marker("a", 0), Marker("b", 10)], 20)

    assert scene_for_frame(scenes, 3).scene_id == "a"
    assert scene_for_frame(scenes, 6).scene_id == "b"
    assert scene_for_frame(scenes, 99).scene_id == "b"
    assert scene_for_frame([], 1) is None
    assert adjacent_scenes_at_cut(scenes, 6) == (0, 1)
    assert adjacent_scenes_at_cut(scenes, 0) is None
    assert adjacent_scenes_at_cut(scenes, 7) is None
