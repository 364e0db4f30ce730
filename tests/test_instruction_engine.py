import pytest

from walkguide.core.contracts import Obstacle, Sector
from walkguide.navigation.instruction_engine import (
    ENGLISH,
    SPANISH,
    InstructionEngine,
    decide_instruction,
    get_phrasebook,
)

from conftest import obstacle


L, C, R = Sector.LEFT, Sector.CENTER, Sector.RIGHT


def test_empty_frame_goes_straight():
    assert decide_instruction([]) == "go straight"


@pytest.mark.parametrize("label", ["crosswalk", "Crosswalk", "CROSSWALK"])
def test_crosswalk_overrides_everything(label):
    obstacles = [
        obstacle("person", C, 0.3),
        obstacle("car", L, 0.5),
        obstacle("pole", R, approximate=True),
        obstacle(label, L, 8.0),
    ]
    assert decide_instruction(obstacles) == "crosswalk ahead, proceed to cross"


def test_crosswalk_substring_does_not_match():
    assert decide_instruction([obstacle("crosswalk sign", C, 3.0)]) == \
        "caution crosswalk sign ahead at 3.0 meters"


class TestCenterBlocked:
    def test_prefers_right_when_both_sides_free(self):
        assert decide_instruction([obstacle("chair", C, 0.9)]) == "go right"

    def test_goes_left_when_only_left_free(self):
        obstacles = [obstacle("chair", C, 0.9), obstacle("wall", R, 0.5)]
        assert decide_instruction(obstacles) == "go left"

    def test_stops_when_everything_blocked(self):
        obstacles = [
            obstacle("chair", C, 0.9),
            obstacle("wall", R, 0.5),
            obstacle("car", L, approximate=True),
        ]
        assert decide_instruction(obstacles) == "stop, obstacles around"

    def test_far_side_obstacle_does_not_block(self):
        obstacles = [obstacle("chair", C, 0.9), obstacle("tree", R, 4.0)]
        assert decide_instruction(obstacles) == "go right"

    def test_safe_distance_is_inclusive(self):
        assert decide_instruction([obstacle("chair", C, 1.2)]) == "go right"

    def test_approximate_center_blocks(self):
        assert decide_instruction([obstacle("bus", C, approximate=True)]) == "go right"

    def test_any_blocking_center_obstacle_counts(self):
        obstacles = [obstacle("sign", C, 5.0), obstacle("chair", C, 0.4)]
        assert decide_instruction(obstacles) == "go right"

    def test_custom_safe_distance(self):
        obstacles = [obstacle("chair", C, 1.8)]
        assert decide_instruction(obstacles, safe_distance=2.0) == "go right"
        assert decide_instruction(obstacles, safe_distance=1.5) == \
            "caution chair ahead at 1.8 meters"


class TestCaution:
    def test_nearest_center_obstacle_is_announced(self):
        obstacles = [
            obstacle("bench", C, 3.46),
            obstacle("person", C, 2.04),
            obstacle("tree", L, 0.5),
        ]
        assert decide_instruction(obstacles) == "caution person ahead at 2.0 meters"

    def test_measured_beats_unmeasured(self):
        obstacles = [obstacle("dog", C), obstacle("bike", C, 6.0)]
        assert decide_instruction(obstacles) == "caution bike ahead at 6.0 meters"

    def test_approximate_center_obstacle_never_gets_caution(self):
        # Approximately close means blocking, so the avoidance rule answers
        obstacles = [Obstacle("stroller", C, None, True), obstacle("sign", C, 4.0)]
        assert decide_instruction(obstacles) == "go right"

    def test_very_close_wording(self):
        assert ENGLISH.caution_close.format(label="stroller") == \
            "caution stroller ahead, very close"

    def test_unmeasured_not_close_wording(self):
        assert decide_instruction([obstacle("sign", C)]) == "caution sign ahead"

    def test_side_obstacles_only_go_straight(self):
        obstacles = [obstacle("car", L, 0.5), obstacle("pole", R, approximate=True)]
        assert decide_instruction(obstacles) == "go straight"

    def test_first_of_equal_distances_wins(self):
        obstacles = [obstacle("cat", C, 2.0), obstacle("dog", C, 2.0)]
        assert decide_instruction(obstacles) == "caution cat ahead at 2.0 meters"


class TestPhrasebooks:
    def test_spanish(self):
        assert decide_instruction([], phrasebook=SPANISH) == "Sigue derecho"
        assert decide_instruction([obstacle("silla", C, 0.9)], phrasebook=SPANISH) == \
            "Sigue por la derecha"
        assert decide_instruction([obstacle("silla", C, 2.5)], phrasebook=SPANISH) == \
            "Cuidado silla al frente a 2.5 metros"

    @pytest.mark.parametrize("code, expected", [
        ("en", ENGLISH),
        ("es", SPANISH),
        ("es-MX", SPANISH),
        ("ES_es", SPANISH),
        ("fr", ENGLISH),
        ("", ENGLISH),
    ])
    def test_lookup(self, code, expected):
        assert get_phrasebook(code) is expected


class TestInstructionEngine:
    def test_uses_configured_safe_distance(self):
        engine = InstructionEngine(safe_distance=2.0)
        assert engine.decide([obstacle("chair", C, 1.8)]) == "go right"

    def test_call_override_wins(self):
        engine = InstructionEngine(safe_distance=2.0)
        assert engine.decide([obstacle("chair", C, 1.8)], safe_distance=1.0) == \
            "caution chair ahead at 1.8 meters"

    def test_negative_safe_distance_rejected(self):
        with pytest.raises(ValueError):
            InstructionEngine(safe_distance=-1.0)
