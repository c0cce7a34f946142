import pytest

from content_decay_agent.ahrefs.scoring import (
    HIGH_KD_REASON,
    LOW_VOLUME_REASON,
    compute_value_score,
    detect_junk,
    value_score_with_kd,
    value_score_without_kd,
)


def test_value_score_with_kd_penalty() -> None:
    assert compute_value_score(1000, -200, 15, kd=70) == pytest.approx(498.0)


def test_value_score_without_kd_uses_base_formula() -> None:
    assert compute_value_score(1000, -200, 15) == pytest.approx(501.5)


def test_traffic_change_sign_does_not_matter_for_score() -> None:
    assert compute_value_score(300, 50, 8) == compute_value_score(300, -50, 8)


def test_formula_variants_differ_only_by_kd_penalty() -> None:
    base = value_score_without_kd(640, -90, 12)
    assert value_score_with_kd(640, -90, 12, kd=40) == pytest.approx(base - 2.0)


def test_score_is_rounded_to_two_decimals_half_up() -> None:
    # 3*0.4 + 0 + 0.05*0.1 = 1.205
    assert compute_value_score(3, 0, 0.05) == pytest.approx(1.21)


def test_high_kd_is_junk_regardless_of_score() -> None:
    is_junk, reason = detect_junk(1000, kd=70)

    assert is_junk is True
    assert reason == HIGH_KD_REASON
    assert "competition" in reason


def test_low_volume_short_circuits_kd_check() -> None:
    assert detect_junk(99, kd=90) == (True, LOW_VOLUME_REASON)


def test_boundaries_are_not_junk() -> None:
    assert detect_junk(100, kd=65) == (False, None)
    assert detect_junk(5000) == (False, None)
