"""Recovery value score and junk detection for lost keywords.

score = volume * 0.4 + |traffic change| * 0.5 + previous position * 0.1
        - KD * 0.05 (only when the export carries keyword difficulty)
"""

from __future__ import annotations

import math


MIN_VOLUME = 100
MAX_KD = 65

VOLUME_WEIGHT = 0.4
TRAFFIC_LOSS_WEIGHT = 0.5
POSITION_WEIGHT = 0.1
KD_WEIGHT = 0.05

LOW_VOLUME_REASON = "Volume < 100 - insufficient search demand"
HIGH_KD_REASON = "KD > 65 - very high competition, unlikely to recover"


def _round_half_up(value: float, digits: int = 2) -> float:
    scale = 10**digits
    return math.floor(value * scale + 0.5) / scale


def value_score_without_kd(volume: float, traffic_change: float, position_before: float) -> float:
    return (
        volume * VOLUME_WEIGHT
        + abs(traffic_change) * TRAFFIC_LOSS_WEIGHT
        + position_before * POSITION_WEIGHT
    )


def value_score_with_kd(
    volume: float,
    traffic_change: float,
    position_before: float,
    kd: float,
) -> float:
    return value_score_without_kd(volume, traffic_change, position_before) - kd * KD_WEIGHT


def compute_value_score(
    volume: float,
    traffic_change: float,
    position_before: float,
    kd: float | None = None,
) -> float:
    if kd is None:
        raw = value_score_without_kd(volume, traffic_change, position_before)
    else:
        raw = value_score_with_kd(volume, traffic_change, position_before, kd)
    return _round_half_up(raw)


def detect_junk(volume: float, kd: float | None = None) -> tuple[bool, str | None]:
    if volume < MIN_VOLUME:
        return True, LOW_VOLUME_REASON
    if kd is not None and kd > MAX_KD:
        return True, HIGH_KD_REASON
    return False, None
