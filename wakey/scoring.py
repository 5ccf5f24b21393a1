"""Focus quality score.

The constants are tuned heuristics, so they are carried in ScoringWeights
(seeded from config) instead of being hard-coded in the formula.
"""

import math
from dataclasses import dataclass

import wakey.config as config


@dataclass(frozen=True)
class ScoringWeights:
    base: float = config.SCORE_BASE
    distraction_penalty: float = config.SCORE_DISTRACTION_PENALTY
    switches_per_hour_allowed: float = config.SCORE_SWITCHES_PER_HOUR_ALLOWED
    switch_penalty: float = config.SCORE_SWITCH_PENALTY
    break_compliance_good: float = config.SCORE_BREAK_COMPLIANCE_GOOD
    break_compliance_poor: float = config.SCORE_BREAK_COMPLIANCE_POOR
    break_bonus: float = config.SCORE_BREAK_BONUS
    break_penalty: float = config.SCORE_BREAK_PENALTY
    long_focus_minutes: float = config.SCORE_LONG_FOCUS_MINUTES
    long_focus_bonus: float = config.SCORE_LONG_FOCUS_BONUS


def clamp_score(value: float) -> int:
    """Round half up and clamp into [0, 100]."""
    return max(0, min(100, int(math.floor(value + 0.5))))


def switches_per_hour(context_switches: int, focus_minutes: float) -> float:
    if focus_minutes <= 0:
        return 0.0
    return context_switches / (focus_minutes / 60)


def calculate_focus_quality(
    distractions: int,
    context_switches: int,
    focus_minutes: float,
    breaks_taken: int = 0,
    breaks_recommended: int = 0,
    weights: ScoringWeights | None = None,
) -> int:
    """Score a focus session from 0 to 100.

    Starts at the base score, loses points per distraction and for context
    switching beyond the allowed hourly rate, gains or loses points for break
    compliance, and gains a bonus for sessions of at least 45 minutes.
    """
    w = weights or ScoringWeights()
    score = w.base
    score -= max(distractions, 0) * w.distraction_penalty

    rate = switches_per_hour(context_switches, focus_minutes)
    if rate > w.switches_per_hour_allowed:
        score -= (rate - w.switches_per_hour_allowed) * w.switch_penalty

    compliance = breaks_taken / max(breaks_recommended, 1)
    if compliance >= w.break_compliance_good:
        score += w.break_bonus
    elif compliance < w.break_compliance_poor:
        score -= w.break_penalty

    if focus_minutes >= w.long_focus_minutes:
        score += w.long_focus_bonus

    return clamp_score(score)
