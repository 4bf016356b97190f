"""Utilities package"""
from .helpers import truncate_text, round_half_up, parse_timestamp, to_epoch_ms
from .step_matching import ACTION_KEYWORDS, is_action_log, steps_match

__all__ = [
    "truncate_text",
    "round_half_up",
    "parse_timestamp",
    "to_epoch_ms",
    "ACTION_KEYWORDS",
    "is_action_log",
    "steps_match",
]
