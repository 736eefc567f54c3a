"""Directions in which a diff can be applied."""

from enum import Enum


class ApplyDirection(str, Enum):
    """Which side of a diff is mutated when it is applied."""

    LEFT_TO_RIGHT = "leftToRight"
    """Left is the source of truth; the right tree is changed (publish)"""

    RIGHT_TO_LEFT = "rightToLeft"
    """Right is the source of truth; the left tree is changed (revert)"""
