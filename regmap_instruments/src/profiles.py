"""
Known device models and their register scaling.

Profiles are created once from the static table below and shared
read-only by every DeviceInstance of that model.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from .errors import UnsupportedModelError

UINT16_MAX = 0xFFFF


@dataclass(frozen=True)
class ScalingSpec:
    """
    Mapping between a raw register integer and a physical value.

    physical = raw * step; raw = round(physical / step), with the physical
    value clamped to [min, max] first. display_digits governs presentation
    only; encoding_digits documents the register precision.
    """

    min: float
    max: float
    step: float
    display_digits: int
    encoding_digits: int

    def to_physical(self, raw: int) -> float:
        return raw * self.step

    def clamp(self, physical: float) -> float:
        return max(self.min, min(self.max, physical))

    def to_raw(self, physical: float) -> int:
        raw = int(round(self.clamp(physical) / self.step))
        return max(0, min(UINT16_MAX, raw))

    def as_range(self) -> Tuple[float, float, float]:
        return (self.min, self.max, self.step)


@dataclass(frozen=True)
class Profile:
    """One supported device model."""

    model: int
    name: str
    voltage: ScalingSpec
    current: ScalingSpec
    power: ScalingSpec
    ovp: ScalingSpec
    ocp: ScalingSpec

    def __repr__(self):
        return f"Profile({self.name}, code={self.model})"


SUPPORTED_MODELS: Tuple[Profile, ...] = (
    Profile(
        6006, "RD6006",
        voltage=ScalingSpec(0, 60.0, 0.010, 2, 2),
        current=ScalingSpec(0, 6.0, 0.001, 3, 3),
        power=ScalingSpec(0, 380.0, 0.010, 2, 2),
        ovp=ScalingSpec(0, 62.0, 0.010, 2, 2),
        ocp=ScalingSpec(0, 6.2, 0.001, 3, 3),
    ),
    Profile(
        6012, "RD6012",
        voltage=ScalingSpec(0, 60.0, 0.010, 2, 2),
        current=ScalingSpec(0, 6.0, 0.001, 3, 3),
        power=ScalingSpec(0, 720.0, 0.010, 2, 2),
        ovp=ScalingSpec(0, 62.0, 0.010, 2, 2),
        ocp=ScalingSpec(0, 12.4, 0.001, 3, 3),
    ),
)


def find_profile(identity_code: int) -> Optional[Profile]:
    """Return the profile whose identity code matches exactly, or None."""
    for profile in SUPPORTED_MODELS:
        if profile.model == identity_code:
            return profile
    return None


def require_profile(identity_code: int) -> Profile:
    """Like find_profile(), but raise UnsupportedModelError for unknown codes."""
    profile = find_profile(identity_code)
    if profile is None:
        raise UnsupportedModelError(identity_code)
    return profile
