"""Encoder ranking and per-encoder presets."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

from app.services.capture.stream_settings import EncoderSettings
from app.services.platform.interface import EncoderInfo

FALLBACK_PRIORITY = 5

# Lower value wins
ENCODER_PRIORITY: Dict[str, int] = {
    "NVIDIA_NVENC": 1,
    "NVIDIA_NVENC_NEW": 1,
    "AMD_AMF": 2,
    "INTEL": 3,
    "X264": 4,
}

# name -> (preset, rate control); None means keep the configured values
ENCODER_PRESETS: Dict[str, Optional[Tuple[str, str]]] = {
    "NVIDIA_NVENC": ("HIGH_QUALITY", "RC_CBR"),
    "NVIDIA_NVENC_NEW": ("HIGH_QUALITY", "RC_CBR"),
    "AMD_AMF": ("QUALITY", "RC_CBR"),
    "INTEL": None,
    "X264": ("VERYFAST", "RC_CBR"),
}

KEYFRAME_INTERVAL = 2


def encoder_priority(name: str) -> int:
    return ENCODER_PRIORITY.get(name, FALLBACK_PRIORITY)


def rank_encoders(encoders: Sequence[EncoderInfo]) -> List[EncoderInfo]:
    """Drop explicitly disabled encoders and order by priority.

    The sort is stable, so encoders sharing a priority keep the provider's order.
    """
    usable = [encoder for encoder in encoders if encoder.enabled is not False]
    return sorted(usable, key=lambda encoder: encoder_priority(encoder.name))


def apply_encoder(current: EncoderSettings, name: str) -> EncoderSettings:
    """Return encoder settings for ``name`` with its preset applied."""
    preset = ENCODER_PRESETS.get(name, ("VERYFAST", "RC_CBR"))
    if preset is None:
        return EncoderSettings(
            name=name,
            preset=current.preset,
            rate_control=current.rate_control,
            keyframe_interval=current.keyframe_interval,
        )
    return EncoderSettings(
        name=name,
        preset=preset[0],
        rate_control=preset[1],
        keyframe_interval=KEYFRAME_INTERVAL,
    )
