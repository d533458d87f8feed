from app.services.capture.encoders import (
    FALLBACK_PRIORITY,
    apply_encoder,
    encoder_priority,
    rank_encoders,
)
from app.services.capture.stream_settings import EncoderSettings
from app.services.platform.interface import EncoderInfo


def test_rank_prefers_hardware_encoders() -> None:
    encoders = [
        EncoderInfo("X264"),
        EncoderInfo("INTEL"),
        EncoderInfo("AMD_AMF"),
        EncoderInfo("NVIDIA_NVENC"),
    ]

    ranked = [encoder.name for encoder in rank_encoders(encoders)]

    assert ranked == ["NVIDIA_NVENC", "AMD_AMF", "INTEL", "X264"]


def test_rank_drops_disabled_and_keeps_unknown_last() -> None:
    encoders = [
        EncoderInfo("MYSTERY"),
        EncoderInfo("NVIDIA_NVENC", enabled=False),
        EncoderInfo("X264", enabled=True),
    ]

    ranked = [encoder.name for encoder in rank_encoders(encoders)]

    assert ranked == ["X264", "MYSTERY"]
    assert encoder_priority("MYSTERY") == FALLBACK_PRIORITY


def test_rank_is_stable_for_equal_priority() -> None:
    encoders = [EncoderInfo("NVIDIA_NVENC_NEW"), EncoderInfo("NVIDIA_NVENC")]
    assert [e.name for e in rank_encoders(encoders)] == ["NVIDIA_NVENC_NEW", "NVIDIA_NVENC"]


def test_rank_empty() -> None:
    assert rank_encoders([]) == []


def test_apply_encoder_presets() -> None:
    current = EncoderSettings(name="X264", preset="SLOW", rate_control="RC_VBR", keyframe_interval=5)

    nvenc = apply_encoder(current, "NVIDIA_NVENC")
    assert (nvenc.name, nvenc.preset, nvenc.rate_control, nvenc.keyframe_interval) == (
        "NVIDIA_NVENC", "HIGH_QUALITY", "RC_CBR", 2,
    )

    amd = apply_encoder(current, "AMD_AMF")
    assert amd.preset == "QUALITY"


def test_apply_intel_keeps_configured_values() -> None:
    current = EncoderSettings(name="X264", preset="SLOW", rate_control="RC_VBR", keyframe_interval=5)

    intel = apply_encoder(current, "INTEL")

    assert intel.name == "INTEL"
    assert (intel.preset, intel.rate_control, intel.keyframe_interval) == ("SLOW", "RC_VBR", 5)
