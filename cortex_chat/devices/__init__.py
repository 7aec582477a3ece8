"""
Audio capture and playback devices.

The hardware adapters live in their own modules (sounddevice_capture,
pygame_playback) and are imported on demand so that the core can be used
without audio libraries or hardware.
"""

from .base import AudioArtifact, AudioCaptureDevice, AudioPlaybackDevice

__all__ = ["AudioArtifact", "AudioCaptureDevice", "AudioPlaybackDevice"]
