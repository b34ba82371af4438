"""
Capture module - Client-side interview recording session.
"""

from .annotations import AnnotationEntry, AnnotationLog
from .bundle import BundleAnnotation, CaptureBundle
from .clock import Clock, ClockState
from .engine import AudioArtifact, AudioCaptureEngine, AudioSource, CaptureState
from .session import RecordingSessionController, SessionState

__all__ = [
    "AnnotationEntry",
    "AnnotationLog",
    "AudioArtifact",
    "AudioCaptureEngine",
    "AudioSource",
    "BundleAnnotation",
    "CaptureBundle",
    "CaptureState",
    "Clock",
    "ClockState",
    "RecordingSessionController",
    "SessionState",
]
