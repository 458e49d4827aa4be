"""
Audio Detector - Classifies microphone spectra for suspicious audio

Features:
- Noise level (low / medium / high) from the spectrum RMS
- Multiple-voice heuristic from the number of strong frequency bins
- Conversion of raw int16 PCM into a byte-frequency spectrum, matching the
  analyser node a browser exposes (Blackman window, dB scaled to 0-255)
"""

import base64
import logging
import numpy as np
from typing import Dict, Any, Sequence, Union
from dataclasses import dataclass, asdict

from ...config import settings
from ..errors import EmptySample

logger = logging.getLogger(__name__)

AudioFrame = Union[Sequence[int], np.ndarray]


@dataclass(frozen=True)
class AudioClassification:
    """Result of classifying one audio frame"""
    level: str
    multiple_voices: bool
    volume: float
    peak_count: int

    @property
    def suspicious(self) -> bool:
        return self.multiple_voices or self.level != "low"

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result["suspicious"] = self.suspicious
        return result


class AudioDetector:
    """
    Classifies byte-frequency audio frames.

    A frame is the magnitude of each FFT bin scaled to 0-255. Volume is the
    RMS of all bins divided by 255.
    """

    def __init__(
        self,
        medium_threshold: float = settings.NOISE_THRESHOLD_MEDIUM,
        high_threshold: float = settings.NOISE_THRESHOLD_HIGH,
        peak_magnitude: int = settings.AUDIO_PEAK_MAGNITUDE,
        multiple_voices_threshold: int = settings.MULTIPLE_VOICES_THRESHOLD,
        fft_size: int = settings.AUDIO_FFT_SIZE,
        min_decibels: float = settings.AUDIO_MIN_DECIBELS,
        max_decibels: float = settings.AUDIO_MAX_DECIBELS
    ):
        """
        Args:
            medium_threshold: Volume above which the level is 'medium'
            high_threshold: Volume above which the level is 'high'
            peak_magnitude: Bin magnitude that counts as a peak
            multiple_voices_threshold: Peak count above which several voices are assumed
            fft_size: Window length for PCM conversion (bins = fft_size / 2)
            min_decibels: dB mapped to byte 0
            max_decibels: dB mapped to byte 255
        """
        self.medium_threshold = medium_threshold
        self.high_threshold = high_threshold
        self.peak_magnitude = peak_magnitude
        self.multiple_voices_threshold = multiple_voices_threshold
        self.fft_size = fft_size
        self.min_decibels = min_decibels
        self.max_decibels = max_decibels

    def classify(self, frame: AudioFrame) -> AudioClassification:
        """
        Classify one spectrum frame.

        Raises:
            EmptySample: frame has no bins
        """
        bins = np.asarray(frame, dtype=np.float64).ravel()
        if bins.size == 0:
            raise EmptySample("Audio frame has no frequency bins")

        volume = float(np.sqrt(np.mean(bins ** 2)) / 255)
        peak_count = int(np.count_nonzero(bins > self.peak_magnitude))

        if volume > self.high_threshold:
            level = "high"
        elif volume > self.medium_threshold:
            level = "medium"
        else:
            level = "low"

        return AudioClassification(
            level=level,
            multiple_voices=peak_count > self.multiple_voices_threshold,
            volume=volume,
            peak_count=peak_count
        )

    def spectrum_from_pcm(self, samples: np.ndarray) -> np.ndarray:
        """
        Convert int16 PCM samples into a byte-frequency spectrum.

        Uses the most recent `fft_size` samples (zero-padded when shorter).

        Returns:
            uint8 array of fft_size // 2 bins
        """
        samples = np.asarray(samples)
        if samples.size == 0:
            raise EmptySample("No PCM samples")

        window = samples[-self.fft_size:].astype(np.float64) / 32768.0
        if window.size < self.fft_size:
            window = np.pad(window, (self.fft_size - window.size, 0))

        spectrum = np.fft.rfft(window * np.blackman(self.fft_size))[: self.fft_size // 2]
        magnitude = np.abs(spectrum) / self.fft_size

        with np.errstate(divide="ignore"):
            decibels = 20 * np.log10(magnitude)

        scale = 255.0 / (self.max_decibels - self.min_decibels)
        scaled = np.floor((decibels - self.min_decibels) * scale)
        return np.clip(np.nan_to_num(scaled, neginf=0.0), 0, 255).astype(np.uint8)

    def spectrum_from_base64(self, audio_base64: str) -> np.ndarray:
        """Decode base64 int16 PCM and convert it to a spectrum"""
        audio_bytes = base64.b64decode(audio_base64)
        samples = np.frombuffer(audio_bytes, dtype=np.int16)
        return self.spectrum_from_pcm(samples)

    def analyze_base64(self, audio_base64: str) -> Dict[str, Any]:
        """
        Classify base64-encoded int16 PCM.

        Returns:
            Dict with classification fields
        """
        spectrum = self.spectrum_from_base64(audio_base64)
        return self.classify(spectrum).to_dict()


_default_detector = AudioDetector()


def classify_audio(frame: AudioFrame) -> AudioClassification:
    """Classify a spectrum with the configured thresholds"""
    return _default_detector.classify(frame)
