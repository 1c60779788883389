"""
Quick Thoughts Client: Audio Capture Unit
===========================================

What:  Records one clip from the default microphone and hands it over as an
       AudioClip (16-bit PCM WAV).
How:   sounddevice InputStream; its callback (PortAudio thread) appends
       int16 blocks to a lock-protected list. stop() joins them with numpy
       and writes a WAV container with the stdlib `wave` module.

Lifecycle:
    idle ──start()──▶ recording ──stop() / ceiling timer──▶ idle (+ on_clip)

Finalize-once:
    stop() flips the state before doing anything else. Whichever of the
    ceiling timer or a manual stop arrives second sees "not recording" and
    returns None, so a clip is never emitted twice.
"""

import asyncio
import io
import logging
import threading
import wave
from typing import Any, Callable, List, Optional

import numpy as np

from quickthoughts.domain import AudioClip
from quickthoughts.exceptions import CaptureBusyError, DeviceUnavailableError

logger = logging.getLogger(__name__)

SAMPLE_WIDTH_BYTES = 2  # int16

ClipCallback = Callable[[AudioClip], None]
StreamFactory = Callable[..., Any]


def default_stream_factory(**kwargs) -> Any:
    """Opens a sounddevice.InputStream; PortAudio is loaded on first use."""
    try:
        import sounddevice as sd
    except Exception as exc:  # PortAudio missing raises OSError, not ImportError
        raise DeviceUnavailableError(
            message="Audio input is not available on this machine.",
            context={"error_type": type(exc).__name__},
        ) from exc
    return sd.InputStream(**kwargs)


class AudioRecorder:
    def __init__(
        self,
        max_duration: float = 120,
        sample_rate: int = 16_000,
        channels: int = 1,
        on_clip: Optional[ClipCallback] = None,
        stream_factory: Optional[StreamFactory] = None,
    ):
        self.max_duration = max_duration
        self.sample_rate = sample_rate
        self.channels = channels
        self.on_clip = on_clip
        self._stream_factory = stream_factory or default_stream_factory

        self._lock = threading.Lock()
        self._chunks: List[np.ndarray] = []
        self._stream: Any = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._recording = False

    @property
    def is_recording(self) -> bool:
        return self._recording

    async def start(self) -> None:
        """
        Open the input stream and begin buffering.

        Raises:
            CaptureBusyError: already recording.
            DeviceUnavailableError: no backend, no device, or permission denied.
        """
        if self._recording:
            raise CaptureBusyError()

        loop = asyncio.get_running_loop()
        with self._lock:
            self._chunks = []

        stream = None
        try:
            stream = self._stream_factory(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="int16",
                callback=self._on_audio,
            )
            stream.start()
        except DeviceUnavailableError:
            raise
        except Exception as exc:
            if stream is not None:
                stream.close()
            logger.warning("Could not open input stream: %s", str(exc))
            raise DeviceUnavailableError(
                context={"error_type": type(exc).__name__},
            ) from exc

        self._stream = stream
        self._recording = True
        self._timer = loop.call_later(self.max_duration, self._on_ceiling)
        logger.info(
            "Recording started (%d Hz, %d ch, max %ss)",
            self.sample_rate,
            self.channels,
            self.max_duration,
        )

    def stop(self) -> Optional[AudioClip]:
        """Finalize the recording. Returns None when nothing is recording."""
        if not self._recording:
            return None
        self._recording = False

        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        stream, self._stream = self._stream, None
        try:
            stream.stop()
        finally:
            stream.close()

        with self._lock:
            chunks, self._chunks = self._chunks, []

        clip = self._encode(chunks)
        logger.info("Recording stopped: %.1fs, %d bytes", clip.duration_seconds, clip.size)

        if self.on_clip is not None:
            self.on_clip(clip)
        return clip

    def _on_audio(self, indata, frames, time_info, status) -> None:
        if status:
            logger.debug("Input stream status: %s", status)
        with self._lock:
            if self._recording:
                self._chunks.append(indata.copy())

    def _on_ceiling(self) -> None:
        self._timer = None
        if self._recording:
            logger.info("Recording reached the %ss limit", self.max_duration)
            self.stop()

    def _encode(self, chunks: List[np.ndarray]) -> AudioClip:
        if chunks:
            pcm = np.concatenate(chunks, axis=0)
            if pcm.dtype != np.int16:
                pcm = pcm.astype(np.int16)
        else:
            pcm = np.zeros((0, self.channels), dtype=np.int16)

        buffer = io.BytesIO()
        with wave.open(buffer, "wb") as handle:
            handle.setnchannels(self.channels)
            handle.setsampwidth(SAMPLE_WIDTH_BYTES)
            handle.setframerate(self.sample_rate)
            handle.writeframes(pcm.tobytes())

        return AudioClip(
            data=buffer.getvalue(),
            mime_type="audio/wav",
            duration_seconds=pcm.shape[0] / self.sample_rate,
            filename="recording.wav",
        )
