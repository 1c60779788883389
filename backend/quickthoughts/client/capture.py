"""
Quick Thoughts Client: Capture Controller
===========================================

Wires the pieces of one capture together:

    AudioRecorder ──clip──▶ API.transcribe ──thoughts──▶ ThoughtMaterializer
                                                              │ drafts
                                                              ▼
                                                         NoteStore.insert_drafts

Only one clip is in flight at a time: starting a new recording while the
previous clip is still being transcribed raises CaptureBusyError.
"""

import asyncio
import logging
from typing import Callable, List, Optional

from quickthoughts.client.api import QuickThoughtsAPI
from quickthoughts.client.materializer import ThoughtMaterializer
from quickthoughts.client.recorder import AudioRecorder
from quickthoughts.client.store import Memo, NoteStore
from quickthoughts.config import ClientSettings
from quickthoughts.domain import AudioClip
from quickthoughts.exceptions import CaptureBusyError, QuickThoughtsError

logger = logging.getLogger(__name__)

ErrorHook = Callable[[QuickThoughtsError], None]


class CaptureController:
    def __init__(
        self,
        api: QuickThoughtsAPI,
        store: NoteStore,
        recorder: Optional[AudioRecorder] = None,
        materializer: Optional[ThoughtMaterializer] = None,
        on_error: Optional[ErrorHook] = None,
        client_settings: Optional[ClientSettings] = None,
    ):
        cfg = client_settings or ClientSettings()
        self.api = api
        self.store = store
        self.recorder = recorder or AudioRecorder(
            max_duration=cfg.max_recording_seconds,
            sample_rate=cfg.sample_rate,
            channels=cfg.channels,
        )
        self.recorder.on_clip = self._on_clip
        self.materializer = materializer or ThoughtMaterializer()
        self.on_error = on_error
        self.last_error: Optional[QuickThoughtsError] = None
        self._processing: Optional[asyncio.Task] = None

    @property
    def is_processing(self) -> bool:
        return self._processing is not None and not self._processing.done()

    @property
    def busy(self) -> bool:
        return self.recorder.is_recording or self.is_processing

    async def start_capture(self) -> None:
        """
        Raises:
            CaptureBusyError: recording, or the previous clip is still in flight.
            DeviceUnavailableError: microphone could not be opened.
        """
        if self.is_processing:
            raise CaptureBusyError()
        self.last_error = None
        try:
            await self.recorder.start()
        except QuickThoughtsError as e:
            self._report(e)
            raise

    def stop_capture(self) -> Optional[AudioClip]:
        """Finalize the recording; processing starts through the clip callback."""
        return self.recorder.stop()

    def _on_clip(self, clip: AudioClip) -> None:
        self._processing = asyncio.ensure_future(self.process_clip(clip))

    async def wait_idle(self) -> List[Memo]:
        """Wait for the clip in flight, if any. Returns the memos it inserted."""
        if self._processing is None:
            return []
        return await self._processing

    async def submit_file(self, path: str) -> List[Memo]:
        """Run an existing audio file through the same pipeline as a recording."""
        if self.busy:
            raise CaptureBusyError()
        clip = await AudioClip.from_file(path)
        self._processing = asyncio.ensure_future(self.process_clip(clip))
        return await self._processing

    async def process_clip(self, clip: AudioClip) -> List[Memo]:
        """Transcribe → materialize → insert, strictly in that order."""
        try:
            response = await self.api.transcribe(clip)
        except QuickThoughtsError as e:
            self._report(e)
            return []

        if not response.thoughts:
            logger.info("Clip produced no thoughts; nothing to save")
            return []

        drafts = self.materializer.materialize(
            response.thoughts,
            start_number=len(self.store.memos) + 1,
        )
        memos = self.store.insert_drafts(drafts)
        logger.info("Inserted %d memo(s) from clip", len(memos))
        return memos

    def _report(self, error: QuickThoughtsError) -> None:
        self.last_error = error
        logger.warning("Capture failed: %s", error.message)
        if self.on_error is not None:
            self.on_error(error)
