"""
Quick Thoughts: Pipeline Value Types
======================================

What:  Immutable values passed between the pipeline stages.
Who:   Built by the recorder and the upload route (AudioClip), the
       transcription service (ClassificationConstraint), and the response
       parser (Thought, TranscriptionResult); read by the client materializer.

    AudioClip ──▶ TranscriptionRequest ──▶ raw text ──▶ TranscriptionResult
                         ▲                                  (Thoughts)
          ClassificationConstraint
"""

import mimetypes
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional, Tuple

import aiofiles

DEFAULT_FALLBACK_FOLDER = "Unsorted"
MAX_THOUGHTS_PER_CLIP = 10
# Labels become memo titles, which the store caps at this length
MAX_LABEL_LENGTH = 200


@dataclass(frozen=True)
class AudioClip:
    """
    One finished recording (or selected file).

    `data` is the complete encoded payload; `mime_type` is sent to the AI
    service alongside it. `duration_seconds` is None when unknown (uploads).
    """

    data: bytes
    mime_type: str
    duration_seconds: Optional[float] = None
    filename: str = "recording.wav"

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def base_mime_type(self) -> str:
        """MIME type without parameters: "audio/webm;codecs=opus" → "audio/webm"."""
        return self.mime_type.split(";", 1)[0].strip().lower()

    @classmethod
    async def from_file(cls, path: str) -> "AudioClip":
        """Read an audio file from disk without blocking the event loop."""
        file_path = Path(path)
        async with aiofiles.open(file_path, "rb") as f:
            data = await f.read()
        mime_type, _ = mimetypes.guess_type(file_path.name)
        return cls(
            data=data,
            mime_type=mime_type or "application/octet-stream",
            duration_seconds=None,
            filename=file_path.name,
        )


@dataclass(frozen=True)
class ClassificationConstraint:
    """
    The closed set of folder names a classification call may choose from.

    Invariants (enforced by from_names):
        - fallback is always a member
        - names are unique, trimmed and non-empty
        - membership is case-sensitive
    """

    folders: Tuple[str, ...]
    fallback: str = DEFAULT_FALLBACK_FOLDER

    def __post_init__(self):
        if self.fallback not in self.folders:
            raise ValueError(f"Fallback folder '{self.fallback}' must be in the constraint set")
        if len(set(self.folders)) != len(self.folders):
            raise ValueError("Constraint folder names must be unique")

    @classmethod
    def from_names(
        cls,
        names: Iterable[str],
        fallback: str = DEFAULT_FALLBACK_FOLDER,
    ) -> "ClassificationConstraint":
        seen = []
        for name in names:
            if not isinstance(name, str):
                continue
            clean = name.strip()
            if clean and clean not in seen:
                seen.append(clean)
        if fallback not in seen:
            seen.insert(0, fallback)
        return cls(folders=tuple(seen), fallback=fallback)

    def contains(self, name: str) -> bool:
        return name in self.folders

    def coerce(self, name: str) -> str:
        """Return `name` if allowed, else the fallback folder."""
        return name if name in self.folders else self.fallback


@dataclass(frozen=True)
class Thought:
    """One idea extracted from a clip: free text, short label, folder name."""

    text: str
    label: str
    folder: str


@dataclass(frozen=True)
class TranscriptionResult:
    """Validated output of one transcription call."""

    transcription: str
    thoughts: Tuple[Thought, ...] = field(default_factory=tuple)
    # True when the synthetic single-thought fallback was used
    degraded: bool = False

    @property
    def primary(self) -> Optional[Thought]:
        return self.thoughts[0] if self.thoughts else None
