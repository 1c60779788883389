"""
Quick Thoughts Backend: Transcription Request Builder
=======================================================

What:  Packages one AudioClip and the caller's ClassificationConstraint into a
       single request for the AI service.
How:   The instruction text fixes the output shape (one JSON object with a
       transcription and 1-10 thoughts) and enumerates every allowed folder
       name so the model has nothing to invent from.
Who:   Called by TranscriptionService for each uploaded clip.

No retry happens here or downstream: one request per completed capture.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Union

from quickthoughts.domain import MAX_THOUGHTS_PER_CLIP, AudioClip, ClassificationConstraint


PROMPT_TEMPLATE = """You are transcribing a short voice memo and splitting it into separate thoughts.

1. Transcribe the audio accurately. Keep the speaker's wording; drop filler words only.
2. Split the transcription into between 1 and {max_thoughts} distinct thoughts. Each thought is one
   self-contained idea, task or reminder.
3. For each thought write:
   - "text": the thought in the speaker's own words
   - "label": a short title of 2 to 5 words
   - "folder": exactly one name from the ALLOWED FOLDERS list below, spelled exactly as listed
4. If no folder fits a thought, use "{fallback}". Never create a new folder name.

ALLOWED FOLDERS:
{folder_lines}

Respond with ONLY one JSON object, no markdown and no commentary, in this exact shape:
{{
  "transcription": "<full transcription>",
  "thoughts": [
    {{"text": "<thought text>", "label": "<2-5 word label>", "folder": "<allowed folder>"}}
  ]
}}"""


def build_transcription_prompt(
    constraint: ClassificationConstraint,
    max_thoughts: int = MAX_THOUGHTS_PER_CLIP,
) -> str:
    """Instruction text for one clip, listing every allowed folder on its own line."""
    folder_lines = "\n".join(f'- "{name}"' for name in constraint.folders)
    return PROMPT_TEMPLATE.format(
        max_thoughts=max_thoughts,
        fallback=constraint.fallback,
        folder_lines=folder_lines,
    )


@dataclass(frozen=True)
class TranscriptionRequest:
    """One outbound AI request: binary audio plus the instruction text."""

    audio: AudioClip
    prompt: str
    constraint: ClassificationConstraint

    def contents(self) -> List[Union[str, Dict[str, Any]]]:
        """Gemini content parts: instruction first, then inline audio blob."""
        return [
            self.prompt,
            {"mime_type": self.audio.base_mime_type, "data": self.audio.data},
        ]


def build_transcription_request(
    clip: AudioClip,
    constraint: ClassificationConstraint,
    max_thoughts: int = MAX_THOUGHTS_PER_CLIP,
) -> TranscriptionRequest:
    return TranscriptionRequest(
        audio=clip,
        prompt=build_transcription_prompt(constraint, max_thoughts=max_thoughts),
        constraint=constraint,
    )
