"""
Quick Thoughts Backend: Request Builder & Domain Unit Tests
=============================================================
"""

import pytest

from quickthoughts.domain import AudioClip, ClassificationConstraint
from quickthoughts.services.prompt_builder import (
    build_transcription_prompt,
    build_transcription_request,
)


class TestClassificationConstraint:
    def test_fallback_inserted_first_when_missing(self):
        constraint = ClassificationConstraint.from_names(["Work", "Ideas"])
        assert constraint.folders == ("Unsorted", "Work", "Ideas")

    def test_names_trimmed_and_deduplicated(self):
        constraint = ClassificationConstraint.from_names([" Work", "Work ", "", "Unsorted"])
        assert constraint.folders == ("Work", "Unsorted")

    def test_direct_construction_requires_fallback_member(self):
        with pytest.raises(ValueError):
            ClassificationConstraint(folders=("Work",), fallback="Unsorted")

    def test_coerce(self, constraint):
        assert constraint.coerce("Work") == "Work"
        assert constraint.coerce("Hobbies") == "Unsorted"


class TestAudioClip:
    def test_base_mime_type_drops_parameters(self):
        clip = AudioClip(data=b"x", mime_type="Audio/WebM; codecs=opus")
        assert clip.base_mime_type == "audio/webm"

    @pytest.mark.asyncio
    async def test_from_file(self, tmp_path, sample_wav_bytes):
        path = tmp_path / "memo.wav"
        path.write_bytes(sample_wav_bytes)

        clip = await AudioClip.from_file(str(path))

        assert clip.data == sample_wav_bytes
        assert clip.filename == "memo.wav"
        assert clip.base_mime_type in {"audio/wav", "audio/x-wav"}


class TestBuildPrompt:
    def test_every_folder_enumerated(self, constraint):
        prompt = build_transcription_prompt(constraint)
        for name in constraint.folders:
            assert f'- "{name}"' in prompt

    def test_fallback_and_limit_named(self):
        constraint = ClassificationConstraint.from_names(["Work"], fallback="Inbox")
        prompt = build_transcription_prompt(constraint, max_thoughts=10)
        assert 'use "Inbox"' in prompt
        assert "between 1 and 10" in prompt

    def test_demands_json_only(self, constraint):
        prompt = build_transcription_prompt(constraint)
        assert "ONLY one JSON object" in prompt
        assert '"thoughts"' in prompt


class TestBuildRequest:
    def test_contents_are_prompt_then_inline_audio(self, constraint):
        clip = AudioClip(data=b"\x1a\x45\xdf\xa3", mime_type="audio/webm;codecs=opus")
        request = build_transcription_request(clip, constraint)

        contents = request.contents()
        assert contents[0] == request.prompt
        assert contents[1] == {"mime_type": "audio/webm", "data": b"\x1a\x45\xdf\xa3"}
        assert request.constraint is constraint
