"""
Quick Thoughts: Voice Memo Capture and Classification
=======================================================

Two halves share this package:

    ┌─────────────────────────────────────┐
    │   client/   (recorder, API client,  │  ← runs on the user's machine
    │   materializer, note store, CLI)    │
    ├─────────────────────────────────────┤
    │   Routes (API Layer)                │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services (prompt, parse, Gemini,  │  ← pipeline and persistence rules
    │   transcription, memos)             │
    ├─────────────────────────────────────┤
    │   Models & Schemas, Database        │  ← SQLAlchemy ORM + Pydantic
    └─────────────────────────────────────┘

`domain` holds the value types both halves use (AudioClip,
ClassificationConstraint, Thought, TranscriptionResult).
"""

__version__ = "1.0.0"
