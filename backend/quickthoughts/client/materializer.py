"""
Quick Thoughts Client: Thought Materializer
=============================================

Turns validated thoughts into memo drafts ready for the store: title,
date label, timestamps and a temporary local id. Pure apart from the clock
and a per-process counter.
"""

import itertools
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Protocol


class ThoughtLike(Protocol):
    text: str
    label: str
    folder: str


@dataclass(frozen=True)
class MemoDraft:
    id: str
    title: str
    status: str
    date: str
    folder: str
    transcription: str
    created_at: datetime


def format_date_label(moment: datetime) -> str:
    """Short list label, e.g. "Oct 18" (day not zero-padded)."""
    return f"{moment.strftime('%b')} {moment.day}"


class ThoughtMaterializer:
    def __init__(self):
        self._batch_counter = itertools.count(1)

    def _batch_token(self) -> str:
        # Clock alone can repeat within one tick; the counter cannot
        return f"{time.time_ns():x}-{next(self._batch_counter)}"

    def materialize(
        self,
        thoughts: Iterable[ThoughtLike],
        start_number: int = 1,
        now: Optional[datetime] = None,
    ) -> List[MemoDraft]:
        """
        One draft per thought, in input order.

        A thought with an empty label is titled "Memo N" where
        N = start_number + its index in the batch.
        """
        moment = now or datetime.now(timezone.utc)
        token = self._batch_token()
        date_label = format_date_label(moment)

        drafts = []
        for index, thought in enumerate(thoughts):
            label = (thought.label or "").strip()
            drafts.append(
                MemoDraft(
                    id=f"local-{token}-{index}",
                    title=label or f"Memo {start_number + index}",
                    status="ready",
                    date=date_label,
                    folder=thought.folder,
                    transcription=thought.text,
                    created_at=moment,
                )
            )
        return drafts
