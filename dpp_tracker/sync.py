"""Best-effort persistence for a tracker session.

Every checked answer re-submits the full session summary to the sink as a
background task. Tasks are tagged with the session token current when they
were scheduled; when a task finishes after the tracker has moved to another
session its outcome is dropped. Local tracker state is never rolled back.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

import httpx

from dpp_tracker.errors import PersistenceError
from dpp_tracker.models import AttemptEntry, AttemptSummary
from dpp_tracker.providers.base import AttemptSink, QuestionProvider
from dpp_tracker.tracker import AttemptTracker

log = logging.getLogger("dpp_tracker.sync")


class AttemptSync:
    def __init__(
        self,
        tracker: AttemptTracker,
        sink: AttemptSink,
        on_error: Callable[[PersistenceError], None] | None = None,
    ):
        self.tracker = tracker
        self.sink = sink
        self.on_error = on_error
        self.last_error: PersistenceError | None = None
        self.last_saved: AttemptSummary | None = None
        self.stale_discarded = 0
        self._tasks: set[asyncio.Task] = set()
        self._save_lock = asyncio.Lock()

    async def open_session(
        self,
        provider: QuestionProvider,
        subject: str,
        lesson_name: str,
        user_id: str | None = None,
        hydrate: bool = True,
    ) -> str:
        """Fetch a lesson, load it into the tracker and restore saved progress.

        QuestionFetchError and InvalidSessionError propagate; a failure to
        read the saved attempt is recorded and the session starts fresh.
        Sessions without a user id always start fresh.
        """
        questions = await provider.get_questions(subject, lesson_name)
        session_id = self.tracker.load_session(subject, lesson_name, questions, user_id)
        self.last_error = None
        self.last_saved = None
        # Anonymous attempts share one key, so they are never restored
        if not hydrate or user_id is None:
            return session_id

        try:
            saved = await self.sink.load_attempt(user_id, subject, lesson_name)
        except httpx.HTTPError as e:
            error = PersistenceError(f"Could not load saved attempt: {e}")
            log.warning("Could not restore saved attempt for %s / %s: %s", subject, lesson_name, e)
            self._report(error, session_id)
            return session_id
        except PersistenceError as e:
            log.warning("Could not restore saved attempt for %s / %s: %s", subject, lesson_name, e)
            self._report(e, session_id)
            return session_id
        if saved is not None and self.tracker.session_id == session_id:
            n = self.tracker.hydrate(saved)
            log.info("Session %s: restored %d answers from %s", session_id[:8], n, self.sink.name())
        return session_id

    def check_answer(self, question_id: str) -> AttemptEntry:
        """Check on the tracker, then save the whole session in the background.

        Must be called from a running event loop. Re-checking an already
        checked question schedules nothing.
        """
        already_checked = self.tracker.is_checked(question_id)
        entry = self.tracker.check_answer(question_id)
        if not already_checked:
            self.schedule_save()
        return entry

    def schedule_save(self) -> asyncio.Task:
        summary = self.tracker.build_summary(self.tracker.elapsed_seconds())
        session_id = self.tracker.session_id
        task = asyncio.create_task(self._save(session_id, summary))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        log.debug("Session %s: save scheduled (score %d/%d)",
                  session_id[:8], summary.score, summary.total_questions)
        return task

    def retry(self) -> asyncio.Task | None:
        """Re-send the current summary if the last save for this session failed."""
        err = self.last_error
        if err is None or err.session_id != self.tracker.session_id:
            return None
        return self.schedule_save()

    async def end_session(self) -> AttemptSummary:
        """Wait for in-flight saves, then store the final summary."""
        await self.drain()
        session_id = self.tracker.session_id
        summary = self.tracker.build_summary(self.tracker.elapsed_seconds())
        await self._save(session_id, summary)
        return summary

    async def _save(self, session_id: str, summary: AttemptSummary) -> AttemptSummary | None:
        error: PersistenceError | None = None
        stored = None
        try:
            # One save at a time, in scheduling order, so the latest summary lands last
            async with self._save_lock:
                stored = await self.sink.save_attempt(summary)
        except PersistenceError as e:
            error = e
        except httpx.HTTPError as e:
            error = PersistenceError(f"Attempt save failed: {e}")
        except Exception as e:
            log.exception("Unexpected error saving to %s", self.sink.name())
            error = PersistenceError(f"Attempt save failed: {e}")

        if session_id != self.tracker.session_id:
            self.stale_discarded += 1
            log.info("Discarding save result for stale session %s", session_id[:8])
            return None
        if error is not None:
            log.warning("Session %s: save to %s failed: %s", session_id[:8], self.sink.name(), error)
            self._report(error, session_id)
            return None
        self.last_saved = stored
        self.last_error = None
        return stored

    def _report(self, error: PersistenceError, session_id: str) -> None:
        error.session_id = session_id
        self.last_error = error
        if self.on_error is not None:
            self.on_error(error)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks))

    def cancel_pending(self) -> None:
        for task in list(self._tasks):
            task.cancel()
