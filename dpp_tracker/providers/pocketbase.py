from __future__ import annotations

import asyncio
import json
import logging
import time
from datetime import datetime, timezone

import httpx

from dpp_tracker.errors import PersistenceError, QuestionFetchError
from dpp_tracker.models import AttemptSummary, Question
from dpp_tracker.providers.base import AttemptSink, QuestionProvider

log = logging.getLogger("dpp_tracker.pocketbase")


def _quote(value: str) -> str:
    """PocketBase filter string literal."""
    return json.dumps(value)


def attempt_filter(user_id: str | None, subject: str, lesson_name: str) -> str:
    return (
        f"userId={_quote(user_id or '')} && subject={_quote(subject)} "
        f"&& lessonName={_quote(lesson_name)}"
    )


class PocketBaseClient(QuestionProvider, AttemptSink):
    """Questions and attempts over the PocketBase records REST API."""

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:8090",
        token: str = "",
        questions_collection: str = "question_bank",
        attempts_collection: str = "dpp_attempts",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.questions_collection = questions_collection
        self.attempts_collection = attempts_collection
        self.timeout = timeout
        self._transport = transport
        self._attempt_locks: dict[tuple, asyncio.Lock] = {}
        self._attempt_ids: dict[tuple, str] = {}  # attempt key -> record id

    def _client(self) -> httpx.AsyncClient:
        headers = {"Authorization": self.token} if self.token else {}
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self._transport,
        )

    def _records_path(self, collection: str) -> str:
        return f"/api/collections/{collection}/records"

    async def _list_all(self, client: httpx.AsyncClient, collection: str, params: dict) -> list[dict]:
        items: list[dict] = []
        page = 1
        while True:
            resp = await client.get(
                self._records_path(collection),
                params={**params, "page": page, "perPage": 200},
            )
            resp.raise_for_status()
            data = resp.json()
            items.extend(data.get("items", []))
            if page >= data.get("totalPages", 1):
                return items
            page += 1

    # ── Questions ─────────────────────────────────────────────────────────

    async def get_questions(self, subject: str, lesson_name: str) -> list[Question]:
        t0 = time.monotonic()
        try:
            async with self._client() as client:
                records = await self._list_all(
                    client,
                    self.questions_collection,
                    {
                        "filter": f"subject={_quote(subject)} && lessonName={_quote(lesson_name)}",
                        "sort": "created",
                    },
                )
        except httpx.HTTPError as e:
            log.warning("Question fetch failed for %s / %s: %s", subject, lesson_name, e)
            raise QuestionFetchError(f"Could not load questions: {e}") from e
        log.info(
            "Fetched %d questions for %s / %s (%.1fs)",
            len(records), subject, lesson_name, time.monotonic() - t0,
        )
        return [Question.from_dict(r) for r in records]

    async def get_lessons(self, subject: str) -> list[str]:
        try:
            async with self._client() as client:
                records = await self._list_all(
                    client,
                    self.questions_collection,
                    {"filter": f"subject={_quote(subject)}", "fields": "lessonName", "sort": "created"},
                )
        except httpx.HTTPError as e:
            raise QuestionFetchError(f"Could not load lessons: {e}") from e
        seen: dict[str, None] = {}
        for r in records:
            if r.get("lessonName"):
                seen.setdefault(r["lessonName"], None)
        return list(seen)

    async def add_question(self, question: Question) -> Question:
        body = question.to_dict()
        body.pop("id")
        try:
            async with self._client() as client:
                resp = await client.post(self._records_path(self.questions_collection), json=body)
                resp.raise_for_status()
        except httpx.HTTPError as e:
            raise QuestionFetchError(f"Could not add question: {e}") from e
        return Question.from_dict(resp.json())

    # ── Attempts ──────────────────────────────────────────────────────────

    def _attempt_lock(self, key: tuple) -> asyncio.Lock:
        lock = self._attempt_locks.get(key)
        if lock is None:
            lock = self._attempt_locks[key] = asyncio.Lock()
        return lock

    async def _find_attempt(
        self, client: httpx.AsyncClient, user_id: str | None, subject: str, lesson_name: str
    ) -> dict | None:
        resp = await client.get(
            self._records_path(self.attempts_collection),
            params={
                "filter": attempt_filter(user_id, subject, lesson_name),
                "sort": "-updated",
                "page": 1,
                "perPage": 1,
                "skipTotal": 1,
            },
        )
        resp.raise_for_status()
        items = resp.json().get("items", [])
        return items[0] if items else None

    async def save_attempt(self, summary: AttemptSummary) -> AttemptSummary:
        """Upsert the one attempt record for (userId, subject, lessonName).

        Saves for the same key run one at a time, and the record id is
        remembered after the first create, so overlapping saves PATCH the
        same record instead of each creating one.
        """
        body = summary.to_dict()
        body["userId"] = summary.user_id or ""
        body["attemptDate"] = datetime.now(timezone.utc).isoformat()
        path = self._records_path(self.attempts_collection)
        key = (summary.user_id or "", summary.subject, summary.lesson_name)
        async with self._attempt_lock(key):
            try:
                async with self._client() as client:
                    record_id = self._attempt_ids.get(key)
                    if record_id is None:
                        existing = await self._find_attempt(
                            client, summary.user_id, summary.subject, summary.lesson_name
                        )
                        record_id = existing["id"] if existing else None
                    if record_id:
                        resp = await client.patch(f"{path}/{record_id}", json=body)
                    else:
                        resp = await client.post(path, json=body)
                    resp.raise_for_status()
                    record = resp.json()
                    stored = AttemptSummary.from_dict(record)
            except httpx.HTTPStatusError as e:
                log.warning(
                    "Attempt save rejected (%d): %s", e.response.status_code, e.response.text
                )
                if e.response.status_code == 404:
                    self._attempt_ids.pop(key, None)
                raise PersistenceError(f"Attempt save rejected: {e.response.status_code}") from e
            except httpx.HTTPError as e:
                log.warning("Attempt save failed: %s", e)
                raise PersistenceError(f"Attempt save failed: {e}") from e
            except (ValueError, KeyError, TypeError) as e:
                log.warning("Attempt save returned an unreadable record: %s", e)
                raise PersistenceError(f"Attempt save returned an unreadable record: {e}") from e
            if record.get("id"):
                self._attempt_ids[key] = record["id"]
        return stored

    async def load_attempt(
        self, user_id: str | None, subject: str, lesson_name: str
    ) -> AttemptSummary | None:
        try:
            async with self._client() as client:
                record = await self._find_attempt(client, user_id, subject, lesson_name)
            return AttemptSummary.from_dict(record) if record else None
        except httpx.HTTPError as e:
            raise PersistenceError(f"Could not load saved attempt: {e}") from e
        except (ValueError, KeyError, TypeError) as e:
            raise PersistenceError(f"Saved attempt is unreadable: {e}") from e

    def name(self) -> str:
        return f"pocketbase/{self.base_url}"
