"""Hand captured notes and tasks to the persistence store via REST API."""

from __future__ import annotations

import logging
import os

import requests

from commitments.models import PipelineResult

logger = logging.getLogger(__name__)


def build_task_rows(
    result: PipelineResult, note_id: str, user_id: str | None = None
) -> list[dict]:
    """Build one task row per commitment, each referencing the stored note."""
    rows = []
    for commitment in result.commitments:
        row = {
            "note_id": note_id,
            "title": commitment.title,
            "description": commitment.description,
            "due_date": commitment.due_date,
            "status": commitment.status.value,
            "source": result.source.value,
        }
        if user_id:
            row["user_id"] = user_id
        rows.append(row)
    return rows


def pipe_to_store(result: PipelineResult, user_id: str | None = None) -> dict:
    """Store the note and its tasks through the store's REST API.

    Reads STORE_ENDPOINT and STORE_API_KEY from environment.
    Returns silently if not configured. Runs that failed to decode
    persist nothing.
    """
    endpoint = os.getenv("STORE_ENDPOINT", "").rstrip("/")
    api_key = os.getenv("STORE_API_KEY", "")
    if not endpoint or not api_key:
        logger.debug("Store not configured, skipping hand-off")
        return {"status": "skipped", "reason": "not configured"}

    if not result.completed or not result.text:
        return {"status": "skipped", "reason": "nothing captured"}

    headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}

    note_payload = {"raw_text": result.text}
    if user_id:
        note_payload["user_id"] = user_id

    try:
        resp = requests.post(f"{endpoint}/notes", headers=headers, json=note_payload, timeout=10)
        resp.raise_for_status()
        note_id = str(resp.json()["id"])
    except (requests.RequestException, ValueError, KeyError) as e:
        logger.warning("Failed to store note: %s", e)
        return {"status": "error", "reason": str(e)}

    rows = build_task_rows(result, note_id, user_id)
    if not rows:
        return {"status": "complete", "note_id": note_id, "tasks": 0}

    try:
        resp = requests.post(f"{endpoint}/tasks", headers=headers, json=rows, timeout=10)
        resp.raise_for_status()
    except requests.RequestException as e:
        logger.warning("Note %s stored but failed to store tasks: %s", note_id, e)
        return {"status": "partial", "note_id": note_id, "reason": str(e)}

    return {"status": "complete", "note_id": note_id, "tasks": len(rows)}
