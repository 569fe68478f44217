"""
Unit tests for the RunPod handler.

The job services are mocked; only routing by queue and error handling are tested.
"""

from unittest.mock import patch, AsyncMock

import handler
from app.config import PUBLISH_QUEUE, MEDIA_QUEUE


def _job(queue, jobs):
    return {"id": "runpod-1", "input": {"queue": queue, "vt_seconds": 600, "jobs": jobs}}


JOBS = [{"msg_id": 1, "read_ct": 1, "message": {"action": "upload", "target_id": "t-1"}}]
RESULT = {"ok": True, "summary": {"total": 1, "completed": 1, "retry": 0, "archived": 0, "deleted": 0}, "results": []}


class TestHandler:
    """Test handler()."""

    def test_empty_jobs(self):
        result = handler.handler(_job(PUBLISH_QUEUE, []))
        assert result["ok"] is False
        assert result["summary"]["total"] == 0

    def test_unknown_queue(self):
        result = handler.handler(_job("thumbnails", JOBS))
        assert result["ok"] is False
        assert "Unknown queue: thumbnails" in result["error"]
        assert result["summary"]["total"] == 1

    def test_publishing_queue(self):
        with patch.object(handler, "process_job_batch", new=AsyncMock(return_value=RESULT)) as batch, \
             patch.object(handler, "process_media_job_batch", new=AsyncMock()) as media:
            result = handler.handler(_job(PUBLISH_QUEUE, JOBS))

        assert result == RESULT
        assert batch.await_args.kwargs["payload"]["jobs"] == JOBS
        media.assert_not_awaited()

    def test_media_queue_is_default(self):
        payload = _job(MEDIA_QUEUE, JOBS)
        del payload["input"]["queue"]
        with patch.object(handler, "process_media_job_batch", new=AsyncMock(return_value=RESULT)) as media:
            handler.handler(payload)
        media.assert_awaited_once()

    def test_service_error_is_returned(self):
        with patch.object(handler, "process_job_batch", new=AsyncMock(side_effect=RuntimeError("supabase down"))):
            result = handler.handler(_job(PUBLISH_QUEUE, JOBS))

        assert result["ok"] is False
        assert result["error"] == "Handler processing error: supabase down"
        assert result["results"] == []
