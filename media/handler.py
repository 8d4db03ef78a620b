"""Studio export handler: trim a take, store it and submit it for review."""

import json
import logging
from typing import Any

from marketplace.deliverables import download_video, own_video_key, upload_video
from media.models import SubtitleEntry, TrimRange
from media.trimmer import VideoTrimmer
from workflow.service import submit_video

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

_trimmer: VideoTrimmer | None = None


def get_trimmer() -> VideoTrimmer:
    """Get or create trimmer instance (reused across invocations)."""
    global _trimmer
    if _trimmer is None:
        _trimmer = VideoTrimmer()
    return _trimmer


def handler(event: dict[str, Any], _context: Any = None) -> dict[str, Any]:
    """
    Export a trimmed video as the mission deliverable.

    Expected event format:
    {
        "actor_id": "uuid",
        "campaign_id": "uuid",
        "source_url": "campaign-uuid/creator-uuid/raw.mp4 (object key or storage URL)",
        "filename": "take.mp4",
        "range": {"start": 1.5, "end": 16.5},
        "subtitles": [{"text": "...", "start": 2.0, "end": 4.0}]
    }

    Returns:
        Response with statusCode and body
    """
    actor_id = event.get("actor_id")
    campaign_id = event.get("campaign_id")
    source_url = event.get("source_url")

    if not actor_id or not campaign_id or not source_url:
        return _error_response(400, "INVALID_INPUT", "actor_id, campaign_id and source_url required")

    try:
        trim = TrimRange.from_dict(event.get("range") or {})
        subtitles = [SubtitleEntry.from_dict(s) for s in event.get("subtitles") or []]
    except (KeyError, TypeError, ValueError) as e:
        return _error_response(400, "INVALID_INPUT", f"Invalid range or subtitles: {e}")

    key = own_video_key(source_url, campaign_id, actor_id)
    if key is None:
        return _error_response(400, "INVALID_SOURCE", "source_url must be your own upload for this campaign")

    trimmer = get_trimmer()
    if not trimmer.load():
        return _error_response(503, "FFMPEG_UNAVAILABLE", "Video processing is not available")

    source = download_video(key)
    if source is None:
        return _error_response(502, "STORAGE_ERROR", "Could not read the source video", campaign_id)

    filename = event.get("filename") or "export.mp4"
    data = trimmer.trim(source, trim, subtitles or None, filename=filename)
    if data is None:
        return _error_response(422, "TRIM_FAILED", "Could not trim the video", campaign_id)

    output_key = upload_video(data, filename, campaign_id, actor_id)
    if output_key is None:
        return _error_response(502, "STORAGE_ERROR", "Could not store the video", campaign_id)

    result = submit_video(actor_id, campaign_id, output_key, video_duration_seconds=trim.duration)
    if not result.success:
        return _error_response(result.http_status, result.error_code, result.error, campaign_id)

    logger.info("Exported deliverable %s for campaign %s", result.data.id, campaign_id)
    return {
        "statusCode": 200,
        "body": json.dumps(
            {
                "campaign_id": campaign_id,
                "deliverable_id": result.data.id,
                "video_url": output_key,
                "duration_seconds": trim.duration,
                "status": result.data.status,
            }
        ),
    }


def _error_response(
    status: int,
    error: str,
    message: str,
    campaign_id: str | None = None,
) -> dict[str, Any]:
    """Build error response."""
    body: dict[str, Any] = {"error": error, "message": message}
    if campaign_id:
        body["campaign_id"] = campaign_id
    return {"statusCode": status, "body": json.dumps(body)}
