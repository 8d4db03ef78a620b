"""Tests for the studio export handler."""

import json
from io import BytesIO
from unittest.mock import MagicMock, patch

import pytest

from core.results import ErrorCode, Result
from media.handler import handler


@pytest.fixture
def event():
    return {
        "actor_id": "creator-1",
        "campaign_id": "campaign-1",
        "source_url": "campaign-1/creator-1/raw_take.mp4",
        "filename": "take.mp4",
        "range": {"start": 1.5, "end": 16.5},
        "subtitles": [{"text": "Salut", "start": 2.0, "end": 4.0}],
    }


@pytest.fixture(autouse=True)
def raw_upload(storage):
    storage.client.get_object.return_value = {"Body": BytesIO(b"raw-take")}
    return storage


class TestHandler:
    def test_missing_ids(self):
        result = handler({"campaign_id": "campaign-1"}, None)

        assert result["statusCode"] == 400

    def test_invalid_range(self, event):
        event["range"] = {"start": 5, "end": 2}

        result = handler(event, None)

        assert result["statusCode"] == 400
        assert "INVALID_INPUT" in result["body"]

    @patch("media.handler.get_trimmer")
    def test_ffmpeg_unavailable(self, mock_get_trimmer, event):
        mock_get_trimmer.return_value.load.return_value = False

        result = handler(event, None)

        assert result["statusCode"] == 503

    @patch("media.handler.get_trimmer")
    def test_trim_failed(self, mock_get_trimmer, event):
        mock_get_trimmer.return_value.trim.return_value = None

        result = handler(event, None)

        assert result["statusCode"] == 422
        assert json.loads(result["body"])["campaign_id"] == "campaign-1"

    @patch("media.handler.upload_video")
    @patch("media.handler.get_trimmer")
    def test_storage_failure(self, mock_get_trimmer, mock_upload, event):
        mock_get_trimmer.return_value.trim.return_value = b"mp4"
        mock_upload.return_value = None

        result = handler(event, None)

        assert result["statusCode"] == 502

    @patch("media.handler.submit_video")
    @patch("media.handler.upload_video")
    @patch("media.handler.get_trimmer")
    def test_workflow_rejection_is_passed_through(self, mock_get_trimmer, mock_upload, mock_submit, event):
        mock_get_trimmer.return_value.trim.return_value = b"mp4"
        mock_upload.return_value = "campaign-1/creator-1/1_take.mp4"
        mock_submit.return_value = Result.fail("Sign first", ErrorCode.CONTRACT_REQUIRED)

        result = handler(event, None)

        assert result["statusCode"] == 409
        assert json.loads(result["body"])["error"] == "CONTRACT_REQUIRED"

    @patch("media.handler.submit_video")
    @patch("media.handler.upload_video")
    @patch("media.handler.get_trimmer")
    def test_success(self, mock_get_trimmer, mock_upload, mock_submit, event):
        trimmer = mock_get_trimmer.return_value
        trimmer.trim.return_value = b"mp4"
        mock_upload.return_value = "campaign-1/creator-1/1_take.mp4"
        deliverable = MagicMock(id="deliverable-1", status="submitted")
        mock_submit.return_value = Result.ok(deliverable)

        result = handler(event, None)

        assert result["statusCode"] == 200
        body = json.loads(result["body"])
        assert body["deliverable_id"] == "deliverable-1"
        assert body["duration_seconds"] == 15.0
        source, trim, subtitles = trimmer.trim.call_args.args
        assert source == b"raw-take"
        assert (trim.start, trim.end) == (1.5, 16.5)
        assert subtitles[0].text == "Salut"
        mock_submit.assert_called_once_with(
            "creator-1", "campaign-1", "campaign-1/creator-1/1_take.mp4", video_duration_seconds=15.0
        )


class TestSourceRestriction:
    @pytest.mark.parametrize(
        "source_url",
        [
            "/etc/passwd",
            "file:///etc/passwd",
            "http://169.254.169.254/latest/meta-data/",
            "campaign-1/creator-2/raw_take.mp4",
            "campaign-2/creator-1/raw_take.mp4",
            "campaign-1/creator-1/../creator-2/raw_take.mp4",
        ],
    )
    @patch("media.handler.get_trimmer")
    def test_rejects_anything_but_own_upload(self, mock_get_trimmer, event, raw_upload, source_url):
        event["source_url"] = source_url

        result = handler(event, None)

        assert result["statusCode"] == 400
        assert json.loads(result["body"])["error"] == "INVALID_SOURCE"
        mock_get_trimmer.return_value.trim.assert_not_called()
        raw_upload.client.get_object.assert_not_called()

    @patch("media.handler.get_trimmer")
    def test_storage_url_reads_from_bucket(self, mock_get_trimmer, event, raw_upload):
        event["source_url"] = "https://cdn.example.ch/deliverables/campaign-1/creator-1/raw_take.mp4"
        mock_get_trimmer.return_value.trim.return_value = None

        handler(event, None)

        assert raw_upload.client.get_object.call_args.kwargs == {
            "Bucket": "deliverables",
            "Key": "campaign-1/creator-1/raw_take.mp4",
        }
        assert mock_get_trimmer.return_value.trim.call_args.args[0] == b"raw-take"
