import json
import logging

from designlens.services.logging_config import JsonFormatter, scrub_payload


def test_scrub_payload_redacts_nested_credentials() -> None:
    payload = {
        "api_key": "sk-secret",
        "request": {"headers": {"Authorization": "Bearer abc", "Accept": "application/json"}},
        "items": [{"token": "figd"}, {"frame_id": "1:1"}],
        "frame_id": "2:1",
    }

    scrubbed = scrub_payload(payload)

    assert scrubbed["api_key"] == "[REDACTED]"
    assert scrubbed["request"]["headers"]["Authorization"] == "[REDACTED]"
    assert scrubbed["request"]["headers"]["Accept"] == "application/json"
    assert scrubbed["items"][0]["token"] == "[REDACTED]"
    assert scrubbed["items"][1] == {"frame_id": "1:1"}
    assert scrubbed["frame_id"] == "2:1"
    assert payload["api_key"] == "sk-secret"


def test_json_formatter_merges_scrubbed_extra_payload() -> None:
    record = logging.LogRecord(
        name="designlens.services.critique",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg="critique.parse_failed",
        args=(),
        exc_info=None,
    )
    record.extra_payload = {"frame_index": 2, "figma_access_token": "figd"}

    data = json.loads(JsonFormatter().format(record))

    assert data["message"] == "critique.parse_failed"
    assert data["level"] == "WARNING"
    assert data["frame_index"] == 2
    assert data["figma_access_token"] == "[REDACTED]"
