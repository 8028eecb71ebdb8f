"""
Unit tests for the StatusSnapshot model.
"""

import json

from completion_throttle.types.quota import QuotaInfo
from completion_throttle.types.status import (
    CredentialStatus,
    PolicyStatus,
    QueueStatus,
    RateLimitStatus,
    StatsSnapshot,
    StatusSnapshot,
)


def make_snapshot(**overrides) -> StatusSnapshot:
    fields = {
        "queue": QueueStatus(queued=1, running=2, done=3, failed=4),
        "rate_limit": RateLimitStatus(reservoir=55, requests_per_minute=60),
        "policy": PolicyStatus(
            max_retries=3, delay_schedule=(2.0, 4.0, 8.0), max_concurrent=5, min_spacing=0.2
        ),
        "stats": StatsSnapshot(total_requests=7, successful_requests=7, success_rate=100),
        "credentials": CredentialStatus(
            configured=True, masked_key="sk-...abcd", base_url="https://api.openai.com/v1"
        ),
    }
    fields.update(overrides)
    return StatusSnapshot(**fields)


class TestStatusSnapshot:
    def test_to_log_dict_is_json_serializable(self):
        snapshot = make_snapshot(quota=QuotaInfo(warnings=["WARNING: x"]))
        data = snapshot.to_log_dict()

        json.dumps(data)
        assert data["queue"] == {"queued": 1, "running": 2, "done": 3, "failed": 4}
        assert data["policy"]["delay_schedule"] == [2.0, 4.0, 8.0]
        assert data["quota"]["warnings"] == ["WARNING: x"]
        assert isinstance(data["timestamp"], str)

    def test_credentials_never_hold_raw_key(self):
        data = make_snapshot().to_log_dict()
        assert data["credentials"]["masked_key"] == "sk-...abcd"
        assert "api_key" not in data["credentials"]

    def test_quota_defaults_to_none(self):
        assert make_snapshot().quota is None
