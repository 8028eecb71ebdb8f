# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Process-wide request statistics.

Stats has a single owner, the RequestManager, and lives for the process
lifetime. It is reset in place by the daily maintenance job.
"""

from dataclasses import asdict, dataclass, fields
from datetime import datetime
from typing import Any


@dataclass
class Stats:
    """Running request counters."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    retried_requests: int = 0
    rate_limit_hits: int = 0
    quota_warnings: int = 0
    average_response_time: float = 0.0
    """Milliseconds, see record_response_time."""
    last_request_time: datetime | None = None

    @property
    def success_rate(self) -> int:
        """Successful requests as a rounded percentage of all requests."""
        if self.total_requests == 0:
            return 0
        return round(self.successful_requests / self.total_requests * 100)

    def record_response_time(self, elapsed_ms: float) -> None:
        """
        Fold a sample into the two-term running average.

        This is ``(previous + sample) / 2``, not a true mean: each new sample
        carries half the weight and early samples decay quickly.
        """
        self.average_response_time = (self.average_response_time + elapsed_ms) / 2

    def reset(self) -> None:
        """Zero every counter."""
        for f in fields(self):
            setattr(self, f.name, f.default)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["success_rate"] = self.success_rate
        return data


__all__ = ["Stats"]
