"""
Analysis metrics published to Amazon CloudWatch.

Metrics are a side channel: a failure to publish them is logged and never
turns a successful analysis into an error.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from botocore.exceptions import BotoCoreError, ClientError

from screening.verdict import Verdict

logger = logging.getLogger(__name__)


class NullMetrics:
    """Discards every metric."""

    def record_verdict(self, verdict: Verdict) -> None:
        pass

    def record_failure(self, code: str) -> None:
        pass


class CloudWatchMetrics:
    """Publishes verdict and failure counters with ``PutMetricData``."""

    def __init__(self, client: Any, namespace: str) -> None:
        self.client = client
        self.namespace = namespace

    def record_verdict(self, verdict: Verdict) -> None:
        dimensions = [{"Name": "Verdict", "Value": verdict.verdict.value}]
        self._put(
            [
                {"MetricName": "AnalysisCount", "Dimensions": dimensions, "Value": 1, "Unit": "Count"},
                {"MetricName": "Confidence", "Dimensions": dimensions, "Value": verdict.confidence, "Unit": "None"},
            ]
        )

    def record_failure(self, code: str) -> None:
        self._put(
            [
                {
                    "MetricName": "AnalysisFailure",
                    "Dimensions": [{"Name": "ErrorCode", "Value": code}],
                    "Value": 1,
                    "Unit": "Count",
                }
            ]
        )

    def _put(self, metric_data: List[Dict[str, Any]]) -> None:
        try:
            self.client.put_metric_data(Namespace=self.namespace, MetricData=metric_data)
        except (BotoCoreError, ClientError) as exc:
            logger.warning("Could not publish metrics to %s: %s", self.namespace, exc)
