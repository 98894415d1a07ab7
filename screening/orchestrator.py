"""
Analysis orchestration: fetch the uploaded image, ask the model, normalize.

One call to :meth:`AnalysisOrchestrator.analyze` performs at most one object
fetch and one inference call, in that order.  There are no retries and no
caching; a failure surfaces as an :class:`~screening.errors.AnalysisError`
and the caller decides whether to retry.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from screening.errors import (
    InvalidObjectReference,
    NormalizationError,
    ScreeningError,
    UnusableModelOutput,
)
from screening.gateways import ObjectRef, StoredObject
from screening.metrics import NullMetrics
from screening.verdict import MAX_HINTS, Verdict, normalize

logger = logging.getLogger(__name__)

ANALYSIS_PROMPT = f"""You are an insurance claims image screener.
Decide whether the attached image was generated or manipulated by AI, or is likely a real photograph.
Return ONLY valid JSON (no markdown, no extra text) in this schema:
{{
  "verdict": "AI_GENERATED" | "LIKELY_REAL" | "INCONCLUSIVE",
  "confidence": number between 0 and 1,
  "hints": ["short observation", ...]
}}
Give at most {MAX_HINTS} hints, each a short phrase describing visual evidence.
If the image cannot be judged, answer "INCONCLUSIVE".
"""


class ObjectStore(Protocol):
    def fetch(self, ref: ObjectRef) -> StoredObject: ...


class InferenceGateway(Protocol):
    def infer(self, image: bytes, mime_type: str, prompt: str) -> str: ...


class MetricsEmitter(Protocol):
    def record_verdict(self, verdict: Verdict) -> None: ...

    def record_failure(self, code: str) -> None: ...


class AnalysisOrchestrator:
    """Runs the fetch → infer → normalize sequence for one uploaded image."""

    def __init__(
        self,
        store: ObjectStore,
        inference: InferenceGateway,
        metrics: Optional[MetricsEmitter] = None,
        prompt: str = ANALYSIS_PROMPT,
        bucket: Optional[str] = None,
        prefix: str = "",
    ) -> None:
        self.store = store
        self.inference = inference
        self.metrics = metrics or NullMetrics()
        self.prompt = prompt
        self.bucket = bucket
        self.prefix = prefix

    def check_ref(self, ref: ObjectRef) -> None:
        """Reject references outside the configured upload area."""
        if self.bucket is not None and ref.bucket != self.bucket:
            raise InvalidObjectReference(f"Unknown bucket {ref.bucket!r}.")
        if not ref.key.startswith(self.prefix) or ref.key == self.prefix or ".." in ref.key.split("/"):
            raise InvalidObjectReference(f"Key {ref.key!r} is not an upload.")

    def analyze(self, ref: ObjectRef) -> Verdict:
        """Analyze the image at ``ref`` and return its normalized verdict."""
        try:
            verdict = self._analyze(ref)
        except ScreeningError as exc:
            logger.warning("Analysis of %s/%s failed: %s (%s)", ref.bucket, ref.key, exc.code, exc.message)
            self.metrics.record_failure(exc.code)
            raise
        self.metrics.record_verdict(verdict)
        return verdict

    def _analyze(self, ref: ObjectRef) -> Verdict:
        self.check_ref(ref)
        stored = self.store.fetch(ref)
        logger.info("Fetched %s/%s (%d bytes, %s)", ref.bucket, ref.key, len(stored.data), stored.content_type)
        raw_text = self.inference.infer(stored.data, stored.content_type, self.prompt)
        try:
            verdict = normalize(raw_text)
        except NormalizationError as exc:
            logger.error("Unusable model output for %s: %s; raw=%r", ref.key, exc, raw_text[:500])
            raise UnusableModelOutput() from exc
        for note in verdict.notes:
            logger.warning("Normalized model output for %s: %s", ref.key, note)
        logger.info("Verdict for %s: %s (%.2f)", ref.key, verdict.verdict.value, verdict.confidence)
        return verdict
