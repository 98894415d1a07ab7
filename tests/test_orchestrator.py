"""
Tests for the analysis orchestrator.

The boto3 clients are replaced by the in-memory fakes from ``conftest``; the
tests check the fetch → infer → normalize sequence, error propagation and the
metrics recorded for each outcome.
"""

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError, ReadTimeoutError

from conftest import BUCKET, PNG_BYTES
from screening.errors import (
    InferenceTimeout,
    InferenceUnavailable,
    InvalidObjectReference,
    ObjectNotFound,
    ObjectStoreUnavailable,
    UnusableModelOutput,
)
from screening.gateways import ObjectRef, S3ObjectStore, StaticInference
from screening.orchestrator import ANALYSIS_PROMPT, AnalysisOrchestrator
from screening.verdict import VerdictLabel

KEY = "uploads/abc123-claim.png"


def metric_names(cloudwatch_client):
    return [metric["MetricName"] for _, data in cloudwatch_client.calls for metric in data]


def test_analyze_returns_normalized_verdict(orchestrator, s3_client, bedrock_client, cloudwatch_client):
    s3_client.put(KEY)
    verdict = orchestrator.analyze(ObjectRef(BUCKET, KEY))

    assert verdict.verdict is VerdictLabel.AI_GENERATED
    assert verdict.confidence == 0.92
    assert verdict.hints == ["edge halos"]

    (call,) = bedrock_client.calls
    image_block, text_block = call["messages"][0]["content"]
    assert image_block["image"] == {"format": "png", "source": {"bytes": PNG_BYTES}}
    assert text_block["text"] == ANALYSIS_PROMPT
    assert call["modelId"] == "test-model"

    assert metric_names(cloudwatch_client) == ["AnalysisCount", "Confidence"]
    namespace, data = cloudwatch_client.calls[0]
    assert namespace == "TestScreening"
    assert data[0]["Dimensions"] == [{"Name": "Verdict", "Value": "AI_GENERATED"}]


def test_prose_answer_with_defects_is_normalized(orchestrator, s3_client, bedrock_client):
    s3_client.put(KEY, content_type="image/jpeg")
    bedrock_client.answer = 'Here is my answer: {"verdict": "maybe", "confidence": 7, "hints": [" grainy "]}'
    verdict = orchestrator.analyze(ObjectRef(BUCKET, KEY))

    assert verdict.to_response() == {"verdict": "INCONCLUSIVE", "confidence": 1.0, "hints": ["grainy"]}
    assert bedrock_client.calls[0]["messages"][0]["content"][0]["image"]["format"] == "jpeg"


def test_answer_without_json_is_unusable(orchestrator, s3_client, bedrock_client, cloudwatch_client):
    s3_client.put(KEY)
    bedrock_client.answer = "I cannot analyze this image."
    with pytest.raises(UnusableModelOutput):
        orchestrator.analyze(ObjectRef(BUCKET, KEY))
    assert metric_names(cloudwatch_client) == ["AnalysisFailure"]
    assert cloudwatch_client.calls[0][1][0]["Dimensions"] == [{"Name": "ErrorCode", "Value": "unusable_model_output"}]


def test_missing_object_is_not_sent_to_the_model(orchestrator, bedrock_client):
    with pytest.raises(ObjectNotFound):
        orchestrator.analyze(ObjectRef(BUCKET, KEY))
    assert bedrock_client.calls == []


def test_object_store_failure(orchestrator, s3_client):
    s3_client.error = ClientError({"Error": {"Code": "AccessDenied", "Message": "Access Denied"}}, "GetObject")
    with pytest.raises(ObjectStoreUnavailable):
        orchestrator.analyze(ObjectRef(BUCKET, KEY))


def test_model_timeout(orchestrator, s3_client, bedrock_client):
    s3_client.put(KEY)
    bedrock_client.error = ReadTimeoutError(endpoint_url="https://bedrock-runtime.us-east-1.amazonaws.com")
    with pytest.raises(InferenceTimeout) as excinfo:
        orchestrator.analyze(ObjectRef(BUCKET, KEY))
    assert excinfo.value.retryable
    assert excinfo.value.status_code == 504


def test_model_unavailable(orchestrator, s3_client, bedrock_client, cloudwatch_client):
    s3_client.put(KEY)
    bedrock_client.error = EndpointConnectionError(endpoint_url="https://bedrock-runtime.us-east-1.amazonaws.com")
    with pytest.raises(InferenceUnavailable):
        orchestrator.analyze(ObjectRef(BUCKET, KEY))
    assert cloudwatch_client.calls[0][1][0]["Dimensions"][0]["Value"] == "inference_unavailable"


@pytest.mark.parametrize(
    "bucket, key",
    [
        ("someone-elses-bucket", KEY),
        (BUCKET, "private/report.png"),
        (BUCKET, "uploads/"),
        (BUCKET, "uploads/../private/report.png"),
    ],
)
def test_references_outside_the_upload_area_are_rejected(orchestrator, s3_client, bucket, key):
    s3_client.put(key, bucket=bucket)
    with pytest.raises(InvalidObjectReference) as excinfo:
        orchestrator.analyze(ObjectRef(bucket, key))
    assert excinfo.value.status_code == 400


def test_metrics_failure_does_not_fail_the_analysis(orchestrator, s3_client, cloudwatch_client):
    s3_client.put(KEY)
    cloudwatch_client.error = ClientError({"Error": {"Code": "Throttling", "Message": "Rate exceeded"}}, "PutMetricData")
    assert orchestrator.analyze(ObjectRef(BUCKET, KEY)).verdict is VerdictLabel.AI_GENERATED


def test_static_inference_without_metrics(s3_client):
    s3_client.put(KEY)
    orchestrator = AnalysisOrchestrator(S3ObjectStore(s3_client), StaticInference())
    verdict = orchestrator.analyze(ObjectRef(BUCKET, KEY))
    assert verdict.verdict is VerdictLabel.LIKELY_REAL
    assert verdict.hints == ["Lighting consistent.", "No texture repetition.", "No tampering found."]
