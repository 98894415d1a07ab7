"""
Shared fixtures: in-memory stand-ins for the boto3 clients.

The fakes implement only the client methods the gateways call, with the same
keyword arguments and response shapes as boto3.
"""

import io
import os

# Settings are read from the environment on first use
os.environ.setdefault("UPLOAD_BUCKET", "test-uploads")
os.environ.setdefault("ALLOWED_ORIGIN", "https://screening.example.com")
os.environ.setdefault("METRICS_ENABLED", "false")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")

import pytest
from botocore.exceptions import ClientError

from screening.gateways import BedrockInference, S3ObjectStore
from screening.orchestrator import AnalysisOrchestrator
from screening.metrics import CloudWatchMetrics

BUCKET = "test-uploads"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
GOOD_ANSWER = '{"verdict": "AI_GENERATED", "confidence": 0.92, "hints": ["edge halos"]}'


class FakeS3Client:
    def __init__(self):
        self.objects = {}
        self.presign_calls = []
        self.error = None

    def put(self, key, data=PNG_BYTES, content_type="image/png", bucket=BUCKET):
        self.objects[(bucket, key)] = (data, content_type)

    def get_object(self, Bucket, Key):
        if self.error is not None:
            raise self.error
        if (Bucket, Key) not in self.objects:
            raise ClientError({"Error": {"Code": "NoSuchKey", "Message": "The specified key does not exist."}}, "GetObject")
        data, content_type = self.objects[(Bucket, Key)]
        return {"Body": io.BytesIO(data), "ContentType": content_type, "ContentLength": len(data)}

    def generate_presigned_url(self, ClientMethod, Params, ExpiresIn):
        self.presign_calls.append((ClientMethod, Params, ExpiresIn))
        return f"https://{Params['Bucket']}.s3.amazonaws.com/{Params['Key']}?X-Amz-Expires={ExpiresIn}"


class FakeBedrockClient:
    def __init__(self, answer=GOOD_ANSWER):
        self.answer = answer
        self.error = None
        self.calls = []

    def converse(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return {
            "output": {"message": {"role": "assistant", "content": [{"text": self.answer}]}},
            "stopReason": "end_turn",
        }


class FakeCloudWatchClient:
    def __init__(self):
        self.calls = []
        self.error = None

    def put_metric_data(self, Namespace, MetricData):
        if self.error is not None:
            raise self.error
        self.calls.append((Namespace, MetricData))


@pytest.fixture
def s3_client():
    return FakeS3Client()


@pytest.fixture
def bedrock_client():
    return FakeBedrockClient()


@pytest.fixture
def cloudwatch_client():
    return FakeCloudWatchClient()


@pytest.fixture
def orchestrator(s3_client, bedrock_client, cloudwatch_client):
    return AnalysisOrchestrator(
        S3ObjectStore(s3_client),
        BedrockInference(bedrock_client, "test-model"),
        metrics=CloudWatchMetrics(cloudwatch_client, "TestScreening"),
        bucket=BUCKET,
        prefix="uploads/",
    )
