import datetime

import boto3
import pytest
from botocore.config import Config
from botocore.stub import Stubber

DISTRIBUTION_ID = "E1ABCDEF2GHIJ"
APP_ID = "d123abc"
BRANCH_NAME = "main"


def deployment_event(job_status="SUCCEED", app_id=APP_ID, branch_name=BRANCH_NAME, **overrides):
    event = {
        "version": "0",
        "id": "4a9a1f6e-2f0b-4c1b-9d8e-2b5c3a8e7d10",
        "source": "aws.amplify",
        "detail-type": "Amplify Deployment Status Change",
        "account": "123456789012",
        "region": "us-east-1",
        "resources": [f"arn:aws:amplify:us-east-1:123456789012:apps/{app_id}/branches/{branch_name}"],
        "detail": {
            "appId": app_id,
            "branchName": branch_name,
            "jobId": "42",
            "jobStatus": job_status,
        },
    }
    event.update(overrides)
    return event


def invalidation_response(invalidation_id="I2J0I21PCUYOIK", paths=("/*",)):
    return {
        "Location": f"https://cloudfront.amazonaws.com/2020-05-31/distribution/{DISTRIBUTION_ID}/invalidation/{invalidation_id}",
        "Invalidation": {
            "Id": invalidation_id,
            "Status": "InProgress",
            "CreateTime": datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc),
            "InvalidationBatch": {
                "Paths": {"Quantity": len(paths), "Items": list(paths)},
                "CallerReference": "test",
            },
        },
    }


class FakeCloudFront:
    """Records create_invalidation calls; raises queued errors first."""

    def __init__(self, errors=()):
        self.calls = []
        self.errors = list(errors)

    def create_invalidation(self, **kwargs):
        self.calls.append(kwargs)
        if self.errors:
            raise self.errors.pop(0)
        return invalidation_response(f"I{len(self.calls)}")


@pytest.fixture
def event():
    return deployment_event()


@pytest.fixture
def fake_cloudfront():
    return FakeCloudFront()


@pytest.fixture
def cloudfront_client():
    return boto3.client(
        "cloudfront",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
        config=Config(retries={"max_attempts": 1, "mode": "standard"}),
    )


@pytest.fixture
def stubber(cloudfront_client):
    with Stubber(cloudfront_client) as stub:
        yield stub
        stub.assert_no_pending_responses()
