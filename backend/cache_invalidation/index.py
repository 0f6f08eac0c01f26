"""EventBridge trigger: invalidate CloudFront cache when an Amplify branch deploys."""

import functools
import json
import logging
import os
import uuid

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger()
logger.setLevel(logging.INFO)

AMPLIFY_SOURCE = "aws.amplify"
DEPLOYMENT_STATUS_CHANGE = "Amplify Deployment Status Change"
JOB_SUCCEEDED = "SUCCEED"

DEFAULT_PATHS = ("/*",)

# Rejections that no amount of redelivery will fix
CONFIGURATION_ERROR_CODES = {
    "AccessDenied",
    "InconsistentQuantities",
    "InvalidArgument",
    "NoSuchDistribution",
}

ACCEPTED = "Accepted"
DROPPED = "Dropped"

FATAL_CONFIGURATION = "Fatal-Configuration"
RETRYABLE_TRANSIENT = "Retryable-Transient"


class InvalidationError(Exception):
    category = None


class ConfigurationError(InvalidationError):
    category = FATAL_CONFIGURATION


class TransientInvalidationError(InvalidationError):
    category = RETRYABLE_TRANSIENT


class Subscription:
    """Deployment events this function acts on.

    ``matches`` decides what is handled; ``event_pattern`` renders the same
    criteria for the EventBridge rule, which only cuts down invocations.
    """

    def __init__(self, app_id=None, branch_name=None):
        self.app_id = app_id
        self.branch_name = branch_name

    def event_pattern(self):
        detail = {"jobStatus": [JOB_SUCCEEDED]}
        if self.app_id is not None:
            detail["appId"] = [self.app_id]
        if self.branch_name is not None:
            detail["branchName"] = [self.branch_name]
        return {
            "source": [AMPLIFY_SOURCE],
            "detail-type": [DEPLOYMENT_STATUS_CHANGE],
            "detail": detail,
        }

    def matches(self, event):
        """Return None if the event matches, else the reason it does not."""
        if not isinstance(event, dict):
            return "event is not an object"
        if event.get("source") != AMPLIFY_SOURCE:
            return f"source {event.get('source')!r}"
        if event.get("detail-type") != DEPLOYMENT_STATUS_CHANGE:
            return f"detail-type {event.get('detail-type')!r}"
        detail = event.get("detail")
        if not isinstance(detail, dict):
            return "detail is not an object"
        if self.app_id is not None and detail.get("appId") != self.app_id:
            return f"appId {detail.get('appId')!r}"
        if self.branch_name is not None and detail.get("branchName") != self.branch_name:
            return f"branchName {detail.get('branchName')!r}"
        if detail.get("jobStatus") != JOB_SUCCEEDED:
            return f"jobStatus {detail.get('jobStatus')!r}"
        return None


class InvalidatorConfig:
    def __init__(self, distribution_id, app_id=None, branch_name=None):
        self.distribution_id = distribution_id
        self.app_id = app_id
        self.branch_name = branch_name

    @classmethod
    def from_environ(cls, environ=None):
        environ = os.environ if environ is None else environ
        return cls(
            distribution_id=environ.get("DISTRIBUTION_ID", ""),
            app_id=environ.get("APP_ID") or None,
            branch_name=environ.get("BRANCH_NAME") or None,
        )

    def validate(self):
        if not isinstance(self.distribution_id, str) or not self.distribution_id.strip():
            raise ConfigurationError("DISTRIBUTION_ID is not configured")


class InvocationResult:
    def __init__(self, status, invalidation_id=None, reason=None):
        self.status = status
        self.invalidation_id = invalidation_id
        self.reason = reason

    @classmethod
    def accepted(cls, invalidation_id):
        return cls(ACCEPTED, invalidation_id=invalidation_id)

    @classmethod
    def dropped(cls, reason):
        return cls(DROPPED, reason=reason)

    def as_dict(self):
        result = {"status": self.status}
        if self.invalidation_id is not None:
            result["invalidationId"] = self.invalidation_id
        if self.reason is not None:
            result["reason"] = self.reason
        return result

    def __repr__(self):
        return f"InvocationResult({self.as_dict()!r})"


class CacheInvalidator:
    """Issues one CloudFront invalidation per successful deployment event.

    Stateless between events and deliberately not deduplicating: a
    redelivered event produces another invalidation. Failures are raised so
    the Lambda invocation fails and EventBridge can redeliver it.
    """

    def __init__(self, config, client, paths=DEFAULT_PATHS):
        if not paths or any(not path.startswith("/") for path in paths):
            raise ValueError(f"Invalidation paths must start with '/': {paths!r}")
        self.config = config
        self.client = client
        self.paths = list(paths)
        self.subscription = Subscription(config.app_id, config.branch_name)

    def handle(self, event, request_id=None):
        fields = _event_fields(event)
        fields["requestId"] = request_id

        reason = self.subscription.matches(event)
        if reason is not None:
            _log(logging.INFO, "dropped", reason=reason, **fields)
            return InvocationResult.dropped(reason)

        fields["distributionId"] = self.config.distribution_id
        try:
            invalidation_id = self._invalidate()
        except InvalidationError as e:
            _log(logging.ERROR, "failed", category=e.category, error=str(e), **fields)
            raise

        _log(logging.INFO, "accepted", invalidationId=invalidation_id, **fields)
        return InvocationResult.accepted(invalidation_id)

    def _invalidate(self):
        self.config.validate()
        try:
            resp = self.client.create_invalidation(
                DistributionId=self.config.distribution_id,
                InvalidationBatch={
                    "Paths": {"Quantity": len(self.paths), "Items": self.paths},
                    "CallerReference": str(uuid.uuid4()),
                },
            )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in CONFIGURATION_ERROR_CODES:
                raise ConfigurationError(f"{code}: {e}") from e
            raise TransientInvalidationError(f"{code or 'ClientError'}: {e}") from e
        except BotoCoreError as e:
            raise TransientInvalidationError(f"{type(e).__name__}: {e}") from e
        return resp["Invalidation"]["Id"]


@functools.lru_cache()
def get_client():
    # EventBridge owns redelivery, so the SDK makes a single attempt
    return boto3.client(
        "cloudfront",
        config=Config(retries={"max_attempts": 1, "mode": "standard"}),
    )


def handler(event, context):
    """Invalidate the whole distribution after a successful Amplify deployment."""
    config = InvalidatorConfig.from_environ()
    invalidator = CacheInvalidator(config, get_client())
    request_id = getattr(context, "aws_request_id", None)
    return invalidator.handle(event, request_id=request_id).as_dict()


def _event_fields(event):
    if not isinstance(event, dict):
        return {}
    detail = event.get("detail")
    detail = detail if isinstance(detail, dict) else {}
    return {
        "eventId": event.get("id"),
        "appId": detail.get("appId"),
        "branchName": detail.get("branchName"),
        "jobId": detail.get("jobId"),
        "jobStatus": detail.get("jobStatus"),
    }


def _log(level, outcome, **fields):
    logger.log(level, json.dumps({"outcome": outcome, **fields}, default=str))
