"""CloudFront distribution in front of an Amplify branch, with deploy-time cache invalidation."""

import os
from urllib.parse import quote

from aws_cdk import (
    Aws,
    CfnOutput,
    Duration,
    Stack,
    aws_cloudfront as cloudfront,
    aws_cloudfront_origins as origins,
    aws_events as events,
    aws_events_targets as targets,
    aws_iam as iam,
    aws_lambda as _lambda,
    aws_logs as logs,
    aws_sqs as sqs,
    custom_resources as cr,
)
from constructs import Construct

from backend.cache_invalidation.index import Subscription

CACHE_INVALIDATION_ASSET = os.path.join(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
    "backend",
    "cache_invalidation",
)

# EventBridge redeliveries after the first failed invocation
INVALIDATION_RETRY_ATTEMPTS = 2


def format_branch_host(branch_name: str) -> str:
    """Amplify serves `feature/x` as the `feature-x` subdomain."""
    return branch_name.replace("/", "-")


def amplify_origin_domain(app_id: str, branch_name: str) -> str:
    return f"{format_branch_host(branch_name)}.{app_id}.amplifyapp.com"


def amplify_branch_arn(app_id: str, branch_name: str) -> str:
    return (
        f"arn:{Aws.PARTITION}:amplify:{Aws.REGION}:{Aws.ACCOUNT_ID}"
        f":apps/{app_id}/branches/{quote(branch_name, safe='')}"
    )


class AmplifyDistributionStack(Stack):
    """Amplify branch -> CloudFront (+ optional WAF) -> invalidate on deploy."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        app_id: str,
        branch_name: str,
        web_acl_arn: str = None,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        if not app_id or not branch_name:
            raise ValueError("app_id and branch_name are required")

        # ----- Amplify branch: CloudFront becomes the public entry point -----
        branch_update = cr.AwsSdkCall(
            service="Amplify",
            action="updateBranch",
            parameters={
                "appId": app_id,
                "branchName": branch_name,
                "enableBasicAuth": False,
            },
            physical_resource_id=cr.PhysicalResourceId.of("amplify-branch-update"),
        )
        cr.AwsCustomResource(
            self,
            "AmplifyBranchUpdate",
            policy=cr.AwsCustomResourcePolicy.from_sdk_calls(
                resources=[amplify_branch_arn(app_id, branch_name)],
            ),
            on_create=branch_update,
            on_update=branch_update,
        )

        # ----- CloudFront -----
        distribution = cloudfront.Distribution(
            self,
            "Distribution",
            default_behavior=cloudfront.BehaviorOptions(
                origin=origins.HttpOrigin(amplify_origin_domain(app_id, branch_name)),
                viewer_protocol_policy=cloudfront.ViewerProtocolPolicy.REDIRECT_TO_HTTPS,
            ),
            price_class=cloudfront.PriceClass.PRICE_CLASS_ALL,
            web_acl_id=web_acl_arn,
        )
        self.distribution = distribution

        # ----- IAM Role for the invalidation Lambda -----
        invalidation_role = iam.Role(
            self,
            "CacheInvalidationRole",
            description="Role used by the cache invalidation function",
            assumed_by=iam.ServicePrincipal("lambda.amazonaws.com"),
            managed_policies=[
                iam.ManagedPolicy.from_aws_managed_policy_name(
                    "service-role/AWSLambdaBasicExecutionRole"
                ),
            ],
        )
        invalidation_role.add_managed_policy(
            iam.ManagedPolicy(
                self,
                "CacheInvalidationPolicy",
                statements=[
                    iam.PolicyStatement(
                        actions=["cloudfront:CreateInvalidation"],
                        resources=[
                            f"arn:{Aws.PARTITION}:cloudfront::{Aws.ACCOUNT_ID}"
                            f":distribution/{distribution.distribution_id}"
                        ],
                    ),
                ],
            )
        )

        # ----- Lambda: deployment event -> CloudFront invalidation -----
        invalidation_function = _lambda.Function(
            self,
            "CacheInvalidationFunction",
            description="Creates a CloudFront invalidation after each Amplify deployment",
            runtime=_lambda.Runtime.PYTHON_3_12,
            handler="index.handler",
            code=_lambda.Code.from_asset(CACHE_INVALIDATION_ASSET),
            timeout=Duration.seconds(30),
            memory_size=128,
            role=invalidation_role,
            tracing=_lambda.Tracing.ACTIVE,
            log_group=logs.LogGroup(
                self,
                "CacheInvalidationLogs",
                retention=logs.RetentionDays.SIX_MONTHS,
            ),
            environment={
                "DISTRIBUTION_ID": distribution.distribution_id,
                "APP_ID": app_id,
                "BRANCH_NAME": branch_name,
            },
        )
        self.invalidation_function = invalidation_function

        # ----- EventBridge: Amplify "SUCCEED" -> Lambda, failures -> DLQ -----
        dead_letter_queue = sqs.Queue(
            self,
            "CacheInvalidationDeadLetterQueue",
            retention_period=Duration.days(14),
            enforce_ssl=True,
        )
        self.dead_letter_queue = dead_letter_queue

        pattern = Subscription(app_id, branch_name).event_pattern()
        events.Rule(
            self,
            "InvokeCacheInvalidation",
            description="Creates a CloudFront invalidation when the Amplify branch is redeployed",
            event_pattern=events.EventPattern(
                source=pattern["source"],
                detail_type=pattern["detail-type"],
                detail=pattern["detail"],
            ),
            targets=[
                targets.LambdaFunction(
                    invalidation_function,
                    retry_attempts=INVALIDATION_RETRY_ATTEMPTS,
                    dead_letter_queue=dead_letter_queue,
                ),
            ],
        )

        # ----- Outputs -----
        CfnOutput(self, "DistributionDomainName", value=distribution.distribution_domain_name)
        CfnOutput(self, "DistributionId", value=distribution.distribution_id)
