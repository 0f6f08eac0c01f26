#!/usr/bin/env python3
"""Amplify CloudFront Add-on - CDK Application.

Puts an Amplify hosted branch behind infrastructure we control:
- CloudFront distribution (optionally protected by a WAFv2 web ACL)
- EventBridge rule + Lambda invalidating the cache after each deployment

Usage:
    cdk deploy -c app_id=d123abc -c branch_name=main [-c web_acl_arn=arn:...]
    cdk deploy WebAclStack -c app_id=... -c branch_name=... -c deploy_web_acl=true
"""

import aws_cdk as cdk
from infrastructure.amplify_distribution_stack import AmplifyDistributionStack
from infrastructure.context import DeploymentContext
from infrastructure.web_acl_stack import WebAclStack

app = cdk.App()
context = DeploymentContext.from_node(app.node)

# CLOUDFRONT-scoped web ACLs can only live in us-east-1
if context.deploy_web_acl:
    WebAclStack(
        app,
        "WebAclStack",
        env=cdk.Environment(account=context.account, region="us-east-1"),
        description="WAF web ACL for the Amplify CloudFront distribution",
    )

AmplifyDistributionStack(
    app,
    f"AmplifyDistributionStack-{context.stack_suffix}",
    app_id=context.app_id,
    branch_name=context.branch_name,
    web_acl_arn=context.web_acl_arn,
    env=cdk.Environment(account=context.account, region=context.region or "us-east-1"),
    description=f"CloudFront distribution for Amplify branch {context.branch_name}",
)

app.synth()
