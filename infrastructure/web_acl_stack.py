"""WAFv2 web ACL for CloudFront, built from AWS managed rule groups."""

from aws_cdk import (
    CfnOutput,
    Fn,
    Stack,
    aws_logs as logs,
    aws_wafv2 as wafv2,
)
from constructs import Construct

# (rule name, managed rule group); priority follows list order
MANAGED_RULE_GROUPS = [
    ("AWS-BotControl", "AWSManagedRulesBotControlRuleSet"),
    ("AWS-AmazonIpReputationList", "AWSManagedRulesAmazonIpReputationList"),
    ("AWS-ManagedRulesAnonymousIpList", "AWSManagedRulesAnonymousIpList"),
    ("AWS-ManagedRulesCommonRuleSet", "AWSManagedRulesCommonRuleSet"),
    ("AWS-ManagedRulesKnownBadInputsRuleSet", "AWSManagedRulesKnownBadInputsRuleSet"),
    ("AWS-AdminProtection", "AWSManagedRulesAdminProtectionRuleSet"),
]


def managed_rule(name: str, group: str, priority: int, stack_name: str) -> wafv2.CfnWebACL.RuleProperty:
    return wafv2.CfnWebACL.RuleProperty(
        name=name,
        priority=priority,
        override_action=wafv2.CfnWebACL.OverrideActionProperty(none={}),
        statement=wafv2.CfnWebACL.StatementProperty(
            managed_rule_group_statement=wafv2.CfnWebACL.ManagedRuleGroupStatementProperty(
                name=group,
                vendor_name="AWS",
            ),
        ),
        visibility_config=wafv2.CfnWebACL.VisibilityConfigProperty(
            cloud_watch_metrics_enabled=True,
            metric_name=f"{group}Metrics-{stack_name}",
            sampled_requests_enabled=True,
        ),
    )


class WebAclStack(Stack):
    """CLOUDFRONT-scoped web ACL; deploy to us-east-1."""

    def __init__(self, scope: Construct, construct_id: str, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        web_acl = wafv2.CfnWebACL(
            self,
            "WebAcl",
            default_action=wafv2.CfnWebACL.DefaultActionProperty(allow={}),
            scope="CLOUDFRONT",
            visibility_config=wafv2.CfnWebACL.VisibilityConfigProperty(
                cloud_watch_metrics_enabled=True,
                metric_name=f"WebAclMetrics-{self.stack_name}",
                sampled_requests_enabled=True,
            ),
            rules=[
                managed_rule(name, group, priority, self.stack_name)
                for priority, (name, group) in enumerate(MANAGED_RULE_GROUPS, start=1)
            ],
        )
        self.web_acl = web_acl

        # WAF only accepts log groups named aws-waf-logs-*
        log_group = logs.LogGroup(
            self,
            "WebAclLogGroup",
            log_group_name=f"aws-waf-logs-{self.stack_name}",
            retention=logs.RetentionDays.SIX_MONTHS,
        )
        wafv2.CfnLoggingConfiguration(
            self,
            "WebAclLoggingConfiguration",
            log_destination_configs=[Fn.select(0, Fn.split(":*", log_group.log_group_arn))],
            resource_arn=web_acl.attr_arn,
        )

        CfnOutput(self, "WebAclArn", value=web_acl.attr_arn)
