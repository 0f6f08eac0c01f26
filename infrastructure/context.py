"""CDK context values that select the Amplify app and branch to front."""

import re

REQUIRED_KEYS = ("app_id", "branch_name")


class DeploymentContext:
    def __init__(
        self,
        app_id: str,
        branch_name: str,
        web_acl_arn: str = None,
        deploy_web_acl: bool = False,
        account: str = None,
        region: str = None,
    ) -> None:
        self.app_id = app_id
        self.branch_name = branch_name
        self.web_acl_arn = web_acl_arn
        self.deploy_web_acl = deploy_web_acl
        self.account = account
        self.region = region

    @classmethod
    def from_node(cls, node) -> "DeploymentContext":
        """Read `-c key=value` context from a construct node."""
        missing = [key for key in REQUIRED_KEYS if not node.try_get_context(key)]
        if missing:
            raise ValueError(
                "Missing CDK context: " + ", ".join(missing)
                + " (pass e.g. -c app_id=d123abc -c branch_name=main)"
            )
        return cls(
            app_id=node.try_get_context("app_id"),
            branch_name=node.try_get_context("branch_name"),
            web_acl_arn=node.try_get_context("web_acl_arn") or None,
            deploy_web_acl=_as_bool(node.try_get_context("deploy_web_acl")),
            account=node.try_get_context("account"),
            region=node.try_get_context("region"),
        )

    @property
    def stack_suffix(self) -> str:
        # Stack names allow only letters, digits and hyphens
        return re.sub(r"[^A-Za-z0-9-]", "-", self.branch_name)


def _as_bool(value) -> bool:
    # Context passed on the command line arrives as a string
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)
