import os

import aws_cdk as cdk
import boto3


def resolve_environment() -> cdk.Environment:
    # CDK CLI variables first, then the caller's boto3 session
    account = os.getenv("CDK_DEFAULT_ACCOUNT")
    region = os.getenv("CDK_DEFAULT_REGION")

    if not region:
        region = boto3.session.Session().region_name
    if not region:
        raise ValueError("AWS region not set, configure CDK_DEFAULT_REGION or an AWS profile region")

    if not account:
        sts_client = boto3.client("sts", region_name=region)
        account = sts_client.get_caller_identity()["Account"]

    return cdk.Environment(account=account, region=region)
