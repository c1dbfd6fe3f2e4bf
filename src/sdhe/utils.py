import os
from typing import Any, Optional

import boto3
from botocore.exceptions import ClientError

from sdhe.logging_config import create_logger

logger = create_logger(__name__)


def log_aws_initialization_error(error):
    """
    Troubleshooting output for AWS S3 initialization errors.

    :param error: The exception raised during AWS S3 initialization
    """
    logger.critical(f"AWS S3 Initialization Failed: {error}")
    logger.critical("Troubleshooting:")
    logger.critical("1. Verify AWS credentials")
    logger.critical("2. Check that AWS_ROLE_ARN, if set, can be assumed")
    logger.critical("3. Ensure the identity has s3:PutObject on the bucket")


def s3_init(region: Optional[str] = None) -> Any:
    """
    Initialize an S3 client.

    When AWS_ROLE_ARN is set the client uses temporary credentials from
    STS assume-role; otherwise the default credential chain is used.

    :param region: AWS region (default: AWS_DEFAULT_REGION or us-east-1)
    :return: boto3 S3 client
    :raises ClientError: If the role cannot be assumed
    """
    region = region or os.environ.get("AWS_DEFAULT_REGION", "us-east-1")
    role_arn = os.environ.get("AWS_ROLE_ARN")

    try:
        if not role_arn:
            logger.info(f"Using default AWS credential chain in {region}")
            return boto3.client("s3", region_name=region)

        sts_client = boto3.client("sts", region_name=region)
        credentials = sts_client.assume_role(
            RoleArn=role_arn, RoleSessionName="SdhePublishSession"
        )["Credentials"]

        session = boto3.Session(
            aws_access_key_id=credentials["AccessKeyId"],
            aws_secret_access_key=credentials["SecretAccessKey"],
            aws_session_token=credentials["SessionToken"],
            region_name=region,
        )
        logger.info("S3 client initialized with assumed role")
        return session.client("s3")

    except ClientError as e:
        log_aws_initialization_error(e)
        raise
