"""boto3 client construction for S3 and EC2."""

from __future__ import annotations

import boto3
from botocore.config import Config

from raw2ami.config import AwsConfig
from raw2ami.utils.logging import get_logger

logger = get_logger(__name__)

CONNECT_TIMEOUT = 60


def client_config(timeout: float, max_pool_connections: int = 10) -> Config:
    """Single attempt per call, read timeout bounded by the publish deadline."""
    return Config(
        retries={"total_max_attempts": 1, "mode": "standard"},
        connect_timeout=min(CONNECT_TIMEOUT, timeout),
        read_timeout=timeout,
        max_pool_connections=max_pool_connections,
    )


def build_clients(aws: AwsConfig, timeout: float, max_workers: int = 1):
    """Return ``(s3, ec2)`` clients sharing one boto3 session."""
    session = boto3.session.Session(profile_name=aws.profile, region_name=aws.region)
    config = client_config(timeout, max_pool_connections=max(10, max_workers))

    s3 = session.client("s3", endpoint_url=aws.s3_endpoint_url, config=config)
    ec2 = session.client("ec2", config=config)

    logger.info(f"Initialized AWS clients (region: {session.region_name or 'default'})")
    return s3, ec2
