"""
AWS S3 Export Module

Uploads the Parquet exports of the gold layer reports to an S3 bucket, with
retries on transient AWS errors.
"""

import os
import time
import logging
from typing import Dict, Iterable, Optional

import boto3
from botocore.exceptions import ClientError, EndpointConnectionError

logger = logging.getLogger("layoff_pipeline.S3Export")

# Default configuration
DEFAULT_BUCKET = "layoff-trend-reports"
DEFAULT_REGION = "us-east-1"
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_DELAY = 2  # seconds


class S3Exporter:
    """Uploads local report files to S3."""

    def __init__(
        self,
        bucket: str = DEFAULT_BUCKET,
        region: str = DEFAULT_REGION,
        retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        prefix: str = "",
        client=None
    ):
        """
        Initialize the exporter.

        Args:
            bucket: Target S3 bucket name
            region: AWS region to use
            retry_attempts: Number of attempts per upload
            retry_delay: Seconds to wait between attempts (doubled each retry)
            prefix: Key prefix prepended to every uploaded file name
            client: Pre-built boto3 S3 client (default: built from the environment)
        """
        self.bucket = bucket
        self.region = region
        self.retry_attempts = max(1, retry_attempts)
        self.retry_delay = retry_delay
        self.prefix = prefix.strip("/")
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client(
                's3',
                aws_access_key_id=os.environ.get("AWS_ACCESS_KEY_ID"),
                aws_secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY"),
                region_name=self.region
            )
        return self._client

    def key_for(self, local_file: str) -> str:
        name = os.path.basename(local_file)
        return f"{self.prefix}/{name}" if self.prefix else name

    def upload_file(self, local_file: str, key: Optional[str] = None) -> bool:
        """
        Upload one file, retrying on AWS client and connection errors.

        Returns:
            True if the upload succeeded, False otherwise
        """
        if not os.path.exists(local_file):
            logger.error(f"File to upload does not exist: {local_file}")
            return False

        s3_key = key or self.key_for(local_file)
        delay = self.retry_delay
        for attempt in range(1, self.retry_attempts + 1):
            try:
                self.client.upload_file(local_file, self.bucket, s3_key)
                logger.info(f"Uploaded {local_file} to s3://{self.bucket}/{s3_key}")
                return True
            except (ClientError, EndpointConnectionError) as e:
                logger.warning(
                    f"Upload attempt {attempt}/{self.retry_attempts} of {local_file} "
                    f"to s3://{self.bucket}/{s3_key} failed: {e}"
                )
                if attempt < self.retry_attempts:
                    time.sleep(delay)
                    delay *= 2

        logger.error(f"Failed to upload {local_file} to s3://{self.bucket}/{s3_key}")
        return False

    def upload_many(self, files: Iterable[str]) -> Dict[str, bool]:
        results = {}
        for local_file in files:
            results[local_file] = self.upload_file(local_file)
        uploaded = sum(1 for ok in results.values() if ok)
        logger.info(f"Uploaded {uploaded} of {len(results)} files to s3://{self.bucket}")
        return results
