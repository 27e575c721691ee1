"""Functions for deleting objects from an S3 bucket--the "D" in CRUD."""

import logging
from typing import TYPE_CHECKING, Optional

import boto3

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client

logger = logging.getLogger(__name__)

# delete_objects accepts at most this many keys per call
DELETE_BATCH_SIZE = 1000


def delete_s3_objects_by_prefix(
    bucket_name: str,
    prefix: str,
    s3_client: Optional["S3Client"] = None,
) -> int:
    """
    Delete every object whose key starts with ``prefix``.

    Deleting a prefix with no objects is a no-op.

    :param bucket_name: The name of the S3 bucket.
    :param prefix: Key prefix to delete, e.g. "scorm_files/course-101/".
    :param s3_client: An optional boto3 S3 client. If not provided, one will be created.

    :return: Number of objects deleted.
    """
    s3_client = s3_client or boto3.client("s3")
    paginator = s3_client.get_paginator("list_objects_v2")

    deleted = 0
    for page in paginator.paginate(Bucket=bucket_name, Prefix=prefix):
        keys = [{"Key": obj["Key"]} for obj in page.get("Contents", [])]
        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[start:start + DELETE_BATCH_SIZE]
            response = s3_client.delete_objects(
                Bucket=bucket_name,
                Delete={"Objects": batch, "Quiet": True},
            )
            errors = response.get("Errors", [])
            if errors:
                first = errors[0]
                raise RuntimeError(
                    f"Failed to delete {len(errors)} object(s), e.g. {first.get('Key')}: {first.get('Message')}"
                )
            deleted += len(batch)

    logger.info(f"Deleted {deleted} object(s) under s3://{bucket_name}/{prefix}")
    return deleted
