"""Functions for reading objects from an S3 bucket--the "R" in CRUD."""

from typing import TYPE_CHECKING, List, Optional

import boto3

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client


def fetch_s3_folder_prefixes(
    bucket_name: str,
    prefix: str,
    max_folders: int,
    s3_client: Optional["S3Client"] = None,
) -> List[str]:
    """
    List the immediate "sub-directories" below a prefix.

    S3 has no folders; a folder is a common prefix of keys when listing with
    a ``/`` delimiter. Loose objects directly below ``prefix`` share the same
    result pages, so pages are read until ``max_folders`` prefixes are found
    or the listing ends.

    :param bucket_name: The name of the S3 bucket.
    :param prefix: The prefix to list below, e.g. "scorm_files/".
    :param max_folders: Maximum number of prefixes to return.
    :param s3_client: An optional boto3 S3 client. If not provided, one will be created.

    :return: Common prefixes in S3 listing order, each ending with "/".
    """
    s3_client = s3_client or boto3.client("s3")
    paginator = s3_client.get_paginator("list_objects_v2")

    folder_prefixes: List[str] = []
    for page in paginator.paginate(Bucket=bucket_name, Prefix=prefix, Delimiter="/"):
        for entry in page.get("CommonPrefixes", []):
            folder_prefixes.append(entry["Prefix"])
            if len(folder_prefixes) >= max_folders:
                return folder_prefixes
    return folder_prefixes
