from scorm_api.s3.read_objects import fetch_s3_folder_prefixes
from scorm_api.s3.write_objects import upload_s3_object
from tests.consts import TEST_BUCKET_NAME


def test_folder_prefixes_after_a_page_of_loose_files(mocked_aws):
    for i in range(1005):
        upload_s3_object(TEST_BUCKET_NAME, f"pkgs/a-{i:04d}.zip", b"x", s3_client=mocked_aws)
    upload_s3_object(TEST_BUCKET_NAME, "pkgs/zcourse/index.html", b"x", s3_client=mocked_aws)

    prefixes = fetch_s3_folder_prefixes(TEST_BUCKET_NAME, "pkgs/", max_folders=10, s3_client=mocked_aws)

    assert prefixes == ["pkgs/zcourse/"]


def test_folder_prefixes_stop_at_max_folders(mocked_aws):
    for name in ["one", "two", "three"]:
        upload_s3_object(TEST_BUCKET_NAME, f"pkgs/{name}/index.html", b"x", s3_client=mocked_aws)

    prefixes = fetch_s3_folder_prefixes(TEST_BUCKET_NAME, "pkgs/", max_folders=2, s3_client=mocked_aws)

    assert prefixes == ["pkgs/one/", "pkgs/three/"]
