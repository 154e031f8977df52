"""Unit tests for the error hierarchy and messages."""

from bucketfs.domain import errors


def test_everything_derives_from_root():
    for cls in (
        errors.ConfigurationError,
        errors.InvalidUriError,
        errors.StreamModeError,
        errors.PathNotFoundError,
        errors.DirectoryNotEmpty,
        errors.SeekLimitExceeded,
        errors.UploadFailedError,
        errors.UploadNotConfirmedError,
        errors.CacheStoreError,
        errors.PartialFailureError,
        errors.RefreshFailedError,
    ):
        assert issubclass(cls, errors.BucketFSError)


def test_path_errors_carry_uri():
    err = errors.DirectoryNotEmpty("s3://media/a")
    assert err.uri == "s3://media/a"
    assert str(err) == "Directory not empty: s3://media/a"


def test_upload_not_confirmed_mentions_possible_remote_object():
    err = errors.UploadNotConfirmedError("s3://media/a.png", 5)
    assert err.attempts == 5
    assert "may exist remotely" in str(err)


def test_refresh_failed_keeps_cause():
    cause = RuntimeError("boom")
    err = errors.RefreshFailedError("s3://media", cause)
    assert err.cause is cause
    assert "boom" in str(err)


def test_seek_limit_exceeded():
    err = errors.SeekLimitExceeded(10, 5)
    assert (err.target, err.limit) == (10, 5)
