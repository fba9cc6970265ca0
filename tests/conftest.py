from __future__ import annotations

import os
from pathlib import Path

import pytest
from dotenv import load_dotenv

from blobserver.adapters.storage.cloudstorage import CloudStorage
from blobserver.config import StorageConfig
from blobserver.core.blob import BlobRef
from blobserver.core.keys import Namespace
from blobserver.logging_utils import setup_test_logging
from tests.support.fake_gcs import FakeObjectClient

os.environ.setdefault("ENV", "test")

TEST_BUCKET = "camlistore-x-test"


@pytest.fixture(scope="session", autouse=True)
def load_env():
    load_dotenv(override=False)


@pytest.fixture(scope="session", autouse=True)
def configure_logging():
    setup_test_logging(file=Path("blobserver-logs") / "pytest.log")
    yield


@pytest.fixture
def fake_client() -> FakeObjectClient:
    return FakeObjectClient()


def make_storage(
    client: FakeObjectClient, bucket: str = TEST_BUCKET, **overrides
) -> CloudStorage:
    config = StorageConfig(namespace=Namespace.parse(bucket), **overrides)
    return CloudStorage(config, client)


def ref_for(data: bytes) -> BlobRef:
    return BlobRef.from_bytes(data, "sha224")
