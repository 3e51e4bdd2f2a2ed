import os
import shutil
import tempfile
from pathlib import Path

import pytest

# Keep tests offline-safe and out of the working tree.
TEST_UPLOADS_DIR = Path(tempfile.mkdtemp(prefix="relay_test_uploads_"))
os.environ["UPLOADS_DIR"] = str(TEST_UPLOADS_DIR)
os.environ["TRANSFER_SH_URL"] = "http://transfer.invalid"
os.environ["ZEROX0_URL"] = "http://zerox0.invalid"
os.environ["LOG_JSON"] = "false"

from relay_api.config import Settings  # noqa: E402


def pytest_sessionfinish(session, exitstatus) -> None:  # noqa: ARG001
    shutil.rmtree(TEST_UPLOADS_DIR, ignore_errors=True)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        uploads_dir=tmp_path / "uploads",
        frontend_dir=tmp_path / "frontend",
        transfer_sh_url="http://transfer.invalid",
        zerox0_url="http://zerox0.invalid",
        log_json=False,
    )
