"""Tests for the bundle queue worker function and wiring."""

import zipfile
from unittest.mock import AsyncMock, MagicMock, patch

from xsbundle.engine.queue import TaskQueue
from xsbundle.engine.tasks import build_csv_bundle_payload, create_bundle_queue, run_csv_bundle
from xsbundle.scripts.types import BundleOption, CSVOption


def test_payload_is_json_ready():
    payload = build_csv_bundle_payload(
        "uploads/t1.csv",
        CSVOption(True, 0, 1, 2, 3),
        "downloads/t1.zip",
        BundleOption(user_prefix=True),
    )

    assert payload["manifest_path"] == "uploads/t1.csv"
    assert payload["target"] == "downloads/t1.zip"
    assert CSVOption.from_dict(payload["csv_option"]) == CSVOption(True, 0, 1, 2, 3)
    assert BundleOption.from_dict(payload["bundle_option"]) == BundleOption(user_prefix=True)


def test_create_bundle_queue_uses_settings(test_settings):
    queue = create_bundle_queue(test_settings)

    assert isinstance(queue, TaskQueue)
    assert queue.name == test_settings.bundle_queue_name
    assert queue.worker is run_csv_bundle
    assert queue.celery_app.conf.task_default_queue == test_settings.bundle_queue_name


def test_run_csv_bundle_writes_archive(tmp_path, test_settings, make_script):
    manifest = tmp_path / "t1.csv"
    manifest.write_text("appId,userId,guid,type\ndaq,alexchuw,g1,1\n", encoding="utf-8")
    target = tmp_path / "out" / "t1.zip"

    client = MagicMock()
    client.query_script_by_id = AsyncMock(return_value=make_script("Hello", guid="g1"))
    progress: list[str] = []

    payload = build_csv_bundle_payload(
        str(manifest), CSVOption(True, 0, 1, 2, 3), str(target), BundleOption(user_prefix=True),
    )
    with patch("xsbundle.engine.tasks.get_settings", return_value=test_settings), \
            patch("xsbundle.engine.tasks.XSServiceClient", return_value=client) as client_cls:
        result = run_csv_bundle("t1", payload, progress.append)

    client_cls.assert_called_once_with(test_settings.xsservice_url)
    client.query_script_by_id.assert_awaited_once_with("DAQ", "ALEXCHUW", "1", "g1")
    assert progress == ["1/2", "2/2"]
    assert result["task_id"] == "t1"
    assert result["filename"] == "t1.zip"
    assert result["bundled"] == 1
    assert result["errors"] == []
    with zipfile.ZipFile(target) as zf:
        assert zf.namelist() == ["DAQ/ALEXCHUW/Function/Hello.xs"]
