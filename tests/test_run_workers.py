import importlib.util
from pathlib import Path
from unittest.mock import patch

import pytest

SCRIPT = Path(__file__).resolve().parent.parent / "scripts" / "run_workers.py"


@pytest.fixture
def run_workers():
    module_spec = importlib.util.spec_from_file_location("run_workers", SCRIPT)
    module = importlib.util.module_from_spec(module_spec)
    module_spec.loader.exec_module(module)
    return module


def test_recover_stalled_runs_recovery_and_exits(run_workers):
    with patch.object(run_workers, "init_db") as init_db, \
         patch.object(run_workers, "recover_stalled_jobs_task", return_value=3) as recover, \
         patch.object(run_workers, "work") as work:
        assert run_workers.main(["--recover-stalled", "--max-age", "45"]) == 0

    init_db.assert_called_once()
    recover.assert_called_once_with(45)
    work.assert_not_called()


def test_check_reports_redis_status(run_workers):
    with patch.object(run_workers, "redis_health_check", return_value={"connected": False, "error": "refused"}):
        assert run_workers.main(["--check"]) == 1

    with patch.object(run_workers, "redis_health_check", return_value={"connected": True, "redis_version": "7.2"}), \
         patch.object(run_workers, "work") as work:
        assert run_workers.main(["--check"]) == 0

    work.assert_not_called()


def test_single_worker_consumes_generation_queue_first(run_workers):
    with patch.object(run_workers, "redis_health_check", return_value={"connected": True}), \
         patch.object(run_workers, "work") as work:
        assert run_workers.main(["--burst"]) == 0

    work.assert_called_once_with(["generation", "default"], True)
