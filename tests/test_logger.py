"""Logging helpers and the messages emitted through them."""

import logging

from structlog.testing import capture_logs

from plangit.git import open_repository
from plangit.services.workflow import PlanWorkflow
from plangit.utils.logger import command_log, configure_structlog, get_logger


def test_command_log_records_outcome():
    log = get_logger("plangit.test")

    with capture_logs() as logs:
        command_log(log, ["status", "--porcelain"], 0, 1.5, stderr=None)

    assert logs == [
        {
            "event": "git status -> 0",
            "args": ["status", "--porcelain"],
            "returncode": 0,
            "duration_ms": 1.5,
            "stderr": None,
            "log_level": "debug",
        }
    ]


def test_get_logger_pins_level():
    get_logger("plangit.test.pinned", level=logging.ERROR)

    assert logging.getLogger("plangit.test.pinned").level == logging.ERROR


def test_configure_structlog_sets_root_level():
    try:
        configure_structlog("json", False, "warning")
        assert logging.root.level == logging.WARNING
        assert logging.getLogger("dulwich").level == logging.WARNING
    finally:
        configure_structlog(log_level="INFO")


def test_workflow_reports_through_logger(dulwich_repo):
    workflow = PlanWorkflow(open_repository(dulwich_repo, "embedded"))

    with capture_logs() as logs:
        workflow.ensure_gitignore()

    events = [entry["event"] for entry in logs if entry["log_level"] == "info"]
    assert "added progress*.txt to .gitignore" in events
