import structlog

from offset_core.domain.models import TreeOption
from offset_core.logging import configure_library_defaults, get_logger
from offset_core.services.optimizer import AllocationOptimizer


def test_library_defaults_keep_stdout_clean(capsys):
    structlog.reset_defaults()
    configure_library_defaults()

    log = get_logger("offset_core.tests")
    log.debug("allocation_complete", mode="balanced")
    AllocationOptimizer().allocate(100, 500, [TreeOption("Oak", 500, 25)], "balanced")
    log.info("plan_ready", months=3)

    captured = capsys.readouterr()
    assert captured.out == ""
    assert "allocation_complete" not in captured.err
    assert "plan_ready" in captured.err


def test_library_defaults_leave_existing_config_alone():
    structlog.reset_defaults()
    factory = structlog.PrintLoggerFactory()
    structlog.configure(logger_factory=factory)

    configure_library_defaults()

    assert structlog.get_config()["logger_factory"] is factory
    structlog.reset_defaults()
    configure_library_defaults()
