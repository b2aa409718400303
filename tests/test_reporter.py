import logging

from rich.console import Console
from rich.logging import RichHandler

from kubeforge.cli.formatter import ForgeReporter, configure_logging
from kubeforge.core.engine import ModuleResult, ModuleState
from kubeforge.core.errors import ModelReferenceError


def _reporter():
    return ForgeReporter(Console(record=True, width=140))


def test_final_table_lists_every_module():
    reporter = _reporter()
    reporter.print_final_table([
        ModuleResult("org/a:1.0.0", ModuleState.WRITTEN),
        ModuleResult("org/b:1.0.0", ModuleState.FAILED,
                     errors=[ModelReferenceError("bad port", "svc")]),
    ])
    text = reporter.console.export_text()

    assert "KubeForge Build Report" in text
    assert "org/a:1.0.0" in text
    assert "FAILED" in text


def test_result_prints_errors_and_build_command():
    reporter = _reporter()
    reporter.print_result(ModuleResult(
        "org/b:1.0.0", ModuleState.FAILED,
        errors=[ModelReferenceError("nodePort without NodePort type", "hello")],
        build_command="docker build -t b:latest ."))
    text = reporter.console.export_text()

    assert "ModelReferenceError: [hello] nodePort without NodePort type" in text
    assert "docker build -t b:latest ." in text


def test_summary_panel():
    reporter = _reporter()
    reporter.print_summary({"total_modules": 2, "successful": 1, "failed": 1,
                            "files_written": 5, "success_rate": 0.5})
    text = reporter.console.export_text()
    assert "Success rate: 50%" in text


def test_configure_logging_installs_one_handler():
    logger = configure_logging(logging.DEBUG)
    configure_logging(logging.DEBUG)
    try:
        assert logger.name == "kubeforge"
        assert sum(isinstance(h, RichHandler) for h in logger.handlers) == 1
        assert not any(isinstance(h, RichHandler) for h in logging.getLogger().handlers)
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
        logger.setLevel(logging.NOTSET)
