import os
import sys

import pytest

# Ensure repo-local imports (e.g., `import interceptor`) resolve without extra setup.
src_dir = os.path.abspath(os.path.dirname(__file__))
if src_dir not in sys.path:
    sys.path.insert(0, src_dir)


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "-Q",
        "--qt",
        action="store_true",
        default=False,
        dest="run_qt",
        help="Run tests marked with @pytest.mark.qt (requires PySide6)",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "qt: needs PySide6 and a Qt application instance")


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    if not config.getoption("run_qt"):
        skip_qt = pytest.mark.skip(reason="use -Q/--qt to enable Qt tests")
        for item in items:
            if "qt" in item.keywords:
                item.add_marker(skip_qt)
