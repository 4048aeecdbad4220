"""
Root conftest.py for the directory service.

Makes the service's ``app`` package importable when pytest is run from
the repository root without an editable install.
"""

import sys
from pathlib import Path


def pytest_configure(config):
    """
    Configure pytest to add the service directory to sys.path.

    Every service keeps its code in an ``app`` package, so only the
    directory of the service under test goes on the path.
    """
    service_dir = Path(__file__).parent / "services" / "directory-service"

    if str(service_dir) not in sys.path:
        sys.path.insert(0, str(service_dir))
