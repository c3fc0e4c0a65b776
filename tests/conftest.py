import logging

import pytest


@pytest.fixture(autouse=True)
def reset_quire_logger():
    """The CLI installs its own handler on the ``quire`` logger; undo it per test."""
    yield
    logger = logging.getLogger("quire")
    logger.handlers[:] = []
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
