import pytest

from uniswap_tx.core.config import CONFIG, set_config


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "requires_config: needs a config.json with live RPC endpoints"
    )


@pytest.fixture(autouse=True)
def _isolated_config(request):
    """Run each test against an empty CONFIG unless it opts into the real one."""
    if request.node.get_closest_marker("requires_config"):
        yield
        return
    saved = dict(CONFIG)
    set_config({})
    yield
    set_config(saved)
