import anyio
import pytest
import sse_starlette
from packaging import version

from planning_mcp.server import ServerSettings, SessionStore, create_app
from tests.test_helpers import FakeClock

SSE_STARLETTE_VERSION = version.parse(sse_starlette.__version__)
NEEDS_RESET = SSE_STARLETTE_VERSION < version.parse("3.0.0")

TEST_PORT = 3100


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def reset_sse_app_status():
    """Reset sse-starlette's global AppStatus singleton before each test.

    AppStatus.should_exit_event is a global asyncio.Event that gets bound to
    an event loop. Each anyio test runs on its own loop, so the event must be
    recreated or the SSE tests fail with "bound to a different event loop".

    Only needed for sse-starlette < 3.0.0, which replaced the module-level
    singleton with context-local events.
    """
    if not NEEDS_RESET:
        yield
        return

    from sse_starlette.sse import AppStatus

    AppStatus.should_exit_event = anyio.Event()  # type: ignore[attr-defined]

    yield

    AppStatus.should_exit_event = anyio.Event()  # type: ignore[attr-defined]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> ServerSettings:
    return ServerSettings(port=TEST_PORT, session_timeout=60, cleanup_interval=10)


@pytest.fixture
def store(settings: ServerSettings, clock: FakeClock) -> SessionStore:
    return SessionStore(
        session_timeout=settings.session_timeout,
        cleanup_interval=settings.cleanup_interval,
        clock=clock,
    )


@pytest.fixture
def app(settings: ServerSettings, store: SessionStore):
    return create_app(settings, sessions=store)
