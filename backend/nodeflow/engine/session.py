"""Run session manager: tracks active workflow runs and their controllers."""
import asyncio


class RunController:
    """Cooperative cancellation signal checked by the engine between nodes."""

    def __init__(self):
        self._cancelled = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self):
        self._cancelled.set()


class RunSession:
    def __init__(self, run_id: str):
        self.run_id = run_id
        self.controller = RunController()


_sessions: dict[str, RunSession] = {}


def create_session(run_id: str) -> RunSession:
    session = RunSession(run_id)
    _sessions[run_id] = session
    return session


def get_session(run_id: str) -> RunSession | None:
    return _sessions.get(run_id)


def remove_session(run_id: str) -> None:
    _sessions.pop(run_id, None)
