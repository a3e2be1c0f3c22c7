"""Connection lifecycle: state store and session manager.

``SessionManager`` lives in ``chatbridge.connection.manager`` and is not
re-exported here, since it depends on the contacts package, which in turn
reads the state store.
"""
from .state import ConnectionState, SessionStateStore

__all__ = ["ConnectionState", "SessionStateStore"]
