"""
Database layer (SQLAlchemy).

Components:
- database: engine factory, session_scope, init_db
- models: skill state, deferral, and tutorial skip tables
- store: SQL implementations of the store protocols
"""

from mastery_engine.db.database import (
    build_engine,
    dispose_engine,
    get_engine,
    get_session_factory,
    init_db,
    make_session_factory,
    session_scope,
)
from mastery_engine.db.store import SqlDeferralStore, SqlSkillStateStore, SqlSkipLog

__all__ = [
    "SqlDeferralStore",
    "SqlSkillStateStore",
    "SqlSkipLog",
    "build_engine",
    "dispose_engine",
    "get_engine",
    "get_session_factory",
    "init_db",
    "make_session_factory",
    "session_scope",
]
