"""
Flask session-backed session identity.

The identity lives in the signed Flask session cookie, so it follows the browser
session: a returning visitor with a new session may land on the other side of the
rollout.
"""

import uuid

from flask import has_request_context, session

from migration_flags.exceptions import SourceUnavailable
from migration_flags.storage.base import SessionStore

SESSION_KEY = "migration_session_id"


class FlaskSessionStore(SessionStore):
    """Session store reading and lazily creating the identity in ``flask.session``."""

    def __init__(self, key: str = SESSION_KEY):
        self._key = key

    def has_session(self) -> bool:
        return has_request_context()

    def get_or_create(self) -> str:
        if not has_request_context():
            raise SourceUnavailable('session', 'get_or_create')

        session_id = session.get(self._key)
        if not isinstance(session_id, str) or not session_id:
            session_id = uuid.uuid4().hex
            session[self._key] = session_id
        return session_id


__all__ = ['FlaskSessionStore', 'SESSION_KEY']
