from __future__ import annotations
import logging
from typing import Optional
from pydantic import ValidationError
from models import AuthSession
from storage import data_path, delete_json, load_json, save_json


logger = logging.getLogger(__name__)

SESSION_FILE = "session.json"


class SessionStore:
    """
    Holds the current AuthSession. The API client reads the token from here
    on every request and clears it on 401; nothing else mutates it.
    Pass persist=False to keep the session in memory only.
    """

    def __init__(self, persist: bool = True) -> None:
        self.persist = persist
        self.session = self._load() if persist else AuthSession()

    def _load(self) -> AuthSession:
        raw = load_json(data_path(SESSION_FILE), {})
        try:
            return AuthSession.model_validate(raw)
        except ValidationError:
            logger.warning("Discarding unreadable cached session")
            return AuthSession()

    @property
    def token(self) -> Optional[str]:
        return self.session.token

    @property
    def is_authenticated(self) -> bool:
        return self.session.is_authenticated

    def set(self, session: AuthSession) -> None:
        self.session = session
        if self.persist:
            save_json(data_path(SESSION_FILE), session.model_dump(mode="json"))

    def clear(self) -> None:
        self.session = AuthSession()
        if self.persist:
            delete_json(data_path(SESSION_FILE))
