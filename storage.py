import json
from pathlib import Path
from typing import Dict

from logger import get_logger
from session import PriceTagSession
from tag_settings import TagSettings

logger = get_logger(__name__)

STORAGE_VERSION = 1


class SessionStorage:
    """Сессии по chat_id в одном JSON-файле; живые объекты держим в памяти."""

    def __init__(self, file_path: Path, show_theme_labels: bool = False):
        self.file_path = Path(file_path)
        # настройки по умолчанию для чатов, которых ещё нет в файле
        self.show_theme_labels = show_theme_labels
        self._raw: Dict[str, dict] = {}
        self._sessions: Dict[str, PriceTagSession] = {}
        self._load()

    def _load(self):
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        if not self.file_path.exists():
            self._save()
            return
        try:
            data = json.loads(self.file_path.read_text(encoding="utf-8"))
            sessions = data.get("sessions", {})
            if data.get("version") != STORAGE_VERSION or not isinstance(sessions, dict):
                raise ValueError(f"unsupported storage layout (version {data.get('version')!r})")
            self._raw = {str(k): v for k, v in sessions.items() if isinstance(v, dict)}
        except (OSError, ValueError, AttributeError) as e:
            logger.warning("Could not read %s, starting with empty sessions: %s", self.file_path, e)
            self._raw = {}
            self._save()

    def _save(self):
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        for key, session in self._sessions.items():
            self._raw[key] = session.to_dict()
        data = {"version": STORAGE_VERSION, "sessions": self._raw}
        tmp = self.file_path.with_suffix(self.file_path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(self.file_path)

    def load(self, chat_id: int) -> PriceTagSession:
        key = str(chat_id)
        session = self._sessions.get(key)
        if session is None:
            if key in self._raw:
                session = PriceTagSession.from_dict(self._raw[key])
            else:
                session = PriceTagSession(settings=TagSettings(show_theme_labels=self.show_theme_labels))
            self._sessions[key] = session
        return session

    def save(self, chat_id: int, session: PriceTagSession):
        key = str(chat_id)
        self._sessions[key] = session
        self._save()

    def drop(self, chat_id: int):
        key = str(chat_id)
        session = self._sessions.pop(key, None)
        if session is not None:
            session.close()
        if self._raw.pop(key, None) is not None or session is not None:
            self._save()

    def chat_ids(self):
        return sorted(set(self._raw) | set(self._sessions))
