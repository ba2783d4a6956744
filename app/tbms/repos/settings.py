import json
from datetime import datetime

from sqlalchemy import select

from app.tbms.core.config import settings as app_settings
from app.tbms.db.models import AppSetting


class SettingsRepository:
    """Namespaced key-value store holding JSON-encoded values."""

    def __init__(self, db, prefix: str | None = None):
        self.db = db
        self.prefix = app_settings.SETTINGS_KEY_PREFIX if prefix is None else prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get(self, key: str):
        stmt = select(AppSetting).where(AppSetting.key == self._key(key))
        setting = self.db.execute(stmt).scalars().first()
        if setting is None:
            return None
        return json.loads(setting.value)

    def save(self, key: str, value) -> None:
        setting = self.db.get(AppSetting, self._key(key))
        encoded = json.dumps(value, ensure_ascii=False)
        if setting is None:
            setting = AppSetting(key=self._key(key), value=encoded, updated_at=datetime.utcnow())
        else:
            setting.value = encoded
            setting.updated_at = datetime.utcnow()
        self.db.add(setting)
        self.db.flush()
