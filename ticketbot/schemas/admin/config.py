from __future__ import annotations

from pydantic import BaseModel


class BotConfigOut(BaseModel):
    enableTextLogging: bool
    enableImageDownload: bool
    enableDatabaseStorage: bool
    mediaStoragePath: str


class BotConfigValue(BaseModel):
    value: str | bool
