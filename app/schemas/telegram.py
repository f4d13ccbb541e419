"""Telegram linking schemas and the subset of the Bot API update we consume."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.user import ApiResponse


class TelegramLinkRequest(BaseModel):
    """Manual link of a chat to a user (admin tooling / bot fallback)."""
    user_id: str = Field(min_length=1)
    chat_id: str = Field(min_length=1)


class TelegramStatusData(BaseModel):
    is_telegram_linked: bool
    telegram_chat_id: Optional[str] = None
    telegram_bot_link: str


class TelegramStatusResponse(ApiResponse):
    data: TelegramStatusData


# ─── Bot API update (webhook payload) ─────────

class TelegramChat(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int


class TelegramMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message_id: int
    chat: TelegramChat
    text: Optional[str] = None


class TelegramUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    update_id: int
    message: Optional[TelegramMessage] = None

    def start_payload(self) -> Optional[str]:
        """The argument of a ``/start <payload>`` command, if this update is one."""
        if not self.message or not self.message.text:
            return None
        parts = self.message.text.strip().split(maxsplit=1)
        if not parts or parts[0].split("@", 1)[0] != "/start":
            return None
        return parts[1].strip() if len(parts) > 1 else ""
