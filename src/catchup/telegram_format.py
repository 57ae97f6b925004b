"""Telegram message formatting and delivery."""

import logging

import telegramify_markdown

from .core.suggestions import Suggestion, SuggestionKind

logger = logging.getLogger(__name__)


async def send_markdown(bot_or_msg, text: str, *, chat_id: int | None = None, reply_markup=None):
    """Send markdown text to Telegram, converting to MarkdownV2.

    bot_or_msg: a Bot instance (pass chat_id) or an Update.message (calls reply_text).
    The optional keyboard is attached to the last chunk.
    """
    converted = telegramify_markdown.markdownify(text)
    chunks = [converted[i : i + 4000] for i in range(0, len(converted), 4000)]
    for i, chunk in enumerate(chunks):
        markup = reply_markup if i == len(chunks) - 1 else None
        if chat_id is not None:
            await bot_or_msg.send_message(chat_id=chat_id, text=chunk, parse_mode="MarkdownV2", reply_markup=markup)
        else:
            await bot_or_msg.reply_text(chunk, parse_mode="MarkdownV2", reply_markup=markup)


def format_suggestion(s: Suggestion, names: dict[str, str]) -> str:
    who = ", ".join(names.get(cid, cid) for cid in s.contact_ids)
    icon = "👥" if s.kind is SuggestionKind.GROUP else "👤"
    lines = [f"{icon} **{who}**", f"{s.proposed_window.format()}"]
    if s.reasoning:
        lines.append(f"_{s.reasoning}_")
    lines.append(f"`{s.id[:8]}`")
    return "\n".join(lines)


def format_digest(suggestions: list[Suggestion], names: dict[str, str]) -> str:
    if not suggestions:
        return "No new suggestions right now."
    parts = [f"**{len(suggestions)} people to catch up with**"]
    parts.extend(format_suggestion(s, names) for s in suggestions)
    parts.append("Reply /accept, /dismiss or /snooze with an id.")
    return "\n\n".join(parts)


class TelegramNotifier:
    """
    Telegram delivery for suggestions.

    Implements NotificationDispatcher protocol. Delivery failures are logged,
    never raised.
    """

    def __init__(self, bot, user_map: dict[int, str], names_for=None):
        self.bot = bot
        # catchup user id -> telegram chat ids
        self.chats: dict[str, list[int]] = {}
        for telegram_id, user_id in user_map.items():
            self.chats.setdefault(user_id, []).append(telegram_id)
        self.names_for = names_for or (lambda user_id: {})

    async def _send(self, user_id: str, text: str) -> None:
        for chat_id in self.chats.get(user_id, []):
            try:
                await send_markdown(self.bot, text, chat_id=chat_id)
            except Exception as e:
                logger.error(f"Failed to send to {user_id} (chat {chat_id}): {e}")

    async def send_digest(self, user_id: str, suggestions: list[Suggestion]) -> None:
        if not suggestions:
            logger.info(f"Nothing to send {user_id}")
            return
        await self._send(user_id, format_digest(suggestions, self.names_for(user_id)))

    async def notify_accepted(self, user_id: str, suggestion: Suggestion) -> None:
        names = self.names_for(user_id)
        who = ", ".join(names.get(cid, cid) for cid in suggestion.contact_ids)
        await self._send(user_id, f"✅ Added to your calendar: **{who}**, {suggestion.proposed_window.format()}")
