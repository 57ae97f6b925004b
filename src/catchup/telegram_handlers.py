"""Telegram command handlers."""

import logging
from datetime import datetime, timedelta

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.ext import ContextTypes

from .config import load_config
from .core.suggestions import DISMISSAL_REASONS, Suggestion
from .errors import BatchAcceptError, CatchupError
from .telegram_format import format_suggestion, send_markdown
from .workflows import get_directory, get_lifecycle

logger = logging.getLogger(__name__)

MAX_PENDING_SHOWN = 10


def _user_for(update: Update, config) -> str | None:
    """Map the Telegram sender to a catchup user id."""
    user = update.effective_user
    if user is None:
        return None
    if user.id in config.telegram_user_map:
        return config.telegram_user_map[user.id]
    if len(config.users) == 1:
        return config.users[0]
    return None


def _names(config, user_id: str) -> dict[str, str]:
    return {c.id: c.name for c in get_directory(config).list_contacts(user_id)}


def _resolve_id(lifecycle, user_id: str, prefix: str) -> str | None:
    matches = [s.id for s in lifecycle.store.list_for_user(user_id) if s.id.startswith(prefix)]
    return matches[0] if len(matches) == 1 else None


def suggestion_keyboard(s: Suggestion) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [
            [
                InlineKeyboardButton("Accept", callback_data=f"accept:{s.id}"),
                InlineKeyboardButton("Snooze 1w", callback_data=f"snooze:{s.id}"),
                InlineKeyboardButton("Met recently", callback_data=f"recent:{s.id}"),
            ]
        ]
    )


# ============== Simple Commands ==============


async def start_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /start command."""
    await update.message.reply_text(
        "Hey! I'll tell you who you haven't seen in a while and when you're free to catch up.\n\n"
        "Commands:\n"
        "/pending - Suggestions waiting on you\n"
        "/accept <id> [id...] - Accept one or more\n"
        "/dismiss <id> [reason] - Not this time\n"
        "/snooze <id> [days] - Ask again later\n"
        "/help - Show all commands"
    )


async def help_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /help command."""
    reasons = "\n".join(f"  - {r}" for r in DISMISSAL_REASONS)
    await update.message.reply_text(
        "*Catchup Commands*\n\n"
        "/pending - List pending suggestions\n"
        "/accept <id> [id...] - Accept (several ids: all or nothing)\n"
        "/dismiss <id> [reason] - Dismiss a suggestion\n"
        "/snooze <id> [days] - Snooze (default 7 days)\n\n"
        f"Dismissal reasons:\n{reasons}",
        parse_mode="Markdown",
    )


async def pending_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /pending command."""
    config = load_config()
    user_id = _user_for(update, config)
    if not user_id:
        await update.message.reply_text("No catchup user mapped to your Telegram account.")
        return

    suggestions = get_lifecycle(config).list_pending(user_id)
    if not suggestions:
        await update.message.reply_text("Nothing pending. Enjoy the quiet.")
        return

    names = _names(config, user_id)
    for s in suggestions[:MAX_PENDING_SHOWN]:
        await send_markdown(update.message, format_suggestion(s, names), reply_markup=suggestion_keyboard(s))
    if len(suggestions) > MAX_PENDING_SHOWN:
        await update.message.reply_text(f"...and {len(suggestions) - MAX_PENDING_SHOWN} more.")


async def accept_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /accept <id> [id...]."""
    config = load_config()
    user_id = _user_for(update, config)
    if not user_id or not context.args:
        await update.message.reply_text("Usage: /accept <id> [id...]")
        return

    lifecycle = get_lifecycle(config)
    ids = [_resolve_id(lifecycle, user_id, a) or a for a in context.args]
    try:
        if len(ids) == 1:
            accepted = [lifecycle.accept(ids[0])]
        else:
            accepted = lifecycle.batch_accept(user_id, ids)
    except BatchAcceptError as e:
        details = "\n".join(f"{r.suggestion_id[:8]}: {r.reason}" for r in e.rejected)
        await update.message.reply_text(f"Nothing accepted.\n{details}")
        return
    except CatchupError as e:
        await update.message.reply_text(f"Error: {e}")
        return

    await update.message.reply_text(f"Accepted {len(accepted)}. It's on your calendar feed.")


async def dismiss_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /dismiss <id> [reason]."""
    config = load_config()
    user_id = _user_for(update, config)
    if not user_id or not context.args:
        await update.message.reply_text("Usage: /dismiss <id> [reason]")
        return

    lifecycle = get_lifecycle(config)
    suggestion_id = _resolve_id(lifecycle, user_id, context.args[0]) or context.args[0]
    reason = " ".join(context.args[1:]) or None
    try:
        lifecycle.dismiss(suggestion_id, reason)
    except CatchupError as e:
        await update.message.reply_text(f"Error: {e}")
        return
    await update.message.reply_text("Dismissed.")


async def snooze_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /snooze <id> [days]."""
    config = load_config()
    user_id = _user_for(update, config)
    if not user_id or not context.args:
        await update.message.reply_text("Usage: /snooze <id> [days]")
        return

    try:
        days = int(context.args[1]) if len(context.args) > 1 else 7
    except ValueError:
        await update.message.reply_text("Days must be a number.")
        return

    lifecycle = get_lifecycle(config)
    suggestion_id = _resolve_id(lifecycle, user_id, context.args[0]) or context.args[0]
    until = datetime.now().astimezone() + timedelta(days=days)
    try:
        lifecycle.snooze(suggestion_id, until)
    except CatchupError as e:
        await update.message.reply_text(f"Error: {e}")
        return
    await update.message.reply_text(f"Snoozed until {until.strftime('%a %b %d')}.")


# ============== Inline Buttons ==============


async def suggestion_button_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle Accept / Snooze / Met recently buttons."""
    query = update.callback_query
    await query.answer()

    action, _, suggestion_id = query.data.partition(":")
    lifecycle = get_lifecycle(load_config())
    try:
        match action:
            case "accept":
                lifecycle.accept(suggestion_id)
                text = "✅ Accepted"
            case "snooze":
                lifecycle.snooze(suggestion_id, datetime.now().astimezone() + timedelta(days=7))
                text = "💤 Snoozed for a week"
            case "recent":
                lifecycle.dismiss(suggestion_id, DISMISSAL_REASONS[0])
                text = "👍 Got it, you saw them recently"
            case _:
                logger.warning(f"Unknown button action: {query.data}")
                return
    except CatchupError as e:
        await query.edit_message_reply_markup(reply_markup=None)
        await query.message.reply_text(f"Error: {e}")
        return

    await query.edit_message_reply_markup(reply_markup=None)
    await query.message.reply_text(text)
