"""Catchup Telegram bot: commands, inline buttons and the daily digest."""

import asyncio
import logging

from telegram import Update
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    MessageHandler,
    filters,
)
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from .config import Config, load_config
from .telegram_format import TelegramNotifier
from .telegram_handlers import (
    accept_handler,
    dismiss_handler,
    help_handler,
    pending_handler,
    snooze_handler,
    start_handler,
    suggestion_button_handler,
)
from .workflows import get_batch, get_directory, get_lifecycle

logger = logging.getLogger(__name__)

COMMANDS = {
    "start": start_handler,
    "help": help_handler,
    "pending": pending_handler,
    "accept": accept_handler,
    "dismiss": dismiss_handler,
    "snooze": snooze_handler,
}


class AuthFilter(filters.BaseFilter):
    """Lets through allow-listed Telegram ids and ids mapped to a catchup user."""

    def __init__(self, config: Config):
        super().__init__()
        self.allowed = set(config.telegram_allowed_users) | set(config.telegram_user_map)

    def check_update(self, update: Update) -> bool:
        if not self.allowed:
            return True
        sender = update.effective_user
        return sender is not None and sender.id in self.allowed


def create_application(config: Config | None = None) -> Application:
    config = config or load_config()
    if not config.telegram_bot_token:
        raise ValueError("TELEGRAM_BOT_TOKEN not configured. Create a bot with @BotFather and add its token to catchup.conf")

    app = Application.builder().token(config.telegram_bot_token).build()
    auth = AuthFilter(config)

    for name, handler in COMMANDS.items():
        app.add_handler(CommandHandler(name, handler, filters=auth))
    app.add_handler(CallbackQueryHandler(suggestion_button_handler, pattern=r"^(accept|snooze|recent):"))

    async def reject_stranger(update: Update, context):
        sender = update.effective_user
        logger.warning(f"Rejected message from Telegram user {sender.id} ({sender.username})")
        await update.message.reply_text(
            "This bot is private. To use it, add your Telegram id to TELEGRAM_ALLOWED_USERS "
            "or TELEGRAM_USER_MAP in catchup.conf."
        )

    if auth.allowed:
        app.add_handler(MessageHandler(~auth & filters.ALL, reject_stranger))
    return app


def setup_scheduler(app: Application, config: Config | None = None) -> AsyncIOScheduler:
    """Batch regeneration on an interval plus a daily digest of pending suggestions."""
    config = config or load_config()
    scheduler = AsyncIOScheduler(timezone=config.timezone or "America/Toronto")

    if config.users:
        scheduler.add_job(
            run_batches,
            IntervalTrigger(hours=config.batch_interval_hours),
            args=[config],
            id="generate_batches",
        )
        logger.info(f"Batches every {config.batch_interval_hours}h for {len(config.users)} user(s)")

    if not (config.telegram_digest_time and config.telegram_user_map):
        return scheduler

    try:
        hour, minute = map(int, config.telegram_digest_time.split(":"))
    except ValueError:
        logger.warning(f"Invalid TELEGRAM_DIGEST_TIME: {config.telegram_digest_time}")
        return scheduler

    notifier = TelegramNotifier(
        app.bot,
        config.telegram_user_map,
        names_for=lambda user_id: {c.id: c.name for c in get_directory(config).list_contacts(user_id)},
    )
    scheduler.add_job(
        send_digests,
        CronTrigger(hour=hour, minute=minute),
        args=[notifier, config],
        id="daily_digest",
    )
    logger.info(f"Digest at {hour:02d}:{minute:02d}")
    return scheduler


async def run_batches(config: Config):
    # Batch runs block on file and calendar I/O
    await asyncio.to_thread(get_batch(config).run_all, config.users)


async def send_digests(notifier: TelegramNotifier, config: Config):
    lifecycle = get_lifecycle(config)
    for user_id in sorted(set(config.telegram_user_map.values())):
        try:
            suggestions = await asyncio.to_thread(lifecycle.list_pending, user_id)
        except Exception as e:
            logger.error(f"Could not load pending suggestions for {user_id}: {e}")
            continue
        await notifier.send_digest(user_id, suggestions)


def run_bot():
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.INFO,
    )

    config = load_config()
    app = create_application(config)
    scheduler = setup_scheduler(app, config)

    async def start_scheduler(application: Application) -> None:
        scheduler.start()

    app.post_init = start_scheduler

    if not (config.telegram_allowed_users or config.telegram_user_map):
        logger.warning("No TELEGRAM_ALLOWED_USERS or TELEGRAM_USER_MAP set, the bot answers anyone")
    logger.info("Catchup bot polling")
    app.run_polling(allowed_updates=Update.ALL_TYPES)
