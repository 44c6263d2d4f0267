# File: notifications/telegram.py

import requests

from warehouse import config

# ────────────────────────────────────────────────────────────────────────────────
# Telegram Notification Utility Module
#
# Sends messages via Telegram Bot API. Bot token and chat ID come from the
# TELEGRAM_BOT_TOKEN / TELEGRAM_CHAT_ID environment variables (or .env).
#
# Reference: https://core.telegram.org/bots/api#sendmessage
# ────────────────────────────────────────────────────────────────────────────────

TELEGRAM_API_BASE = "https://api.telegram.org"


def send_telegram_message(text: str, bot_token: str = None, chat_id: str = None) -> None:
    """
    Send a text message to a Telegram chat.
    Raises RuntimeError if credentials are missing or the HTTP call fails.
    """
    bot_token = bot_token or config.TELEGRAM_BOT_TOKEN
    chat_id = chat_id or config.TELEGRAM_CHAT_ID
    if not bot_token or not chat_id:
        raise RuntimeError("TELEGRAM_BOT_TOKEN or TELEGRAM_CHAT_ID is not set")

    url = f"{TELEGRAM_API_BASE}/bot{bot_token}/sendMessage"
    payload = {"chat_id": chat_id, "text": text}

    response = requests.get(url, params=payload, timeout=10)
    if not response.ok:
        raise RuntimeError(
            f"Failed to send Telegram message: {response.status_code} {response.text}"
        )
