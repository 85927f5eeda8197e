"""Point the maker bot's webhook at <PUBLIC_BASE_URL>/v1/telegram/maker.

Usage: python scripts/register_maker_webhook.py [--delete]
"""
import os
import sys

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from apps.backend.clients.telegram import TelegramBot, TelegramError  # noqa: E402
from apps.backend.config import get_settings  # noqa: E402
from apps.backend.services.tenants import webhook_secret_for  # noqa: E402

MAKER_WEBHOOK_PATH = "/v1/telegram/maker"


def main(argv: list[str]) -> int:
    s = get_settings()
    if not s.maker_bot_token:
        print("MAKER_BOT_TOKEN is not set", file=sys.stderr)
        return 2
    bot = TelegramBot(s.maker_bot_token)
    try:
        if "--delete" in argv:
            bot.delete_webhook()
            print("maker webhook deleted")
            return 0
        base = (s.public_base_url or "").strip().rstrip("/")
        if not base:
            print("PUBLIC_BASE_URL is not set", file=sys.stderr)
            return 2
        me = bot.get_me()
        url = f"{base}{MAKER_WEBHOOK_PATH}"
        bot.set_webhook(url, secret_token=webhook_secret_for(s.maker_bot_token))
    except TelegramError as exc:
        print(f"FAILED: {exc}", file=sys.stderr)
        return 1
    print(f"@{me.get('username')} -> {url}")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
