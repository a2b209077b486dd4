#!/usr/bin/env python3
"""
Send one notification from the command line.

    python scripts/send_test_push.py --title "Hola" --body "Prueba" [--user-id ID ...]

Without --user-id the notification is broadcast to every registered device.
--channel webpush sends to browser subscriptions instead of FCM tokens.
"""

import argparse
import asyncio
import sys

sys.path.insert(0, ".")

from app.db import close_db, get_db_context, init_db
from app.logging_config import configure_logging
from app.services.dispatch import WEBPUSH_NO_RECIPIENTS_MESSAGE, DispatchEngine
from app.services.providers import NotificationPayload, build_provider, build_webpush_provider
from app.services.token_store import SubscriptionStore, TokenStore
from app.settings import settings


async def send(args: argparse.Namespace) -> int:
    await init_db(max_retries=1)
    if args.channel == "webpush":
        provider = build_webpush_provider(settings)
        store_class, extra = SubscriptionStore, {"no_recipients_message": WEBPUSH_NO_RECIPIENTS_MESSAGE}
    else:
        provider = build_provider(settings)
        store_class, extra = TokenStore, {}
    payload = NotificationPayload(title=args.title, body=args.body, image_url=args.image_url)

    try:
        async with get_db_context() as db:
            engine = DispatchEngine(
                store_class(db),
                provider,
                max_concurrency=settings.fcm_max_concurrency,
                timeout=args.timeout,
                channel=args.channel,
                **extra,
            )
            report = await engine.dispatch(args.user_ids, payload)
    finally:
        await close_db()

    print(report.message)
    return 0 if report.failure_count == 0 else 1


def main() -> int:
    parser = argparse.ArgumentParser(description="Send a push notification")
    parser.add_argument("--title", required=True)
    parser.add_argument("--body", required=True)
    parser.add_argument("--channel", choices=["fcm", "webpush"], default="fcm")
    parser.add_argument("--user-id", dest="user_ids", action="append", default=None)
    parser.add_argument("--image-url", default=None)
    parser.add_argument("--timeout", type=float, default=settings.fcm_dispatch_timeout_seconds)
    args = parser.parse_args()

    configure_logging(settings)
    return asyncio.run(send(args))


if __name__ == "__main__":
    sys.exit(main())
