"""
Command line front end for the Kite Connect login flow.

Usage::

    kiteauth serve                 # run the token exchange proxy
    kiteauth login                 # interactive config → login → callback
    kiteauth status                # show the cached session
    kiteauth webhook               # resend the cached session to the webhook
    kiteauth logout                # drop the cached session
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import sys
import webbrowser

from kiteauth.client.auth_client import KiteAuthClient
from kiteauth.client.webhook import WebhookNotifier
from kiteauth.config import ApiKeySource, settings
from kiteauth.storage import default_store
from kiteauth.wizard.dashboard import Dashboard, WebhookStatus
from kiteauth.wizard.flow import AuthStep, AuthWizard
from kiteauth.wizard.session import SessionCache

logger = logging.getLogger(__name__)


def _open_browser(url: str) -> None:
    print(f"\nVisit this URL to login:\n{url}\n")
    webbrowser.open(url)


def _print_summary(dashboard: Dashboard) -> None:
    for name, value in dashboard.summary().items():
        if isinstance(value, list):
            value = ", ".join(value)
        print(f"  {name:<12} {value}")


# ── Commands ──────────────────────────────────────────────────────────────────


def cmd_serve(args: argparse.Namespace) -> int:
    from kiteauth.services.proxy.main import run

    if args.api_key_source:
        settings.api_key_source = ApiKeySource(args.api_key_source)
    if args.port:
        settings.port = args.port
    run()
    return 0


async def _login(args: argparse.Namespace) -> int:
    store = default_store()
    client = KiteAuthClient()
    wizard = AuthWizard(client, store, navigate=_open_browser)

    try:
        if args.reset:
            wizard.reset()
        wizard.start(args.callback_url or "")

        if wizard.step == AuthStep.CONFIG:
            while True:
                api_key = input(f"API key [{wizard.api_key}]: ").strip() or wizard.api_key
                api_secret = getpass.getpass("API secret (blank keeps saved): ") or wizard.api_secret
                if wizard.submit_config(api_key, api_secret):
                    break
                print(f"Error: {wizard.error}")

        if wizard.step == AuthStep.LOGIN:
            if wizard.login() is None:
                print(f"Error: {wizard.error}")
                return 1
            print("After login you will be redirected to the callback URL.")
            while True:
                redirected = input("Paste the redirected URL: ").strip()
                if wizard.receive_callback(redirected):
                    break
                print(f"Error: {wizard.error}")

        print("\nExchanging token...")
        token_data = await wizard.exchange()
        if token_data is None:
            print(f"Error exchanging token: {wizard.error}")
            return 1

        print("Success!")
        _print_summary(Dashboard(token_data, client.notifier))
        return 0
    finally:
        await client.aclose()


def cmd_login(args: argparse.Namespace) -> int:
    return asyncio.run(_login(args))


def cmd_status(args: argparse.Namespace) -> int:
    token_data = SessionCache(default_store()).load()
    if token_data is None:
        print("Not authenticated. Run `kiteauth login` first.")
        return 1
    print("Session information:")
    _print_summary(Dashboard(token_data, WebhookNotifier()))
    return 0


async def _webhook() -> int:
    token_data = SessionCache(default_store()).load()
    if token_data is None:
        print("Not authenticated. Run `kiteauth login` first.")
        return 1

    notifier = WebhookNotifier()
    try:
        result = await Dashboard(token_data, notifier).resend_webhook()
    finally:
        await notifier.aclose()

    print(f"Webhook: {result.value}")
    return 0 if result == WebhookStatus.SUCCESS else 1


def cmd_webhook(args: argparse.Namespace) -> int:
    return asyncio.run(_webhook())


def cmd_logout(args: argparse.Namespace) -> int:
    SessionCache(default_store()).clear()
    print("Logged out.")
    return 0


# ── Entry point ───────────────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="kiteauth", description="Kite Connect login helper")
    parser.add_argument("--debug", "-d", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the token exchange proxy")
    serve.add_argument("--port", type=int, default=None)
    serve.add_argument(
        "--api-key-source",
        choices=[s.value for s in ApiKeySource],
        default=None,
        help="Take api_key from server config or from the request body",
    )
    serve.set_defaults(func=cmd_serve)

    login = sub.add_parser("login", help="Log in and exchange a request token")
    login.add_argument(
        "--callback-url",
        default="",
        help="Redirect URL that already carries a request_token",
    )
    login.add_argument("--reset", action="store_true", help="Forget saved credentials first")
    login.set_defaults(func=cmd_login)

    sub.add_parser("status", help="Show the cached session").set_defaults(func=cmd_status)
    sub.add_parser("webhook", help="Resend the cached session to the webhook").set_defaults(
        func=cmd_webhook
    )
    sub.add_parser("logout", help="Drop the cached session").set_defaults(func=cmd_logout)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else settings.log_level.upper(),
        format="%(asctime)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
