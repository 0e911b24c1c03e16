#!/usr/bin/env python3
"""
Portal diagnostics CLI

Usage:
    portal-diagnose auth-me --token <access-token>
    portal-diagnose auth-me --email <email>      (password is prompted)

Checks that the backend accepts a session from the identity provider by
calling GET /auth/me and printing the raw status and body.
"""

import argparse
import getpass
import logging
import sys

import requests

from portal.backend import BackendClient
from portal.config import load_settings
from portal.errors import AuthError, BackendError
from portal.identity import IdentityClient
from portal.logging_setup import configure_logging

logger = logging.getLogger("portal.diagnostics")


def cmd_auth_me(args, settings, http=None) -> int:
    """Call /auth/me with a token, signing in first when only an email is given."""
    http = http or requests.Session()
    token = args.token
    if not token:
        password = args.password if args.password is not None else getpass.getpass("Password: ")
        identity = IdentityClient(settings.identity_url, settings.identity_anon_key, http, settings.http_timeout)
        try:
            token = identity.sign_in_with_password(args.email, password).access_token
        except AuthError as e:
            logger.error("Sign in failed: %s", e)
            return 1

    backend = BackendClient(settings.api_base_url, http, settings.http_timeout)
    logger.info("API base URL: %s", settings.api_base_url)
    try:
        status, body = backend.check_auth_me(token)
    except BackendError as e:
        logger.error("Auth check failed: %s", e)
        return 1

    logger.info("/auth/me status=%s", status)
    logger.info("/auth/me body=%s", body)
    print(f"{status} {body}")
    return 0 if 200 <= status < 300 else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="portal-diagnose",
        description="Credentialing portal connectivity checks"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    auth_parser = subparsers.add_parser("auth-me", help="Call the backend /auth/me check")
    who = auth_parser.add_mutually_exclusive_group(required=True)
    who.add_argument("--token", help="Bearer token to send")
    who.add_argument("--email", help="Sign in with this email to obtain a token")
    auth_parser.add_argument("--password", help=argparse.SUPPRESS)
    auth_parser.set_defaults(func=cmd_auth_me)
    return parser


def main(argv=None):
    """Main CLI entrypoint."""
    args = build_parser().parse_args(argv)
    settings = load_settings()
    configure_logging(settings.log_level)
    return args.func(args, settings)


if __name__ == "__main__":
    sys.exit(main())
