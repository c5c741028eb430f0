"""Store the affiliate dashboard session cookies used by batch conversion."""

from __future__ import annotations

import sys

from dotenv import load_dotenv

from app.gateways.affiliate import COOKIES_PATH, save_session_cookies


def parse_cookie_header(header: str) -> dict[str, str]:
    cookies: dict[str, str] = {}
    for part in header.split(";"):
        name, sep, value = part.strip().partition("=")
        if sep and name:
            cookies[name] = value
    return cookies


def main() -> None:
    load_dotenv()
    header = sys.argv[1] if len(sys.argv) > 1 else sys.stdin.read()
    cookies = parse_cookie_header(header)
    if "csrftoken" not in cookies:
        raise SystemExit("Cookie header must include csrftoken")
    save_session_cookies(cookies)
    print(f"Saved {len(cookies)} cookies to {COOKIES_PATH}")


if __name__ == "__main__":
    main()
