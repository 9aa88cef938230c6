#!/usr/bin/env python3
"""Validate releases.yaml: schema correctness and URL reachability."""

from __future__ import annotations

import re
import sys
from pathlib import Path

import requests
import yaml

RELEASES_PATH = Path(__file__).resolve().parents[2] / "xhyve_runner" / "releases.yaml"
VALID_GUEST_OS = {"freebsd", "openbsd"}
URL_FIELDS = ("resources_url", "disk_image_url")
URL_RE = re.compile(r"^https?://")
REQUEST_TIMEOUT = 30
USER_AGENT = "xhyve-runner/release-validator (GitHub Actions)"


def load_releases(path: Path) -> dict:
    with open(path) as f:
        return yaml.safe_load(f)


# ── Phase 1: Schema validation (fail-fast) ──────────────────────────


def validate_schema(data: dict) -> list[str]:
    errors: list[str] = []

    releases = data.get("releases")
    if not isinstance(releases, dict):
        errors.append("Top-level 'releases' mapping is missing")
        return errors

    for key, entry in releases.items():
        if not isinstance(entry, dict):
            errors.append(f"[{key}] entry is not a mapping")
            continue

        if not isinstance(entry.get("name"), str):
            errors.append(f"[{key}] missing or non-string field 'name'")

        if entry.get("guest_os") not in VALID_GUEST_OS:
            errors.append(f"[{key}] 'guest_os' must be one of {sorted(VALID_GUEST_OS)}, got '{entry.get('guest_os')}'")

        for field in URL_FIELDS:
            value = entry.get(field)
            if not isinstance(value, str):
                errors.append(f"[{key}] missing required field '{field}'")
            elif not URL_RE.match(value):
                errors.append(f"[{key}] '{field}' must start with http:// or https://")

    for guest_os, release in (data.get("defaults") or {}).items():
        if guest_os not in VALID_GUEST_OS:
            errors.append(f"[defaults] unknown guest OS '{guest_os}'")
        elif release not in releases:
            errors.append(f"[defaults] {guest_os} points at unknown release '{release}'")
        elif releases[release].get("guest_os") != guest_os:
            errors.append(f"[defaults] {guest_os} points at a {releases[release].get('guest_os')} release")

    return errors


# ── Phase 2: URL reachability (collect-all) ──────────────────────────


def check_url(key: str, url: str) -> str | None:
    """Return an error string if the URL is unreachable, else None."""
    session = requests.Session()
    session.headers["User-Agent"] = USER_AGENT

    try:
        resp = session.head(url, timeout=REQUEST_TIMEOUT, allow_redirects=True)
        if resp.status_code < 400:
            return None
        # GitHub release assets answer HEAD with 403 on some mirrors
        if resp.status_code in (403, 405):
            resp = session.get(url, timeout=REQUEST_TIMEOUT, allow_redirects=True, stream=True)
            resp.close()
            if resp.status_code < 400:
                return None
        return f"[{key}] HTTP {resp.status_code} for {url}"
    except requests.RequestException as exc:
        return f"[{key}] {exc.__class__.__name__}: {exc} for {url}"


def validate_urls(data: dict) -> list[str]:
    errors: list[str] = []
    for key, entry in data["releases"].items():
        for field in URL_FIELDS:
            err = check_url(key, entry[field])
            if err:
                errors.append(err)
    return errors


# ── Main ─────────────────────────────────────────────────────────────


def main() -> int:
    print(f"Loading {RELEASES_PATH}")
    data = load_releases(RELEASES_PATH)

    print("\n=== Phase 1: Schema validation ===")
    schema_errors = validate_schema(data)
    if schema_errors:
        for e in schema_errors:
            print(f"  ERROR: {e}")
        print(f"\nSchema validation failed with {len(schema_errors)} error(s)")
        return 1
    release_count = len(data["releases"])
    print(f"  OK: {release_count} releases, all schemas valid")

    print("\n=== Phase 2: URL reachability ===")
    url_errors = validate_urls(data)
    if url_errors:
        for e in url_errors:
            print(f"  ERROR: {e}")
        print(f"\nURL validation failed: {len(url_errors)} unreachable")
        return 1
    print("  OK: all release URLs reachable")

    print("\nAll checks passed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
