"""
Blocker Simulator — drives a running siteblock service through the
block → "five more minutes" → re-block cycle and a short focus timer, so you
can watch rules and timer state change without a browser extension.

Usage:
    # Make sure the service is running first:
    #   python start.py
    # Then in a separate terminal:
    python scripts/simulate.py                       # default domains
    python scripts/simulate.py --domain news.example.com --allow-seconds 10
    python scripts/simulate.py --timer-seconds 20    # watch the timer tick
"""

from __future__ import annotations

import argparse
import json
import time
import urllib.error
import urllib.request

API = "http://127.0.0.1:8766"


# ---------------------------------------------------------------------------
# Low-level HTTP helpers
# ---------------------------------------------------------------------------

def _request(method: str, path: str, body: dict | None = None) -> tuple[int, dict | list | None]:
    data = json.dumps(body).encode() if body is not None else None
    req = urllib.request.Request(
        f"{API}{path}",
        data=data,
        headers={"Content-Type": "application/json"},
        method=method,
    )
    try:
        with urllib.request.urlopen(req, timeout=3) as r:
            return r.status, json.loads(r.read() or b"null")
    except urllib.error.HTTPError as e:
        return e.code, json.loads(e.read() or b"null")
    except (urllib.error.URLError, OSError) as e:
        print(f"  [!] Service unreachable: {e}")
        return 0, None


def _get(path: str):
    return _request("GET", path)[1]


def _print_rules() -> None:
    rules = _get("/rules") or []
    if not rules:
        print("    rules: (none)")
    for r in rules:
        print(f"    rule #{r['id']:<4} {r['url_filter']:<28} → {r['redirect_target']}")


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------

def run_blocking(domains: list[str], allow_seconds: int) -> None:
    print("\n── Block list ───────────────────────────────")
    for d in domains:
        status, _ = _request("POST", "/blocklist", {"domain": d})
        label = {201: "added", 409: "already blocked", 400: "invalid"}.get(status, status)
        print(f"  {d:<28} {label}")
    time.sleep(0.5)
    _print_rules()

    target = domains[0]
    print(f"\n── Temporary allow: {target} ───────────────")
    status, grant = _request("POST", "/allow", {"domain": target})
    if status != 200:
        print(f"  [!] grant failed ({status}): {grant}")
        return
    print(f"  allowed until {time.strftime('%H:%M:%S', time.localtime(grant['expiry'] / 1000))}"
          f"  (navigate yourself: {not grant['navigated']})")
    _print_rules()

    health = _get("/health") or {}
    print(f"  pending wake-ups: {', '.join(health.get('wakeups', [])) or '-'}")
    print(f"  waiting {allow_seconds}s for the reblock wake-up…")
    time.sleep(allow_seconds + 1.5)
    _print_rules()


def run_timer(seconds: int) -> None:
    print("\n── Focus timer ──────────────────────────────")
    _request("PUT", "/timer/settings", {"work_duration": 60, "break_duration": 60})
    _request("POST", "/timer/start")
    for _ in range(seconds):
        state = _get("/timer") or {}
        mins, secs = divmod(state.get("time_remaining", 0), 60)
        print(f"  {state.get('mode', '?'):<13} {mins:02d}:{secs:02d}", end="\r")
        time.sleep(1.0)
    print()
    _request("POST", "/timer/pause")
    print(f"  paused → {(_get('/timer') or {}).get('mode')}")
    _request("POST", "/timer/reset")
    print(f"  reset  → {(_get('/timer') or {}).get('mode')}")


def main() -> None:
    parser = argparse.ArgumentParser(description="siteblock simulator")
    parser.add_argument("--domain", action="append", dest="domains",
                        help="Domain to block (repeatable)")
    parser.add_argument("--allow-seconds", type=int, default=None,
                        help="Expected allowance length to wait for (default: the service's)")
    parser.add_argument("--timer-seconds", type=int, default=5,
                        help="How long to watch the timer (default 5)")
    args = parser.parse_args()

    health = _get("/health")
    if not health:
        print(f"[!] Cannot reach service at {API}")
        print("    Start it first: python start.py")
        return
    print(f"[✓] Service connected — siteblock v{health.get('version', '?')}")

    domains = args.domains or ["reddit.com", "news.ycombinator.com"]
    allow_seconds = args.allow_seconds if args.allow_seconds is not None else 300
    run_blocking(domains, allow_seconds)
    run_timer(args.timer_seconds)

    print("\n[✓] Simulation complete.")


if __name__ == "__main__":
    main()
