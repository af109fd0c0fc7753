"""tabwright CLI entry point.

Each sub-command runs exactly one action against a fresh browser session,
prints the JSON result envelope on stdout and exits 0 on success, 1 on
failure. Logs go to stderr. Configuration comes from ``TABWRIGHT_*``
environment variables.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Optional

import typer
from pydantic import ValidationError

from tabwright.actions.executor import ActionExecutor
from tabwright.config.settings import AgentSettings
from tabwright.errors import error_envelope
from tabwright.logging_config import configure_logging

APP_HELP = (
    "tabwright: command-driven browser automation agent. "
    "One action per invocation; JSON result on stdout. "
    "Config: TABWRIGHT_* environment variables."
)

app = typer.Typer(add_completion=False, help=APP_HELP, no_args_is_help=True)


def build_executor(settings: AgentSettings) -> ActionExecutor:
    return ActionExecutor(settings)


def _split_list(value: Optional[str]) -> Optional[list[str]]:
    if value is None:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


def run_action(action: str, params: dict[str, Any]) -> None:
    """Execute *action*, print its envelope and exit with its status."""
    try:
        settings = AgentSettings()
    except ValidationError as exc:
        result = error_envelope(action, exc, {"source": "settings"})
    else:
        configure_logging(settings.log_level)
        result = asyncio.run(build_executor(settings).execute(action, params))

    typer.echo(result.model_dump_json(indent=2))
    raise typer.Exit(code=0 if result.success else 1)


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


@app.command("init")
def init_cmd() -> None:
    """Initialize the browser."""
    run_action("init", {})


@app.command("close")
def close_cmd() -> None:
    """Close the browser."""
    run_action("close", {})


@app.command("status")
def status_cmd() -> None:
    """Show session, proxy and adblock status."""
    run_action("status", {})


# ---------------------------------------------------------------------------
# Navigation & elements
# ---------------------------------------------------------------------------


@app.command("navigate")
def navigate_cmd(url: str = typer.Argument(..., help="Absolute URL to open.")) -> None:
    """Navigate to URL and snapshot the page."""
    run_action("navigate", {"url": url})


@app.command("snapshot")
def snapshot_cmd(verbose: bool = typer.Option(False, "--verbose", help="Index up to 300 elements.")) -> None:
    """Index the page's interactive elements."""
    run_action("snapshot", {"verbose": verbose})


@app.command("click")
def click_cmd(uid: str = typer.Argument(..., help="Element id from the last snapshot, e.g. el_0.")) -> None:
    """Click an element."""
    run_action("click", {"uid": uid})


@app.command("fill")
def fill_cmd(
    uid: str = typer.Argument(..., help="Element id from the last snapshot."),
    text: str = typer.Argument("", help="Text to enter."),
) -> None:
    """Fill an input."""
    run_action("fill", {"uid": uid, "text": text})


@app.command("open-link")
def open_link_cmd(uid: str = typer.Argument(..., help="Element id of a link.")) -> None:
    """Open a link by navigating to its href."""
    run_action("open-link", {"uid": uid})


@app.command("scroll")
def scroll_cmd(
    direction: str = typer.Argument("down", help="down, up or bottom."),
    distance: int = typer.Option(500, "--distance", help="Pixels to scroll."),
) -> None:
    """Scroll the page."""
    run_action("scroll", {"direction": direction, "distance": distance})


@app.command("tab")
def tab_cmd(target: str = typer.Argument("0", help="Tab index or URL fragment.")) -> None:
    """Switch tab."""
    run_action("tab", {"target": target})


# ---------------------------------------------------------------------------
# Proxy & adblock
# ---------------------------------------------------------------------------


@app.command("proxy")
def proxy_cmd(
    action: str = typer.Argument("status", help="status, rotate, check or reset."),
    reason: str = typer.Option("", "--reason", help="Why the rotation was requested."),
    endpoint: Optional[str] = typer.Option(None, "--endpoint", help="Endpoint to reset (default: all)."),
) -> None:
    """Proxy pool control."""
    run_action("proxy", {"action": action, "reason": reason, "endpoint": endpoint})


@app.command("adblock")
def adblock_cmd(
    action: str = typer.Argument(
        "status", help="status, enable, disable, set-mode, update-config or reset-stats."
    ),
    mode: Optional[str] = typer.Option(None, "--mode", help="balanced or aggressive."),
    enabled: Optional[bool] = typer.Option(None, "--enabled/--disabled", help="Patch the enabled flag."),
    block_url_patterns: Optional[str] = typer.Option(
        None, "--block-url-patterns", help="Comma-separated domain or URL patterns."
    ),
    allowlist_domains: Optional[str] = typer.Option(
        None, "--allowlist-domains", help="Comma-separated domains never blocked."
    ),
) -> None:
    """Request filter control."""
    patch = {
        "enabled": enabled,
        "mode": mode,
        "block_url_patterns": _split_list(block_url_patterns),
        "allowlist_domains": _split_list(allowlist_domains),
    }
    run_action("adblock", {"action": action, "mode": mode, "patch": patch})


@app.command("cookies")
def cookies_cmd(force: bool = typer.Option(False, "--force", help="Retry on an already handled URL.")) -> None:
    """Dismiss cookie consent banners."""
    run_action("cookies", {"force": force})


# ---------------------------------------------------------------------------
# Stealth
# ---------------------------------------------------------------------------


@app.command("fingerprint")
def fingerprint_cmd(
    config: str = typer.Option("{}", "--config", help='JSON, e.g. {"device_type": "mobile"}.'),
) -> None:
    """Generate and inject a browser fingerprint."""
    try:
        parsed: Any = json.loads(config)
    except ValueError:
        parsed = config
    run_action("fingerprint", {"config": parsed})


@app.command("stealth")
def stealth_cmd() -> None:
    """Detect automation tells on the page."""
    run_action("stealth", {})


@app.command("behavior")
def behavior_cmd() -> None:
    """Rotate the behavior profile."""
    run_action("behavior", {})


# ---------------------------------------------------------------------------
# Page content & input
# ---------------------------------------------------------------------------


@app.command("wait")
def wait_cmd(ms: int = typer.Argument(0, help="Milliseconds to wait.")) -> None:
    """Wait."""
    run_action("wait", {"ms": ms})


@app.command("extract")
def extract_cmd(selector: str = typer.Argument("", help="CSS selector (default: body).")) -> None:
    """Extract readable page text."""
    run_action("extract", {"selector": selector})


@app.command("source")
def source_cmd(
    include_doctype: bool = typer.Option(True, "--include-doctype/--no-doctype", help="Prefix <!DOCTYPE html>."),
) -> None:
    """Get the page HTML."""
    run_action("source", {"include_doctype": include_doctype})


@app.command("eval")
def eval_cmd(script: str = typer.Argument(..., help='Async function body, e.g. "return document.title".')) -> None:
    """Execute JavaScript in the page."""
    run_action("eval", {"script": script})


@app.command("key")
def key_cmd(key: str = typer.Argument(..., help="Key name, e.g. Enter.")) -> None:
    """Press a key."""
    run_action("key", {"key": key})


@app.command("dialog")
def dialog_cmd(
    action: str = typer.Argument("accept", help="accept or dismiss."),
    prompt_text: str = typer.Option("", "--prompt-text", help="Answer for prompt() dialogs."),
) -> None:
    """Handle the next browser dialog."""
    run_action("dialog", {"action": action, "prompt_text": prompt_text})


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@app.command("save")
def save_cmd(
    filename: str = typer.Argument("result.md", help="File name under the results directory."),
    content: str = typer.Option("", "--content", help="Text to write."),
    append: bool = typer.Option(False, "--append", help="Append instead of overwrite."),
) -> None:
    """Save content to the results directory."""
    run_action("save", {"filename": filename, "content": content, "append": append})


@app.command("read")
def read_cmd(filename: str = typer.Argument(..., help="File name under the results directory.")) -> None:
    """Read a saved result."""
    run_action("read", {"filename": filename})


@app.command("done")
def done_cmd(reason: str = typer.Argument("", help="Why the task is complete.")) -> None:
    """Signal task completion."""
    run_action("done", {"reason": reason})


if __name__ == "__main__":
    app()
