"""Command line interface for the Jira time tracker.

Built on Typer + Rich. The interactive timer is a prompt loop: every prompt
re-reads the session snapshot, so the displayed time is refreshed whenever the
user presses enter.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional, TypeVar

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from .errors import (
    AuthenticationFailedError,
    JiraError,
    JiraTimeTrackerError,
    NotConfiguredError,
    TimerAlreadyRunningError,
    TokenRefreshError,
)
from .jira_client import JiraClient
from .models import ApiTokenAuth, JiraConfig, JiraIssue, OAuthAuth, OAuthClientConfig
from .segments import count_rounded
from .session import QuitOutcome, TimerSession
from .storage import ConfigStore
from .utils import (
    format_time,
    format_time_human_readable,
    mask_token,
    normalize_issue_key,
)
from .worklog_queue import RetryResult

LOGGER = logging.getLogger(__name__)

app = typer.Typer(
    name="jtt",
    help="Track time against Jira issues and log it as worklogs",
    no_args_is_help=True,
)
queue_app = typer.Typer(help="Inspect and retry worklogs saved offline")
app.add_typer(queue_app, name="queue")
console = Console()

T = TypeVar("T")

DONE_STATUSES = {"done", "closed", "resolved", "cancelled", "canceled"}


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging")):
    """Jira time tracker."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _store() -> ConfigStore:
    return ConfigStore()


def _connect(session: TimerSession) -> None:
    try:
        session.connect()
    except (NotConfiguredError, TokenRefreshError) as exc:
        console.print(f"[red]✗ {escape(str(exc))}[/red]")
        if isinstance(exc, TokenRefreshError):
            console.print('[dim]The token may have been revoked. Run "jtt config" to re-authenticate.[/dim]')
        raise typer.Exit(1)


def _report_retry(result: Optional[RetryResult]) -> None:
    if result is None:
        return
    if result.succeeded:
        console.print(f"[green]+ retried {result.succeeded} pending worklog(s)[/green]")
    if result.failed:
        console.print(f"[dim]  {result.failed} worklog(s) still pending[/dim]")


def _reauthenticate(store: ConfigStore) -> bool:
    """Ask for fresh credentials after Jira rejected the current ones."""
    config = store.get_jira_config()
    if config is None:
        return False
    if isinstance(config.auth, OAuthAuth):
        return Confirm.ask("Authentication failed. Refresh the OAuth token and retry?", default=True)
    if not Confirm.ask("Authentication failed. Enter a new API token?", default=True):
        return False
    token = Prompt.ask("API token", password=True)
    if not token:
        return False
    store.set_jira_config(JiraConfig(config.jira_host, ApiTokenAuth(config.auth.email, token)))
    return True


def _with_retry(session: TimerSession, message: str, task: Callable[[], T]) -> T:
    """Run a Jira call, offering retry (and re-authentication) on failure."""
    while True:
        try:
            with console.status(message):
                return task()
        except JiraError as exc:
            console.print(f"[red]✗ {escape(str(exc))}[/red]")
            choices = ["retry", "quit"]
            if isinstance(exc, AuthenticationFailedError):
                choices.insert(0, "reauthenticate")
            action = Prompt.ask("What now?", choices=choices, default=choices[0])
            if action == "reauthenticate":
                if _reauthenticate(session.store):
                    _connect_forced(session)
                continue
            if action == "retry":
                continue
            console.print("Cancelled.")
            raise typer.Exit(1)


def _connect_forced(session: TimerSession) -> None:
    config = session.store.get_jira_config()
    try:
        session.connect(force_refresh=config is not None and isinstance(config.auth, OAuthAuth))
    except JiraTimeTrackerError as exc:
        console.print(f"[red]✗ {escape(str(exc))}[/red]")


def _render_timer(session: TimerSession) -> bool:
    snapshot = session.snapshot()
    if snapshot is None:
        return False
    timer = snapshot.timer
    summary = escape(snapshot.issue.summary) if snapshot.issue else ""
    status = "[yellow]PAUSED[/yellow]" if timer.is_paused else "[green]RUNNING[/green]"
    body = f"[bold]{snapshot.formatted}[/bold]   {status}\n[dim]{summary}[/dim]"
    console.print(Panel(body, title=timer.issue_key, expand=False))
    return True


def _segments_table(session: TimerSession) -> Table:
    table = Table("#", "Started", "Duration")
    for index, segment in enumerate(session.plan.segments, start=1):
        started = datetime.fromtimestamp(segment.started_at / 1000).strftime("%H:%M")
        table.add_row(str(index), started, format_time_human_readable(segment.duration_seconds))
    return table


def _stop_and_log(session: TimerSession, description_override: Optional[str]) -> Optional[str]:
    """Walk through description, review and posting. ``None`` means back to the timer."""
    session.request_stop()
    default = session.default_description(description_override)
    text = Prompt.ask("Worklog description (empty to keep tracking)", default=default or "")
    if not text.strip():
        session.cancel_stop()
        return None
    save_default = Confirm.ask("Save as default message?", default=False)
    plan = session.submit_description(text, save_as_default=save_default)

    console.print(f"Tracked [bold]{format_time_human_readable(plan.elapsed_seconds)}[/bold] on {plan.issue_key}")
    if plan.splittable:
        console.print(_segments_table(session))
        mode = Prompt.ask("Log as", choices=["split", "single"], default=plan.mode)
        session.choose_mode(mode)

    entries = plan.entries()
    rounded = count_rounded(entries)
    if len(entries) == 1 and rounded:
        console.print("[dim]Jira requires a minimum of 1 minute; it will be rounded up.[/dim]")
    elif rounded:
        console.print(f"[dim]{rounded} short segment(s) will be rounded to 1 minute.[/dim]")

    if not Confirm.ask(f"Log {len(entries)} worklog(s) to {plan.issue_key}?", default=True):
        session.cancel_stop()
        return None

    with console.status(f"logging to {plan.issue_key}"):
        outcome = session.confirm_submit(reauthenticate=lambda: _reauthenticate(session.store))
    if outcome.logged:
        console.print(f"[green]+ {escape(outcome.message)}[/green]")
        return "logged"
    console.print(f"[red]✗ {escape(outcome.message)}[/red]")
    return "error"


def run_interactive_timer(session: TimerSession, description_override: Optional[str] = None) -> str:
    """Drive the active timer until it is logged or discarded.

    Returns ``"logged"``, ``"error"`` (some worklogs saved offline) or ``"quit"``.
    """
    while True:
        if not _render_timer(session):
            return "quit"
        snapshot = session.snapshot()
        toggle = "r" if snapshot.timer.is_paused else "p"
        hint = r"\[r]esume" if toggle == "r" else r"\[p]ause"
        try:
            action = Prompt.ask(
                hint + r"  \[s]top & log  \[q]uit  \[enter] refresh",
                choices=[toggle, "s", "q", ""],
                default="",
                show_choices=False,
            )
        except KeyboardInterrupt:
            action = "q"

        if action == "p":
            session.pause()
        elif action == "r":
            session.resume()
        elif action == "s":
            result = _stop_and_log(session, description_override)
            if result is not None:
                return result
        elif action == "q":
            outcome = session.quit()
            if outcome is QuitOutcome.NEEDS_CONFIRMATION:
                elapsed = format_time_human_readable(session.snapshot().elapsed_seconds)
                if not Confirm.ask(f"Discard {elapsed} without logging?", default=False):
                    continue
                session.quit(confirmed=True)
            return "quit"


def _select_issue(session: TimerSession) -> JiraIssue:
    issues = _with_retry(session, "fetching assigned issues", session.assigned_issues)
    active = [issue for issue in issues if issue.status.lower() not in DONE_STATUSES]

    if active:
        table = Table("#", "Key", "Summary", "Status")
        for index, issue in enumerate(active, start=1):
            table.add_row(str(index), issue.key, escape(issue.summary), issue.status.lower())
        console.print(table)
    else:
        console.print("[dim]no assigned issues found[/dim]")

    while True:
        answer = Prompt.ask(r"Issue number or key (\[q] to cancel)").strip()
        if answer.lower() == "q":
            console.print("Cancelled.")
            raise typer.Exit(1)
        if answer.isdigit() and 1 <= int(answer) <= len(active):
            return active[int(answer) - 1]
        key = normalize_issue_key(answer)
        if key is None:
            console.print("[red]Invalid format. Expected: PROJECT-123[/red]")
            continue
        return _with_retry(session, f"fetching {key}", lambda: session.fetch_issue(key))


@app.command()
def start(
    issue_key: Optional[str] = typer.Argument(None, help="Issue to track, e.g. PROJ-123"),
    description: Optional[str] = typer.Option(
        None, "--description", "-d", help="Pre-fill the worklog description"
    ),
):
    """Start tracking time (shows assigned issues if no key is given)."""
    session = TimerSession(_store())
    if session.timers.has_active_timer():
        active = session.timers.current()
        console.print(f"[yellow]! timer already running for {active.issue_key}[/yellow]")
        console.print(f"[dim]  elapsed: {format_time(session.timers.elapsed_seconds(active))}[/dim]")
        console.print('run "jtt resume" to continue')
        raise typer.Exit(1)

    _connect(session)
    _report_retry(session.drain_queue())

    if issue_key:
        key = normalize_issue_key(issue_key)
        if key is None:
            console.print(f"[red]✗ Invalid issue key: {issue_key}. Expected format: PROJECT-123[/red]")
            raise typer.Exit(1)
        issue = _with_retry(session, f"fetching {key}", lambda: session.fetch_issue(key))
        session.start(issue)
        if run_interactive_timer(session, description) == "quit":
            console.print("Timer cancelled. Time was not logged.")
            return

    while True:
        issue = _select_issue(session)
        try:
            session.start(issue)
        except TimerAlreadyRunningError as exc:
            console.print(f"[red]✗ {escape(str(exc))}[/red]")
            raise typer.Exit(1)
        if run_interactive_timer(session, description) == "quit":
            console.print("Timer cancelled. Time was not logged.")
            return


@app.command()
def resume():
    """Resume the timer left running by a previous session."""
    session = TimerSession(_store())
    timer = session.timers.current()
    if timer is None or not timer.is_running:
        console.print("no active timer to resume")
        console.print('[dim]run "jtt start" to begin tracking[/dim]')
        raise typer.Exit(1)

    _connect(session)
    _report_retry(session.drain_queue())

    elapsed = format_time(session.timers.elapsed_seconds(timer))
    _with_retry(session, f"resuming {timer.issue_key} ({elapsed})", session.resume_session)
    if run_interactive_timer(session) == "quit":
        console.print("Timer cancelled. Time was not logged.")


@app.command()
def status():
    """Show configuration state and the active timer."""
    store = _store()
    session = TimerSession(store)
    console.print("[bold]jira time tracker[/bold]")

    if not store.is_configured():
        console.print("[dim]config[/dim]  not configured")
        console.print('[dim]        run "jtt config" to set up[/dim]')
        return
    console.print("[dim]config[/dim]  ready")

    pending = len(session.queue)
    if pending:
        console.print(f"[dim]queue[/dim]   {pending} worklog(s) pending")

    timer = session.timers.current()
    if timer is None:
        console.print("[dim]no active timer[/dim]")
        console.print('[dim]run "jtt start" to begin tracking[/dim]')
        return

    state = "[yellow]paused[/yellow]" if timer.is_paused else "[green]running[/green]"
    started = datetime.fromtimestamp(timer.started_at / 1000).strftime("%Y-%m-%d %H:%M:%S")
    console.print(f"[dim]issue[/dim]   {timer.issue_key}")
    if timer.description:
        console.print(f"[dim]work[/dim]    {escape(timer.description)}")
    console.print(f"[dim]status[/dim]  {state}")
    console.print(f"[dim]time[/dim]    [bold]{format_time(session.timers.elapsed_seconds(timer))}[/bold]")
    console.print(f"[dim]started[/dim] {started}")
    console.print('[dim]run "jtt resume" to continue[/dim]')


@app.command()
def config(
    show: bool = typer.Option(False, "--show", "-s", help="Show current configuration"),
    clear: bool = typer.Option(False, "--clear", "-c", help="Clear stored credentials"),
    default_message: Optional[str] = typer.Option(
        None, "--default-message", help='Set the default worklog message (use "" to clear)'
    ),
):
    """Configure Jira credentials."""
    store = _store()
    if default_message is not None:
        store.set_default_worklog_message(default_message.strip())
        if default_message.strip():
            console.print(f"[green]+ default message set:[/green] {escape(default_message.strip())}")
        else:
            console.print("[green]+ default message cleared[/green]")
        return
    if show:
        _show_config(store)
        return
    if clear:
        store.clear_jira_config()
        console.print("[green]+ configuration cleared[/green]")
        return
    _interactive_config(store)


def _show_config(store: ConfigStore) -> None:
    jira_config = store.get_jira_config()
    console.print("[bold]jira time tracker configuration[/bold]")
    if jira_config is None:
        console.print('[dim]Not configured. Run "jtt config" to set up.[/dim]')
    else:
        auth = jira_config.auth
        console.print(f"[dim]host[/dim]  {jira_config.jira_host}")
        console.print(f"[dim]auth[/dim]  {auth.method}")
        if isinstance(auth, ApiTokenAuth):
            console.print(f"[dim]email[/dim] {auth.email}")
            console.print(f"[dim]token[/dim] {mask_token(auth.api_token)}")
        else:
            console.print(f"[dim]cloud[/dim] {auth.cloud_id}")
            console.print(f"[dim]token[/dim] {'configured' if auth.access_token else 'not set'}")
    message = store.get_default_worklog_message()
    if message:
        console.print(f"[dim]default message[/dim] {escape(message)}")
    console.print(f"[dim]{store.settings_path}[/dim]")


def _interactive_config(store: ConfigStore) -> None:
    existing = store.get_jira_config()
    method = Prompt.ask(
        "Authentication method",
        choices=["api-token", "oauth"],
        default=existing.auth.method if existing else "api-token",
    )
    host = ""
    while not host:
        host = Prompt.ask("Jira host", default=existing.jira_host if existing else "").strip()
    if not host.startswith(("http://", "https://")):
        host = f"https://{host}"

    if method == "api-token":
        email = Prompt.ask("Email")
        token = Prompt.ask("API token", password=True)
        jira_config = JiraConfig(host, ApiTokenAuth(email, token))
    else:
        client_id = Prompt.ask("OAuth client id")
        client_secret = Prompt.ask("OAuth client secret", password=True)
        cloud_id = Prompt.ask("Jira cloud id")
        access_token = Prompt.ask("Access token", password=True)
        refresh_token = Prompt.ask("Refresh token", password=True)
        store.set_oauth_client_config(OAuthClientConfig(client_id, client_secret))
        # Unknown expiry: treat as expired so the first command refreshes it.
        jira_config = JiraConfig(host, OAuthAuth(access_token, refresh_token, 0, cloud_id))

    client = JiraClient(jira_config)
    with console.status("testing connection"):
        ok = client.test_connection()
    if ok:
        try:
            user = client.get_current_user()
        except JiraError as exc:
            LOGGER.warning("Could not read the current user: %s", exc)
        else:
            console.print(f"[green]+ connected as {escape(user.display_name)}[/green]")
    elif not Confirm.ask("Connection test failed. Save anyway?", default=False):
        raise typer.Exit(1)
    store.set_jira_config(jira_config)
    console.print("[green]+ configuration saved[/green]")


@queue_app.command("list")
def queue_list():
    """List worklogs waiting to be posted."""
    worklogs = TimerSession(_store()).queue.list()
    if not worklogs:
        console.print("[dim]no pending worklogs[/dim]")
        return
    table = Table()
    table.add_column("#", no_wrap=True)
    table.add_column("Issue", no_wrap=True)
    table.add_column("Time", no_wrap=True)
    table.add_column("Started")
    table.add_column("Comment")
    table.add_column("Error")
    for index, worklog in enumerate(worklogs):
        table.add_row(
            str(index),
            worklog.issue_key,
            format_time_human_readable(worklog.time_spent_seconds),
            worklog.started,
            escape(worklog.comment),
            escape(worklog.error),
        )
    console.print(table)


@queue_app.command("retry")
def queue_retry():
    """Post every queued worklog again."""
    session = TimerSession(_store())
    if not session.queue.list():
        console.print("[dim]no pending worklogs[/dim]")
        return
    _connect(session)
    with console.status("retrying pending worklogs"):
        result = session.drain_queue()
    console.print(f"{result.succeeded}/{result.total} posted, {result.failed} still pending")
    if result.failed:
        raise typer.Exit(1)


@queue_app.command("remove")
def queue_remove(index: int = typer.Argument(..., help="Position shown by 'jtt queue list'")):
    """Drop one queued worklog without posting it."""
    queue = TimerSession(_store()).queue
    if not 0 <= index < len(queue):
        console.print(f"[red]✗ no pending worklog at index {index}[/red]")
        raise typer.Exit(1)
    queue.remove_at(index)
    console.print(f"[green]+ removed pending worklog {index}[/green]")


@queue_app.command("clear")
def queue_clear(yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation")):
    """Drop every queued worklog without posting."""
    queue = TimerSession(_store()).queue
    count = len(queue)
    if not count:
        console.print("[dim]no pending worklogs[/dim]")
        return
    if not yes and not Confirm.ask(f"Discard {count} pending worklog(s)?", default=False):
        raise typer.Exit(1)
    queue.clear()
    console.print(f"[green]+ cleared {count} pending worklog(s)[/green]")
