from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

from rich.text import Text
from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.css.query import NoMatches
from textual.logging import TextualHandler
from textual.widgets import Button, DataTable, Footer, Header, Log, Select, Static
from textual.worker import Worker, WorkerState

if __package__ in (None, ""):
    sys.path.append(str(Path(__file__).resolve().parents[1]))
    from ec2_dashboard.aws_api import (
        AwsEc2Service,
        CloudWatchNetworkMetrics,
        DemoEc2Service,
        DemoNetworkMetrics,
    )
    from ec2_dashboard.dashboard_config import (
        DEFAULT_CONFIG_PATH,
        DEFAULT_DASHBOARD_CONFIG,
        DashboardConfig,
        load_dashboard_config,
    )
    from ec2_dashboard.models import (
        ALL_STATES,
        FILTER_OPTIONS,
        InstanceRecord,
        format_bytes,
        state_category,
    )
    from ec2_dashboard.scanner import FleetScanner
    from ec2_dashboard.session import FetchPhase, FetchSession
else:
    from .aws_api import (
        AwsEc2Service,
        CloudWatchNetworkMetrics,
        DemoEc2Service,
        DemoNetworkMetrics,
    )
    from .dashboard_config import (
        DEFAULT_CONFIG_PATH,
        DEFAULT_DASHBOARD_CONFIG,
        DashboardConfig,
        load_dashboard_config,
    )
    from .models import (
        ALL_STATES,
        FILTER_OPTIONS,
        InstanceRecord,
        format_bytes,
        state_category,
    )
    from .scanner import FleetScanner
    from .session import FetchPhase, FetchSession

logger = logging.getLogger(__name__)

FETCH_LABEL = "Fetch Instances"
EMPTY_TABLE_MESSAGE = 'No data available. Click "Fetch Instances" to load data.'
TABLE_COLUMNS = (
    "Instance ID",
    "Instance Type",
    "Launch Time",
    "User ID",
    "Region",
    "State",
    "Network In (Bytes)",
    "Network Out (Bytes)",
)
STATE_STYLES = {
    "positive": "bold green",
    "negative": "bold red",
    "neutral": "dim",
}


def build_scanner(config: DashboardConfig, *, demo: bool = False) -> FleetScanner:
    if demo:
        return FleetScanner(DemoEc2Service(), DemoNetworkMetrics())
    credentials = config.credentials()
    return FleetScanner(
        AwsEc2Service(credentials, default_region=config.default_region, owner_tag_key=config.owner_tag_key),
        CloudWatchNetworkMetrics(credentials, period=config.metric_period),
    )


class Ec2DashboardApp(App[None]):
    CSS_PATH = "styles.tcss"
    TITLE = "AWS EC2 Dashboard"
    SUB_TITLE = "Instances and network usage across all regions"
    BINDINGS = [
        Binding("f", "fetch", "Fetch"),
        Binding("y", "copy_instance_id", "Copy ID"),
        Binding("q", "quit", "Quit"),
    ]

    def __init__(
        self,
        *,
        config: DashboardConfig = DEFAULT_DASHBOARD_CONFIG,
        demo: bool = False,
        scanner: FleetScanner | None = None,
    ) -> None:
        super().__init__()
        self.config = config
        credentials = config.credentials()
        if scanner is None and not demo and not credentials.is_explicit:
            demo = not credentials.is_available(config.default_region)
        self.demo = demo
        self.scanner = scanner or build_scanner(config, demo=demo)
        self.session = FetchSession()

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="controls"):
            yield Button(FETCH_LABEL, variant="primary", id="fetch")
            yield Select(FILTER_OPTIONS, allow_blank=False, value=ALL_STATES, id="state-filter")
        yield Static("", id="status")
        yield DataTable(id="instance-table")
        yield Log(highlight=False, max_lines=500, auto_scroll=True, id="activity-log")
        yield Footer()

    def on_mount(self) -> None:
        table = self.query_one("#instance-table", DataTable)
        table.cursor_type = "row"
        table.add_columns(*TABLE_COLUMNS)

        if self.demo:
            self._log("No AWS credentials in use. Running in demo mode.")
            self.notify("Demo mode: showing mock instances.", severity="warning")
        else:
            profile = self.config.profile or "default credential chain"
            self._log(f"Using {profile}; regions discovered via {self.config.default_region}.")
        self._log(f'Press "f" or click "{FETCH_LABEL}" to scan every region.')
        self._render_session()
        self.set_focus(table)

    @work(thread=True, exclusive=True, exit_on_error=False, name="fetch-instances")
    def fetch_instances(self) -> bool:
        return self.session.run_scan(
            self.scanner,
            on_change=lambda: self.call_from_thread(self._render_session),
        )

    @on(Worker.StateChanged)
    def on_worker_state_changed(self, event: Worker.StateChanged) -> None:
        if event.worker.name != "fetch-instances":
            return

        if event.worker.state == WorkerState.SUCCESS:
            if self.session.phase == FetchPhase.COMPLETE:
                mode = "demo " if self.demo else ""
                self._log(f"Loaded {len(self.session.instances)} {mode}instances.")
            else:
                self._log(f"Failed to load instances: {self.session.error}")
            self._render_session()
            return

        if event.worker.state == WorkerState.ERROR:
            error = event.worker.error
            logger.error("Instance fetch crashed: %s", error)
            self.session.fail(error)
            self._render_session()
            self._log(f"Failed to load instances: {error}")

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "fetch":
            self.action_fetch()

    @on(Select.Changed, "#state-filter")
    def on_filter_changed(self, event: Select.Changed) -> None:
        if event.value == Select.BLANK:
            return
        value = str(event.value)
        if value == self.session.filter:
            return
        self.session.select_filter(value)
        self._render_instances()
        self._log(f"Showing {len(self.session.visible_instances)} instances ({value}).")

    def action_fetch(self) -> None:
        if not self.session.begin():
            self.notify("A fetch is already in progress.", severity="warning")
            return
        self._log("Fetching instances across all regions.")
        self._render_session()
        self.fetch_instances()

    def action_copy_instance_id(self) -> None:
        instance = self._selected_instance()
        if instance is None:
            self.notify("Select an EC2 instance first", severity="warning")
            return
        self.copy_to_clipboard(instance.instance_id)
        self.notify("Instance ID copied to clipboard.", severity="information")
        self._log(f"Copied {instance.instance_id} to clipboard.")

    def _selected_instance(self) -> InstanceRecord | None:
        table = self.query_one("#instance-table", DataTable)
        visible = self.session.visible_instances
        try:
            row = table.cursor_row
            if row < 0:
                raise IndexError
            return visible[row]
        except IndexError:
            return None

    def _render_session(self) -> None:
        try:
            button = self.query_one("#fetch", Button)
        except NoMatches:
            return
        button.disabled = self.session.loading
        button.label = "Fetching..." if self.session.loading else FETCH_LABEL
        self._set_status(self._status_text())
        self._render_instances()

    def _render_instances(self) -> None:
        table = self.query_one("#instance-table", DataTable)
        table.clear(columns=False)
        visible = self.session.visible_instances
        if not visible:
            table.add_row(Text(EMPTY_TABLE_MESSAGE, style="dim italic"), *("" for _ in TABLE_COLUMNS[1:]))
            return
        for instance in visible:
            table.add_row(
                instance.instance_id,
                instance.instance_type,
                instance.launch_time,
                instance.owner,
                instance.region,
                Text(instance.state, style=STATE_STYLES[state_category(instance.state)]),
                Text(format_bytes(instance.network_in), justify="right"),
                Text(format_bytes(instance.network_out), justify="right"),
            )
        table.move_cursor(row=0, column=0)

    def _status_text(self) -> str:
        session = self.session
        if session.phase == FetchPhase.COMPLETE:
            mode = "demo " if self.demo else ""
            return f"{session.status_message} {len(session.instances)} {mode}instances loaded."
        return session.status_message

    def _set_status(self, message: str) -> None:
        try:
            self.query_one("#status", Static).update(message)
        except NoMatches:
            return

    def _log(self, message: str) -> None:
        timestamp = datetime.now().strftime("%H:%M:%S")
        try:
            self.query_one("#activity-log", Log).write_line(f"[{timestamp}] {message}")
        except NoMatches:
            return


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="AWS EC2 multi-region dashboard")
    parser.add_argument("--profile", default=None, help="AWS CLI profile name")
    parser.add_argument("--region", default=None, help="Region used to discover all other regions")
    parser.add_argument(
        "--config",
        default=str(DEFAULT_CONFIG_PATH),
        help="YAML file with credentials profile, owner tag key and metric period",
    )
    parser.add_argument("--demo", action="store_true", help="Show mock instances instead of calling AWS")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Level for diagnostics sent to the Textual console",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level, handlers=[TextualHandler()])
    config = load_dashboard_config(args.config).with_overrides(profile=args.profile, region=args.region)
    app = Ec2DashboardApp(config=config, demo=args.demo)
    try:
        app.run()
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
