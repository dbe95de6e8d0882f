# ==============================================================================
# Stats Commands
# ==============================================================================
"""
Analytics commands for the kaunta CLI.

Every command takes a website (domain or id), a rolling window in days and
optional exact-match filters, and prints either a formatted report or JSON.

Exit codes: 0 on success, 2 for invalid parameters, 1 for an unknown
website or a database failure.
"""

import threading
from datetime import timedelta
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from kaunta.cli.shared import (
    BOX_WIDTH,
    C,
    I,
    _box_bottom,
    _box_header,
    _box_line,
    _empty_line,
    _kv_line,
    _section_header,
    handle_errors,
    open_service,
    print_error,
    print_json,
)
from kaunta.core.aggregation import QueryFilters
from kaunta.core.errors import StorageError
from kaunta.core.models import LiveSnapshot, OverviewStats
from kaunta.services.live import handle_shutdown_signals, run_live_loop
from kaunta.utils.config import get_settings

# ==============================================================================
# Shared Options
# ==============================================================================

WebsiteArg = Annotated[str, typer.Argument(help="Website domain or id")]
DaysOpt = Annotated[int, typer.Option("--days", "-d", help="Rolling window in days (1-365)")]
JsonOpt = Annotated[bool, typer.Option("--json", "-j", help="Output as JSON for scripting")]
CountryOpt = Annotated[Optional[str], typer.Option("--country", help="Filter by country code")]
BrowserOpt = Annotated[Optional[str], typer.Option("--browser", help="Filter by browser")]
DeviceOpt = Annotated[Optional[str], typer.Option("--device", help="Filter by device")]
ReferrerOpt = Annotated[Optional[str], typer.Option("--referrer", help="Filter by referrer domain")]
CityOpt = Annotated[Optional[str], typer.Option("--city", help="Filter by city")]
RegionOpt = Annotated[Optional[str], typer.Option("--region", help="Filter by region")]
PageOpt = Annotated[Optional[str], typer.Option("--page", help="Filter by page path")]


def _pct(value: float) -> str:
    return f"{value:.1f}%"


def _duration(seconds: float) -> str:
    minutes, secs = divmod(int(round(seconds)), 60)
    return f"{minutes}m {secs:02d}s" if minutes else f"{secs}s"


def _table(title: str, *columns: tuple[str, str]) -> Table:
    table = Table(title=title, show_header=True, header_style="bold")
    for name, justify in columns:
        table.add_column(name, justify=justify)
    return table


# ==============================================================================
# Overview
# ==============================================================================


def _render_overview(website: str, days: int, stats: OverviewStats) -> None:
    W = BOX_WIDTH

    def _dist(values: dict[str, int]) -> str:
        if not values:
            return f"{C.DIM}none{C.RESET}"
        return ", ".join(f"{name} ({count:,})" for name, count in values.items())

    print()
    print(_box_header(f"KAUNTA {I.BULLET} {website} {I.BULLET} last {days}d", W))
    print(_empty_line(W))
    print(_kv_line("Visitors", f"{stats.total_visitors:,}", W))
    print(_kv_line("Pageviews", f"{stats.total_pageviews:,}", W))
    print(_kv_line("Avg engagement", _duration(stats.avg_engagement_seconds), W))
    print(_empty_line(W))
    print(_section_header("Top", W))
    top_page = stats.top_page
    print(
        _kv_line(
            "Page",
            f"{top_page.path} ({top_page.pageviews:,} views)" if top_page else "none",
            W,
        )
    )
    top_ref = stats.top_referrer
    print(
        _kv_line(
            "Referrer",
            f"{top_ref.domain} ({top_ref.visitors:,} visitors)" if top_ref else "none",
            W,
        )
    )
    print(_section_header("Audience", W))
    print(_kv_line("Browsers", _dist(stats.browser_distribution), W))
    print(_kv_line("Devices", _dist(stats.device_distribution), W))
    print(_kv_line("Countries", _dist(stats.country_distribution), W))
    print(_empty_line(W))
    print(_box_bottom(W))
    print()


def stats_overview(
    website: WebsiteArg,
    days: DaysOpt = 7,
    country: CountryOpt = None,
    browser: BrowserOpt = None,
    device: DeviceOpt = None,
    referrer: ReferrerOpt = None,
    city: CityOpt = None,
    region: RegionOpt = None,
    page: PageOpt = None,
    json_output: JsonOpt = False,
) -> None:
    """Show visitors, pageviews, top page/referrer and audience distributions.

    Examples:
        kaunta stats overview example.com
        kaunta stats overview example.com --days 30 --country US --json
    """
    filters = QueryFilters(
        country=country, browser=browser, device=device, referrer=referrer,
        city=city, region=region, page=page,
    )
    with open_service() as service, handle_errors():
        stats = service.overview(website, days, filters)

    if json_output:
        print_json(stats)
        return
    _render_overview(website, days, stats)


# ==============================================================================
# Pages
# ==============================================================================


def stats_pages(
    website: WebsiteArg,
    days: DaysOpt = 7,
    top: Annotated[int, typer.Option("--top", "-t", help="Number of pages (1-100)")] = 10,
    country: CountryOpt = None,
    browser: BrowserOpt = None,
    device: DeviceOpt = None,
    referrer: ReferrerOpt = None,
    city: CityOpt = None,
    region: RegionOpt = None,
    json_output: JsonOpt = False,
) -> None:
    """Show the most viewed pages with bounce rate and time on page.

    Examples:
        kaunta stats pages example.com --top 20
    """
    filters = QueryFilters(
        country=country, browser=browser, device=device, referrer=referrer,
        city=city, region=region,
    )
    with open_service() as service, handle_errors():
        pages = service.top_pages(website, days, top, filters)

    if json_output:
        print_json(pages)
        return

    table = _table(
        f"Top pages: {website} (last {days}d)",
        ("Path", "left"),
        ("Pageviews", "right"),
        ("Visitors", "right"),
        ("Bounce", "right"),
        ("Avg time", "right"),
    )
    for p in pages:
        table.add_row(
            p.path,
            f"{p.pageviews:,}",
            f"{p.unique_visitors:,}",
            _pct(p.bounce_rate),
            _duration(p.avg_time_seconds),
        )
    print()
    Console().print(table)
    print()


# ==============================================================================
# Breakdown
# ==============================================================================


def stats_breakdown(
    website: WebsiteArg,
    by: Annotated[
        str,
        typer.Option(
            "--by", "-b", help="Dimension: country, browser, device, referrer, city, region, page"
        ),
    ],
    days: DaysOpt = 7,
    limit: Annotated[int, typer.Option("--limit", "-l", help="Number of rows (1-100)")] = 10,
    country: CountryOpt = None,
    browser: BrowserOpt = None,
    device: DeviceOpt = None,
    referrer: ReferrerOpt = None,
    city: CityOpt = None,
    region: RegionOpt = None,
    page: PageOpt = None,
    json_output: JsonOpt = False,
) -> None:
    """Group visitors by one dimension.

    Examples:
        kaunta stats breakdown example.com --by browser
        kaunta stats breakdown example.com --by referrer --limit 5 --json
    """
    filters = QueryFilters(
        country=country, browser=browser, device=device, referrer=referrer,
        city=city, region=region, page=page,
    )
    with open_service() as service, handle_errors():
        result = service.breakdown(website, by, days, limit, filters)

    if json_output:
        print_json(result)
        return

    table = _table(
        f"{result.dimension.capitalize()} breakdown: {website} (last {days}d)",
        ("Name", "left"),
        ("Visitors", "right"),
        ("Pageviews", "right"),
        ("Bounce", "right"),
    )
    for item in result.items:
        table.add_row(
            item.name, f"{item.visitors:,}", f"{item.pageviews:,}", _pct(item.bounce_rate)
        )
    print()
    Console().print(table)
    print()


# ==============================================================================
# Map
# ==============================================================================


def stats_map(
    website: WebsiteArg,
    days: DaysOpt = 7,
    browser: BrowserOpt = None,
    device: DeviceOpt = None,
    referrer: ReferrerOpt = None,
    page: PageOpt = None,
    json_output: JsonOpt = False,
) -> None:
    """Show visitors per country with their share of the total.

    Examples:
        kaunta stats map example.com --json
    """
    filters = QueryFilters(browser=browser, device=device, referrer=referrer, page=page)
    with open_service() as service, handle_errors():
        points = service.map_data(website, days, filters)

    if json_output:
        print_json(points)
        return

    table = _table(
        f"Visitors by country: {website} (last {days}d)",
        ("Country", "left"),
        ("ISO3", "left"),
        ("Visitors", "right"),
        ("Share", "right"),
    )
    for point in points:
        table.add_row(
            point.country, point.alpha3 or "-", f"{point.visitors:,}", f"{point.percentage:.2f}%"
        )
    print()
    Console().print(table)
    print()


# ==============================================================================
# Bounces
# ==============================================================================


def stats_bounces(
    website: WebsiteArg,
    days: DaysOpt = 7,
    country: CountryOpt = None,
    browser: BrowserOpt = None,
    device: DeviceOpt = None,
    json_output: JsonOpt = False,
) -> None:
    """Show bounce rate, average session duration and the bounced sessions.

    Examples:
        kaunta stats bounces example.com --device mobile
    """
    filters = QueryFilters(country=country, browser=browser, device=device)
    with open_service() as service, handle_errors():
        rate = service.bounce_rate(website, days, filters)
        avg_duration = service.avg_session_duration(website, days, filters)
        sessions = service.bounce_sessions(website, days, filters)

    if json_output:
        print_json(
            {
                "bounce_rate": rate,
                "avg_session_duration_seconds": avg_duration,
                "sessions": [s.model_dump(mode="json") for s in sessions],
            }
        )
        return

    print()
    print(f"  {C.BOLD}Bounce rate:{C.RESET}           {_pct(rate)}")
    print(f"  {C.BOLD}Avg session duration:{C.RESET}  {_duration(avg_duration)}")
    table = _table(
        f"Bounced sessions: {website} (last {days}d)",
        ("When", "left"),
        ("Page", "left"),
        ("Country", "left"),
        ("Browser", "left"),
        ("Device", "left"),
    )
    for s in sessions:
        table.add_row(
            s.created_at.strftime("%Y-%m-%d %H:%M"), s.url_path, s.country, s.browser, s.device
        )
    print()
    Console().print(table)
    print()


# ==============================================================================
# Engagement
# ==============================================================================


def stats_engagement(
    website: WebsiteArg,
    days: DaysOpt = 7,
    limit: Annotated[int, typer.Option("--limit", "-l", help="Number of pages (1-100)")] = 10,
    country: CountryOpt = None,
    browser: BrowserOpt = None,
    device: DeviceOpt = None,
    page: PageOpt = None,
    json_output: JsonOpt = False,
) -> None:
    """Show engagement time, scroll depth and bounce rate per page.

    Examples:
        kaunta stats engagement example.com --limit 5
    """
    filters = QueryFilters(country=country, browser=browser, device=device, page=page)
    with open_service() as service, handle_errors():
        pages = service.page_engagement(website, days, limit, filters)

    if json_output:
        print_json(pages)
        return

    table = _table(
        f"Page engagement: {website} (last {days}d)",
        ("Path", "left"),
        ("Pageviews", "right"),
        ("Visitors", "right"),
        ("Engaged", "right"),
        ("Scroll", "right"),
        ("Bounce", "right"),
    )
    for p in pages:
        table.add_row(
            p.page_path,
            f"{p.pageviews:,}",
            f"{p.unique_visitors:,}",
            _duration(p.avg_engagement_time / 1000),
            f"{p.avg_scroll_depth:.1f}%",
            _pct(p.bounce_rate),
        )
    print()
    Console().print(table)
    print()


# ==============================================================================
# Today and Time Series
# ==============================================================================


def stats_today(
    website: WebsiteArg,
    country: CountryOpt = None,
    browser: BrowserOpt = None,
    device: DeviceOpt = None,
    page: PageOpt = None,
    json_output: JsonOpt = False,
) -> None:
    """Show current visitors and the last 24 hours at a glance.

    Examples:
        kaunta stats today example.com
        kaunta stats today example.com --device mobile --json
    """
    filters = QueryFilters(country=country, browser=browser, device=device, page=page)
    with open_service() as service, handle_errors():
        stats = service.dashboard(website, filters)

    if json_output:
        print_json(stats)
        return

    W = BOX_WIDTH
    print()
    print(_box_header(f"TODAY {I.BULLET} {website}", W))
    print(_empty_line(W))
    print(_kv_line("Current visitors", f"{C.BRIGHT_GREEN}{stats.current_visitors:,}{C.RESET}", W))
    print(_kv_line("Pageviews (24h)", f"{stats.today_pageviews:,}", W))
    print(_kv_line("Visitors (24h)", f"{stats.today_visitors:,}", W))
    print(_kv_line("Bounce rate (24h)", _pct(stats.today_bounce_rate), W))
    print(_empty_line(W))
    print(_box_bottom(W))
    print()


def stats_timeseries(
    website: WebsiteArg,
    days: Annotated[
        int, typer.Option("--days", "-d", help="Rolling window in days (1-90)")
    ] = 7,
    country: CountryOpt = None,
    browser: BrowserOpt = None,
    device: DeviceOpt = None,
    page: PageOpt = None,
    json_output: JsonOpt = False,
) -> None:
    """Show pageviews and visitors per hour.

    Hours without traffic are listed with zeros.

    Examples:
        kaunta stats timeseries example.com --days 1
        kaunta stats timeseries example.com --days 30 --page /pricing --json
    """
    filters = QueryFilters(country=country, browser=browser, device=device, page=page)
    with open_service() as service, handle_errors():
        points = service.timeseries(website, days, filters)

    if json_output:
        print_json(points)
        return

    table = _table(
        f"Hourly traffic: {website} (last {days}d)",
        ("Hour (UTC)", "left"),
        ("Pageviews", "right"),
        ("Visitors", "right"),
    )
    for point in points:
        table.add_row(
            point.timestamp.strftime("%Y-%m-%d %H:00"),
            f"{point.pageviews:,}",
            f"{point.visitors:,}",
        )
    print()
    Console().print(table)
    print()


# ==============================================================================
# Live
# ==============================================================================


def _render_live(website: str, snapshot: LiveSnapshot) -> None:
    W = BOX_WIDTH
    print()
    print(_box_header(f"LIVE {I.CIRCLE} {website}", W))
    print(_box_line(f"  {C.DIM}{snapshot.timestamp.strftime('%H:%M:%S')} UTC{C.RESET}", W))
    print(_empty_line(W))
    print(_kv_line("Active visitors", f"{C.BRIGHT_GREEN}{snapshot.active_visitors:,}{C.RESET}", W))
    print(_kv_line("Pageviews (1 min)", f"{snapshot.pageviews_last_minute:,}", W))
    print(_kv_line("Pageviews (5 min)", f"{snapshot.recent_events:,}", W))
    top_page = snapshot.top_page
    print(
        _kv_line("Top page", f"{top_page.path} ({top_page.pageviews:,})" if top_page else "none", W)
    )
    if snapshot.recent_referrers:
        print(_section_header("Referrers (5 min)", W))
        for ref in snapshot.recent_referrers:
            print(_box_line(f"  {I.BULLET} {ref.referrer} ({ref.count:,})", W))
    print(_empty_line(W))
    print(_box_bottom(W))


def stats_live(
    website: WebsiteArg,
    interval: Annotated[
        Optional[int],
        typer.Option("--interval", "-i", help="Refresh interval in seconds (2-60)"),
    ] = None,
    json_output: JsonOpt = False,
) -> None:
    """Show live activity, refreshing until interrupted.

    Press Ctrl+C to stop.

    Examples:
        kaunta stats live example.com
        kaunta stats live example.com --interval 10 --json
    """
    settings = get_settings()
    if interval is None:
        interval = settings.live.interval_seconds

    def _render(snapshot: LiveSnapshot) -> None:
        if json_output:
            print_json(snapshot)
        else:
            _render_live(website, snapshot)

    def _on_error(error: StorageError) -> None:
        print_error(f"Live update failed: {error}")

    with open_service(settings) as service, handle_errors():
        # Resolve once up front so an unknown website fails fast
        site = service.resolve(website)
        with handle_shutdown_signals(threading.Event()) as stop:
            rendered = run_live_loop(
                lambda: service.live(site.website_id),
                _render,
                interval,
                wait=stop.wait,
                on_error=_on_error,
                max_duration=timedelta(hours=settings.live.max_duration_hours),
            )

    if not json_output:
        print(f"\n  {C.DIM}Stopped after {rendered} updates.{C.RESET}\n")
