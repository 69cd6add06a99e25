#!/usr/bin/env python
import argparse
import asyncio
import json
import logging
import sys

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from data_access import create_scan
from domain_utils import normalize_url
from scan_config import describe_configuration
from seo_probes.browser import close_browser
from seo_scan import execute_seo_scan

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stderr)]
)
logger = logging.getLogger('seo_health')


async def run(url, keywords):
    scan = create_scan(url)
    try:
        return await execute_seo_scan(scan.id, url, keywords)
    finally:
        await close_browser()


def display_results(scan, console=None):
    """Score breakdown, technical checks and top actions of a finished scan."""
    console = console or Console()

    if not scan.results:
        console.print(f"\n[bold red]Scan {scan.status.value} for {scan.domain}:[/bold red] {scan.error_message}")
        return

    results = scan.results
    breakdown = results['score_breakdown']
    console.print(f"\n[bold blue]SEO Health Scan for {scan.domain}[/bold blue]\n")

    scores_table = Table(title="Health Score")
    scores_table.add_column("Category", style="cyan")
    scores_table.add_column("Score", style="green")
    scores_table.add_row("Technical", f"{breakdown['technical']}/25")
    scores_table.add_row("On-Page SEO", f"{breakdown['on_page_seo']}/25")
    scores_table.add_row("Authority", f"{breakdown['authority']}/25")
    scores_table.add_row("Performance", f"{breakdown['performance']}/25")
    scores_table.add_row("Overall", f"{results['health_score']}/100")
    console.print(scores_table)

    technical = results['technical_details']
    domain_age = results['domain_age']
    console.print(Panel(
        f"[bold]HTTPS:[/bold] {'Yes' if technical['https'] else 'No'}\n"
        f"[bold]Robots.txt:[/bold] {'Found' if technical['robots_txt'] else 'Not Found'}\n"
        f"[bold]Sitemap:[/bold] {'Found' if technical['sitemap'] else 'Not Found'}\n"
        f"[bold]Domain Age:[/bold] {domain_age['years'] if domain_age['years'] is not None else 'Unknown'} years\n"
        f"[bold]Knowledge Graph:[/bold] {'Recognized' if results['entity_verification']['recognized'] else 'Not found'}\n"
        f"[bold]Visibility:[/bold] {results['visibility_percentage']}% ({results['visibility_label']})",
        title="[bold cyan]Site Signals[/bold cyan]"
    ))

    if results['quick_wins']:
        wins_table = Table(title="Quick Wins")
        wins_table.add_column("Keyword", style="cyan")
        wins_table.add_column("Position")
        wins_table.add_column("Score", style="green")
        for quick_win in results['quick_wins']:
            wins_table.add_row(quick_win['keyword'], str(quick_win['position'] or '-'), str(quick_win['score']))
        console.print(wins_table)

    actions_table = Table(title="Action Plan")
    actions_table.add_column("#")
    actions_table.add_column("Task", style="cyan")
    actions_table.add_column("Impact")
    actions_table.add_column("Timeline")
    for item in results['action_items']:
        actions_table.add_row(str(item['priority']), item['task'], item['impact'], item['timeline'])
    console.print(actions_table)


def main():
    parser = argparse.ArgumentParser(description='Run one SEO health scan without the queue')
    parser.add_argument('url', help='URL to scan')
    parser.add_argument('-k', '--keyword', action='append', default=[], dest='keywords',
                        help='Seed keyword to check (repeatable)')
    parser.add_argument('-o', '--output', help='Write the full scan record to this JSON file')
    args = parser.parse_args()

    url = normalize_url(args.url)
    logger.info(f"Providers: {describe_configuration()}")
    scan = asyncio.run(run(url, args.keywords))

    console = Console()
    display_results(scan, console)

    if args.output:
        with open(args.output, 'w') as f:
            json.dump(scan.to_dict(), f, indent=2)
        console.print(f"\nComplete scan saved to {args.output}")

    return 0 if scan.results else 1


if __name__ == "__main__":
    sys.exit(main())
