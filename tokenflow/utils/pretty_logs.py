# ====================================================================== #
# tokenflow/utils/pretty_logs.py
# Rich-based pretty logging for operator-facing summaries.
# ====================================================================== #

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Tuple

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from tokenflow.config import LOG_TOP_N, PRETTY_LOGS


class Pretty:
    def __init__(self, enable: bool = True):
        self.enable = bool(enable)
        self.console = Console(log_path=False, highlight=False) if self.enable else None

    def rule(self, title: str = ""):
        if self.console is not None:
            self.console.rule(Text.from_markup(title))
        else:
            line = "─" * 30
            print(f"{line} {title} {line}" if title else line * 2)

    def log(self, msg: str):
        if self.console is not None:
            self.console.log(msg)
        else:
            print(Text.from_markup(msg).plain)

    def banner(self, title: str, subtitle: str = "", style: str = "bold cyan"):
        if self.console is not None:
            self.console.print(Panel.fit(Text(f"{title}\n{subtitle}", justify="center"), title="status", style=style))
        else:
            print(f"\n=== {title} ===")
            if subtitle:
                print(subtitle)

    def kv_panel(self, title: str, items: Iterable[Tuple[str, Any]], style: str = "bold"):
        if self.console is not None:
            body = "\n".join([f"[white]{k}[/white]: {v}" for k, v in items])
            self.console.print(Panel(body, title=title, border_style=style))
        else:
            print(f"\n[{title}]")
            for k, v in items:
                print(f"  - {k}: {v}")

    def table(self, title: str, columns: List[str], rows: List[List[Any]], caption: str | None = None):
        rows = rows[:LOG_TOP_N]
        if self.console is not None:
            t = Table(title=title, box=box.MINIMAL_DOUBLE_HEAD, show_lines=False)
            for c in columns:
                t.add_column(c)
            for r in rows:
                t.add_row(*[str(x) for x in r])
            if caption:
                t.caption = caption
            self.console.print(t)
        else:
            print(f"\n{title}")
            print(" | ".join(columns))
            for r in rows:
                print(" | ".join([str(x) for x in r]))

    # Convenience formatters
    def show_startup(self, items: Iterable[Tuple[str, Any]]):
        self.kv_panel("tokenflow ingester", items, style="bold cyan")

    def show_window(self, start: int, end: int, transfers: int, treasury: int, failures: int, elapsed_s: float):
        self.log(
            f"[green]✓ window [{start:,}..{end:,}][/green] "
            f"{end - start + 1} blocks • {transfers} transfers "
            f"([magenta]{treasury} treasury[/magenta]) • "
            f"{'[yellow]' if failures else ''}{failures} decode failures{'[/yellow]' if failures else ''} • "
            f"{elapsed_s:.1f}s"
        )

    def show_token_totals(self, title: str, totals: Dict[str, Tuple[int, float]]):
        # contract -> (count, scaled amount)
        rows = sorted(totals.items(), key=lambda kv: kv[1][1], reverse=True)
        rows = [[name, cnt, f"{amt:,.4f}"] for name, (cnt, amt) in rows]
        if rows:
            self.table(title, ["Token", "Transfers", "Amount"], rows)

    def show_alert(self, block: int, attempts: int, reason: str):
        self.banner(
            f"ALERT: block {block:,} failing repeatedly",
            f"{attempts} consecutive failed attempts\n{reason}",
            style="bold red",
        )


pretty = Pretty(enable=PRETTY_LOGS)
