from __future__ import annotations

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..core.models import MultiSpinState, Segment, Sequence, SequenceResult, Step, StepKind
from ..core.selection import compute_probabilities
from ..core.validation import ValidationReport
from ..engine.graph import Progress, narrative_line

_RARITY_MARK = {
    "common": "",
    "uncommon": "[blue]●[/]",
    "rare": "[yellow]●[/]",
    "legendary": "[orange1]●[/]",
}


class RichPresenter:
    def __init__(self, *, no_color: bool = False, console: Console | None = None):
        if console is not None:
            self.console = console
        elif no_color:
            self.console = Console(force_terminal=False, color_system=None)
        else:
            self.console = Console(force_terminal=True, color_system="auto")
        self.quit_requested = False

    def start_run(self, sequence: Sequence) -> None:
        body = f"[bold]{sequence.name}[/]"
        if sequence.description:
            body += f"\n{sequence.description}"
        body += "\n\n[bold]Controls[/]: Enter = spin • q = quit"
        self.console.print(Panel(body, title="SpinVerse", border_style="bold cyan", expand=False))
        self.console.print()

    def show_step(self, step: Step, wheel: tuple[Segment, ...], progress: Progress, session: MultiSpinState) -> None:
        headline = step.title
        if step.kind is StepKind.DETERMINER:
            headline += " (spin count)"
        self.console.rule(f"{headline} [dim]{progress.completed + 1}/{progress.total}[/]")
        if step.description:
            self.console.print(f"[italic]{step.description}[/]")

        table = Table(show_header=True, header_style="bold blue", box=box.SIMPLE_HEAVY)
        table.add_column("#", justify="right", style="cyan", no_wrap=True)
        table.add_column("Option", style="bold")
        table.add_column("Chance", justify="right")
        table.add_column("", no_wrap=True)
        for i, (segment, prob) in enumerate(zip(wheel, compute_probabilities(wheel), strict=True), 1):
            table.add_row(str(i), segment.text, f"{prob:.0%}", _RARITY_MARK.get(segment.rarity.value, ""))
        self.console.print(table)
        if session.is_active and session.current_step_id == step.id:
            self.console.print(f"[magenta]Multi-spin {session.current_count}/{session.total_count}[/]")

    def show_spin(self, segment: Segment, current: int | None = None, total: int | None = None) -> None:
        counter = f" [dim]({current}/{total})[/]" if current is not None and total is not None and total > 1 else ""
        self.console.print(f"The wheel lands on [bold green]{segment.text}[/]{counter}")

    def show_completed(self, result: SequenceResult) -> None:
        if result.multi_spin_results:
            spins = ", ".join(spin.segment.text for spin in result.multi_spin_results)
            self.console.print(f"[dim]All spins:[/] {spins}")
        self.console.print()

    def summary(self, sequence: Sequence, history: tuple[SequenceResult, ...]) -> None:
        titles = {step.id: step.title for step in sequence.steps}
        table = Table(title="Your Story", box=box.SIMPLE_HEAVY, header_style="bold magenta")
        table.add_column("Step", style="bold cyan")
        table.add_column("Result")
        for result in history:
            text = result.spin_result.segment.text
            if result.multi_spin_results:
                text = " + ".join(spin.segment.text for spin in result.multi_spin_results)
            table.add_row(titles.get(result.step_id, result.step_id), text)
        self.console.print(table)
        line = narrative_line(history)
        if line:
            self.console.print(Panel(line, border_style="green", expand=False))

    def show_validation(self, sequence: Sequence, report: ValidationReport) -> None:
        status = "[bold green]valid[/]" if report.is_valid else "[bold red]invalid[/]"
        self.console.print(f"{sequence.name} ({sequence.id}): {status}")
        if not report.errors and not report.warnings:
            return
        table = Table(show_header=True, header_style="bold", box=box.SIMPLE)
        table.add_column("Level")
        table.add_column("Code", style="cyan")
        table.add_column("Message", overflow="fold")
        for issue in report.errors:
            table.add_row("[red]error[/]", issue.code, issue.message)
        for issue in report.warnings:
            table.add_row("[yellow]warning[/]", issue.code, issue.message)
        self.console.print(table)

    def prompt_spin(self, input_fn=input) -> bool:
        raw = input_fn("Press Enter to spin, or 'q' to quit: ").strip().lower()
        if raw == "q":
            self.quit_requested = True
            return False
        return True
