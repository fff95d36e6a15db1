"""Rich renderables for plans, collisions, pass results and audit history."""

from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from aliasync.core.converger import ConvergeResult
from aliasync.core.reconcile import PassResult
from aliasync.models.enums import MutationOutcome, PassOutcome, PlanAction
from aliasync.models.plan import CollisionGroup, MutationRecord, ReconciliationPlan

ACTION_COLORS = {
    PlanAction.CONVERGE: "yellow",
    PlanAction.CLEAR_ONLY: "red",
    PlanAction.PRESERVE_UNSAFE: "magenta",
    PlanAction.NOOP: "dim",
}

OUTCOME_COLORS = {
    PassOutcome.CONVERGED: "green",
    PassOutcome.NOOP_NEEDED: "cyan",
    PassOutcome.PARTIAL_FAILURE: "yellow",
    PassOutcome.RECOVERY_FAILED: "red",
    MutationOutcome.APPLIED: "green",
    MutationOutcome.PARTIAL: "yellow",
    MutationOutcome.FAILED: "red",
    MutationOutcome.SKIPPED: "dim",
}


def _alias(value: str | None) -> str:
    return value if value else "-"


def format_action(action: PlanAction) -> Text:
    return Text(action.value, style=ACTION_COLORS.get(action, "white"))


# =============================================================================
# Plan / Collisions
# =============================================================================


def format_plan_table(plan: ReconciliationPlan, overrides: dict | None = None) -> Table:
    """
    Render the per-node plan.

    Args:
        plan: Diff engine output.
        overrides: Effective actions after collision folding (node -> entry).
    """
    overrides = overrides or {}
    table = Table(title="Alias Plan", show_header=True)
    table.add_column("Node", style="cyan")
    table.add_column("Action")
    table.add_column("Current Alias")
    table.add_column("Target")
    table.add_column("Reason", style="dim")

    for name, entry in plan.entries.items():
        entry = overrides.get(name, entry)
        table.add_row(
            name,
            format_action(entry.action),
            _alias(entry.current),
            _alias(entry.target),
            entry.reason,
        )

    # Collision members outside the cluster only appear in the overrides
    for name, entry in overrides.items():
        if name not in plan.entries:
            table.add_row(
                name,
                format_action(entry.action),
                _alias(entry.current),
                _alias(entry.target),
                entry.reason,
            )

    return table


def format_collisions_table(collisions: list[CollisionGroup]) -> Table:
    table = Table(title="Alias Collisions", show_header=True)
    table.add_column("Alias Range", style="red")
    table.add_column("Nodes", style="cyan")
    for group in collisions:
        table.add_row(group.alias, ", ".join(group.nodes))
    return table


# =============================================================================
# Mutations / Results
# =============================================================================


def format_mutation_table(records: list[MutationRecord], title: str = "Mutations") -> Table:
    table = Table(title=title, show_header=True)
    table.add_column("Node", style="cyan")
    table.add_column("Action")
    table.add_column("Old Alias")
    table.add_column("New Alias")
    table.add_column("Outcome")
    table.add_column("Error", style="dim")

    for record in records:
        table.add_row(
            record.node,
            format_action(record.action),
            _alias(record.old_alias),
            _alias(record.new_alias),
            Text(record.outcome.value, style=OUTCOME_COLORS.get(record.outcome, "white")),
            record.error or "",
        )
    return table


def format_pass_result(result: PassResult) -> Panel:
    """Summary panel for a finished pass."""
    color = OUTCOME_COLORS.get(result.outcome, "white")
    lines = [
        Text.assemble(("Pass: ", "bold"), result.pass_id),
        Text.assemble(("Outcome: ", "bold"), (result.outcome.value, color)),
    ]

    if result.skipped_reason:
        lines.append(Text.assemble(("Skipped: ", "bold"), result.skipped_reason))

    if result.plan is not None:
        counts = ", ".join(f"{k}={v}" for k, v in result.plan.counts().items())
        lines.append(Text.assemble(("Plan: ", "bold"), counts or "empty"))

    if result.collisions:
        lines.append(
            Text.assemble(("Collisions: ", "bold"), (str(len(result.collisions)), "red"))
        )

    if result.repair is not None:
        repair = result.repair
        lines.append(Text.assemble(("Repair: ", "bold"), repair.state.value))
        if repair.rebooted:
            lines.append(Text(f"  rebooted: {' '.join(repair.rebooted)}"))
        if repair.unreachable:
            lines.append(Text(f"  unreachable: {' '.join(repair.unreachable)}", style="red"))
        if repair.unresolved:
            lines.append(Text(f"  unresolved: {' '.join(repair.unresolved)}", style="red"))

    items = [Group(*lines)]
    if result.records:
        items.append(format_mutation_table(result.records))

    return Panel(Group(*items), title="Alias Sync", border_style=color)


def format_reset_result(result: ConvergeResult) -> Table:
    return format_mutation_table(result.records, title="Alias Reset")


# =============================================================================
# Audit History
# =============================================================================


def format_history_table(entries: list) -> Table:
    table = Table(title="Audit History", show_header=True)
    table.add_column("Time", style="dim")
    table.add_column("Pass")
    table.add_column("Node", style="cyan")
    table.add_column("Action")
    table.add_column("Old Alias")
    table.add_column("New Alias")
    table.add_column("Outcome")

    for entry in entries:
        outcome = MutationOutcome(entry.outcome)
        table.add_row(
            entry.created_at.strftime("%Y-%m-%d %H:%M:%S") if entry.created_at else "-",
            entry.pass_id,
            entry.node,
            format_action(PlanAction(entry.action)),
            _alias(entry.old_alias),
            _alias(entry.new_alias),
            Text(outcome.value, style=OUTCOME_COLORS.get(outcome, "white")),
        )
    return table
