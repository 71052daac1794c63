"""
Plain-text rendering of plans and detection tables.

Used by the CLI for the pre-confirmation summary, dry runs and the doctor
command.
"""

from typing import List, Sequence

from templatr_setup.engine.detector import DetectionResult
from templatr_setup.engine.plan import Action, Plan, RuntimePlan

STATUS_ICONS = {
    Action.SKIP: "[OK]",
    Action.INSTALL: "[MISSING]",
    Action.UPGRADE: "[UPGRADE]",
}

ACTION_LABELS = {
    Action.SKIP: "already installed",
    Action.INSTALL: "will install",
    Action.UPGRADE: "will upgrade",
}


def status_icon(action: Action) -> str:
    return STATUS_ICONS.get(action, "[?]")


def render_runtime_line(runtime: RuntimePlan) -> str:
    """
    Format one runtime row.

    Example:
        >>> render_runtime_line(RuntimePlan("node", "Node.js", ">=20", "18.17.0", Action.UPGRADE))
        '  [UPGRADE]  Node.js          required >=20, found 18.17.0 (will upgrade)'
    """
    found = runtime.installed_version or "not installed"
    return (
        f"  {status_icon(runtime.action):<10} {runtime.display_name:<16} "
        f"required {runtime.required_version}, found {found} "
        f"({ACTION_LABELS[runtime.action]})"
    )


def render_plan(plan: Plan) -> str:
    """Render the full plan summary."""
    lines: List[str] = ["Runtimes:"]
    if plan.runtimes:
        lines.extend(render_runtime_line(r) for r in plan.runtimes)
    else:
        lines.append("  (none required)")

    if plan.packages is not None:
        availability = "available" if plan.packages.available else "not found"
        lines.append("")
        lines.append("Packages:")
        lines.append(f"  manager: {plan.packages.manager} ({availability})")
        if plan.packages.install_command:
            lines.append(f"  install: {plan.packages.install_command}")
        if plan.packages.global_packages:
            lines.append(f"  global:  {', '.join(plan.packages.global_packages)}")

    if plan.env_fields:
        required = sum(1 for f in plan.env_fields if f.required)
        lines.append("")
        lines.append(
            f"Environment: {len(plan.env_fields)} variable(s), {required} required"
        )
    if plan.config_files:
        field_count = sum(len(c.fields) for c in plan.config_files)
        lines.append(
            f"Config: {len(plan.config_files)} file(s), {field_count} field(s)"
        )

    pending = plan.pending()
    lines.append("")
    if pending:
        installs = sum(1 for r in pending if r.action == Action.INSTALL)
        upgrades = len(pending) - installs
        lines.append(f"{installs} to install, {upgrades} to upgrade")
    else:
        lines.append("All runtimes are already installed.")
    return "\n".join(lines)


def render_detection_table(results: Sequence[DetectionResult]) -> str:
    """Render detection results as an aligned table."""
    lines = [f"  {'Tool':<10} {'Version':<30} Path"]
    for result in results:
        if result.installed:
            lines.append(f"  {result.name:<10} {result.version:<30} {result.path}")
        else:
            lines.append(f"  {result.name:<10} {'-':<30} not found")
    return "\n".join(lines)


__all__ = [
    "STATUS_ICONS",
    "status_icon",
    "render_runtime_line",
    "render_plan",
    "render_detection_table",
]
