"""Markdown and JSON reports for resolution and release checks."""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .model import Policy, ReconciliationResult, ResolutionSummary
from .scan import count_artifacts


def generate_resolution_report(summary: ResolutionSummary,
                               majority: Optional[str] = None,
                               distribution: Optional[Dict[str, int]] = None) -> str:
    """
    Generate a Markdown report of a version resolution pass.

    Args:
        summary: Counts and per-record entries from the resolver
        majority: Majority current game version, if computed
        distribution: Count per current game version

    Returns:
        Markdown formatted report as string
    """
    lines = []

    lines.append("# Version Update Report")
    lines.append(f"*Generated on {datetime.now().strftime('%Y-%m-%d at %H:%M:%S')}*")
    lines.append("")

    lines.append("## Summary")
    lines.append("")
    if majority:
        lines.append(f"- **Majority Version**: {majority}")
    lines.append(f"- **Next Target**: {summary.target_next}")
    lines.append(f"- **Resolved via API**: {summary.api_resolved}")
    lines.append(f"- **Fallback Used**: {summary.fallback_used}")
    lines.append(f"- **Unresolved**: {summary.unresolved}")
    lines.append(f"- **Skipped**: {summary.skipped}")
    if summary.current_unlisted:
        lines.append(f"- **Current Version Not Listed Upstream**: {summary.current_unlisted}")
    lines.append("")

    if distribution:
        lines.extend(_generate_distribution_section(distribution))

    unresolved = [e for e in summary.entries if e["outcome"] == "unresolved" or e.get("current_unlisted")]
    if unresolved:
        lines.append("## Needs Attention")
        lines.append("")
        for entry in unresolved:
            lines.append(f"- **{entry['name']}** ({entry['kind']}): {entry['detail']}")
        lines.append("")

    lines.append("## Records")
    lines.append("")
    lines.append("| Name | Kind | Outcome | Next Version | Latest Game Version |")
    lines.append("|------|------|---------|--------------|---------------------|")
    for entry in summary.entries:
        lines.append(f"| {entry['name']} | {entry['kind']} | {entry['outcome']} | "
                     f"{entry['next_version'] or '-'} | {entry['latest_game_version'] or '-'} |")
    lines.append("")

    return "\n".join(lines)


def _generate_distribution_section(distribution: Dict[str, int]) -> List[str]:
    lines = ["## Current Game Versions", ""]
    total = sum(distribution.values())
    for version, count in sorted(distribution.items(), key=lambda kv: -kv[1]):
        share = 100.0 * count / total if total else 0.0
        lines.append(f"- {version}: {count} ({share:.0f}%)")
    lines.append("")
    return lines


def generate_reconciliation_report(result: ReconciliationResult, version: str,
                                   expected_count: int, actual_count: int,
                                   root_dir: Optional[Path] = None,
                                   policy: Optional[Policy] = None) -> str:
    """
    Generate a Markdown report comparing expected and actual release files.

    Args:
        result: Reconciliation result
        version: Target game version
        expected_count: Number of expected paths
        actual_count: Number of files found
        root_dir: Directory that was checked, for per-folder counts
        policy: Release policy behind the verdict; without one only missing files fail

    Returns:
        Markdown formatted report as string
    """
    lines = []

    lines.append(f"# Release Check: {version}")
    lines.append(f"*Generated on {datetime.now().strftime('%Y-%m-%d at %H:%M:%S')}*")
    lines.append("")

    lines.append("## Summary")
    lines.append("")
    lines.append(f"- **Mode**: {result.mode}")
    if policy is not None:
        lines.append(f"- **Policy**: {policy}")
    lines.append(f"- **Expected Files**: {expected_count}")
    lines.append(f"- **Actual Files**: {actual_count}")
    if root_dir is not None:
        lines.append(f"- **Directory**: {root_dir}")
        for folder in ("mods", "mods/optional", "shaderpacks", "datapacks"):
            count = count_artifacts(root_dir, folder)
            if count:
                lines.append(f"  - {folder}: {count}")
    lines.append("")

    passed = result.passes(policy) if policy is not None else result.passed
    if passed and not result.extra:
        lines.append("✅ Release matches the expected file list.")
        lines.append("")
    elif passed:
        lines.append("⚠️ No files missing, but there are unexpected files.")
        lines.append("")
    elif not result.missing:
        lines.append(f"❌ {len(result.extra)} unexpected file(s) not allowed by the {policy} policy.")
        lines.append("")
    else:
        lines.append(f"❌ {len(result.missing)} expected file(s) missing.")
        lines.append("")

    lines.extend(_generate_path_section("Missing", result.missing))
    lines.extend(_generate_path_section("Extra", result.extra))

    if result.pairs:
        lines.append("## Version Drift")
        lines.append("")
        lines.append("| Expected | Found |")
        lines.append("|----------|-------|")
        for expected, actual in result.pairs:
            lines.append(f"| {expected or '-'} | {actual or '-'} |")
        lines.append("")

    return "\n".join(lines)


def _generate_path_section(title: str, paths: List[str]) -> List[str]:
    if not paths:
        return []
    lines = [f"## {title} ({len(paths)})", ""]
    for path in paths:
        lines.append(f"- {path}")
    lines.append("")
    return lines


def reconciliation_to_dict(result: ReconciliationResult, version: str,
                           policy: Optional[Policy] = None) -> Dict[str, Any]:
    return {
        "version": version,
        "mode": result.mode.value,
        "policy": policy.value if policy is not None else None,
        "passed": result.passes(policy) if policy is not None else result.passed,
        "missing": result.missing,
        "extra": result.extra,
        "pairs": [list(pair) for pair in result.pairs],
    }


def export_report_to_file(report_content: str, file_path: Path) -> Path:
    """
    Export report content to a file; .json paths are expected to get JSON text.

    Raises:
        OSError: If the file cannot be written
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    with open(file_path, 'w', encoding='utf-8') as f:
        f.write(report_content)
    return file_path


def dumps_json(data: Dict[str, Any]) -> str:
    return json.dumps(data, ensure_ascii=False, indent=2)
