"""Markdown report and log writing for capture runs."""

import logging
from datetime import datetime
from pathlib import Path

from commitments.models import PipelineResult

logger = logging.getLogger(__name__)


def write_capture_markdown(
    result: PipelineResult,
    output_dir: str,
    input_name: str,
) -> str:
    """
    Generate and write a markdown file describing one completed capture run.

    Args:
        result: Completed PipelineResult
        output_dir: Directory to write markdown file to
        input_name: Name of the input file (or "text" for direct input)

    Returns:
        Path to the generated markdown file
    """
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    now = datetime.now()
    filepath = output_path / f"{now.strftime('%Y-%m-%d-%H-%M-%S')}.md"

    lines = []

    # Header
    lines.append(f"# Capture — {now.strftime('%Y-%m-%d %H:%M:%S')}")
    lines.append("")
    lines.append(
        f"**Input:** `{input_name}` ({result.source.value}, {result.status.value})"
    )
    if result.reference:
        lines.append(f"**Reference:** {result.reference.isoformat()}")
    lines.append("")

    lines.append("## Commitments")
    if result.commitments:
        for commitment in result.commitments:
            due_text = f", Due: {commitment.due_date}" if commitment.due_date else ""
            lines.append(f"- [ ] {commitment.title}{due_text}")
            if commitment.description:
                lines.append(f"  {commitment.description}")
    else:
        lines.append("_No commitments found._")
    lines.append("")

    lines.append("## Source Text")
    lines.append(result.text or "")
    lines.append("")

    content = "\n".join(lines).rstrip() + "\n"
    filepath.write_text(content)

    return str(filepath)


def append_capture_log(
    output_dir: str,
    input_name: str,
    result: PipelineResult,
) -> None:
    """
    Append a capture entry to the capture.log file.

    Args:
        output_dir: Directory containing capture.log
        input_name: Name of input file
        result: PipelineResult of the run
    """
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    log_file = output_path / "capture.log"

    dated = sum(1 for c in result.commitments if c.due_date)

    fields = [
        datetime.now().isoformat(),
        input_name,
        result.source.value,
        result.status.value,
        str(len(result.commitments)),
        str(dated),
    ]

    with open(log_file, "a") as f:
        f.write("\t".join(fields) + "\n")
