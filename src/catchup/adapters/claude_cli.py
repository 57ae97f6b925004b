"""Claude CLI adapter - subprocess wrapper used for scheduling rationale."""

import logging
import shutil
import subprocess
from pathlib import Path

from catchup.core.conflicts import WindowCoverage
from catchup.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

MAX_WINDOWS_IN_PROMPT = 20


def find_claude_binary() -> str:
    """Locate the claude executable on PATH."""
    return shutil.which("claude") or "claude"


def build_explain_prompt(ranked_windows: list[WindowCoverage]) -> str:
    """Prompt asking for a short rationale of an already-ranked list."""
    lines = []
    for i, c in enumerate(ranked_windows[:MAX_WINDOWS_IN_PROMPT], start=1):
        lines.append(
            f"{i}. {c.slot_start.isoformat()} to {c.slot_end.isoformat()}: "
            f"{c.must_count}/{c.must_total} must-attend, {c.nice_count}/{c.nice_total} nice-to-have"
        )
    windows_md = "\n".join(lines) or "(no candidate times)"

    return f"""You are helping someone schedule a small get-together with friends.
The candidate times below are already ranked (best first) by how many required
("must-attend") and optional ("nice-to-have") people can make it.

{windows_md}

In 2-4 plain sentences, explain the trade-offs between the top options and
what the organizer could do if nobody's first choice works. Do not reorder the
list and do not invent times that are not listed."""


class ClaudeCLIService:
    """
    Claude CLI subprocess adapter.

    Implements ReasoningService protocol. Wraps the claude CLI tool.
    """

    def __init__(
        self,
        cwd: Path | str | None = None,
        timeout: int = 10,
    ):
        self.cwd = Path(cwd) if cwd else None
        self.timeout = timeout

    def generate(self, prompt: str) -> str:
        """Generate text from a prompt. Returns complete response."""
        try:
            proc = subprocess.run(
                [find_claude_binary(), "-p", prompt],
                cwd=self.cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError:
            raise UpstreamUnavailable("Claude CLI not found. Install with: npm install -g @anthropic-ai/claude-code")
        except subprocess.TimeoutExpired:
            raise UpstreamUnavailable(f"Claude CLI timed out after {self.timeout}s")

        if proc.returncode != 0:
            logger.error(f"Claude CLI failed: {proc.stderr}")
            raise UpstreamUnavailable(f"Claude CLI failed: {proc.stderr}")
        return proc.stdout

    def explain(self, ranked_windows: list[WindowCoverage]) -> str:
        """Free-text rationale for an already-computed ranking."""
        output = self.generate(build_explain_prompt(ranked_windows)).strip()
        if not output:
            raise UpstreamUnavailable("Claude CLI returned an empty rationale")
        return output
