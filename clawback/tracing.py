"""Stage timing for long-running operations.

StageTimer wraps backup/restore stages and prints elapsed time after each.
Always on, no config needed.
"""

import time


class StageTimer:
    """Prints elapsed wall-clock time after each named stage.

    Usage:
        t = StageTimer(console)
        engine.ensure_repository()
        t.mark("repository")    # prints "  repository  0.8s"
        engine.backup(sources, tags)
        t.mark("backup")        # prints "  backup  41.2s"
    """

    def __init__(self, console):
        self.console = console
        self._stage_start = time.time()
        self.stages = {}

    def mark(self, label):
        elapsed = time.time() - self._stage_start
        self._stage_start = time.time()
        self.stages[label] = elapsed
        self.console.print(f"  [dim]{label}  {elapsed:.1f}s[/dim]")
        return elapsed
