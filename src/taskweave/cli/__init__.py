"""taskweave CLI.

Subcommand groups:
- task: Graph views and task mutations (path, tree, rollup, deps, priority)
- db: Database operations (init, health)

Root commands: serve, sweep, version.
"""

from taskweave.cli.main import app, main

__all__ = ["app", "main"]
