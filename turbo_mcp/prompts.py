"""
Instructions sent to the client during the MCP handshake.
"""

INSTRUCTIONS = """
turbo-mcp connected. Every tool and resource works in one working directory
(the session workdir). Check it with `workdir` mode=get before anything else,
and switch with mode=set if the monorepo lives elsewhere.

## Resources (read-only, JSON)

- turbo://config - parsed turbo.json: settings, tasks, per-package overrides
- turbo://tasks - every task definition; package overrides keyed `pkg#task`
- turbo://packages - workspace packages (name, path, task scripts)
- turbo://cache - cache dir, remote cache, per-task cache flags, daemon status

## Tools

- workdir - get/set the session directory (mode, path)
- info - workspace summary, or one package and its tasks (package)
- lint - validate turbo.json; findings come back as diagnostics (packages)
- run - run tasks (tasks[], filter, dry_run, continue_on_error)
- graph - task graph in DOT (task)
- query - GraphQL against the repo graph (query)
- prune - pruned subset for one package (scope, out_dir, docker)
- daemon - status/start/stop the turbo daemon (mode)

## Results

Every tool returns JSON: {"ok": true, "message", "payload"} or
{"ok": false, "error": {"code", "message", "detail"}}. A failed `run` lists
the tasks that failed in error.detail.failed_tasks.

## Heuristics

| User intent | Action |
|-------------|--------|
| "what tasks are there" | turbo://tasks |
| "build X" | run tasks=["build"] filter="X" |
| "what would run" | run dry_run=true |
| "is my turbo.json ok" | lint |
| "docker image for X" | prune scope="X" docker=true |

## Anti-patterns

- Do NOT start a real `run` to inspect the plan; use dry_run
- Do NOT assume the workdir; it persists across calls until set again
"""
