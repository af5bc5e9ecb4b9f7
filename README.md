# governor

A Python library that runs a fixed set of Go tools against a Go workspace and
turns their output into compact, uniform results. Results are kept in a store
so that the findings for one package or one function can be looked up later.

## Installation

```
pip install .
```

The Go toolchain must be on `PATH`. The other tools (`gofumpt`, `staticcheck`,
`gocognit`, `deadcode`, `dupl`, `govulncheck`, `gopls` and the lint
aggregator whose binary name is `governor.workflow.engine.LINTER_TOOL`) are
found through `go tool <name>` when the `go` command is present, and on
`PATH` otherwise (`governor.workflow.engine.resolve_tool`). When a tool is
missing, its step is marked `unavailable` and the message, built by
`ToolUnavailableError`, tells how to install it.

## Configuration

`governor.config.load(workspace)` walks upward from `workspace` to the first
directory holding `go.mod` (falling back to `workspace` itself) and reads an
optional `.governor` YAML file there. It returns a `LoadResult` with `config`
and `repo_root`. A missing file gives the defaults; an unreadable or invalid
one raises `ConfigError`.

```yaml
version: 1
timeout: 10m
max_output: 1048576
test:
  args: ["-race", "-count=1"]
lint:
  config: lint-config.yml
  args: ["--timeout=5m"]
staticcheck:
  checks: ["all", "-ST1000"]
check:
  steps: [test, lint, staticcheck]
audit:
  steps: [coverage, complexity, deadcode, dupl, vulncheck]
  dupl:
    threshold: 50
```

Every field is optional. `Config.timeout()` gives seconds (default 300),
`Config.max_output_bytes()` the cap per output stream (default 1 MiB),
`check_steps()` and `audit_steps()` the configured steps or the defaults shown
above, and `dupl_threshold()` the dupl token threshold (default 50).

## Running the pipelines

```python
import os

from governor.config import load
from governor.runner import Runner
from governor.workflow.engine import Engine
from governor.workflow.check import run_check
from governor.workflow.audit import run_audit

loaded = load(os.getcwd())
cfg = loaded.config
runner = Runner(workspace=loaded.repo_root, timeout=cfg.timeout(),
                max_output=cfg.max_output_bytes())
engine = Engine(config=cfg, runner=runner, workspace=os.getcwd(),
                repo_root=loaded.repo_root)

check = run_check(engine, None, fix=False)
for step in check.steps:
    print(step.name, step.status)

audit = run_audit(engine, ["./pkg/..."])
for step in audit.steps:
    print(step.name, step.status, step.output or step.detail)
```

`Runner.run(argv, cwd)` runs a command inside the workspace with the timeout
and output cap, and raises `RunnerError` when the command cannot start or
`cwd` lies outside the workspace.

Packages may be Go import paths (`example.com/foo/...`), relative patterns
(`./pkg/...`) or absolute directories inside the module root; with none,
`./...` is used (`Engine.resolve_packages`).

`run_check` first runs the fix phase: with `fix=True` it runs the formatter
and the lint aggregator's `--fix` in place (the `auto_fixes` count stays 0,
as the formatter does not say what it changed); with `fix=False` it lists
unformatted files, and any such file stops the run with `failed_idx` set to
`FORMAT_FAILURE` (-2). The steps then run in order and stop at the first one
that fails or is unavailable; `failed_idx` is its index, or `NO_FAILURE` (-1).

`run_audit` runs every configured step, whatever happens to the others. Each
step is `done` (with a text summary), `error`, or `unavailable`.

The parsers behind the steps can be used on their own: `parse_test_output`,
`parse_lint_output`, `parse_staticcheck_output`, `parse_cover_func`,
`parse_gocognit_output`, `parse_deadcode_output`, `parse_dupl_output` and
`parse_govulncheck_output`, each in its module under `governor.workflow`.

## Stored results

Each run produces a `governor.report.store.RunResult` with an `id` and a
`kind` (`Kind.CHECK` or `Kind.AUDIT`). `DiskStore` keeps results as JSON files
in a temporary directory (or one you give it); `LRUStore(capacity, back)`
keeps the most recent ones in memory in front of another store.
`by_symbol(result, "example.com/foo")` returns every finding for a package,
and `by_symbol(result, "example.com/foo.TestAdd")` those for one function.

## Tool handlers

`governor.server.tools.Handler(engine, store, gopls=None)` offers the
operations an agent would call: `workspace()`, `check(packages, fix)`,
`audit(packages)` and `inspect(run_id, symbol)`. Each returns a `ToolResult`
holding the formatted text and an `is_error` flag; `check` and `audit` save
their run in the store so that `inspect` can find it.

`governor.server.gopls.start_gopls_proxy(workspace)` starts `gopls mcp` and
returns a `GoplsProxy` (or None when gopls is not installed).
`GOPLS_TOOLS` lists the `gov_*` tools with their schemas, and
`call_gopls_tool(proxy, gopls_name, arguments)` forwards a call, or explains
how to install gopls when there is no proxy.

## What it does not do

There is no command-line program and no server loop: nothing here reads
requests from standard input or HTTP and dispatches them to `Handler` or the
gopls tools. To offer the tools to an agent, wire `Handler` and
`call_gopls_tool` into a transport of your own.