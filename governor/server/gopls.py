"""Tools proxied to a ``gopls mcp`` subprocess."""

from __future__ import annotations

import json
import os
import pathlib
import subprocess
import threading
from dataclasses import dataclass
from typing import IO, Any, Mapping

from governor.server.tools import SERVER_NAME, VERSION, ToolResult
from governor.workflow.engine import ToolUnavailableError, resolve_tool

PROTOCOL_VERSION = "2025-06-18"


class ProxyError(Exception):
    """Raised when talking to gopls fails."""


def object_schema(props: Mapping[str, Any]) -> dict[str, Any]:
    """A JSON Schema for an object with no required fields."""
    return {"type": "object", "properties": dict(props)}


def required_object_schema(props: Mapping[str, Any], required: list[str]) -> dict[str, Any]:
    """A JSON Schema for an object with required fields."""
    return {"type": "object", "properties": dict(props), "required": list(required)}


@dataclass(frozen=True)
class GoplsToolDef:
    """A gov_* tool and the go_* gopls tool it forwards to."""

    gov_name: str
    gopls_name: str
    description: str
    input_schema: dict[str, Any]


def _string_prop(description: str) -> dict[str, Any]:
    return {"type": "string", "description": description}


def _string_list_prop(description: str) -> dict[str, Any]:
    return {"type": "array", "items": {"type": "string"}, "description": description}


_SYMBOL_FILE = "Absolute path to the file containing the symbol."
_SYMBOL_NAME = "Symbol name (e.g. Foo, T.Method, pkg.Symbol)."

GOPLS_TOOLS: tuple[GoplsToolDef, ...] = (
    GoplsToolDef(
        gov_name="gov_diagnostics",
        gopls_name="go_diagnostics",
        description=(
            "Workspace-wide diagnostics (parse errors, build errors, analysis).\n\n"
            'Optionally pass "files" (absolute paths) for additional linting on active files.\n'
            "Proxied to gopls. Requires gopls to be installed."
        ),
        input_schema=object_schema(
            {
                "files": _string_list_prop(
                    "Optional absolute paths to active files for additional analysis."
                )
            }
        ),
    ),
    GoplsToolDef(
        gov_name="gov_package_api",
        gopls_name="go_package_api",
        description=(
            "Public API summary of one or more packages in Go syntax.\n\n"
            'Pass "packagePaths" (Go import paths) to inspect.\n'
            "Proxied to gopls. Requires gopls to be installed."
        ),
        input_schema=required_object_schema(
            {"packagePaths": _string_list_prop("Go import paths of the packages to summarise.")},
            ["packagePaths"],
        ),
    ),
    GoplsToolDef(
        gov_name="gov_search",
        gopls_name="go_search",
        description=(
            "Fuzzy symbol search across the workspace.\n\n"
            'Pass "query" to search. Returns symbol name, kind, and file location.\n'
            "Proxied to gopls. Requires gopls to be installed."
        ),
        input_schema=required_object_schema(
            {"query": _string_prop("Fuzzy search query for symbol names.")}, ["query"]
        ),
    ),
    GoplsToolDef(
        gov_name="gov_file_context",
        gopls_name="go_file_context",
        description=(
            "Cross-file dependencies for a given file.\n\n"
            'Pass "file" (absolute path). Returns what the file uses from other files and imports.\n'
            "Proxied to gopls. Requires gopls to be installed."
        ),
        input_schema=required_object_schema(
            {"file": _string_prop("Absolute path to the file.")}, ["file"]
        ),
    ),
    GoplsToolDef(
        gov_name="gov_symbol_references",
        gopls_name="go_symbol_references",
        description=(
            "Find all references to a symbol.\n\n"
            'Pass "file" (absolute path) and "symbol" (e.g. Foo, T.Method, pkg.Symbol).\n'
            "Proxied to gopls. Requires gopls to be installed."
        ),
        input_schema=required_object_schema(
            {"file": _string_prop(_SYMBOL_FILE), "symbol": _string_prop(_SYMBOL_NAME)},
            ["file", "symbol"],
        ),
    ),
    GoplsToolDef(
        gov_name="gov_rename_symbol",
        gopls_name="go_rename_symbol",
        description=(
            "Rename a symbol and return a unified diff.\n\n"
            'Pass "file" (absolute path), "symbol", and "new_name".\n'
            "Proxied to gopls. Requires gopls to be installed."
        ),
        input_schema=required_object_schema(
            {
                "file": _string_prop(_SYMBOL_FILE),
                "symbol": _string_prop(_SYMBOL_NAME),
                "new_name": _string_prop("The new name for the symbol."),
            },
            ["file", "symbol", "new_name"],
        ),
    ),
)


class GoplsProxy:
    """An MCP client session with gopls over newline-delimited JSON-RPC."""

    def __init__(
        self,
        reader: IO[bytes],
        writer: IO[bytes],
        process: subprocess.Popen | None = None,
        workspace: str = "",
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._process = process
        self._workspace = workspace
        self._lock = threading.Lock()
        self._next_id = 0
        self._closed = False

    def __enter__(self) -> GoplsProxy:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def initialize(self) -> dict[str, Any]:
        """Perform the MCP handshake and return the server's reply."""
        result = self._request(
            "initialize",
            {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {"roots": {"listChanged": False}},
                "clientInfo": {"name": SERVER_NAME, "version": VERSION},
            },
        )
        with self._lock:
            self._send({"jsonrpc": "2.0", "method": "notifications/initialized", "params": {}})
        return result

    def call(self, tool_name: str, arguments: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Call gopls tool ``tool_name`` and return its raw result."""
        params: dict[str, Any] = {"name": tool_name}
        if arguments is not None:
            params["arguments"] = dict(arguments)
        try:
            return self._request("tools/call", params)
        except ProxyError as exc:
            raise ProxyError(f"calling {tool_name}: {exc}") from exc

    def call_go_workspace(self) -> str:
        """Return the text of gopls's go_workspace tool, or "" on failure."""
        try:
            return extract_tool_text(self.call("go_workspace"))
        except ProxyError:
            return ""

    def close(self) -> None:
        """End the session and wait for the subprocess to exit."""
        if self._closed:
            return
        self._closed = True
        try:
            self._writer.close()
        except (OSError, ValueError):
            pass
        if self._process is not None:
            try:
                self._process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self._process.kill()
                self._process.wait()
        try:
            self._reader.close()
        except (OSError, ValueError):
            pass

    def _send(self, message: Mapping[str, Any]) -> None:
        try:
            self._writer.write((json.dumps(message) + "\n").encode("utf-8"))
            self._writer.flush()
        except (OSError, ValueError) as exc:
            raise ProxyError(f"writing to gopls: {exc}") from exc

    def _receive(self) -> dict[str, Any]:
        while True:
            try:
                line = self._reader.readline()
            except (OSError, ValueError) as exc:
                raise ProxyError(f"reading from gopls: {exc}") from exc
            if not line:
                raise ProxyError("gopls closed the connection")
            try:
                message = json.loads(line)
            except ValueError:
                continue
            if isinstance(message, dict):
                return message

    def _answer(self, message: Mapping[str, Any]) -> None:
        method = message.get("method")
        reply: dict[str, Any] = {"jsonrpc": "2.0", "id": message.get("id")}
        if method == "roots/list":
            roots = []
            if self._workspace:
                uri = pathlib.Path(os.path.abspath(self._workspace)).as_uri()
                roots.append({"uri": uri})
            reply["result"] = {"roots": roots}
        elif method == "ping":
            reply["result"] = {}
        else:
            reply["error"] = {"code": -32601, "message": f"method not found: {method}"}
        self._send(reply)

    def _request(self, method: str, params: Mapping[str, Any]) -> dict[str, Any]:
        with self._lock:
            self._next_id += 1
            request_id = self._next_id
            self._send({"jsonrpc": "2.0", "id": request_id, "method": method, "params": params})
            while True:
                message = self._receive()
                if "method" in message:
                    if "id" in message:
                        self._answer(message)
                    continue
                if message.get("id") != request_id:
                    continue
                error = message.get("error")
                if error is not None:
                    text = error.get("message", error) if isinstance(error, dict) else error
                    raise ProxyError(str(text))
                result = message.get("result")
                return result if isinstance(result, dict) else {}


def start_gopls_proxy(workspace: str) -> GoplsProxy | None:
    """Start ``gopls mcp`` in ``workspace`` and connect to it.

    Returns None when gopls is not installed; raises ProxyError when it
    cannot be started or does not complete the handshake.
    """
    argv = resolve_tool("gopls")
    if argv is None:
        return None
    try:
        process = subprocess.Popen(
            [*argv, "mcp"],
            cwd=workspace,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
        )
    except OSError as exc:
        raise ProxyError(f"connecting to gopls mcp: {exc}") from exc
    assert process.stdout is not None and process.stdin is not None
    proxy = GoplsProxy(process.stdout, process.stdin, process, workspace)
    try:
        proxy.initialize()
    except ProxyError as exc:
        proxy.close()
        raise ProxyError(f"connecting to gopls mcp: {exc}") from exc
    return proxy


def extract_tool_text(result: Mapping[str, Any] | None) -> str:
    """Return the first text item of a raw tool result, or ""."""
    if not result:
        return ""
    for item in result.get("content") or []:
        if isinstance(item, Mapping) and item.get("type") == "text":
            text = item.get("text")
            if isinstance(text, str):
                return text
    return ""


def _decode_arguments(arguments: Any) -> dict[str, Any] | None:
    if arguments is None:
        return None
    if isinstance(arguments, Mapping):
        return dict(arguments)
    if isinstance(arguments, (bytes, str)):
        if not arguments:
            return None
        decoded = json.loads(arguments)
        if decoded is None:
            return None
        if not isinstance(decoded, dict):
            raise ValueError("arguments must be a JSON object")
        return decoded
    raise ValueError("arguments must be a JSON object")


def call_gopls_tool(
    proxy: GoplsProxy | None, gopls_name: str, arguments: Any = None
) -> ToolResult:
    """Forward a tool call to gopls, or explain how to install it.

    Failures of the gopls session itself raise ProxyError.
    """
    if proxy is None:
        return ToolResult.of_text(str(ToolUnavailableError("gopls")), is_error=True)
    try:
        args = _decode_arguments(arguments)
    except ValueError as exc:
        return ToolResult.of_text(f"invalid arguments: {exc}", is_error=True)
    return ToolResult.from_dict(proxy.call(gopls_name, args))