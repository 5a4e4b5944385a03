"""
Execution backends for the Lumo REPL.

A runtime owns the persistent JavaScript context that compiled REPL
fragments run in. ``NodeRuntime`` keeps one ``node`` subprocess alive for
the whole session; the subprocess evaluates each fragment inside a single
``vm`` context and answers over newline-delimited JSON on stdin/stdout.

Author: xwest
"""

import json
import logging
import shutil
import subprocess
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

logger = logging.getLogger(__name__)


class RuntimeBridgeError(RuntimeError):
    """Raised when the REPL runtime cannot be started or stops answering."""
    pass


@dataclass
class RuntimeReply:
    """Outcome of running one fragment."""
    ok: bool
    value: Optional[str] = None
    output: str = ""
    error: Optional[str] = None


class Runtime(Protocol):
    """Anything that can run compiled fragments against a persistent context."""

    def execute(self, code: str) -> RuntimeReply:
        ...

    def reset(self) -> None:
        ...

    def close(self) -> None:
        ...


# Host program run with ``node -e``. One JSON request per line:
#   {"op": "exec", "code": "..."}  or  {"op": "reset"}
# One JSON reply per line: {ok, value, output, error}
NODE_HOST_SCRIPT = r"""
const readline = require("readline");
const util = require("util");
const vm = require("vm");

let output = [];
const capture = (...args) => { output.push(util.format(...args)); };

function makeContext() {
  const sandbox = {
    console: { log: capture, info: capture, warn: capture, error: capture, debug: capture },
    require, process, Buffer, URL, TextEncoder, TextDecoder,
    setTimeout, clearTimeout, setInterval, clearInterval,
    setImmediate, clearImmediate, queueMicrotask,
  };
  sandbox.module = { exports: {} };
  sandbox.exports = sandbox.module.exports;
  sandbox.global = sandbox;
  return vm.createContext(sandbox);
}

let context = makeContext();

const show = (value) => (value === undefined ? null : util.inspect(value, { depth: 4 }));

function describe(err) {
  if (err && typeof err.stack === "string") {
    return err.stack.split("\n")[0];
  }
  return "Uncaught " + util.inspect(err);
}

async function handle(request) {
  output = [];
  if (request.op === "reset") {
    context = makeContext();
    return { ok: true, value: null, output: "", error: null };
  }
  try {
    let value = vm.runInContext(request.code, context, { filename: "repl" });
    if (value && typeof value.then === "function") {
      value = await value;
    }
    return { ok: true, value: show(value), output: output.join("\n"), error: null };
  } catch (err) {
    return { ok: false, value: null, output: output.join("\n"), error: describe(err) };
  }
}

const reply = (message) => process.stdout.write(JSON.stringify(message) + "\n");

let queue = Promise.resolve();
readline.createInterface({ input: process.stdin, terminal: false }).on("line", (line) => {
  queue = queue.then(async () => {
    let request;
    try {
      request = JSON.parse(line);
    } catch (err) {
      reply({ ok: false, value: null, output: "", error: "malformed request" });
      return;
    }
    reply(await handle(request));
  });
});
"""


class NodeRuntime:
    """
    Persistent ``node`` subprocess hosting one ``vm`` context.

    The process is started lazily on the first request. If it dies, the
    failing request raises RuntimeBridgeError and the next request starts a
    fresh process (with an empty context).
    """

    def __init__(self, node_executable: str = "node"):
        self.node_executable = node_executable
        self._process: Optional[subprocess.Popen] = None

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def start(self) -> None:
        if self.running:
            return
        executable = shutil.which(self.node_executable)
        if executable is None:
            raise RuntimeBridgeError(
                f"'{self.node_executable}' was not found on PATH; "
                "the REPL needs Node.js to run compiled code")

        logger.debug("Starting JavaScript runtime: %s", executable)
        try:
            self._process = subprocess.Popen(
                [executable, "-e", NODE_HOST_SCRIPT],
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
                encoding="utf-8",
                bufsize=1,
            )
        except OSError as e:
            raise RuntimeBridgeError(f"Could not start '{executable}': {e}") from e

    def execute(self, code: str) -> RuntimeReply:
        reply = self._request({"op": "exec", "code": code})
        return RuntimeReply(
            ok=bool(reply.get("ok")),
            value=reply.get("value"),
            output=reply.get("output") or "",
            error=reply.get("error"),
        )

    def reset(self) -> None:
        if not self.running:
            return
        self._request({"op": "reset"})

    def close(self) -> None:
        process, self._process = self._process, None
        if process is None:
            return
        try:
            process.stdin.close()
            process.wait(timeout=2)
        except (OSError, subprocess.TimeoutExpired):
            process.kill()
            process.wait()
        finally:
            process.stdout.close()

    def _request(self, message: Dict[str, Any]) -> Dict[str, Any]:
        self.start()
        process = self._process
        try:
            process.stdin.write(json.dumps(message) + "\n")
            process.stdin.flush()
            line = process.stdout.readline()
        except OSError as e:
            line = ""
            logger.debug("Runtime pipe error: %s", e)

        if not line:
            logger.warning("JavaScript runtime exited; it will be restarted with an empty context")
            self._process = None
            try:
                process.kill()
            except OSError:
                pass
            raise RuntimeBridgeError("JavaScript runtime exited unexpectedly")

        try:
            return json.loads(line)
        except json.JSONDecodeError as e:
            raise RuntimeBridgeError(f"Malformed reply from runtime: {line.strip()!r}") from e

    def __enter__(self) -> "NodeRuntime":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
