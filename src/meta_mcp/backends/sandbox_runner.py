"""Child-side runner for the in-process sandbox.

Run as ``python -I sandbox_runner.py``. Reads one JSON request
``{"name", "code", "params"}`` from stdin, executes the code with restricted
globals and writes ``{"ok": true, "value": ...}`` or ``{"ok": false,
"error": ...}`` as a single line to stdout. ``print`` and ``log`` write to
stderr, which the host forwards to its logger.

Only the standard library may be imported here: the file is executed by path
in a fresh interpreter that does not have the host package on ``sys.path``.
The host also imports it to screen source before spawning.
"""

from __future__ import annotations

import ast
import asyncio
import base64
import bisect
import builtins
import collections
import datetime
import functools
import heapq
import itertools
import json
import math
import operator
import random
import re
import string
import sys
import textwrap
from types import SimpleNamespace
from typing import Any, Callable

ENTRYPOINT = "__tool_main__"


class SandboxRejected(Exception):
	"""Source uses a construct the sandbox does not allow."""


def _namespace(module: Any, names: list[str]) -> SimpleNamespace:
	return SimpleNamespace(**{n: getattr(module, n) for n in names})


# Modules are exposed as namespaces of selected public callables, never the
# module objects themselves (json.codecs, re.enum.sys, ... reach the host).
SAFE_MODULES: dict[str, SimpleNamespace] = {
	"json": _namespace(json, ["dumps", "loads", "JSONDecodeError"]),
	"math": _namespace(math, [n for n in dir(math) if not n.startswith("_")]),
	"re": _namespace(re, [
		"compile", "escape", "findall", "finditer", "fullmatch", "match",
		"search", "split", "sub", "subn", "IGNORECASE", "MULTILINE", "DOTALL",
	]),
	"datetime": _namespace(datetime, ["date", "datetime", "time", "timedelta", "timezone"]),
	"random": _namespace(random, [
		"choice", "choices", "randint", "random", "randrange", "sample", "shuffle", "uniform",
	]),
	"itertools": _namespace(itertools, [n for n in dir(itertools) if not n.startswith("_")]),
	"functools": _namespace(functools, ["reduce", "partial", "cmp_to_key"]),
	"collections": _namespace(collections, ["Counter", "OrderedDict", "defaultdict", "deque", "namedtuple"]),
	"string": _namespace(string, [
		"ascii_letters", "ascii_lowercase", "ascii_uppercase", "digits", "hexdigits",
		"punctuation", "whitespace", "capwords",
	]),
	"operator": _namespace(operator, ["add", "sub", "mul", "truediv", "floordiv", "mod", "neg", "itemgetter"]),
	"heapq": _namespace(heapq, ["heappush", "heappop", "heapify", "nlargest", "nsmallest", "merge"]),
	"bisect": _namespace(bisect, ["bisect", "bisect_left", "bisect_right", "insort"]),
	"base64": _namespace(base64, ["b64encode", "b64decode", "urlsafe_b64encode", "urlsafe_b64decode"]),
	"textwrap": _namespace(textwrap, ["dedent", "indent", "wrap", "fill", "shorten"]),
}

SAFE_BUILTIN_NAMES = [
	"abs", "all", "any", "ascii", "bin", "bool", "bytes", "callable", "chr", "dict",
	"divmod", "enumerate", "filter", "float", "frozenset", "hash", "hex", "int",
	"isinstance", "issubclass", "iter", "len", "list", "map", "max", "min", "next",
	"oct", "ord", "pow", "range", "repr", "reversed", "round", "set", "slice",
	"sorted", "str", "sum", "tuple", "zip",
	"ArithmeticError", "AttributeError", "Exception", "IndexError", "KeyError",
	"LookupError", "NotImplementedError", "RuntimeError", "StopIteration",
	"TypeError", "ValueError", "ZeroDivisionError",
]

# Attributes that walk from ordinary objects back to frames, globals or code.
BLOCKED_ATTRS = frozenset({
	"ag_code", "ag_frame", "cr_code", "cr_frame", "f_back", "f_builtins", "f_code",
	"f_globals", "f_locals", "gi_code", "gi_frame", "gi_yieldfrom", "mro",
	"tb_frame", "tb_next", "with_traceback",
})

# Only allowed as a call on a string literal with plain replacement fields.
_FORMAT_ATTRS = frozenset({"format", "format_map"})


class SandboxParams(dict):
	"""Parameter mapping that also allows ``params.name`` access."""

	def __getattr__(self, key: str) -> Any:
		try:
			return self[key]
		except KeyError:
			raise AttributeError(key) from None


def wrap_source(code: str) -> str:
	"""Make *code* the body of the async entrypoint. Line N of *code* becomes N + 1."""
	body = code if code.strip() else "pass"
	return f"async def {ENTRYPOINT}(params):\n" + textwrap.indent(body, "    ")


def _plain_format_string(text: str) -> bool:
	"""True when every field in *text* is a bare name or index, including nested specs."""
	try:
		parsed = list(string.Formatter().parse(text))
	except ValueError:
		return False
	for _, field, spec, _ in parsed:
		if field is not None and ("." in field or "[" in field):
			return False
		if spec and not _plain_format_string(spec):
			return False
	return True


def _literal_format_calls(tree: ast.AST) -> set[int]:
	allowed: set[int] = set()
	for node in ast.walk(tree):
		if not isinstance(node, ast.Call) or not isinstance(node.func, ast.Attribute):
			continue
		func = node.func
		if (
			func.attr in _FORMAT_ATTRS
			and isinstance(func.value, ast.Constant)
			and isinstance(func.value.value, str)
			and _plain_format_string(func.value.value)
		):
			allowed.add(id(func))
	return allowed


def check_source(tree: ast.AST) -> None:
	"""Reject constructs that reach outside the sandbox."""
	format_calls = _literal_format_calls(tree)
	for node in ast.walk(tree):
		if isinstance(node, ast.Name) and node.id.startswith("__"):
			raise SandboxRejected(f"name {node.id!r} is not allowed (line {node.lineno - 1})")
		if isinstance(node, ast.Attribute):
			if node.attr.startswith("_") or node.attr in BLOCKED_ATTRS:
				raise SandboxRejected(f"attribute {node.attr!r} is not allowed (line {node.lineno - 1})")
			if node.attr in _FORMAT_ATTRS and id(node) not in format_calls:
				raise SandboxRejected(
					f"attribute {node.attr!r} is only allowed on a string literal without "
					f"attribute or index fields (line {node.lineno - 1})"
				)
		if isinstance(node, ast.Import):
			for alias in node.names:
				if alias.name not in SAFE_MODULES:
					raise SandboxRejected(f"import of {alias.name!r} is not allowed")
		if isinstance(node, ast.ImportFrom):
			if node.level or node.module not in SAFE_MODULES:
				raise SandboxRejected(f"import from {node.module!r} is not allowed")
			for alias in node.names:
				if alias.name.startswith("_") or alias.name == "*":
					raise SandboxRejected(f"import of {alias.name!r} is not allowed")


def parse_source(code: str, filename: str) -> ast.Module:
	"""Wrap, parse and screen *code*. Raises SyntaxError or SandboxRejected."""
	tree = ast.parse(wrap_source(code), filename=filename)
	check_source(tree)
	return tree


def _safe_import(name: str, globals: Any = None, locals: Any = None, fromlist: Any = (), level: int = 0) -> Any:
	if level or name not in SAFE_MODULES:
		raise ImportError(f"import of {name!r} is not allowed in the sandbox")
	return SAFE_MODULES[name]


def _stderr_log(*args: Any, **_: Any) -> None:
	sys.stderr.write(" ".join(str(a) for a in args) + "\n")
	sys.stderr.flush()


def build_entrypoint(tree: ast.Module, name: str, filename: str) -> Callable[..., Any]:
	safe_builtins: dict[str, Any] = {n: getattr(builtins, n) for n in SAFE_BUILTIN_NAMES}
	safe_builtins["print"] = _stderr_log
	safe_builtins["__import__"] = _safe_import
	namespace: dict[str, Any] = {
		"__builtins__": safe_builtins,
		"__name__": f"tool_{name}",
		"log": _stderr_log,
		"sleep": asyncio.sleep,
	}
	exec(compile(tree, filename, "exec"), namespace)  # noqa: S102 - restricted globals, source checked
	return namespace[ENTRYPOINT]


def run(request: dict[str, Any]) -> dict[str, Any]:
	name = request["name"]
	filename = f"<tool:{name}>"
	try:
		tree = parse_source(request["code"], filename)
	except SyntaxError as exc:
		return {"ok": False, "error": f"SyntaxError: {exc.msg} (line {(exc.lineno or 1) - 1})"}
	except SandboxRejected as exc:
		return {"ok": False, "error": f"Sandbox rejected code: {exc}"}
	params = json.loads(json.dumps(request["params"]), object_hook=SandboxParams)
	try:
		main = build_entrypoint(tree, name, filename)
		value = asyncio.run(main(params))
	except Exception as exc:
		return {"ok": False, "error": f"{type(exc).__name__}: {exc}"}
	return {"ok": True, "value": value}


def main() -> int:
	out = sys.stdout
	sys.stdout = sys.stderr
	request = json.load(sys.stdin)
	out.write(json.dumps(run(request), default=str) + "\n")
	out.flush()
	return 0


if __name__ == "__main__":
	sys.exit(main())
