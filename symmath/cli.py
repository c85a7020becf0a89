#!/usr/bin/env python3
"""
symmath Command-Line Interface

Provides interactive REPL, script execution, and pipe/filter modes.

Usage:
    symmath                              # Start REPL
    symmath script.sym                   # Run script
    symmath -e "x + (1 + x)"             # Simplify expression
    symmath -d x -e "sin(x)*cos(x)"      # Differentiate, then simplify
    symmath -a x=0.7 -e "x^2 + 1"        # Simplify, then evaluate
    echo "x + x" | symmath               # Filter mode

Script Format (.sym files):
    #!/usr/bin/env symmath
    :prelude math
    :let f = sin(x) * cos(x)

    f + 0
    :diff x f

REPL Commands:
    :help               Show help
    :quit               Exit
    :trace on|off       Toggle tracing
    :raw on|off         Toggle printing unsimplified expressions
    :prelude NAME       Set prelude (exact, math, none, or path.py)
    :groups             Show rule groups
    :enable GROUP       Enable group
    :disable GROUP      Disable group
    :rules [PHASE]      List rules (pre, processing, post)
    :diff VAR EXPR      Simplified derivative
    :eval BINDINGS EXPR Numeric value, e.g. :eval x=1,y=2 x*y
    :let NAME = EXPR    Define a name used in later expressions
    :vars               Show definitions
"""

import argparse
import importlib.util
import logging
import sys
from pathlib import Path
from typing import Dict, Optional

from . import __version__
from .engine import Simplifier
from .errors import InvalidArgument, SymmathError
from .expressions import Expression
from .parser import parse
from .rewriter import PRELUDES, FoldFuncsType

# Try to import readline for better REPL experience
try:
    import readline
    HAS_READLINE = True
except ImportError:
    HAS_READLINE = False

# Standard prelude search paths
PRELUDE_SEARCH_PATHS = [
    Path("./preludes"),
    Path.home() / ".config" / "symmath" / "preludes",
]

# Script commands whose result is printed
OUTPUT_COMMANDS = (":diff", ":eval", ":vars", ":rules", ":groups")


def load_custom_prelude(name_or_path: str) -> Optional[FoldFuncsType]:
    """
    Load a custom prelude from a Python file.

    The file should define a PRELUDE dict mapping function names
    (exp, ln, sin, cos, tan) to fold handlers.

    Args:
        name_or_path: Either a path to a .py file, or a name to search for

    Returns:
        The PRELUDE dict from the file, or None if not found
    """
    path = Path(name_or_path)

    if path.suffix == ".py" or "/" in name_or_path or "\\" in name_or_path:
        search_paths = [path]
    else:
        search_paths = [d / f"{name_or_path}.py" for d in PRELUDE_SEARCH_PATHS]

    for prelude_path in search_paths:
        if not prelude_path.exists():
            continue
        spec = importlib.util.spec_from_file_location("custom_prelude", prelude_path)
        if spec and spec.loader:
            module = importlib.util.module_from_spec(spec)
            try:
                spec.loader.exec_module(module)
            except (OSError, SyntaxError, ImportError) as e:
                print(f"Error loading prelude from {prelude_path}: {e}", file=sys.stderr)
                continue
            prelude = getattr(module, "PRELUDE", None)
            if isinstance(prelude, dict):
                return prelude
    return None


def parse_bindings(text: str) -> Dict[str, float]:
    """
    Parse "x=1,y=2.5" into a bindings dict.

    Raises:
        InvalidArgument: On a malformed binding
    """
    bindings = {}
    for item in text.split(","):
        item = item.strip()
        if not item:
            continue
        name, sep, value = item.partition("=")
        if not sep or not name.strip():
            raise InvalidArgument(f"expected NAME=VALUE, got {item!r}")
        try:
            bindings[name.strip()] = float(value)
        except ValueError:
            raise InvalidArgument(f"not a number: {value.strip()!r}") from None
    return bindings


def count_parens(text: str) -> int:
    """Count unbalanced parentheses. Returns >0 if more open than close."""
    depth = 0
    for c in text:
        if c == '(':
            depth += 1
        elif c == ')':
            depth -= 1
    return depth


class SymmathCompleter:
    """Tab completer for the symmath REPL."""

    COMMANDS = [
        ":help", ":quit", ":exit", ":q",
        ":trace", ":raw", ":prelude",
        ":groups", ":enable", ":disable", ":rules",
        ":diff", ":eval", ":let", ":vars",
    ]

    TOGGLE_OPTIONS = ["on", "off"]

    def __init__(self, repl: 'SymmathREPL'):
        self.repl = repl
        self.matches = []

    def complete(self, text: str, state: int) -> Optional[str]:
        """Return the next possible completion for 'text'."""
        if state == 0:
            line = readline.get_line_buffer() if HAS_READLINE else ""
            self.matches = self._get_matches(text, line)
        try:
            return self.matches[state]
        except IndexError:
            return None

    def _get_matches(self, text: str, line: str) -> list:
        if line.startswith(":trace ") or line.startswith(":raw "):
            return [t for t in self.TOGGLE_OPTIONS if t.startswith(text)]

        if line.startswith(":enable ") or line.startswith(":disable "):
            return sorted(g for g in self.repl.simplifier.groups() if g.startswith(text))

        if line.startswith(":prelude "):
            return [p for p in PRELUDES if p.startswith(text)]

        if text.startswith(":") or (line.startswith(":") and " " not in line):
            return [c for c in self.COMMANDS if c.startswith(text)]

        return sorted(n for n in self.repl.definitions if n.startswith(text))


class SymmathREPL:
    """Interactive REPL for symmath."""

    def __init__(self):
        self.simplifier = Simplifier()
        self.prelude_name = "exact"
        self.trace = False
        self.raw = False
        self.diff_var: Optional[str] = None
        self.bindings: Optional[Dict[str, float]] = None
        self.definitions: Dict[str, Expression] = {}
        self.running = True
        self.multi_line_buffer = ""
        self.history_file = Path.home() / ".symmath_history"

    def setup_readline(self):
        """Set up readline history and tab completion."""
        if not HAS_READLINE:
            return
        try:
            readline.read_history_file(self.history_file)
        except (FileNotFoundError, PermissionError):
            pass
        readline.set_history_length(1000)
        self.completer = SymmathCompleter(self)
        readline.set_completer(self.completer.complete)
        readline.parse_and_bind("tab: complete")
        readline.set_completer_delims(" \t\n")

    def save_history(self):
        """Save readline history."""
        if HAS_READLINE:
            try:
                readline.write_history_file(self.history_file)
            except OSError as e:
                print(f"Could not save history: {e}", file=sys.stderr)

    def set_prelude(self, name: str) -> bool:
        """Set the prelude by name or path."""
        prelude = PRELUDES.get(name.lower())
        if prelude is None:
            prelude = load_custom_prelude(name)
        if prelude is None:
            return False
        self.simplifier.with_prelude(prelude)
        self.prelude_name = name
        return True

    def read(self, text: str) -> Expression:
        """Parse text and expand :let definitions."""
        expr = parse(text)
        if self.definitions:
            expr = expr.substitute(self.definitions)
        return expr

    def simplify(self, expr: Expression) -> str:
        """Simplify (unless raw) and render, with the trace when enabled."""
        if self.raw:
            return str(expr)
        if self.trace:
            result, trace = self.simplifier.simplify(expr, trace=True)
            if trace.steps:
                return f"{result}\n{trace.format('rules')}"
            return str(result)
        return str(self.simplifier.simplify(expr))

    def handle_command(self, line: str) -> Optional[str]:
        """
        Handle a REPL command (starts with :).

        Returns a message to print, or None.
        """
        parts = line[1:].split(None, 1)
        if not parts:
            return "Unknown command. Type :help for help."

        cmd = parts[0].lower()
        arg = parts[1].strip() if len(parts) > 1 else ""

        if cmd == "help":
            return self.help_text()

        elif cmd in ("quit", "exit", "q"):
            self.running = False
            return None

        elif cmd in ("trace", "raw"):
            if arg.lower() in ("on", "off"):
                setattr(self, cmd, arg.lower() == "on")
            else:
                setattr(self, cmd, not getattr(self, cmd))
            return f"{cmd.capitalize()}: {'on' if getattr(self, cmd) else 'off'}"

        elif cmd == "prelude":
            if not arg:
                return f"Current prelude: {self.prelude_name}"
            if self.set_prelude(arg):
                return f"Prelude: {arg}"
            return f"Error: unknown prelude: {arg}"

        elif cmd == "groups":
            groups = sorted(self.simplifier.groups())
            if not groups:
                return "No groups defined"
            disabled = set()
            for engine in self.simplifier:
                disabled.update(engine.disabled_groups)
            return "\n".join(f"  {g}{' (disabled)' if g in disabled else ''}" for g in groups)

        elif cmd in ("enable", "disable"):
            if not arg:
                return f"Usage: :{cmd} GROUP"
            if arg not in self.simplifier.groups():
                return f"Error: unknown group: {arg}"
            getattr(self.simplifier, f"{cmd}_group")(arg)
            return f"{cmd.capitalize()}d group: {arg}"

        elif cmd == "rules":
            engines = [e for e in self.simplifier if not arg or e.name == arg]
            if not engines:
                return f"Error: unknown phase: {arg}"
            lines = []
            for engine in engines:
                lines.append(f"{engine.name}:")
                lines.extend(f"  {rule}" for rule in engine.list_rules())
            return "\n".join(lines)

        elif cmd == "diff":
            var, _, text = arg.partition(" ")
            if not var or not text.strip():
                return "Usage: :diff VAR EXPR"
            try:
                return self.simplify(self.read(text).derivative(var))
            except SymmathError as e:
                return f"Error: {e}"

        elif cmd == "eval":
            spec, _, text = arg.partition(" ")
            if not spec or not text.strip():
                return "Usage: :eval x=1,y=2 EXPR"
            try:
                bindings = parse_bindings(spec)
                return repr(self.simplifier.simplify(self.read(text)).evaluate(bindings))
            except SymmathError as e:
                return f"Error: {e}"

        elif cmd == "let":
            name, sep, text = arg.partition("=")
            name = name.strip()
            if not sep or not name.isidentifier() or not text.strip():
                return "Usage: :let NAME = EXPR"
            try:
                self.definitions[name] = self.read(text)
            except SymmathError as e:
                return f"Error: {e}"
            return f"{name} = {self.definitions[name]}"

        elif cmd == "vars":
            if not self.definitions:
                return "No definitions"
            return "\n".join(f"  {n} = {e}" for n, e in self.definitions.items())

        return f"Unknown command: {cmd}. Type :help for help."

    def help_text(self) -> str:
        return """symmath - symbolic simplification and differentiation

Expressions:
  x + 2*y          Simplify an infix expression
  -x^2             ^ binds tighter than unary minus
  e^x, ln(x)       exp and natural log; also sin, cos, tan

Commands:
  :trace on|off       Show the rules applied
  :raw on|off         Print expressions without simplifying
  :prelude NAME       exact (default), math, none, or path.py
  :groups             List rule groups
  :enable GROUP       Enable a rule group
  :disable GROUP      Disable a rule group
  :rules [PHASE]      List rules (pre, processing, post)
  :diff VAR EXPR      Simplified derivative
  :eval x=1,y=2 EXPR  Numeric value
  :let NAME = EXPR    Define a name
  :vars               Show definitions
  :quit               Exit"""

    def process_line(self, line: str) -> Optional[str]:
        """Process a single line of input."""
        line = line.strip()
        if not line or line.startswith("#"):
            return None

        if line.startswith(":"):
            return self.handle_command(line)

        try:
            expr = self.read(line)
            if self.diff_var is not None:
                expr = expr.derivative(self.diff_var)
            if self.bindings is not None:
                return repr(self.simplifier.simplify(expr).evaluate(self.bindings))
            return self.simplify(expr)
        except SymmathError as e:
            return f"Error: {e}"

    def run(self):
        """Run the REPL loop."""
        self.setup_readline()
        print("symmath - symbolic simplification and differentiation")
        print("Type :help for help, :quit to exit")
        print()

        while self.running:
            try:
                prompt = "...... " if self.multi_line_buffer else "symmath> "
                line = input(prompt)

                if self.multi_line_buffer:
                    self.multi_line_buffer += " " + line
                else:
                    self.multi_line_buffer = line

                # Unclosed parentheses continue on the next line
                paren_count = count_parens(self.multi_line_buffer)
                if paren_count > 0:
                    continue
                elif paren_count < 0:
                    print("Error: Unbalanced parentheses (too many closing)")
                    self.multi_line_buffer = ""
                    continue

                complete_input = self.multi_line_buffer
                self.multi_line_buffer = ""

                result = self.process_line(complete_input)
                if result:
                    print(result)

            except EOFError:
                print()
                break
            except KeyboardInterrupt:
                if self.multi_line_buffer:
                    print("\nInput cancelled")
                    self.multi_line_buffer = ""
                else:
                    print()
                continue

        self.save_history()


class ScriptRunner:
    """Runs symmath scripts."""

    def __init__(self):
        self.repl = SymmathREPL()

    def run_script(self, path: Path, quiet: bool = False) -> int:
        """
        Run a script file.

        Args:
            path: Path to the script
            quiet: If True, don't print expression results

        Returns:
            Exit code (0 for success)
        """
        try:
            lines = path.read_text().splitlines()
        except OSError as e:
            print(f"Error reading {path}: {e}", file=sys.stderr)
            return 1

        for lineno, line in enumerate(lines, 1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue

            result = self.repl.process_line(line)
            if result and (result.startswith("Error") or result.startswith("Unknown")):
                print(f"{path}:{lineno}: {result}", file=sys.stderr)
                return 1
            # Command confirmations stay quiet in script mode
            shows_output = (not line.startswith(":")
                            or line.split(None, 1)[0] in OUTPUT_COMMANDS)
            if result and shows_output and not quiet:
                print(result)
            if not self.repl.running:
                break

        return 0

    def run_expression(self, expr_str: str) -> int:
        """
        Simplify a single expression.

        Returns:
            Exit code (0 for success)
        """
        result = self.repl.process_line(expr_str)
        if result:
            print(result)
            if result.startswith("Error"):
                return 1
        return 0

    def run_stdin(self) -> int:
        """
        Read expressions from stdin and simplify them.

        Returns:
            Exit code (0 for success)
        """
        for line in sys.stdin:
            result = self.repl.process_line(line)
            if result:
                print(result)
                if result.startswith("Error"):
                    return 1
        return 0


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="symmath",
        description="symmath - symbolic simplification and differentiation",
        epilog="Examples:\n"
               "  symmath                          Start REPL\n"
               "  symmath script.sym               Run script\n"
               "  symmath -e 'x + (1 + x)'         Simplify expression\n"
               "  symmath -d x -e 'sin(x)*cos(x)'  Differentiate\n"
               "  echo 'x + x' | symmath           Filter mode\n",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        "script",
        nargs="?",
        help="Script file to run"
    )

    parser.add_argument(
        "-e", "--expr",
        help="Simplify a single expression"
    )

    parser.add_argument(
        "-d", "--diff",
        metavar="VAR",
        help="Differentiate every expression with respect to VAR"
    )

    parser.add_argument(
        "-a", "--at",
        metavar="BINDINGS",
        help="Evaluate results numerically, e.g. x=1,y=2"
    )

    parser.add_argument(
        "-p", "--prelude",
        default="exact",
        help="Set prelude (exact, math, none, or path.py)"
    )

    parser.add_argument(
        "-t", "--trace",
        action="store_true",
        help="Enable tracing"
    )

    parser.add_argument(
        "--raw",
        action="store_true",
        help="Print expressions without simplifying"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log rule applications to stderr"
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Quiet mode (suppress non-essential output)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s",
                            stream=sys.stderr)

    runner = ScriptRunner()
    repl = runner.repl

    if not repl.set_prelude(args.prelude):
        print(f"Unknown prelude: {args.prelude}", file=sys.stderr)
        sys.exit(1)

    repl.trace = args.trace
    repl.raw = args.raw
    repl.diff_var = args.diff
    if args.at:
        try:
            repl.bindings = parse_bindings(args.at)
        except InvalidArgument as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)

    if args.script:
        sys.exit(runner.run_script(Path(args.script), quiet=args.quiet))

    elif args.expr:
        sys.exit(runner.run_expression(args.expr))

    elif not sys.stdin.isatty():
        # Pipe/filter mode (stdin is not a terminal)
        sys.exit(runner.run_stdin())

    else:
        repl.run()


if __name__ == "__main__":
    main()
