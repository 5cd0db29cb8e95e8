#!/usr/bin/env python3
"""
CASCADE Command-Line Interface

Four ways in: an interactive session, a .cas script, a single
expression or command given with -e/-c, and a filter over stdin.

Usage:
    cascade                              # interactive session
    cascade script.cas                   # run a script
    cascade -e "2*x + 3*x"               # simplify one expression
    cascade -c ":diff x^3"               # run one command
    cascade -r extra.rules               # session with extra rules
    echo "x + 0" | cascade               # filter mode

A script mixes rule definitions, expressions and commands:

    #!/usr/bin/env cascade
    :load trig.rules

    [algebraic]
    @double: ?x + ?x => 2 * :x

    y + y
    :diff x * sin(x)

Arguments of the math commands are separated by ';', e.g.
``:integrate x^2; x; 0, 3``, ``:series exp(x); x; 0; 4`` or
``:limit sin(x)/x; x; 0``.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional

from . import __version__
from .api import CASEngine, parse
from .errors import CASError
from .formatting import format_expr
from .library import DEFAULT_LIBRARY
from .nodes import CONSTANTS, collect_variables
from .results import LimitStatus, StepTrace
from .rules import load_rules_from_dsl

try:
    import readline
except ImportError:
    readline = None

logger = logging.getLogger(__name__)

# Group given to rules typed before any [group] line
DEFAULT_RULE_GROUP = "algebraic"

HISTORY_FILE = Path.home() / ".cascade_history"
HISTORY_LENGTH = 1000

PROMPT = "cascade> "

# Math commands and the arguments they take, in help order
MATH_USAGE = {
    "simplify": "EXPR",
    "expand": "EXPR",
    "factor": "EXPR",
    "diff": "EXPR [; VAR [; ORDER]]",
    "integrate": "EXPR [; VAR [; A, B]]",
    "solve": "EQUATION [; VAR]",
    "system": "EQ; EQ; ...",
    "series": "EXPR [; VAR [; CENTER [; ORDER]]]",
    "limit": "EXPR [; VAR [; POINT]]",
    "latex": "EXPR",
}

HELP = """Commands:
  :simplify EXPR                        Simplify (same as a bare expression)
  :expand EXPR                          Simplify to expanded form
  :factor EXPR                          Simplify to factored form
  :diff EXPR [; VAR [; ORDER]]          Differentiate
  :integrate EXPR [; VAR [; A, B]]      Indefinite or definite integral
  :solve EQUATION [; VAR]               Solve one equation
  :system EQ; EQ; ...                   Solve a linear system
  :series EXPR [; VAR [; CENTER [; ORDER]]]  Taylor expansion
  :limit EXPR [; VAR [; POINT]]         Limit (POINT may be inf or -inf)
  :latex EXPR                           LaTeX of the simplified expression
  :trace [on|off]                       Show the rules behind each result
  :load FILE                            Read rules from a file
  :rules                                List the rules
  :groups                               List the rule groups
  :enable GROUP / :disable GROUP        Switch a group on or off
  :help                                 This text
  :quit                                 Leave

Input lines:
  @name: pattern => skeleton            New rule (?x binds, :x substitutes)
  [group]                               Group for the rules that follow
  # text                                Comment
  anything else                         Expression to simplify
"""

def _is_failure(message: str) -> bool:
    return message.startswith("Error") or message.startswith("Unknown")

def _split_args(arg: str) -> List[str]:
    """Split a command argument on ';' into stripped parts."""
    return [part.strip() for part in arg.split(";")]

def _pick(args: List[str], index: int, default, convert: Callable = str):
    """Positional command argument, or the default when absent or blank."""
    if index < len(args) and args[index]:
        return convert(args[index])
    return default

class CascadeCompleter:
    """Tab completion over command names, trace switches and group names."""

    COMMANDS = sorted(
        [":" + name for name in MATH_USAGE]
        + [":trace", ":load", ":rules", ":groups", ":enable", ":disable",
           ":help", ":quit", ":exit", ":q"]
    )

    def __init__(self, repl: 'CascadeREPL'):
        self.repl = repl
        self.matches: List[str] = []

    def complete(self, text: str, state: int) -> Optional[str]:
        if state == 0:
            buffer = readline.get_line_buffer() if readline is not None else ""
            self.matches = self._get_matches(text, buffer)
        return self.matches[state] if state < len(self.matches) else None

    def _get_matches(self, text: str, line: str) -> List[str]:
        head, space, _ = line.lstrip().partition(" ")
        if not space:
            # Still typing the first word
            pool = self.COMMANDS if head.startswith(":") else []
        elif head == ":trace":
            pool = ["on", "off"]
        elif head in (":enable", ":disable"):
            pool = sorted(self.repl.engine.library.groups())
        else:
            pool = self.COMMANDS if text.startswith(":") else []
        return [word for word in pool if word.startswith(text)]

def install_readline(completer: CascadeCompleter) -> None:
    """Load history and hook the completer into readline."""
    try:
        readline.read_history_file(HISTORY_FILE)
    except OSError:
        logger.debug("No history at %s", HISTORY_FILE)
    readline.set_history_length(HISTORY_LENGTH)
    readline.set_completer(completer.complete)
    readline.set_completer_delims(" \t\n")
    readline.parse_and_bind("tab: complete")

class CascadeREPL:
    """
    Line-oriented front end to a CASEngine.

    The session works on a private copy of the default library, so rules
    added or groups switched here never leak into other engines.
    """

    MATH_COMMANDS = MATH_USAGE

    def __init__(self, engine: Optional[CASEngine] = None):
        if engine is None:
            engine = CASEngine(DEFAULT_LIBRARY.copy())
        self.engine = engine
        self.trace = False
        self.running = True
        self.current_group = DEFAULT_RULE_GROUP
        self.completer = CascadeCompleter(self)
        self._session_commands: Dict[str, Callable[[str], Optional[str]]] = {
            "help": lambda arg: self.help_text(),
            "quit": self._quit,
            "exit": self._quit,
            "q": self._quit,
            "trace": self._set_trace,
            "load": self._load,
            "rules": self._list_rules,
            "groups": self._list_groups,
            "enable": self._toggle_group("enable"),
            "disable": self._toggle_group("disable"),
        }

    def help_text(self) -> str:
        return HELP

    # Session commands

    def _quit(self, arg: str) -> None:
        self.running = False
        return None

    def _set_trace(self, arg: str) -> str:
        switch = arg.lower()
        if switch in ("on", "true", "1"):
            self.trace = True
        elif switch in ("off", "false", "0"):
            self.trace = False
        else:
            self.trace = not self.trace
        return "Tracing enabled" if self.trace else "Tracing disabled"

    def _load(self, arg: str) -> str:
        if not arg:
            return "Usage: :load FILE"
        library = self.engine.library
        try:
            library.load_file(Path(arg))
        except (OSError, ValueError) as e:
            return f"Error loading {arg}: {e}"
        return f"Loaded {arg} ({len(library)} rules)"

    def _list_rules(self, arg: str) -> str:
        return "\n".join(self.engine.library.list_rules()) or "No rules loaded"

    def _list_groups(self, arg: str) -> str:
        groups = sorted(self.engine.library.groups())
        return "Groups: " + ", ".join(groups) if groups else "No groups defined"

    def _toggle_group(self, action: str) -> Callable[[str], str]:
        def toggle(arg: str) -> str:
            if not arg:
                return f"Usage: :{action} GROUP"
            getattr(self.engine.library, f"{action}_group")(arg)
            return f"{action.capitalize()}d group: {arg}"
        return toggle

    def handle_command(self, line: str) -> Optional[str]:
        """Run a ':' command and return the text to show, if any."""
        name, _, arg = line[1:].strip().partition(" ")
        name, arg = name.lower(), arg.strip()
        if not name:
            return "Unknown command. Type :help for help."
        if name in self._session_commands:
            return self._session_commands[name](arg)
        if name not in MATH_USAGE:
            return f"Unknown command: {name}. Type :help for help."
        if not arg:
            return f"Usage: :{name} {MATH_USAGE[name]}"
        try:
            return getattr(self, f"_cmd_{name}")(arg)
        except (CASError, ValueError) as e:
            return f"Error: {e}"

    # Math commands

    def _show(self, text: str, trace: StepTrace) -> str:
        if self.trace and trace:
            return text + "\n" + trace.format("rules")
        return text

    def _simplified(self, arg: str, target_form: Optional[str] = None) -> str:
        result = self.engine.simplify(arg, target_form=target_form)
        return self._show(result.text, result.trace)

    def _cmd_simplify(self, arg: str) -> str:
        return self._simplified(arg)

    def _cmd_expand(self, arg: str) -> str:
        return self._simplified(arg, "expanded")

    def _cmd_factor(self, arg: str) -> str:
        return self._simplified(arg, "factored")

    def _cmd_latex(self, arg: str) -> str:
        return self.engine.simplify(arg).latex

    def _cmd_diff(self, arg: str) -> str:
        args = _split_args(arg)
        result = self.engine.differentiate(
            args[0], _pick(args, 1, "x"), _pick(args, 2, 1, int))
        return self._show(result.text, result.trace)

    def _cmd_integrate(self, arg: str) -> str:
        args = _split_args(arg)
        bounds = None
        if len(args) > 2:
            values = [float(v) for v in args[2].split(",")]
            if len(values) != 2:
                raise ValueError("Bounds must be given as A, B")
            bounds = (values[0], values[1])
        result = self.engine.integrate(args[0], _pick(args, 1, "x"), bounds)
        text = result.text
        if bounds is not None and result.numeric is None:
            text = f"{text}  ({result.metadata['numeric_status']})"
        return self._show(text, result.trace)

    def _cmd_solve(self, arg: str) -> str:
        args = _split_args(arg)
        variable = _pick(args, 1, "x")
        solution = self.engine.solve_equation(args[0], variable)
        answers = [f"{variable} = {format_expr(s)}" for s in solution.solutions]
        text = ", ".join(answers) if answers else solution.domain
        return self._show(f"{text}  [{solution.kind}]",
                          StepTrace.from_steps(solution.steps))

    def _cmd_system(self, arg: str) -> str:
        equations = [parse(text) for text in _split_args(arg) if text]
        unknowns = set()
        for equation in equations:
            unknowns.update(collect_variables(equation))
        unknowns -= set(CONSTANTS)
        solution = self.engine.solve_linear_system(equations, sorted(unknowns))
        pairs = solution.values().items()
        text = ", ".join(f"{name} = {format_expr(value)}" for name, value in pairs)
        return self._show(text, StepTrace.from_steps(solution.steps))

    def _cmd_series(self, arg: str) -> str:
        args = _split_args(arg)
        expansion = self.engine.expand_series(
            args[0], _pick(args, 1, "x"),
            _pick(args, 2, 0.0, float), _pick(args, 3, 5, int))
        polynomial = format_expr(expansion.polynomial())
        return f"{polynomial}  (radius ~ {expansion.convergence_radius:g})"

    def _cmd_limit(self, arg: str) -> str:
        args = _split_args(arg)
        result = self.engine.limit(args[0], _pick(args, 1, "x"), _pick(args, 2, 0.0, float))
        text = result.text
        if result.status == LimitStatus.INFINITE:
            text = f"{text}  [{result.status}]"
        return self._show(text, StepTrace.from_steps(result.steps))

    # Input

    def _define_rule(self, line: str) -> str:
        try:
            rules = load_rules_from_dsl(f"[{self.current_group}]\n{line}")
        except ValueError as e:
            return f"Error: {e}"
        if not rules:
            return "Error: failed to parse rule"
        for rule in rules:
            self.engine.library.add(rule)
        return f"Added {len(rules)} rule(s)"

    def process_line(self, line: str) -> Optional[str]:
        """
        Interpret one line of input.

        Blank lines and comments give None. Commands, group headers and
        rule definitions are dispatched; anything else is simplified.
        """
        line = line.strip()
        if not line or line.startswith("#"):
            return None
        if line.startswith(":"):
            return self.handle_command(line)
        if line.startswith("[") and line.endswith("]"):
            self.current_group = line[1:-1].strip()
            return f"Group: {self.current_group}"
        if "=>" in line:
            return self._define_rule(line)
        try:
            return self._cmd_simplify(line)
        except CASError as e:
            return f"Error: {e}"

    def run(self):
        """Read-eval-print until :quit or end of input."""
        if readline is not None:
            install_readline(self.completer)
        print(f"CASCADE {__version__} - rule-based computer algebra")
        print(":help lists the commands, :quit leaves")
        print()
        while self.running:
            try:
                output = self.process_line(input(PROMPT))
            except KeyboardInterrupt:
                print()
                continue
            except EOFError:
                print()
                break
            if output:
                print(output)
        if readline is not None:
            try:
                readline.write_history_file(HISTORY_FILE)
            except OSError as e:
                logger.debug("History not saved: %s", e)

def _echoes_in_script(line: str) -> bool:
    """Scripts only print results of expressions and math commands."""
    line = line.strip()
    if line.startswith("[") or "=>" in line:
        return False
    if line.startswith(":"):
        return line[1:].split()[0].lower() in MATH_USAGE
    return True

class ScriptRunner:
    """Drives a CascadeREPL from a script file, one input, or stdin."""

    def __init__(self, repl: Optional[CascadeREPL] = None):
        self.repl = repl if repl is not None else CascadeREPL()

    def run_script(self, path: Path, quiet: bool = False) -> int:
        """
        Execute a script, stopping at the first failing line.

        Failures go to stderr as ``path:line: message``. Returns the
        process exit status.
        """
        try:
            source = path.read_text()
        except OSError as e:
            print(f"Error reading {path}: {e}", file=sys.stderr)
            return 1

        for lineno, line in enumerate(source.splitlines(), 1):
            output = self.repl.process_line(line)
            if not output:
                continue
            if _is_failure(output):
                print(f"{path}:{lineno}: {output}", file=sys.stderr)
                return 1
            if not quiet and _echoes_in_script(line):
                print(output)
        return 0

    def run_expression(self, text: str) -> int:
        """Process one input line; returns 1 when it failed."""
        output = self.repl.process_line(text)
        if not output:
            return 0
        print(output)
        return 1 if _is_failure(output) else 0

    def run_stdin(self) -> int:
        """Process stdin line by line; returns 1 if any line failed."""
        failed = False
        for line in sys.stdin:
            output = self.repl.process_line(line)
            if output:
                print(output)
                failed = failed or _is_failure(output)
        return 1 if failed else 0

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cascade",
        description="CASCADE - rule-based computer algebra",
        epilog="examples:\n"
               "  cascade -e '2*x + 3*x'\n"
               "  cascade -c ':solve x^2 = 4'\n"
               "  cascade -r extra.rules script.cas\n"
               "  echo 'x + 0' | cascade\n",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("script", nargs="?", help=".cas script to execute")
    parser.add_argument("-r", "--rules", action="append", default=[], metavar="FILE",
                        help="extra rule file, repeatable")
    parser.add_argument("-e", "--expr", help="simplify EXPR and exit")
    parser.add_argument("-c", "--command", help="run one command (leading ':' optional)")
    parser.add_argument("-t", "--trace", action="store_true",
                        help="print the rules applied after each result")
    parser.add_argument("-q", "--quiet", action="store_true",
                        help="print only what was asked for")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="log engine activity to stderr")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser

def main(argv: Optional[List[str]] = None):
    args = build_parser().parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG,
                            format="%(levelname)s %(name)s: %(message)s")

    runner = ScriptRunner()
    runner.repl.trace = args.trace
    library = runner.repl.engine.library

    for rules_file in args.rules:
        try:
            library.load_file(Path(rules_file))
        except (OSError, ValueError) as e:
            print(f"Error loading {rules_file}: {e}", file=sys.stderr)
            sys.exit(1)
        if not args.quiet:
            print(f"Loaded rules from {rules_file}", file=sys.stderr)

    if args.script:
        status = runner.run_script(Path(args.script), quiet=args.quiet)
    elif args.expr:
        status = runner.run_expression(args.expr)
    elif args.command:
        status = runner.run_expression(":" + args.command.lstrip(":"))
    elif not sys.stdin.isatty():
        status = runner.run_stdin()
    else:
        runner.repl.run()
        status = 0
    sys.exit(status)

if __name__ == "__main__":
    main()
