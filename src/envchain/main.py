import argparse
import getpass
import os
import subprocess
import sys
import textwrap
from typing import List, Optional

import envchain
from envchain import NamespaceNotFound, ReportingException
from envchain._output import TerminalBackend, output
from envchain.backend import Backend, get_backend
from envchain.config import Settings

COMMANDS = ("set", "list", "unset", "exec", "get-completions")
SHELLS = ("bash", "fish", "zsh")
# Global options that consume the following argument.
OPTIONS_WITH_VALUE = ("--backend", "--age-identity")


def prompt_value(namespace: str, name: str, noecho: bool) -> str:
    prompt = f"{namespace}.{name}"
    if noecho:
        return getpass.getpass(f"{prompt} (noecho):")
    sys.stderr.write(f"{prompt}: ")
    sys.stderr.flush()
    return sys.stdin.readline().rstrip("\r\n")


def set_values(
    backend: Backend, namespace: str, names: List[str], noecho: bool
):
    entries = {}
    for name in names:
        entries[name] = prompt_value(namespace, name, noecho)
    backend.set_entries(namespace, entries)
    return 0


def warn_undefined(namespace):
    output.warn(
        f"namespace `{namespace}` not defined.\n"
        f"         You can set via running "
        f"`envchain set {namespace} SOME_ENV_NAME`."
    )


def list_values(
    backend: Backend, namespace: Optional[str], show_value: bool
):
    if namespace is None:
        for name in backend.list_namespaces():
            print(name)
        return 0
    try:
        entries = backend.get_namespace(namespace)
    except NamespaceNotFound:
        warn_undefined(namespace)
        return 0
    for name in sorted(entries):
        if show_value:
            print(f"{name}={entries[name]}")
        else:
            print(name)
    return 0


def unset_values(backend: Backend, namespace: str, names: List[str]):
    try:
        backend.unset_entries(namespace, names)
    except NamespaceNotFound:
        warn_undefined(namespace)
    return 0


def exec_with(
    backend: Backend, namespaces: str, command: str, args: List[str]
):
    env = os.environ.copy()
    names = []
    for namespace in namespaces.split(","):
        try:
            entries = backend.get_namespace(namespace)
        except NamespaceNotFound:
            warn_undefined(namespace)
            continue
        env.update(entries)
        names.extend(entries)

    if sys.platform == "win32" and names:
        # Forward the variables across the WSL interop boundary.
        wslenv = [x for x in env.get("WSLENV", "").split(":") if x]
        env["WSLENV"] = ":".join(wslenv + names)

    output.annotate(
        f"Running {command} with {len(names)} variable(s)", debug=True
    )
    try:
        status = subprocess.call([command] + list(args), env=env)
    except FileNotFoundError:
        output.error(f"Command not found: {command}")
        return 127
    except OSError as e:
        output.error(f"Could not execute {command}: {e.strerror or e}")
        return 126
    if status < 0:
        # Killed by signal -status, report it the way shells do.
        return 128 - status
    return status


BASH_COMPLETION = """\
_envchain() {{
    local cur="${{COMP_WORDS[COMP_CWORD]}}"
    local cmd="" words="" word
    for word in "${{COMP_WORDS[@]:1:COMP_CWORD-1}}"; do
        case "$word" in
            {commands}) cmd="$word"; break;;
        esac
    done
    case "$cmd" in
{cases}
    esac
    COMPREPLY=($(compgen -W "$words" -- "$cur"))
}}
complete -o default -F _envchain envchain
"""


def _subcommands(parser: argparse.ArgumentParser):
    for action in parser._actions:
        if isinstance(action, argparse._SubParsersAction):
            helps = {a.dest: a.help for a in action._choices_actions}
            return [
                (name, sub, helps.get(name))
                for name, sub in action.choices.items()
            ]
    return []


def _words(parser: argparse.ArgumentParser) -> List[str]:
    words = []
    for action in parser._actions:
        words.extend(action.option_strings)
        if not action.option_strings and action.choices:
            words.extend(action.choices)
    return words


def bash_completion(parser: argparse.ArgumentParser) -> str:
    subcommands = _subcommands(parser)
    toplevel = _words(parser) + [name for name, _, _ in subcommands]
    cases = ['        "") words="{}";;'.format(" ".join(toplevel))]
    for name, sub, _ in subcommands:
        cases.append(
            '        {}) words="{}";;'.format(name, " ".join(_words(sub)))
        )
    return BASH_COMPLETION.format(
        commands="|".join(name for name, _, _ in subcommands),
        cases="\n".join(cases),
    )


def zsh_completion(parser: argparse.ArgumentParser) -> str:
    return "autoload -U +X bashcompinit && bashcompinit\n" + bash_completion(
        parser
    )


def _fish_quote(text: str) -> str:
    text = " ".join(text.split())
    return "'{}'".format(text.replace("\\", "\\\\").replace("'", "\\'"))


def _fish_option(condition: str, action: argparse.Action) -> str:
    line = ["complete -c envchain -n", _fish_quote(condition)]
    for option in action.option_strings:
        if option.startswith("--"):
            line += ["-l", option[2:]]
        else:
            line += ["-s", option[1:]]
    if action.nargs != 0:
        line.append("-r")
    if action.help:
        line += ["-d", _fish_quote(action.help)]
    return " ".join(line)


def fish_completion(parser: argparse.ArgumentParser) -> str:
    toplevel = "__fish_use_subcommand"
    lines = []
    for action in parser._actions:
        if action.option_strings:
            lines.append(_fish_option(toplevel, action))
    for name, sub, summary in _subcommands(parser):
        line = "complete -c envchain -n {} -f -a {}".format(
            _fish_quote(toplevel), name
        )
        if summary:
            line += " -d " + _fish_quote(summary)
        lines.append(line)
        condition = f"__fish_seen_subcommand_from {name}"
        for action in sub._actions:
            if action.option_strings:
                lines.append(_fish_option(condition, action))
            elif action.choices:
                lines.append(
                    "complete -c envchain -n {} -f -a {}".format(
                        _fish_quote(condition),
                        _fish_quote(" ".join(action.choices)),
                    )
                )
    return "\n".join(lines) + "\n"


def print_completions(shell: str):
    """Print a completion script for `shell` to stdout."""
    generate = {
        "bash": bash_completion,
        "fish": fish_completion,
        "zsh": zsh_completion,
    }[shell]
    print(generate(build_parser()), end="")
    return 0


def insert_exec_command(args: List[str]) -> List[str]:
    """Allow `envchain NAMESPACE COMMAND ...` as a shortcut for `exec`."""
    args = list(args)
    i = 0
    while i < len(args):
        arg = args[i]
        if arg in OPTIONS_WITH_VALUE:
            i += 2
            continue
        if arg.startswith("-"):
            i += 1
            continue
        if arg not in COMMANDS:
            args.insert(i, "exec")
        break
    return args


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="envchain",
        description=(
            "envchain v{}: environment variables meet secret storage"
        ).format(envchain.__version__),
    )
    parser.set_defaults(func=parser.print_usage)

    parser.add_argument(
        "-d", "--debug", action="store_true", help="Enable debug mode."
    )
    parser.add_argument(
        "--backend",
        metavar="TYPE",
        default=None,
        help="Backend to store secrets in (default: $ENVCHAIN_BACKEND, "
        "the configuration file, or age).",
    )
    parser.add_argument(
        "--age-identity",
        metavar="PATH",
        default=None,
        help="Identity for the age backend: an SSH private key (Ed25519 "
        "or RSA) or an age identity file (default: "
        "$ENVCHAIN_AGE_IDENTITY, or an identity generated on first use).",
    )
    parser.add_argument(
        "--version", action="version", version=envchain.__version__
    )

    subparsers = parser.add_subparsers()

    p = subparsers.add_parser(
        "set", help="Set environment variables in a namespace."
    )
    p.add_argument(
        "-n", "--noecho", action="store_true", help="Do not echo user input."
    )
    p.add_argument("namespace", help="Namespace to store variables in.")
    p.add_argument(
        "names", metavar="VAR", nargs="+", help="Variables to set."
    )
    p.set_defaults(func=set_values)

    p = subparsers.add_parser(
        "list",
        help="List namespaces, or the variables of one namespace.",
    )
    p.add_argument(
        "-v",
        "--show-value",
        action="store_true",
        help="Show values when listing variables.",
    )
    p.add_argument("namespace", nargs="?", default=None)
    p.set_defaults(func=list_values)

    p = subparsers.add_parser(
        "unset", help="Remove variables from a namespace."
    )
    p.add_argument("namespace", help="Namespace to remove variables from.")
    p.add_argument(
        "names", metavar="VAR", nargs="+", help="Variables to remove."
    )
    p.set_defaults(func=unset_values)

    p = subparsers.add_parser(
        "exec",
        help=textwrap.dedent(
            """
            Run a command with the variables of one or more namespaces
            (comma separated) in its environment. `exec` may be omitted:
            envchain NAMESPACE COMMAND [ARGS...]"""
        ),
    )
    p.add_argument("namespaces", help="Namespace(s), comma separated.")
    p.add_argument("command", help="Command to execute.")
    p.add_argument("args", nargs=argparse.REMAINDER)
    p.set_defaults(func=exec_with)

    p = subparsers.add_parser(
        "get-completions", help="Print a shell completion script."
    )
    p.add_argument("shell", choices=SHELLS)
    p.set_defaults(func=print_completions)

    return parser


def main(args: Optional[list] = None) -> int:
    if args is None:
        args = sys.argv[1:]
    parser = build_parser()
    args = parser.parse_args(insert_exec_command(args))

    output.enable_debug = args.debug
    if args.func.__name__ == "print_usage":
        args.func()
        sys.exit(2)

    output.backend = TerminalBackend()

    func_args = dict(args._get_kwargs())
    func = func_args.pop("func")
    del func_args["debug"]
    backend_name = func_args.pop("backend")
    age_identity = func_args.pop("age_identity")
    if func is print_completions:
        return func(**func_args)
    try:
        settings = Settings.load(
            backend=backend_name, age_identity=age_identity
        )
        backend = get_backend(settings)
        return func(backend, **func_args)
    except ReportingException as e:
        e.report()
        return 1
    except KeyboardInterrupt:
        return 130
