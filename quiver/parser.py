r"""
Quiver parser: walk the token stream against the clause tree.

Overview
- parse(context, app) fills context.elements with what matched, descending into
  commands as their names are read. It stops at the first structural problem and
  raises it; nothing is accumulated.
- Flags are inherited downward: once a command is matched its flags join the ones
  already in scope. Arguments and subcommands are not inherited.

Matching rules
- "--name" resolves against the long flags in scope; "--no-name" negates a negatable
  toggle, unless a flag literally named "no-name" exists.
- A toggle takes no value token. Any other flag takes the next ARG token, which may
  come from "--name=value", "-nVALUE" or the following argument.
- A positional fills the next argument in scope; with interspersion disabled the first
  positional turns every later token into a positional too.
- Without arguments in scope, a positional names a subcommand (or an alias). When no
  name matches, a default subcommand is selected if one exists.
- After the stream is consumed the parser descends into default subcommands, unless
  defaults are ignored (help rendering and the help flag/command).

Faults
- UnknownLongFlagError, UnknownShortFlagError, ExpectedFlagArgumentError,
  ExpectedKnownCommandError, UnexpectedArgumentError (see quiver.faults).
"""
import difflib
import logging

from .faults import *
from .tokenizer import TokenKind, ParserState
from .values import isboolean, isnegatable

logger = logging.getLogger(__name__)


def _suggest(word, candidates, render):
    suggestions = difflib.get_close_matches(word, candidates, 3)
    if suggestions:
        return "did you mean %r? use --help to see what is available" % render(suggestions[0])
    return "use --help to see what is available"


def parse_flag(context):
    """
    Consume one flag token (and its value token) from the stream.

    Returns the matched FlagClause, or None when the next token is not a flag.
    """
    token = context.peek()
    if not token.is_flag():
        return None

    invert = False
    name = token.value
    if token.kind is TokenKind.LONG:
        flag = context.long_flags.get(name)
        if flag is None and name.startswith("no-"):
            name = name[3:]
            invert = True
            flag = context.long_flags.get(name)
        if flag is None:
            raise UnknownLongFlagError(
                "unknown long flag '%s'" % (token,),
                token=str(token),
                hint=_suggest(token.value, list(context.long_flags), lambda match: "--" + match),
                docs=getdoc(FaultCode.UNKNOWN_LONG_FLAG),
            )
    else:
        flag = context.short_flags.get(name)
        if flag is None:
            raise UnknownShortFlagError(
                "unknown short flag '%s'" % (token,),
                token=str(token),
                hint=_suggest(token.value, list(context.short_flags), lambda match: "-" + match),
                docs=getdoc(FaultCode.UNKNOWN_SHORT_FLAG),
            )

    context.next()

    if isboolean(flag._value):
        if invert and not isnegatable(flag._value):
            context.push(token)
            raise UnknownLongFlagError(
                "unknown long flag '%s'" % (token,),
                token=str(token),
                hint="'--%s' cannot be negated" % name,
                docs=getdoc(FaultCode.UNKNOWN_LONG_FLAG),
            )
        value = "false" if invert else "true"
    else:
        if invert:
            context.push(token)
            raise UnknownLongFlagError(
                "unknown long flag '%s'" % (token,),
                token=str(token),
                hint="only toggles can be negated with a 'no-' prefix",
                docs=getdoc(FaultCode.UNKNOWN_LONG_FLAG),
            )
        argument = context.peek()
        if argument.kind is not TokenKind.ARG:
            context.push(token)
            raise ExpectedFlagArgumentError(
                "expected argument for flag '%s'" % (token,),
                token=str(token),
                hint="pass a value with %s=<value>" % (
                    "--" + flag._name if token.kind is TokenKind.LONG else str(token)
                ),
                docs=getdoc(FaultCode.EXPECTED_FLAG_ARGUMENT),
            )
        context.next()
        value = argument.value

    context.matched_flag(flag, value)
    return flag


def _select_default(context, commands):
    command = commands.default_subcommand()
    if command is None:
        return None
    command._completion_alts = commands.names()
    context.matched_cmd(command)
    return command


def parse(context, app):
    """
    Fill context from its token stream against app; raise the first fault.
    """
    context.merge_flags(app._flags)
    context.merge_args(app._args)

    commands = app._commands
    ignore_default = context.ignore_default

    try:
        while not context.eol():
            token = context.peek()

            if token.is_flag():
                try:
                    flag = parse_flag(context)
                except CommandException:
                    if not ignore_default and (command := _select_default(context, commands)) is not None:
                        commands = command._commands
                        continue
                    raise
                if flag is app._help_flag:
                    ignore_default = True

            elif context.arguments and (arg := context.next_arg()) is not None:
                if not context.interspersed:
                    context.args_only = True
                    context.state = ParserState.REMAINDER
                context.matched_arg(arg, token.value)
                context.next()

            elif context.arguments:
                break

            elif commands.have():
                command = commands.get(token.value)
                selected_default = False
                if command is None:
                    if not ignore_default:
                        command = _select_default(context, commands)
                        selected_default = command is not None
                    if command is None:
                        raise ExpectedKnownCommandError(
                            "expected command '%s'" % (token,),
                            token=str(token),
                            hint=_suggest(token.value, commands.names(), str),
                            docs=getdoc(FaultCode.EXPECTED_COMMAND),
                        )
                else:
                    command._completion_alts = []
                    context.matched_cmd(command)
                if command is app._help_command:
                    ignore_default = True
                commands = command._commands
                if not selected_default:
                    context.next()

            else:
                break

        while not ignore_default and (command := _select_default(context, commands)) is not None:
            commands = command._commands

        if not context.eol():
            token = context.peek()
            raise UnexpectedArgumentError(
                "unexpected argument '%s'" % (token,),
                token=str(token),
                hint="use --help to see the expected arguments",
                docs=getdoc(FaultCode.UNEXPECTED_ARGUMENT),
            )
    except CommandException:
        context.state = ParserState.ERRORED
        raise

    context.state = ParserState.DONE
    logger.debug("parsed %r into %d elements", context.raw_args, len(context.elements))


__all__ = (
    "parse",
    "parse_flag",
)
