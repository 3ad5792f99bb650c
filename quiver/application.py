r"""
Quiver application: the root of the clause tree and the parse pipeline.

Overview
- Application(name, help, *, colorful=False, fancy=False) owns the top-level flags,
  arguments and commands (see quiver.clauses) and drives one invocation end to end:

    parse(args)
      1. initialize once (structural checks, built-in help command)
      2. tokenize + parse into a ParseContext (quiver.tokenizer, quiver.parser)
      3. apply envar/default values to clauses in scope that were not matched
      4. apply matched values in encounter order (repeat and subcommand checks)
      5. pre-actions (application first, then matched clauses)
      6. completion mode: print candidates and terminate
      7. help flag: render usage for a default-free re-parse and terminate
      8. required checks, validators (commands then application), actions

- Built-in flags
  • --help              visible, context-sensitive usage.
  • --help-long         hidden, long usage with every command flattened.
  • --help-compact      hidden, usage line and command listing only.
  • --completion-bash   hidden, switches parse() into completion mode.
  • --quiver-introspect hidden, prints the plugin model (json) and terminates.
  • --version           added by version(text).

Termination
- Every "print and exit" path goes through the injected terminate callable (default:
  sys.exit). terminate(None) installs a no-op so embedding code and tests can observe
  the status instead of leaving the process.

Presentation
- Usage and errors go to rich consoles (stderr by default); writer(file),
  usage_writer(file) and error_writer(file) redirect them.
- must_parse_with_usage(args) is the friendly policy: faults are rendered with the
  relevant usage instead of being raised.
"""
import logging
import sys

from rich.console import Console
from rich.text import Text

from . import parser
from .clauses import _Commander, ArgClause, CmdClause, FlagClause, check_duplicate_flags
from .faults import *
from .faults import USAGE_FAULTS
from .models import ApplicationModel
from .plugins import INTROSPECT_FLAG, external_plugin, external_plugin_json, introspect_model
from .tokenizer import tokenize
from .usage import render
from .utils import mirror, rename
from .values import iscumulative, reset

logger = logging.getLogger(__name__)

_HELP_HINT = "use --help for full help including flags and arguments"


class Application(_Commander):
    """
    Command-line application: declaration surface plus the parse pipeline.

    Quick example:
        >>> app = Application("chat", "A command-line chat application.")
        >>> debug = app.flag("debug", "Enable debug mode.").bool()
        >>> post = app.command("post", "Post a message to a channel.")
        >>> channel = post.arg("channel", "Channel to post to.").required().string()
        >>> app.parse(["post", "#general"])
        'post'
    """
    name = mirror("name")
    help = mirror("help")

    def __init__(self, name, help="", *, colorful=False, fancy=False):
        if not isinstance(name, str) or not name:
            raise TypeError("application name must be a non-empty string")
        self._initialized = False
        super().__init__(self)
        self._name = name
        self._help = help
        self._author = ""
        self._version = ""
        self._colorful = colorful
        self._fancy = fancy
        self._interspersed = True
        self._default_envars = False
        self._terminate = sys.exit
        self._usage = Console(stderr=True, soft_wrap=True)
        self._errors = Console(stderr=True, soft_wrap=True)
        self._help_command = None
        self._version_flag = None

        self._help_flag = self.flag("help", "Show context-sensitive help.")
        self._help_flag.unnegatable_bool()

        self.flag("help-long", "Generate long help.").hidden().pre_action(self._usage_action(long=True)).unnegatable_bool()
        self.flag("help-compact", "Generate compact help.").hidden().pre_action(self._usage_action(compact=True)).unnegatable_bool()

        self._completion_flag = self.flag("completion-bash", "Output possible completions for the given args.")
        self._completion_flag.hidden().unnegatable_bool()

        self.flag(INTROSPECT_FLAG, "Print the application model as json.").hidden().pre_action(self._introspect).unnegatable_bool()

    def __repr__(self):
        return "<Application %r>" % self._name

    def _application(self):
        return self

    def _usage_action(self, *, compact=False, long=False):
        @rename("long_help" if long else "compact_help")
        def action(context):
            self.usage_for_context(context, compact=compact, long=long)
            self._terminate(0)

        return action

    def _introspect(self, context):
        sys.stdout.write(introspect_model(self).dumps() + "\n")
        self._terminate(0)

    # ------------------------------------------------------------------ builders

    def version(self, text, /):
        """Add --version; it prints text to the usage writer and terminates."""
        self._version = text

        @rename("show_version")
        def show_version(context):
            self._usage.print(Text(text))
            self._terminate(0)

        self._version_flag = self.flag("version", "Show application version.").pre_action(show_version)
        self._version_flag.unnegatable_bool()
        return self

    def author(self, text, /):
        self._author = text
        return self

    def default_envars(self):
        """Flags without an explicit envar read <APP>_<FLAG> (see quiver.utils.envarize)."""
        self._default_envars = True
        return self

    def interspersed(self, interspersed, /):
        """False makes every token after the first positional a positional too."""
        self._interspersed = bool(interspersed)
        return self

    def terminate(self, terminate, /):
        if terminate is None:
            terminate = rename(lambda status: None, "noop")
        if not callable(terminate):
            raise TypeError("terminate() argument must be callable or None")
        self._terminate = terminate
        return self

    def writer(self, file, /):
        self._usage = self._errors = Console(file=file, soft_wrap=True)
        return self

    def usage_writer(self, file, /):
        self._usage = Console(file=file, soft_wrap=True)
        return self

    def error_writer(self, file, /):
        self._errors = Console(file=file, soft_wrap=True)
        return self

    def _default_envar_prefix(self):
        return self._name if self._default_envars else ""

    # ------------------------------------------------------------------ initialization

    def _init(self):
        if self._initialized:
            return
        if self._commands.have() and self._args.have():
            raise DefinitionError(
                "can't mix top-level arguments with commands",
                hint="move the arguments under a command",
                docs=getdoc(FaultCode.BAD_DEFINITION),
            )

        if self._commands.have() and self._help_command is None:
            self._help_command = self.command("help", "Show help.")
            topics = self._help_command.arg("command", "Show help on command.").strings()

            @rename("help_command")
            def help_command(context):
                self.usage(topics.value)
                self._terminate(0)

            self._help_command.pre_action(help_command)
            order = self._commands.order
            order.insert(0, order.pop())

        self._flags._init(self._default_envar_prefix())
        self._commands._init()
        self._args._init()
        for command in self._commands.order:
            check_duplicate_flags(command, [self._flags])
        self._initialized = True
        logger.debug("initialized %r", self)

    def _clauses(self):
        owners = [self]
        while owners:
            owner = owners.pop()
            yield from owner._flags.order
            yield from owner._args.args
            owners.extend(owner._commands.order)

    # ------------------------------------------------------------------ parsing

    def _parse_context(self, ignore_default, args):
        """Return (context, fault); definition problems raise instead."""
        self._init()
        context = tokenize(args, ignore_default)
        context.interspersed = self._interspersed
        try:
            parser.parse(context, self)
        except CommandException as fault:
            context.error = fault
            return context, fault
        return context, None

    def parse_context(self, args):
        """
        Parse args without resolving values or dispatching anything.

        The fault that stopped the parse, if any, is left in context.error.
        """
        context, _ = self._parse_context(False, args)
        return context

    def parse(self, args):
        """
        Parse args, resolve values and dispatch; return the selected command path.

        Raises the first fault met (a CommandException subclass). Exceptions raised
        by actions and validators other than ValueError propagate unchanged.
        """
        args = list(args)
        for clause in self._clauses():
            if clause._value is not None:
                reset(clause._value)

        context, fault = self._parse_context(False, args)
        completion = any(element.clause is self._completion_flag for element in context.elements)

        self._set_defaults(context)
        try:
            selected = self._set_values(context)
        except CommandException as error:
            selected, values_fault = [], error
        else:
            values_fault = None

        self._apply_pre_actions(context, dispatch=not completion)

        if completion:
            sys.stdout.write("\n".join(self.completion_options(context)))
            self._terminate(0)
            return ""

        if fault is not None:
            raise fault
        if self._maybe_help(context):
            return ""
        if values_fault is not None:
            raise values_fault

        try:
            return self._execute(context, selected)
        except CommandNotSpecifiedError:
            self.usage_for_context(context)
            self._terminate(0)
            raise

    def _maybe_help(self, context):
        for element in context.elements:
            if element.clause is self._help_flag:
                context, _ = self._parse_context(True, context.raw_args)
                self.usage_for_context(context)
                self._terminate(0)
                return True
        return False

    def _set_defaults(self, context):
        matched = set()
        for element in context.elements:
            if element.clause is self._help_flag:
                return
            if isinstance(element.clause, (FlagClause, ArgClause)):
                matched.add(id(element.clause))

        for clause in (*context.flags, *context.arguments):
            if id(clause) not in matched:
                clause._set_default()

    def _set_values(self, context):
        selected = []
        last = None
        seen = set()
        for element in context.elements:
            clause = element.clause
            if isinstance(clause, FlagClause):
                if clause._name in seen and not iscumulative(clause._value):
                    raise FlagCannotRepeatError(
                        "flag '%s' cannot be repeated" % clause._name,
                        flag=clause,
                        hint="pass --%s only once" % clause._name,
                        docs=getdoc(FaultCode.FLAG_CANNOT_REPEAT),
                    )
                clause._assign(element.value)
                clause._notify(True)
                seen.add(clause._name)
            elif isinstance(clause, ArgClause):
                clause._assign(element.value)
                clause._notify(True)
            elif isinstance(clause, CmdClause):
                selected.append(clause._name)
                last = clause

        if last is not None and last._commands.have():
            raise SubcommandRequiredError(
                "must select a subcommand of '%s'" % last.full_command(),
                command=last,
                hint="choose one of: %s" % ", ".join(last._commands.names()),
                docs=getdoc(FaultCode.SUBCOMMAND_REQUIRED),
            )
        return selected

    def _validate_required(self, context):
        matched = {id(element.clause) for element in context.elements}
        for flag in context.flags:
            if id(flag) not in matched and flag._needs_value():
                raise RequiredFlagError(
                    "required flag --%s not provided" % flag._name,
                    flag=flag,
                    hint="pass --%s=%s" % (flag._name, flag.model().format_placeholder()),
                    docs=getdoc(FaultCode.REQUIRED_FLAG),
                )
        for arg in context.arguments:
            if id(arg) not in matched and arg._needs_value():
                raise RequiredArgumentError(
                    "required argument '%s' not provided" % arg._name,
                    argument=arg,
                    docs=getdoc(FaultCode.REQUIRED_ARGUMENT),
                )

    def _apply_validators(self, context):
        owners = [element.clause for element in context.elements if isinstance(element.clause, CmdClause)]
        if self._validator is not None:
            owners.append(self)
        for owner in owners:
            if owner._validator is None:
                continue
            try:
                owner._validator(owner)
            except ValueError as error:
                raise ValidationError(
                    str(error),
                    owner=owner,
                    docs=getdoc(FaultCode.VALIDATION_FAILED),
                ) from error

    def _apply_pre_actions(self, context, dispatch=True):
        super()._apply_pre_actions(context)
        if dispatch:
            for element in context.elements:
                element.clause._apply_pre_actions(context)

    def _apply_actions(self, context):
        super()._apply_actions(context)
        for element in context.elements:
            element.clause._apply_actions(context)

    def _execute(self, context, selected):
        self._validate_required(context)
        self._apply_validators(context)
        self._apply_actions(context)

        command = " ".join(selected)
        if not command and self._commands.have():
            raise CommandNotSpecifiedError(
                "command not specified",
                hint="choose one of: %s" % ", ".join(self._commands.names()),
                docs=getdoc(FaultCode.COMMAND_NOT_SPECIFIED),
            )
        logger.debug("dispatched %r", command)
        return command

    # ------------------------------------------------------------------ completion

    def completion_options(self, context):
        """
        Candidates for the next token of a --completion-bash invocation.

        context.raw_args[0] is the completion flag itself; the last raw argument is the
        word being completed ("" right after a space).
        """
        args = context.raw_args[1:]
        current = args[-1] if args else ""
        previous = args[-2] if len(args) > 1 else ""
        target = context.selected or self

        if current.startswith("--") or previous.startswith("--"):
            if context.args_only and not context.trailing_separator():
                return []

            name = value = ""
            if previous.startswith("--") and not current.startswith("--"):
                name, value = previous[2:], current
            elif current.startswith("--"):
                name = current[2:]

            choices, flag_matched, value_matched = target.flag_completion(name, value)
            if value_matched:
                return target.cmd_completion(context)

            if context.selected is not None and not flag_matched:
                top, top_flag_matched, top_value_matched = self.flag_completion(name, value)
                if top_value_matched:
                    return target.cmd_completion(context)
                if top_flag_matched:
                    choices = top
                else:
                    choices = [*choices, *top]
            return choices

        return target.cmd_completion(context)

    # ------------------------------------------------------------------ usage and errors

    def usage_for_context(self, context, *, compact=False, long=False):
        self._usage.print(render(self, context, compact=compact, long=long, colorful=self._colorful, fancy=self._fancy))

    def usage(self, args=None):
        """Render usage for the command named by args (parsed with defaults ignored)."""
        context, fault = self._parse_context(True, list(args or ()))
        if fault is not None:
            self.fatal_if_error(fault)
        self.usage_for_context(context)

    def errorf(self, fmt, *args):
        self._errors.print(Text("%s: error: %s" % (self._name, fmt % args if args else fmt)))

    def fatalf(self, fmt, *args):
        self.errorf(fmt, *args)
        self._terminate(1)

    def fatal_usage(self, fmt, *args):
        self.errorf(fmt, *args)
        self._usage = self._errors
        self.usage([])
        self._terminate(1)

    def fatal_usage_context(self, context, fmt, *args):
        self.errorf(fmt, *args)
        self.usage_for_context(context)
        self._terminate(1)

    def fatal_if_error(self, error, fmt="", *args):
        if error is None:
            return
        prefix = (fmt % args if args else fmt) + ": " if fmt else ""
        self.errorf("%s", prefix + str(error))
        self._terminate(1)

    def must_parse_with_usage(self, args):
        """
        parse(args), rendering faults instead of raising them.

        - a missing subcommand or an unknown command: the fault, then a compact
          listing of the available commands;
        - flag and argument faults: the fault, then the full usage of the command;
        - anything else: "<app>: error: <fault>" and status 1.
        """
        args = list(args)
        try:
            return self.parse(args)
        except SubcommandRequiredError as error:
            compact = True
            fault = SubcommandRequiredError(
                "a subcommand from the list below is required",
                hint=_HELP_HINT,
                docs=error.options.get("docs"),
            )
        except ExpectedKnownCommandError as error:
            compact, fault = True, error
        except USAGE_FAULTS as error:
            compact, fault = False, error
        except CommandException as error:
            self.fatalf("%s", error)
            return ""

        trigger(fault, shell=True, console=self._errors, app=self, colorful=self._colorful, fancy=self._fancy)
        self._errors.print()
        context, _ = self._parse_context(True, args)
        self.usage_for_context(context, compact=compact)
        self._terminate(1)
        return ""

    # ------------------------------------------------------------------ models and plugins

    def model(self):
        return ApplicationModel(
            name=self._name,
            help=self._help,
            version=self._version,
            author=self._author,
            flags=self._flags.model(),
            args=self._args.model(),
            commands=self._commands.model(),
        )

    def external_plugin_json(self, command, data):
        """Register a plugin from its json model; returns the grafted command."""
        return external_plugin_json(self, command, data)

    def external_plugin(self, command):
        """Register a plugin by running command --quiver-introspect."""
        return external_plugin(self, command)


__all__ = (
    "Application",
)
