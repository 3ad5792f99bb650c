r"""
Quiver clauses: flags, positional arguments and commands, plus the groups that own them.

Overview
- Clauses
  • FlagClause: --name / -n / --no-name, typed by a value converter (see quiver.values).
  • ArgClause: positional value, matched in declaration order.
  • CmdClause: named node owning its own flags, args and subcommands.
  Every configuration method returns the clause itself; typed terminators (string(),
  bool(), strings(), ...) install a converter and return it.

- Groups
  • FlagGroup: long-name and short-character indexes plus declaration order.
  • ArgGroup: ordered positional sequence.
  • CmdGroup: name/alias index plus declaration order.
  Groups are responsible for lookup and for the structural checks run once at
  initialization (duplicates, ordering rules, defaults that can never apply).

- Resolution helpers
  • _set_default() applies envar values, else declared defaults, through the same
    validator and converter used for user input.
  • _needs_value() is the "required and nothing could satisfy it" predicate.
  • flag_completion()/cmd_completion() compute shell-completion candidates for a
    command level.

Quick example:
    >>> app = Application("tool")
    >>> ttl = app.command("ping").flag("ttl", "TTL for packets").short("t").default("5s").duration()
"""
import copy
import logging
import os
import re

from .faults import *
from .models import FlagModel, ArgModel, CmdModel
from .utils import mirror, envarize, ordinal
from .values import ValueMixin, isboolean, isnegatable, iscumulative, isremainder, options

logger = logging.getLogger(__name__)

_ENVAR_SEPARATOR = re.compile(r"\r?\n")
_ENVAR_TRAILER = re.compile(r"(\r?\n)+$")


class _Actionable:
    """
    Action and pre-action registry shared by clauses and the application.

    Actions receive the ParseContext. They signal failure by raising; nothing is
    swallowed here.
    """

    def __init__(self):
        self._actions = []
        self._pre_actions = []

    def action(self, action, /):
        if not callable(action):
            raise TypeError("action() argument must be callable")
        self._actions.append(action)
        return self

    def pre_action(self, action, /):
        if not callable(action):
            raise TypeError("pre_action() argument must be callable")
        self._pre_actions.append(action)
        return self

    def _apply_actions(self, context):
        for action in self._actions:
            action(context)

    def _apply_pre_actions(self, context):
        for action in self._pre_actions:
            action(context)


class Clause(_Actionable, ValueMixin):
    """
    Shared shape of flags and arguments.

    State
    - identity and presentation: name, help, placeholder, hidden.
    - behavior: required, defaults (strings), envar, validator, completion hints.
    - binding: the converter installed by a terminator.
    - observers: callables told whether the user supplied the clause (True on a
      token match, False when defaults were resolved instead).
    """
    __kind__ = "clause"

    name = mirror("name")
    help = mirror("help")

    def __init__(self, name, help=""):
        if not isinstance(name, str) or not name:
            raise TypeError("%s name must be a non-empty string" % type(self).__kind__)
        super().__init__()
        self._name = name
        self._help = help
        self._defaults = []
        self._envar = ""
        self._placeholder = ""
        self._required = False
        self._hidden = False
        self._validator = None
        self._hints = []
        self._observers = []
        self._value = None

    def __repr__(self):
        return "<%s %s>" % (type(self).__name__, self._label())

    @property
    def value(self):
        """The bound converter (None until a terminator runs)."""
        return self._value

    def default(self, *values):
        """Declared default strings, parsed through the converter when no token matched."""
        if not all(isinstance(value, str) for value in values):
            raise TypeError("default() arguments must be strings")
        self._defaults = list(values)
        return self

    def envar(self, name, /):
        self._envar = name
        return self

    def placeholder(self, text, /):
        self._placeholder = text
        return self

    def required(self):
        self._required = True
        return self

    def hidden(self):
        self._hidden = True
        return self

    def validator(self, validator, /):
        """
        Install validator(text). It raises ValueError to reject a token or default.
        """
        if not callable(validator):
            raise TypeError("validator() argument must be callable")
        self._validator = validator
        return self

    def hint_options(self, *options):
        self._hints.append(lambda: list(options))
        return self

    def hint_action(self, action, /):
        if not callable(action):
            raise TypeError("hint_action() argument must be callable")
        self._hints.append(action)
        return self

    def is_set_by_user(self, observer, /):
        if not callable(observer):
            raise TypeError("is_set_by_user() argument must be callable")
        self._observers.append(observer)
        return self

    def resolve_completions(self):
        """
        Completion candidates: every explicit hint in registration order, or the
        converter's closed option set when no hint was given.
        """
        if self._hints:
            hints = []
            for hint in self._hints:
                hints.extend(hint())
            return hints
        if self._value is None:
            return []
        return options(self._value)

    def _label(self):
        return "%s %r" % (type(self).__kind__, self._name)

    def _envar_value(self):
        if not self._envar:
            return ""
        return os.environ.get(self._envar, "")

    def _has_envar_value(self):
        return bool(self._envar_value())

    def _envar_values(self):
        text = self._envar_value()
        if not text:
            return []
        if not iscumulative(self._value):
            return [text]
        return _ENVAR_SEPARATOR.split(_ENVAR_TRAILER.sub("", text))

    def _needs_value(self):
        return self._required and not (self._defaults or self._has_envar_value())

    def _notify(self, supplied):
        for observer in self._observers:
            observer(supplied)

    def _assign(self, text):
        """Run the validator, then the converter; ValueError becomes a fault."""
        if self._validator is not None:
            try:
                self._validator(text)
            except ValueError as error:
                raise ValidationError(
                    "%s: %s" % (self._label(), error),
                    clause=self,
                    token=text,
                    docs=getdoc(FaultCode.VALIDATION_FAILED),
                ) from error
        try:
            self._value.set(text)
        except ValueError as error:
            raise InvalidValueError(
                "invalid value %r for %s: %s" % (text, self._label(), error),
                clause=self,
                token=text,
                docs=getdoc(FaultCode.INVALID_VALUE),
            ) from error

    def _check_defaults(self):
        """Parse every declared default through a scratch copy of the converter."""
        scratch = copy.deepcopy(self._value)
        for text in self._defaults:
            try:
                scratch.set(text)
            except ValueError as error:
                raise DefinitionError(
                    "invalid default %r for %s: %s" % (text, self._label(), error),
                    clause=self,
                    docs=getdoc(FaultCode.BAD_DEFINITION),
                ) from error

    def _set_default(self):
        """Envar first, declared defaults otherwise."""
        self._notify(False)
        values = self._envar_values() or self._defaults
        if values:
            logger.debug("defaulting %s to %r", self._label(), values)
        for text in values:
            self._assign(text)


class FlagClause(Clause):
    __kind__ = "flag"

    def __init__(self, name, help=""):
        super().__init__(name, help)
        self._short = ""
        self._no_envar = False

    def _label(self):
        return "flag '--%s'" % self._name

    def short(self, char, /):
        """Single code point alias (-x)."""
        if not isinstance(char, str) or len(char) != 1:
            raise TypeError("short() argument must be a single character")
        self._short = char
        return self

    def no_envar(self):
        """Opt out of application-wide default envars."""
        self._no_envar = True
        return self

    def _init(self):
        if self._required and self._defaults:
            raise DefinitionError("required flag '--%s' with default value that will never be used" % self._name)
        if self._value is None:
            raise DefinitionError(
                "no type defined for --%s" % self._name,
                hint="finish the flag with a terminator such as .string() or .bool()",
            )
        if not iscumulative(self._value) and len(self._defaults) > 1:
            raise DefinitionError("invalid default for '--%s', expecting single value" % self._name)
        self._check_defaults()

    def model(self):
        return FlagModel(
            name=self._name,
            help=self._help,
            short=self._short,
            default=list(self._defaults),
            envar=self._envar,
            place_holder=self._placeholder,
            required=self._required,
            hidden=self._hidden,
            boolean=isboolean(self._value),
            negatable=isnegatable(self._value),
            cumulative=iscumulative(self._value),
            value=self._value,
        )


class ArgClause(Clause):
    __kind__ = "argument"

    def _consumes_remainder(self):
        return self._value is not None and isremainder(self._value)

    def _init(self):
        if self._required and self._defaults:
            raise DefinitionError("required argument '%s' with unusable default value" % self._name)
        if self._value is None:
            raise DefinitionError(
                "no parser defined for arg '%s'" % self._name,
                hint="finish the argument with a terminator such as .string() or .strings()",
            )
        self._check_defaults()

    def model(self):
        return ArgModel(
            name=self._name,
            help=self._help,
            default=list(self._defaults),
            envar=self._envar,
            place_holder=self._placeholder,
            required=self._required,
            hidden=self._hidden,
            cumulative=iscumulative(self._value),
            value=self._value,
        )


class FlagGroup:
    """
    Flags of one application or command level.

    The long index is filled at registration; the short index is filled at
    initialization, once every short() call has been made.
    """

    def __init__(self):
        self.long = {}
        self.short = {}
        self.order = []

    def flag(self, name, help=""):
        flag = FlagClause(name, help)
        self.long[name] = flag
        self.order.append(flag)
        return flag

    def have(self):
        return bool(self.order)

    def get(self, name):
        return self.long.get(name)

    def _check_duplicates(self):
        seen_short = set()
        seen_long = set()
        for flag in self.order:
            if flag._short:
                if flag._short in seen_short:
                    raise DefinitionError("duplicate short flag -%s" % flag._short)
                seen_short.add(flag._short)
            if flag._name in seen_long:
                raise DefinitionError("duplicate long flag --%s" % flag._name)
            seen_long.add(flag._name)

    def _init(self, envar_prefix=""):
        self._check_duplicates()
        for flag in self.order:
            if envar_prefix and not flag._no_envar and not flag._envar:
                flag._envar = envarize(envar_prefix + "_" + flag._name)
            flag._init()
            if flag._short:
                self.short[flag._short] = flag

    def model(self):
        return [flag.model() for flag in self.order]


class ArgGroup:
    def __init__(self):
        self.args = []

    def arg(self, name, help=""):
        arg = ArgClause(name, help)
        self.args.append(arg)
        return arg

    def have(self):
        return bool(self.args)

    def get(self, name):
        for arg in self.args:
            if arg._name == name:
                return arg
        return None

    def _init(self):
        """
        Ordering rules:
        - a remainder argument must be the last one;
        - names are unique;
        - no required argument after an optional one, except a trailing remainder.
        """
        required = 0
        seen = set()
        last = None
        for index, arg in enumerate(self.args):
            if last is not None:
                raise DefinitionError(
                    "argument '%s' consumes all remaining tokens and can't be followed by '%s'"
                    % (last._name, arg._name)
                )
            if arg._consumes_remainder():
                last = arg
            if arg._name in seen:
                raise DefinitionError("duplicate argument '%s'" % arg._name)
            seen.add(arg._name)
            if arg._required and required != index and not (arg._consumes_remainder() and index == len(self.args) - 1):
                raise DefinitionError(
                    "required argument '%s' found after non-required" % arg._name,
                    hint="declare required arguments first, or make the %s argument optional" % ordinal(index + 1),
                )
            if arg._required:
                required += 1
            arg._init()

    def model(self):
        return [arg.model() for arg in self.args]


class CmdGroup:
    def __init__(self, app, parent=None):
        self.app = app
        self.parent = parent
        self.commands = {}
        self.order = []

    def command(self, name, help=""):
        command = CmdClause(self.app, self.parent, name, help)
        self.commands[name] = command
        self.order.append(command)
        return command

    def have(self):
        return bool(self.order)

    def get(self, name):
        return self.commands.get(name)

    def default_subcommand(self):
        for command in self.order:
            if command._default:
                return command
        return None

    def names(self):
        """Visible command names in declaration order."""
        return [command._name for command in self.order if not command._hidden]

    def _init(self):
        seen = set()
        defaults = []
        for command in self.order:
            if command._default:
                defaults.append(command._name)
            if command._name in seen:
                raise DefinitionError("duplicate command %r" % command._name)
            seen.add(command._name)
            for alias in command._aliases:
                if alias in seen:
                    raise DefinitionError("alias duplicates existing command %r" % alias)
                seen.add(alias)
                self.commands[alias] = command
            command._init()
        if len(defaults) > 1:
            raise DefinitionError("more than one default subcommand exists: %s" % ", ".join(defaults))

    def model(self):
        return [command.model() for command in self.order]


class _Commander(_Actionable):
    """
    Flag/arg/command ownership shared by the application and every command.

    Registration is only allowed until the application is initialized (first parse).
    """

    def __init__(self, app, parent=None):
        super().__init__()
        self._flags = FlagGroup()
        self._args = ArgGroup()
        self._commands = CmdGroup(app, parent)
        self._validator = None

    def _guard(self, kind, name):
        if self._application()._initialized:
            raise DefinitionError(
                "can't register %s %r after the application was initialized" % (kind, name),
                hint="declare every flag, argument and command before the first parse",
            )

    def _application(self):
        raise NotImplementedError

    def flag(self, name, help=""):
        self._guard("flag", name)
        return self._flags.flag(name, help)

    def arg(self, name, help=""):
        self._guard("argument", name)
        return self._args.arg(name, help)

    def command(self, name, help=""):
        self._guard("command", name)
        return self._commands.command(name, help)

    def get_flag(self, name):
        return self._flags.get(name)

    def get_arg(self, name):
        return self._args.get(name)

    def get_command(self, name):
        return self._commands.get(name)

    def validate(self, validator, /):
        """Install validator(owner); it raises ValueError to reject the parse."""
        if not callable(validator):
            raise TypeError("validate() argument must be callable")
        self._validator = validator
        return self

    def flag_completion(self, name, value):
        """
        Completion for a flag being typed at this level.

        Returns (options, flag_matched, value_matched). An exact flag name yields its
        hints, or a value match when it has none; otherwise every visible flag is offered.
        """
        choices = []
        for flag in self._flags.order:
            if flag._name == name:
                choices = flag.resolve_completions()
                if not choices:
                    return choices, True, True
                prefix = False
                matched = False
                for choice in choices:
                    if value == choice:
                        matched = True
                    elif choice.startswith(value):
                        prefix = True
                return choices, True, matched and not prefix
            if not flag._hidden:
                choices.append("--" + flag._name)
        return choices, False, False

    def cmd_completion(self, context):
        """
        Completion for positional tokens at this level: the next unfilled argument's
        hints, or the subcommand names once every argument is satisfied.
        """
        choices = []
        satisfied = 0
        for element in context.elements:
            if isinstance(element.clause, ArgClause):
                choices = []
                if element.value:
                    satisfied += 1
            elif isinstance(element.clause, CmdClause):
                choices = []
                satisfied = 0
                if element.clause._default:
                    choices.extend(element.clause._completion_alts)

        args = self._args.args
        if args and args[-1]._consumes_remainder():
            satisfied = min(satisfied, len(args) - 1)
        if satisfied < len(args):
            choices.extend(args[satisfied].resolve_completions())
        else:
            choices.extend(self._commands.names())
        return choices


class CmdClause(_Commander):
    """
    A command node: its own flag/arg/command groups plus presentation and dispatch
    settings. Created through Application.command() or CmdClause.command().
    """
    name = mirror("name")
    help = mirror("help")
    aliases = mirror("aliases")

    def __init__(self, app, parent, name, help=""):
        if not isinstance(name, str) or not name:
            raise TypeError("command name must be a non-empty string")
        super().__init__(app, self)
        self._app = app
        self._parent = parent
        self._name = name
        self._help = help
        self._help_long = ""
        self._aliases = []
        self._hidden = False
        self._default = False
        self._completion_alts = []

    def __repr__(self):
        return "<CmdClause %r>" % self.full_command()

    def _application(self):
        return self._app

    @property
    def parent(self):
        return self._parent

    @property
    def path(self):
        """Commands from the top level down to this one."""
        path = [command := self]
        while command._parent is not None:
            path.append(command := command._parent)
        return tuple(reversed(path))

    def full_command(self):
        return " ".join(command._name for command in self.path)

    def alias(self, name, /):
        self._aliases.append(name)
        return self

    def help_long(self, text, /):
        self._help_long = text
        return self

    def hidden(self):
        self._hidden = True
        return self

    def default(self):
        """Select this command when its parent needs one and none was typed."""
        self._default = True
        return self

    def _init(self):
        self._flags._init(self._app._default_envar_prefix())
        if self._args.have() and self._commands.have():
            raise DefinitionError("can't mix arguments with commands in %r" % self.full_command())
        self._args._init()
        self._commands._init()

    def model(self):
        return CmdModel(
            name=self._name,
            help=self._help,
            aliases=list(self._aliases),
            help_long=self._help_long,
            hidden=self._hidden,
            default=self._default,
            flags=self._flags.model(),
            args=self._args.model(),
            commands=self._commands.model(),
            full_command=self.full_command(),
            depth=len(self.path),
        )


def check_duplicate_flags(command, groups):
    """
    Reject a flag of command (or of any descendant) that reuses a long name or a
    short character already owned by an ancestor level.
    """
    for group in groups:
        for flag in command._flags.order:
            if flag._short and flag._short in group.short:
                raise DefinitionError("duplicate short flag -%s" % flag._short)
            if flag._name in group.long:
                raise DefinitionError("duplicate long flag --%s" % flag._name)
    groups = [*groups, command._flags]
    for child in command._commands.order:
        check_duplicate_flags(child, groups)


__all__ = (
    "Clause",
    "FlagClause",
    "ArgClause",
    "CmdClause",
    "FlagGroup",
    "ArgGroup",
    "CmdGroup",
)
