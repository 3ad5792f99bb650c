"""
Quiver faults (errors) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every user-facing fault.
  Codes are grouped by domain to keep copy consistent and make logs/searches predictable.
- CommandException: base type that carries message + options and knows how to render
  itself in a friendly, lowercased, and actionable way.
- One subclass per fault kind raised by the parser, the resolution pipeline, the
  structural checks and the plugin delegator.
- trigger(): central entry point to surface any fault (raise it, or render it to a console).
- getdoc(): optional description lookup for a code from the host application.

UX goals
- Soft but technical language: short titles, one-sentence bodies, a single clear hint.
- Classic wording for the parse faults ("unknown long flag '--x'", "required flag --x not
  provided") so messages stay greppable across versions.
- Lowercased tone with readable styling (configurable via __styles__ in __main__).

Integration
- The parser and pipeline raise faults; the application catches them where a
  presentation policy applies (must_parse_with_usage, fatal_if_error) and renders
  them through rich instead.
"""
import inspect
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset, coalesce

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes used across the library (stable identifiers).

    grouping (by high-level domain)
    - routing (111xx)
      • EXPECTED_COMMAND, COMMAND_NOT_SPECIFIED, SUBCOMMAND_REQUIRED, UNEXPECTED_ARGUMENT
    - flags (112xx)
      • UNKNOWN_LONG_FLAG, UNKNOWN_SHORT_FLAG, EXPECTED_FLAG_ARGUMENT,
        FLAG_CANNOT_REPEAT, REQUIRED_FLAG
    - positionals (113xx)
      • REQUIRED_ARGUMENT
    - values (114xx)
      • INVALID_VALUE, VALIDATION_FAILED
    - definitions (115xx)
      • BAD_DEFINITION
    - plugins (116xx)
      • BAD_PLUGIN_MODEL, DELEGATED_ERROR

    rationale
    - spacing leaves room for future additions without reshuffling existing codes.
    - normalize() allows host remapping to custom labels while keeping code-stability.
    """
    # --- routing errors (111xx) ---
    EXPECTED_COMMAND            = 11101
    COMMAND_NOT_SPECIFIED       = 11102
    SUBCOMMAND_REQUIRED         = 11103
    UNEXPECTED_ARGUMENT         = 11104

    # --- flag errors (112xx) ---
    UNKNOWN_LONG_FLAG           = 11201
    UNKNOWN_SHORT_FLAG          = 11202
    EXPECTED_FLAG_ARGUMENT      = 11203
    FLAG_CANNOT_REPEAT          = 11204
    REQUIRED_FLAG               = 11205

    # --- positional errors (113xx) ---
    REQUIRED_ARGUMENT           = 11301

    # --- value errors (114xx) ---
    INVALID_VALUE               = 11401
    VALIDATION_FAILED           = 11402

    # --- definition errors (115xx) ---
    BAD_DEFINITION              = 11501

    # --- plugin errors (116xx) ---
    BAD_PLUGIN_MODEL            = 11601
    DELEGATED_ERROR             = 11602

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels. when no mapping
        is present, the numeric value is returned as a string.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


class CommandException(Exception):
    """
    base fault: a message plus read-only options.

    options
    - code, title, hint, docs: copy shown by the renderer (code/title default per subclass).
    - app, colorful, fancy, shell, console: runtime rendering context, merged in by trigger().
    - anything else the raising site finds useful (flag, argument, token, context, ...).
    """
    __fault__ = Unset
    __title__ = "error"

    def __init__(self, message=Unset, /, **options):
        assert message is Unset or isinstance(message, str)
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType({"code": type(self).__fault__, "title": type(self).__title__} | options)

    def __str__(self):
        return coalesce(self.message, "")

    @property
    def code(self):
        return self.options["code"]

    @property
    def title(self):
        return self.options["title"]

    @property
    def hint(self):
        return self.options.get("hint")

    def __rich__(self):
        main = __import__("__main__")

        styles = defaultdict(str, {
            # header parts
            "prog-name": "bold #E6E6F0",  # near-white program name
            "code": "bold #00E5FF",  # neon cyan fault code
            "error-title": "bold #FF4DA6",  # friendly pinky title

            # body
            "error-message": "#C8C8D0",  # soft light gray message
            "hint-arrow": "#9CE19C dim",  # gentle green arrow
            "hint": "italic #9CE19C",  # gentle green hint text
        } | getattr(main, "__styles__", {}))

        colorful = self.options.get("colorful", False)
        fancy = self.options.get("fancy", False)

        def styler(style):
            return styles[style] if colorful else ""

        def text(fragment, style=""):
            if not fragment:
                return Text("")
            if not colorful:
                return Text(str(fragment))
            if isinstance(fragment, Text):
                return fragment
            return Text(str(fragment), style)

        app = self.options.get("app")
        prog = text(getattr(main, "__prog__", app.name if app is not None else "quiver"), styler("prog-name"))

        code = self.code.normalize() if isinstance(self.code, FaultCode) else "-"
        header = Text.assemble(
            "[ ",
            prog,
            " — ",
            text(code, styler("code")),
            " | ",
            text(self.title.title(), styler("error-title")),
            " ]"
        )
        message = text(str(self), styler("error-message"))
        renders = [message]
        if self.hint:
            renders.append(Text.assemble(text(" → ", styler("hint-arrow")), text(self.hint, styler("hint"))))

        if fancy:
            return Panel(Group(*renders), title=header, title_align="left")

        return Group(header, *renders)

    def __trigger__(self):
        if not self.options.get("shell"):
            raise self from self.__cause__
        self.options.get("console", console).print(self)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        fault = type(self)(self.message, **{**self.options, **overrides})
        fault.__cause__ = self.__cause__
        return fault


class UnknownLongFlagError(CommandException):
    __fault__ = FaultCode.UNKNOWN_LONG_FLAG
    __title__ = "unknown long flag"


class UnknownShortFlagError(CommandException):
    __fault__ = FaultCode.UNKNOWN_SHORT_FLAG
    __title__ = "unknown short flag"


class ExpectedFlagArgumentError(CommandException):
    __fault__ = FaultCode.EXPECTED_FLAG_ARGUMENT
    __title__ = "missing flag value"


class CommandNotSpecifiedError(CommandException):
    __fault__ = FaultCode.COMMAND_NOT_SPECIFIED
    __title__ = "command not specified"


class SubcommandRequiredError(CommandException):
    __fault__ = FaultCode.SUBCOMMAND_REQUIRED
    __title__ = "subcommand required"


class RequiredArgumentError(CommandException):
    __fault__ = FaultCode.REQUIRED_ARGUMENT
    __title__ = "required argument"


class RequiredFlagError(CommandException):
    __fault__ = FaultCode.REQUIRED_FLAG
    __title__ = "required flag"


class ExpectedKnownCommandError(CommandException):
    __fault__ = FaultCode.EXPECTED_COMMAND
    __title__ = "unknown command"


class FlagCannotRepeatError(CommandException):
    __fault__ = FaultCode.FLAG_CANNOT_REPEAT
    __title__ = "repeated flag"


class UnexpectedArgumentError(CommandException):
    __fault__ = FaultCode.UNEXPECTED_ARGUMENT
    __title__ = "unexpected argument"


class InvalidValueError(CommandException):
    __fault__ = FaultCode.INVALID_VALUE
    __title__ = "invalid value"


class ValidationError(CommandException):
    __fault__ = FaultCode.VALIDATION_FAILED
    __title__ = "validation failed"


class DefinitionError(CommandException):
    __fault__ = FaultCode.BAD_DEFINITION
    __title__ = "bad definition"


class PluginModelError(CommandException):
    __fault__ = FaultCode.BAD_PLUGIN_MODEL
    __title__ = "bad plugin model"


class DelegatedCommandError(CommandException):
    __fault__ = FaultCode.DELEGATED_ERROR
    __title__ = "plugin failed"


# Kinds that get the one-line error followed by the full usage of the command.
USAGE_FAULTS = (
    RequiredArgumentError,
    RequiredFlagError,
    UnknownLongFlagError,
    UnknownShortFlagError,
    ExpectedFlagArgumentError,
    FlagCannotRepeatError,
    UnexpectedArgumentError,
)


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see CommandException).
    - options are merged into a copy of the fault via __replace__(**options) before triggering.
    - with shell=True the copy is rendered to options["console"] (default: stderr console);
      otherwise it is raised.
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    fault.__replace__(**options).__trigger__()


def getdoc(code, /):
    """
    optional documentation fetch for a fault code.

    the host application may expose a __docs__ mapping in __main__ where keys
    are FaultCode instances and values are short documentation strings. when
    not found, returns None.
    """
    if not isinstance(code, FaultCode):
        raise TypeError("getdoc() argument must be a fault-code")
    try:
        return inspect.cleandoc(getattr(__import__("__main__"), "__docs__", {})[code])
    except KeyError:
        return None


__all__ = (
    "FaultCode",
    "CommandException",
    "UnknownLongFlagError",
    "UnknownShortFlagError",
    "ExpectedFlagArgumentError",
    "CommandNotSpecifiedError",
    "SubcommandRequiredError",
    "RequiredArgumentError",
    "RequiredFlagError",
    "ExpectedKnownCommandError",
    "FlagCannotRepeatError",
    "UnexpectedArgumentError",
    "InvalidValueError",
    "ValidationError",
    "DefinitionError",
    "PluginModelError",
    "DelegatedCommandError",
    "trigger",
    "getdoc",
)
