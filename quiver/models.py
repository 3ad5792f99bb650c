"""
Quiver models: a serializable snapshot of the clause tree.

Scope
- FlagModel / ArgModel / CmdModel / ApplicationModel are plain dataclasses built on
  demand by the clauses (Application.model(), CmdClause.model(), ...). They are pure
  data: mutating a model never affects live parsing.
- The JSON wire format is shared with plugin processes written in other languages, so
  field names are fixed ("place_holder", "help_long", "cheat_tags", ...).

Wire rules
- Empty fields are omitted, except "name" and "help" (always present) and the flag/arg
  "boolean"/"cumulative" markers (always present, true or false).
- "short" travels as the integer code point of the character (0 or absent for none);
  a one-character string is accepted on input as well.
- The live converter (value) and the derived full_command/depth never travel on the wire.

Derived summaries
- flag_summary(), arg_summary(), format_placeholder(), help_with_envar() and
  flattened_commands() produce the strings the usage renderer and the plugin
  delegator need.
"""
import json
from dataclasses import dataclass, field

from .faults import PluginModelError
from .values import isboolean, isnegatable, StringValue

# Built-in flags that never count towards the "[<flags>]" marker.
IGNORED_IN_SUMMARY = frozenset((
    "help",
    "help-long",
    "help-compact",
    "completion-bash",
    "quiver-introspect",
))


def _omit_empty(data, keep=()):
    return {key: value for key, value in data.items() if key in keep or value}


def _decode_short(value):
    if value is None or value == 0 or value == "":
        return ""
    if isinstance(value, str) and len(value) == 1:
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        try:
            return chr(value)
        except (ValueError, OverflowError) as error:
            raise PluginModelError("invalid short flag code point %d" % value) from error
    raise PluginModelError(
        "invalid short flag %r" % (value,),
        hint="short must be a code point number or a single character",
    )


@dataclass
class FlagModel:
    name: str
    help: str = ""
    short: str = ""
    default: list = field(default_factory=list)
    envar: str = ""
    place_holder: str = ""
    required: bool = False
    hidden: bool = False
    boolean: bool = False
    negatable: bool = False
    cumulative: bool = False
    value: object = field(default=None, repr=False, compare=False)

    def is_boolean(self):
        if self.value is not None:
            return isboolean(self.value)
        return self.boolean

    def is_negatable(self):
        if self.value is not None:
            return isnegatable(self.value)
        return self.boolean and self.negatable

    def format_placeholder(self):
        """
        Placeholder shown after "--name=" in usage.

        Explicit placeholder first, then the first default (quoted for plain string
        flags, "..." appended when there are several), else the upper-cased name.
        """
        if self.place_holder:
            return self.place_holder
        if self.default:
            ellipsis = "..." if len(self.default) > 1 else ""
            if type(self.value) is StringValue:
                return json.dumps(self.default[0], ensure_ascii=False) + ellipsis
            return self.default[0] + ellipsis
        return self.name.upper()

    def help_with_envar(self):
        help = self.help
        if self.is_boolean() and self.default:
            help = "%s (default: %s)" % (help, self.default[0])
        if not self.envar:
            return help
        return "%s ($%s)" % (help, self.envar)

    def to_dict(self):
        return _omit_empty({
            "name": self.name,
            "help": self.help,
            "short": ord(self.short) if self.short else 0,
            "default": list(self.default),
            "envar": self.envar,
            "place_holder": self.place_holder,
            "required": self.required,
            "hidden": self.hidden,
            "boolean": self.boolean,
            "negatable": self.negatable,
            "cumulative": self.cumulative,
        }, keep=("name", "help", "boolean", "cumulative"))

    @classmethod
    def from_dict(cls, data):
        return cls(
            name=data.get("name", ""),
            help=data.get("help", ""),
            short=_decode_short(data.get("short")),
            default=list(data.get("default") or ()),
            envar=data.get("envar", ""),
            place_holder=data.get("place_holder", ""),
            required=bool(data.get("required")),
            hidden=bool(data.get("hidden")),
            boolean=bool(data.get("boolean")),
            negatable=bool(data.get("negatable")),
            cumulative=bool(data.get("cumulative")),
        )


@dataclass
class ArgModel:
    name: str
    help: str = ""
    default: list = field(default_factory=list)
    envar: str = ""
    place_holder: str = ""
    required: bool = False
    hidden: bool = False
    cumulative: bool = False
    value: object = field(default=None, repr=False, compare=False)

    def help_with_envar(self):
        if not self.envar:
            return self.help
        return "%s ($%s)" % (self.help, self.envar)

    def to_dict(self):
        return _omit_empty({
            "name": self.name,
            "help": self.help,
            "default": list(self.default),
            "envar": self.envar,
            "place_holder": self.place_holder,
            "required": self.required,
            "hidden": self.hidden,
            "cumulative": self.cumulative,
        }, keep=("name", "help", "cumulative"))

    @classmethod
    def from_dict(cls, data):
        return cls(
            name=data.get("name", ""),
            help=data.get("help", ""),
            default=list(data.get("default") or ()),
            envar=data.get("envar", ""),
            place_holder=data.get("place_holder", ""),
            required=bool(data.get("required")),
            hidden=bool(data.get("hidden")),
            cumulative=bool(data.get("cumulative")),
        )


class _GroupSummaries:
    # Shared by commands and the application; expects .flags, .args and .commands.

    def flag_summary(self):
        """
        Required flags spelled out, then "[<flags>]" when optional ones remain.
        """
        out = []
        count = 0
        for flag in self.flags:
            if flag.name not in IGNORED_IN_SUMMARY:
                count += 1
            if flag.required:
                if flag.is_boolean():
                    out.append("--[no-]%s" % flag.name if flag.is_negatable() else "--%s" % flag.name)
                else:
                    out.append("--%s=%s" % (flag.name, flag.format_placeholder()))
        if count != len(out):
            out.append("[<flags>]")
        return " ".join(out)

    def arg_summary(self):
        depth = 0
        out = []
        for arg in self.args:
            text = arg.place_holder or "<%s>" % arg.name
            if not arg.required:
                text = "[" + text
                depth += 1
            out.append(text)
        if not out:
            return ""
        out[-1] += "]" * depth
        return " ".join(out)

    def flattened_commands(self):
        """Leaf commands first-to-last, depth first (the shape "Commands:" lists)."""
        out = []
        for command in self.commands:
            if not command.commands:
                out.append(command)
            out.extend(command.flattened_commands())
        return out


@dataclass
class CmdModel(_GroupSummaries):
    name: str
    help: str = ""
    aliases: list = field(default_factory=list)
    help_long: str = ""
    hidden: bool = False
    default: bool = False
    flags: list = field(default_factory=list)
    args: list = field(default_factory=list)
    commands: list = field(default_factory=list)
    full_command: str = ""
    depth: int = 0

    def __str__(self):
        return self.full_command

    def to_dict(self):
        return _omit_empty({
            "name": self.name,
            "aliases": list(self.aliases),
            "help": self.help,
            "help_long": self.help_long,
            "hidden": self.hidden,
            "default": self.default,
            "flags": [flag.to_dict() for flag in self.flags],
            "args": [arg.to_dict() for arg in self.args],
            "commands": [command.to_dict() for command in self.commands],
        }, keep=("name", "help"))

    @classmethod
    def from_dict(cls, data, parent=""):
        name = data.get("name", "")
        full_command = f"{parent} {name}".strip()
        return cls(
            name=name,
            help=data.get("help", ""),
            aliases=list(data.get("aliases") or ()),
            help_long=data.get("help_long", ""),
            hidden=bool(data.get("hidden")),
            default=bool(data.get("default")),
            flags=[FlagModel.from_dict(flag) for flag in data.get("flags") or ()],
            args=[ArgModel.from_dict(arg) for arg in data.get("args") or ()],
            commands=[cls.from_dict(command, full_command) for command in data.get("commands") or ()],
            full_command=full_command,
            depth=len(full_command.split()),
        )


@dataclass
class ApplicationModel(_GroupSummaries):
    name: str
    help: str = ""
    version: str = ""
    author: str = ""
    cheats: dict = field(default_factory=dict)
    cheat_tags: list = field(default_factory=list)
    flags: list = field(default_factory=list)
    args: list = field(default_factory=list)
    commands: list = field(default_factory=list)

    def to_dict(self):
        return _omit_empty({
            "name": self.name,
            "help": self.help,
            "version": self.version,
            "author": self.author,
            "cheats": dict(self.cheats),
            "cheat_tags": list(self.cheat_tags),
            "flags": [flag.to_dict() for flag in self.flags],
            "args": [arg.to_dict() for arg in self.args],
            "commands": [command.to_dict() for command in self.commands],
        }, keep=("name", "help"))

    @classmethod
    def from_dict(cls, data):
        if not isinstance(data, dict):
            raise PluginModelError("plugin model must be a json object, got %s" % type(data).__name__)
        return cls(
            name=data.get("name", ""),
            help=data.get("help", ""),
            version=data.get("version", ""),
            author=data.get("author", ""),
            cheats=dict(data.get("cheats") or {}),
            cheat_tags=list(data.get("cheat_tags") or ()),
            flags=[FlagModel.from_dict(flag) for flag in data.get("flags") or ()],
            args=[ArgModel.from_dict(arg) for arg in data.get("args") or ()],
            commands=[CmdModel.from_dict(command) for command in data.get("commands") or ()],
        )

    def dumps(self):
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)

    @classmethod
    def loads(cls, text):
        """
        Decode a plugin model, wrapping malformed json into PluginModelError.
        """
        try:
            data = json.loads(text)
        except (TypeError, ValueError) as error:
            raise PluginModelError(
                "invalid plugin model: %s" % error,
                hint="the plugin must print its model as a json object",
            ) from error
        return cls.from_dict(data)


__all__ = (
    "FlagModel",
    "ArgModel",
    "CmdModel",
    "ApplicationModel",
)
