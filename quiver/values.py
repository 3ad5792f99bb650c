r"""
Quiver value converters.

Overview
- A value converter owns the typed storage behind one flag or argument. The contract is
  duck-typed: set(text) parses and stores (raising ValueError on bad input), str(value)
  renders the current state, and .value exposes the typed result.
- Optional capabilities are advertised through hooks and probed with hasattr, never
  through inheritance:
  • __boolean__()    the flag is a toggle and takes no separate value token.
  • __negatable__()  a toggle that also accepts the --no-<name> form.
  • __cumulative__() repeated occurrences accumulate instead of failing.
  • __remainder__()  as an argument, consumes every trailing positional token
                     (defaults to the cumulative answer when absent).
  • __reset__()      forget accumulated state before a new parse.
  • __options__()    the closed set of accepted strings (used as completion hints).

Stock converters
- StringValue, BoolValue (negatable or not), CounterValue, IntValue, FloatValue,
  DurationValue, EnumValue, ListValue (the cumulative wrapper behind strings/ints/...),
  StringMapValue, ExistingFileValue, ExistingDirValue.

Durations
- parse_duration() understands the usual ns/us/µs/ms/s/m/h units plus w (7 days),
  d (24 hours), M (30 days) and y/Y (365 days); parts may be chained ("1h30m", "-1y1d").
"""
import datetime
import logging
import os
import re

logger = logging.getLogger(__name__)

_TRUTHY = frozenset(("1", "t", "T", "TRUE", "true", "True"))
_FALSY = frozenset(("0", "f", "F", "FALSE", "false", "False"))


def isboolean(value, /):
    """Return True when the converter advertises toggle semantics."""
    return callable(hook := getattr(value, "__boolean__", None)) and bool(hook())


def isnegatable(value, /):
    """Return True when a toggle converter also accepts the --no-<name> form."""
    return isboolean(value) and callable(hook := getattr(value, "__negatable__", None)) and bool(hook())


def iscumulative(value, /):
    """Return True when repeated occurrences accumulate."""
    return callable(hook := getattr(value, "__cumulative__", None)) and bool(hook())


def isremainder(value, /):
    """Return True when an argument converter swallows every trailing token."""
    if callable(hook := getattr(value, "__remainder__", None)):
        return bool(hook())
    return iscumulative(value)


def reset(value, /):
    """Clear accumulated state on converters that support it."""
    if callable(hook := getattr(value, "__reset__", None)):
        hook()


def options(value, /):
    """Return the closed set of accepted strings, or an empty list."""
    if callable(hook := getattr(value, "__options__", None)):
        return list(hook())
    return []


class StringValue:
    def __init__(self, value=""):
        self.value = value

    def set(self, text):
        self.value = text

    def __str__(self):
        return self.value


class BoolValue:
    """
    Toggle converter. Negatable by default (--flag / --no-flag).
    """

    def __init__(self, value=False, *, negatable=True):
        self.value = value
        self.negatable = negatable

    def set(self, text):
        if text in _TRUTHY:
            self.value = True
        elif text in _FALSY:
            self.value = False
        else:
            raise ValueError(f"invalid boolean {text!r}")

    def __boolean__(self):
        return True

    def __negatable__(self):
        return self.negatable

    def __str__(self):
        return "true" if self.value else "false"


class CounterValue:
    """
    Cumulative toggle: every occurrence increments (-vvv → 3).
    """

    def __init__(self, value=0):
        self.value = value

    def set(self, text):
        if text in _FALSY:
            return
        if text not in _TRUTHY:
            raise ValueError(f"invalid counter increment {text!r}")
        self.value += 1

    def __boolean__(self):
        return True

    def __cumulative__(self):
        return True

    def __reset__(self):
        self.value = 0

    def __str__(self):
        return str(self.value)


class IntValue:
    def __init__(self, value=0):
        self.value = value

    def set(self, text):
        try:
            # base 0 accepts 0x/0o/0b prefixes
            self.value = int(text, 0)
        except ValueError:
            self.value = int(text, 10)

    def __str__(self):
        return str(self.value)


class FloatValue:
    def __init__(self, value=0.0):
        self.value = value

    def set(self, text):
        self.value = float(text)

    def __str__(self):
        return str(self.value)


_DURATION_PART = re.compile(r"([-+]?)(([\d.]+)([a-zA-Zµ]+))")

_DURATION_UNITS = {
    "ns": datetime.timedelta(microseconds=0.001),
    "us": datetime.timedelta(microseconds=1),
    "µs": datetime.timedelta(microseconds=1),
    "ms": datetime.timedelta(milliseconds=1),
    "s": datetime.timedelta(seconds=1),
    "m": datetime.timedelta(minutes=1),
    "h": datetime.timedelta(hours=1),
    "d": datetime.timedelta(days=1),
    "D": datetime.timedelta(days=1),
    "w": datetime.timedelta(weeks=1),
    "W": datetime.timedelta(weeks=1),
    "M": datetime.timedelta(days=30),
    "y": datetime.timedelta(days=365),
    "Y": datetime.timedelta(days=365),
}


def parse_duration(text, /):
    """
    Parse a duration string into a timedelta.

    A bare "0" is accepted; any other number needs a unit. Only the sign of the
    first part is honored and it applies to the whole duration.
    """
    if text == "0":
        return datetime.timedelta()
    parts = _DURATION_PART.findall(text)
    if not text or not parts or "".join(sign + whole for sign, whole, _, _ in parts) != text:
        raise ValueError(f"invalid duration {text!r}")

    total = datetime.timedelta()
    for sign, _, amount, unit in parts:
        try:
            scale = _DURATION_UNITS[unit]
        except KeyError:
            raise ValueError(f"invalid duration: invalid unit {unit}") from None
        try:
            total += float(amount) * scale
        except ValueError:
            raise ValueError(f"invalid duration {text!r}") from None
    return -total if parts[0][0] == "-" else total


def format_duration(delta, /):
    """Render a timedelta the short way ("1h30m0s")."""
    seconds = delta.total_seconds()
    sign = "-" if seconds < 0 else ""
    seconds = abs(seconds)
    hours, rest = divmod(seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    if hours:
        return f"{sign}{int(hours)}h{int(minutes)}m{seconds:g}s"
    if minutes:
        return f"{sign}{int(minutes)}m{seconds:g}s"
    return f"{sign}{seconds:g}s"


class DurationValue:
    def __init__(self, value=datetime.timedelta()):
        self.value = value

    def set(self, text):
        self.value = parse_duration(text)

    def __str__(self):
        return format_duration(self.value)


class EnumValue:
    def __init__(self, *choices, value=""):
        self.choices = tuple(choices)
        self.value = value

    def set(self, text):
        if text not in self.choices:
            raise ValueError(f"enum value must be one of {','.join(self.choices)}, got {text!r}")
        self.value = text

    def __options__(self):
        return self.choices

    def __str__(self):
        return self.value


class ListValue:
    """
    Cumulative wrapper: every set() parses one item through a fresh element converter.
    """

    def __init__(self, factory):
        self.factory = factory
        self.value = []

    def set(self, text):
        element = self.factory()
        element.set(text)
        self.value.append(element.value)

    def __cumulative__(self):
        return True

    def __reset__(self):
        self.value = []

    def __options__(self):
        return options(self.factory())

    def __str__(self):
        return ", ".join(map(str, self.value))


class StringMapValue:
    """
    Cumulative KEY=VALUE pairs collected into a dict.
    """

    def __init__(self):
        self.value = {}

    def set(self, text):
        key, sep, value = text.partition("=")
        if not sep:
            raise ValueError(f"expected KEY=VALUE got {text!r}")
        self.value[key] = value

    def __cumulative__(self):
        return True

    def __reset__(self):
        self.value = {}

    def __str__(self):
        return ", ".join(f"{key}={value}" for key, value in self.value.items())


class ExistingFileValue(StringValue):
    def set(self, text):
        if not os.path.exists(text):
            raise ValueError(f"path {text!r} does not exist")
        if os.path.isdir(text):
            raise ValueError(f"{text!r} is a directory")
        self.value = text


class ExistingDirValue(StringValue):
    def set(self, text):
        if not os.path.exists(text):
            raise ValueError(f"path {text!r} does not exist")
        if not os.path.isdir(text):
            raise ValueError(f"{text!r} is a file")
        self.value = text


class ValueMixin:
    """
    Typed terminators shared by flag and argument clauses.

    Each terminator installs a converter on the clause and returns it; the
    converter's .value carries the parsed result after Application.parse().
    """

    def set_value(self, value):
        if not callable(getattr(value, "set", None)):
            raise TypeError("set_value() argument must implement set(text)")
        logger.debug("bound %s to %s converter", self._name, type(value).__name__)
        self._value = value
        return value

    def string(self):
        return self.set_value(StringValue())

    def strings(self):
        return self.set_value(ListValue(StringValue))

    def bool(self):
        return self.set_value(BoolValue())

    def unnegatable_bool(self):
        return self.set_value(BoolValue(negatable=False))

    def counter(self):
        return self.set_value(CounterValue())

    def int(self):
        return self.set_value(IntValue())

    def ints(self):
        return self.set_value(ListValue(IntValue))

    def float(self):
        return self.set_value(FloatValue())

    def floats(self):
        return self.set_value(ListValue(FloatValue))

    def duration(self):
        return self.set_value(DurationValue())

    def durations(self):
        return self.set_value(ListValue(DurationValue))

    def enum(self, *choices):
        return self.set_value(EnumValue(*choices))

    def enums(self, *choices):
        return self.set_value(ListValue(lambda: EnumValue(*choices)))

    def string_map(self):
        return self.set_value(StringMapValue())

    def existing_file(self):
        return self.set_value(ExistingFileValue())

    def existing_dir(self):
        return self.set_value(ExistingDirValue())


__all__ = (
    "StringValue",
    "BoolValue",
    "CounterValue",
    "IntValue",
    "FloatValue",
    "DurationValue",
    "EnumValue",
    "ListValue",
    "StringMapValue",
    "ExistingFileValue",
    "ExistingDirValue",
    "parse_duration",
    "format_duration",
    "isboolean",
    "isnegatable",
    "iscumulative",
    "isremainder",
)
