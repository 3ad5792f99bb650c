r"""
Quiver tokenizer and parse context.

Scope
- ParseContext: the per-invocation record of one parse. It owns the lazy token stream,
  the flags/arguments currently in scope (merged as commands are matched), the ordered
  list of matched elements and the selected command.
- tokenize(args, ignore_default): build a fresh context over an argument vector.

Token kinds
- LONG   "--name" (a "--name=value" token yields LONG then a queued ARG "value").
- SHORT  "-x"; a run "-abc" yields "-a" and re-queues "-bc" unless "a" is a known
  value-taking flag, in which case the rest ("bc") becomes its queued ARG value.
- ARG    any positional, or everything after a literal "--".
- EOL    end of stream.

Conventions
- Classification is syntactic except for short runs, which consult the short flags
  in scope at the moment the token is read.
- A short flag is one code point, so "-äöö" splits as "-ä" + "öö".
- peek() reads ahead by pushing the next token onto the push-back stack.
"""
import enum
import logging
from collections import deque
from typing import NamedTuple

from .values import isboolean

logger = logging.getLogger(__name__)


class TokenKind(enum.Enum):
    LONG = "long"
    SHORT = "short"
    ARG = "arg"
    EOL = "eol"


class Token(NamedTuple):
    index: int
    kind: TokenKind
    value: str = ""

    def is_flag(self):
        return self.kind in (TokenKind.LONG, TokenKind.SHORT)

    def is_eof(self):
        return self.kind is TokenKind.EOL

    def __str__(self):
        match self.kind:
            case TokenKind.SHORT:
                return "-" + self.value
            case TokenKind.LONG:
                return "--" + self.value
            case TokenKind.ARG:
                return self.value
            case _:
                return "<EOL>"


class ParseElement(NamedTuple):
    """One matched clause and the raw string it matched (None for commands)."""
    clause: object
    value: str | None = None


class ParserState(enum.Enum):
    EXPECTING = "expecting"
    REMAINDER = "remainder"
    DONE = "done"
    ERRORED = "errored"


class ParseContext:
    """
    State of one parse: token stream, scope and matched elements.

    Public fields
    - elements: matched ParseElement records, in encounter order.
    - selected: the deepest matched CmdClause, or None.
    - raw_args: the argument vector as given.
    - error: the fault that stopped the parse, if any (see Application.parse_context).
    """

    def __init__(self, args, ignore_default=False):
        self.raw_args = list(args)
        self.ignore_default = ignore_default
        self.interspersed = True
        self.args_only = False
        self.separator = None
        self.state = ParserState.EXPECTING
        self.elements = []
        self.selected = None
        self.error = None
        self.long_flags = {}
        self.short_flags = {}
        self.flags = []
        self.arguments = []
        self._args = deque(self.raw_args)
        self._index = 0
        self._peek = []
        self._argument = 0

    def __repr__(self):
        return "<ParseContext %r selected=%r>" % (self.raw_args, self.selected)

    def trailing_separator(self):
        """True when the only "--" seen is the very last raw token."""
        return self.separator is not None and self.separator == len(self.raw_args) - 1

    def merge_flags(self, group):
        for flag in group.order:
            if flag._short:
                self.short_flags[flag._short] = flag
            self.long_flags[flag._name] = flag
            self.flags.append(flag)

    def merge_args(self, group):
        self.arguments.extend(group.args)

    def eol(self):
        return self.peek().kind is TokenKind.EOL

    def push(self, token):
        self._peek.append(token)
        return token

    def pop(self):
        return self._peek.pop()

    def peek(self):
        if not self._peek:
            return self.push(self.next())
        return self._peek[-1]

    def next(self):
        if self._peek:
            return self._peek.pop()

        if not self._args:
            return Token(self._index, TokenKind.EOL)

        arg = self._args.popleft()
        self._index += 1

        if self.args_only:
            return Token(self._index, TokenKind.ARG, arg)

        if arg == "--":
            self.args_only = True
            self.state = ParserState.REMAINDER
            if self.separator is None:
                self.separator = self._index - 1
            return self.next()

        if arg.startswith("--"):
            name, sep, value = arg[2:].partition("=")
            token = Token(self._index, TokenKind.LONG, name)
            if sep:
                self.push(Token(self._index, TokenKind.ARG, value))
            return token

        if arg.startswith("-"):
            if len(arg) == 1:
                return Token(self._index, TokenKind.SHORT)
            short, rest = arg[1], arg[2:]
            flag = self.short_flags.get(short)
            if flag is not None and not _isboolean(flag):
                # -fVALUE
                if rest:
                    self.push(Token(self._index, TokenKind.ARG, rest))
                return Token(self._index, TokenKind.SHORT, short)
            if rest:
                self._args.appendleft("-" + rest)
                self._index -= 1
            return Token(self._index, TokenKind.SHORT, short)

        return Token(self._index, TokenKind.ARG, arg)

    def next_arg(self):
        """The next unfilled positional in scope (a remainder argument stays current)."""
        if self._argument >= len(self.arguments):
            return None
        arg = self.arguments[self._argument]
        if not arg._consumes_remainder():
            self._argument += 1
        return arg

    def matched_flag(self, flag, value):
        logger.debug("matched %s = %r", flag._label(), value)
        self.elements.append(ParseElement(flag, value))

    def matched_arg(self, arg, value):
        logger.debug("matched %s = %r", arg._label(), value)
        self.elements.append(ParseElement(arg, value))

    def matched_cmd(self, command):
        logger.debug("matched command %r", command.full_command())
        self.elements.append(ParseElement(command))
        self.merge_flags(command._flags)
        self.merge_args(command._args)
        self.selected = command


def _isboolean(flag):
    return flag._value is not None and isboolean(flag._value)


def tokenize(args, ignore_default=False):
    """Build a ParseContext over args; tokens are produced lazily."""
    return ParseContext(args, ignore_default)


__all__ = (
    "TokenKind",
    "Token",
    "ParseElement",
    "ParserState",
    "ParseContext",
    "tokenize",
)
