"""
Quiver usage rendering (rich).

Scope
- render(app, context, ...) builds a rich renderable describing the command the
  context selected (or the application when none was): a usage line, the help text,
  then "Flags:", "Args:" and "Commands:"/"Subcommands:" sections.
- Everything is drawn from models (app.model(), command.model()), so usage reflects
  the same snapshot that introspection exports.

Modes
- default: first line of each command's help, built-in "help" command omitted from
  the top-level listing. A selected command shows its long help when it has one.
- long:    full help texts and every leaf command flattened.
- compact: usage line and command listing only (used when a subcommand is missing).

Palette keys
- usage-label, program-name, summary, help-section, section-label, flag-name,
  placeholder, argument-name, command-name, description, panel-title.
- Define a mapping named __styles__ in __main__ to override any palette entry.
"""
from collections import defaultdict

from rich.box import ROUNDED
from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text


def format_flag(flag, have_short=False):
    """
    Left column of a flag row: "-s, --[no-]name=PLACEHOLDER ...".
    """
    name = "[no-]" + flag.name if flag.is_negatable() else flag.name
    if flag.short:
        text = "-%s, --%s" % (flag.short, name)
    elif have_short:
        text = "    --%s" % name
    else:
        text = "--%s" % name
    if not flag.is_boolean():
        text += "=%s" % flag.format_placeholder()
    if flag.cumulative:
        text += " ..."
    return text


def format_arg(arg):
    text = arg.place_holder or "<%s>" % arg.name
    if arg.cumulative:
        text += "..."
    if not arg.required:
        text = "[%s]" % text
    return text


def first_line(text):
    return text.splitlines()[0] if text else text


def render(app, context, *, compact=False, long=False, colorful=False, fancy=False):
    """
    Build the usage renderable for context (a ParseContext from app).
    """
    styles = defaultdict(str, {
        "usage-label": "bold #00E6FF",
        "program-name": "bold #FF4D94",
        "summary": "#36C5F0",
        "help-section": "italic #A3A3A3",
        "section-label": "bold #FFFFFF",
        "flag-name": "bold #22C55E",
        "placeholder": "#FFD600",
        "argument-name": "bold #FFD600",
        "command-name": "bold #36C5F0",
        "description": "#9CA3AF",
        "panel-title": "bold #FF4D94",
    } | getattr(__import__("__main__"), "__styles__", {}))

    def styler(style):
        return styles[style] if colorful else ""

    def text(fragment, style=""):
        return Text(str(fragment), styler(style))

    model = app.model()
    selected = context.selected.model() if context.selected is not None else None
    owner = selected or model

    usage = Text()
    usage.append("usage", styler("usage-label")).append(": ")
    usage.append(text(model.name, "program-name"))
    if selected is not None:
        usage.append(" ").append(text(selected.full_command, "command-name"))
    for summary in (owner.flag_summary() if owner.flags else "", owner.arg_summary()):
        if summary:
            usage.append(" ").append(text(summary, "summary"))
    if owner.commands:
        usage.append(" ").append(text("<command> [<args> ...]", "summary"))
    renders = [usage]

    description = (selected.help_long or selected.help) if selected is not None else model.help
    if description:
        renders.append(Text(""))
        renders.append(text(description, "help-section"))

    def section(title, rows):
        if not rows:
            return
        table = Table.grid(padding=(0, 2))
        table.add_column(no_wrap=True)
        table.add_column()
        for left, right in rows:
            table.add_row(Text("  ").append(left), right)
        renders.append(Text(""))
        renders.append(text(title + ":", "section-label"))
        renders.append(table)

    if not compact:
        flags = [flag.model() for flag in context.flags]
        visible = [flag for flag in flags if not flag.hidden]
        have_short = any(flag.short for flag in visible)
        section("Flags", [
            (text(format_flag(flag, have_short), "flag-name"), text(flag.help_with_envar(), "description"))
            for flag in visible
        ])
        section("Args", [
            (text(format_arg(arg.model()), "argument-name"), text(arg.model().help_with_envar(), "description"))
            for arg in context.arguments if not arg._hidden
        ])

    if selected is not None:
        commands = selected.flattened_commands() if long else selected.commands
        title = "Subcommands"
    else:
        commands = model.flattened_commands() if long else [
            command for command in model.commands if command.name != "help"
        ]
        title = "Commands"
    rows = []
    for command in commands:
        if command.hidden:
            continue
        name = command.full_command + ("*" if command.default else "")
        for summary in (command.flag_summary() if command.flags else "", command.arg_summary()):
            if summary:
                name += " " + summary
        rows.append((text(name, "command-name"), text(command.help if long else first_line(command.help), "description")))

    if rows and fancy:
        table = Table("command", "help", box=ROUNDED, header_style=styler("section-label"))
        for row in rows:
            table.add_row(*row)
        renders.append(Text(""))
        renders.append(text(title + ":", "section-label"))
        renders.append(table)
    else:
        section(title, rows)

    renderable = Group(*renders)
    if fancy:
        renderable = Panel(
            renderable,
            title=Text.assemble("[ ", model.name.upper(), " HELP ]", style=styler("panel-title")),
            title_align="left",
        )
    return renderable


__all__ = (
    "render",
    "format_flag",
    "format_arg",
)
