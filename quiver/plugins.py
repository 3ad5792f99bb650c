r"""
Quiver plugin delegation.

Overview
- A plugin is a separate executable that describes itself as an ApplicationModel (json)
  when run with --quiver-introspect. The host grafts an equivalent command subtree and
  every leaf command's action re-runs the plugin with a reconstructed argument vector.
- introspect_model(app) is the export side: the application model minus the built-in
  help/completion/introspection flags and the help command.

Reconstruction order (what the plugin receives)
  1. subcommand path below the plugin's root command
  2. non-cumulative argument values, in declaration order, skipping empty ones
  3. string flags as --name=value
  4. cumulative flags as repeated --name=value
  5. negatable toggles as --name or --no-name
  6. non-negatable toggles as --name when true
  7. proxied host flags as --name=value
  8. cumulative argument entries, bare, skipping empty ones
  Flags (3-7) are only passed when the user supplied them; host-side defaults never
  leak into the plugin invocation.

Proxy globals
- A plugin flag whose name matches a flag already declared at the host's top level is
  not registered again. The host flag is used instead and its value is forwarded.
- Every delegated flag, local or proxied, reports "set by user" into one dictionary
  per delegated subtree, keyed by flag name.
"""
import logging
import shlex
import subprocess

from .faults import *
from .models import ApplicationModel
from .utils import rename
from .values import BoolValue, ListValue, StringValue, isnegatable

logger = logging.getLogger(__name__)

INTROSPECT_FLAG = "quiver-introspect"


def _reserved(name):
    return name == "help" or name.startswith(("help-", "completion-", "quiver-"))


def introspect_model(app):
    """The application model as plugins export it."""
    model = app.model()
    model.flags = [flag for flag in model.flags if not _reserved(flag.name)]
    model.commands = [command for command in model.commands if command.name != "help"]
    return model


class PluginDelegator:
    """
    Shared state of one delegated subtree: the executable, the per-command clause
    registry and the set-by-user cells.
    """

    def __init__(self, app, executable):
        self.app = app
        self.executable = executable
        self.root = None
        self.set_by_user = {}
        self._args = {}
        self._flags = {}
        self._proxies = {}
        self._observed = set()

    def _observer(self, name):
        @rename("observe")
        def observe(supplied):
            self.set_by_user[name] = supplied

        return observe

    def add_args(self, command, models):
        registry = self._args.setdefault(command, [])
        for model in models:
            arg = command.arg(model.name, model.help)
            if model.place_holder:
                arg.placeholder(model.place_holder)
            if model.required:
                arg.required()
            if model.hidden:
                arg.hidden()
            if model.default:
                arg.default(*model.default)
            if model.envar:
                arg.envar(model.envar)
            if model.cumulative:
                arg.strings()
            else:
                arg.string()
            registry.append(arg)

    def add_flags(self, command, models):
        registry = self._flags.setdefault(command, [])
        proxies = self._proxies.setdefault(command, [])
        for model in models:
            host = self.app.get_flag(model.name)
            if host is not None:
                logger.debug("plugin flag --%s proxies the host flag", model.name)
                if model.name not in self._observed:
                    host.is_set_by_user(self._observer(model.name))
                    self._observed.add(model.name)
                proxies.append(host)
                continue

            flag = command.flag(model.name, model.help)
            if model.short:
                flag.short(model.short)
            if model.default:
                flag.default(*model.default)
            if model.envar:
                flag.envar(model.envar)
            if model.place_holder:
                flag.placeholder(model.place_holder)
            if model.required:
                flag.required()
            if model.hidden:
                flag.hidden()
            flag.is_set_by_user(self._observer(model.name))

            if model.boolean and model.negatable:
                flag.bool()
            elif model.boolean:
                flag.unnegatable_bool()
            elif model.cumulative:
                flag.strings()
            else:
                flag.string()
            registry.append(flag)

    def add_commands(self, command, models):
        for model in models:
            child = command.command(model.name, model.help)
            for alias in model.aliases:
                child.alias(alias)
            if model.help_long:
                child.help_long(model.help_long)
            if model.hidden:
                child.hidden()
            if model.default:
                child.default()
            self.graft(child, model)

    def graft(self, command, model):
        self.add_args(command, model.args)
        self.add_flags(command, model.flags)
        self.add_commands(command, model.commands)
        if not model.commands:
            command.action(self._action(command))

    def _action(self, command):
        @rename("delegate")
        def delegate(context):
            self.execute(command)

        return delegate

    def _supplied(self, flag):
        return self.set_by_user.get(flag._name, False)

    def argv(self, command):
        """Reconstruct the plugin's argument vector for the leaf command."""
        path = command.path
        chain = path[path.index(self.root):]
        argv = [step._name for step in chain[1:]]

        args = [arg for step in chain for arg in self._args.get(step, ())]
        flags = [flag for step in chain for flag in self._flags.get(step, ())]
        proxies = [flag for step in chain for flag in self._proxies.get(step, ())]

        for arg in args:
            if not isinstance(arg._value, ListValue) and arg._value.value:
                argv.append(arg._value.value)

        toggles = [flag for flag in flags if isinstance(flag._value, BoolValue)]
        for flag in flags:
            if type(flag._value) is StringValue and self._supplied(flag):
                argv.append("--%s=%s" % (flag._name, flag._value.value))
        for flag in flags:
            if isinstance(flag._value, ListValue) and self._supplied(flag):
                argv.extend("--%s=%s" % (flag._name, value) for value in flag._value.value)
        for flag in toggles:
            if isnegatable(flag._value) and self._supplied(flag):
                argv.append(("--%s" if flag._value.value else "--no-%s") % flag._name)
        for flag in toggles:
            if not isnegatable(flag._value) and self._supplied(flag) and flag._value.value:
                argv.append("--%s" % flag._name)
        for flag in proxies:
            if self._supplied(flag):
                argv.append("--%s=%s" % (flag._name, flag._value))

        for arg in args:
            if isinstance(arg._value, ListValue):
                argv.extend(value for value in arg._value.value if value)
        return argv

    def execute(self, command):
        argv = self.argv(command)
        logger.debug("delegating %r to %s", command.full_command(), shlex.join([self.executable, *argv]))
        try:
            subprocess.run([self.executable, *argv], check=True)
        except subprocess.CalledProcessError as error:
            raise DelegatedCommandError(
                "plugin %r exited with status %d" % (self.executable, error.returncode),
                command=command.full_command(),
                returncode=error.returncode,
                docs=getdoc(FaultCode.DELEGATED_ERROR),
            ) from error
        except OSError as error:
            raise DelegatedCommandError(
                "could not run plugin %r: %s" % (self.executable, error.strerror or error),
                command=command.full_command(),
                hint="check that the plugin executable exists and is runnable",
                docs=getdoc(FaultCode.DELEGATED_ERROR),
            ) from error


def register_plugin_model(app, executable, model):
    """Graft model under app as a new top-level command; returns that command."""
    delegator = PluginDelegator(app, executable)
    command = app.command(model.name, model.help)
    delegator.root = command
    delegator.graft(command, model)
    logger.debug("registered plugin %r from %s", model.name, executable)
    return command


def external_plugin_json(app, executable, data):
    """
    Register a plugin from its json model (str or bytes).

    A model without a name or without help text is rejected with PluginModelError.
    """
    model = ApplicationModel.loads(data)
    if not model.name:
        raise PluginModelError("plugin declared no name", docs=getdoc(FaultCode.BAD_PLUGIN_MODEL))
    if not model.help:
        raise PluginModelError("plugin declared no help", docs=getdoc(FaultCode.BAD_PLUGIN_MODEL))
    return register_plugin_model(app, executable, model)


def external_plugin(app, executable):
    """
    Ask the plugin for its model (executable --quiver-introspect) and register it.
    """
    try:
        result = subprocess.run(
            [executable, "--" + INTROSPECT_FLAG],
            capture_output=True,
            text=True,
            check=True,
        )
    except subprocess.CalledProcessError as error:
        raise DelegatedCommandError(
            "plugin %r failed to describe itself (status %d)" % (executable, error.returncode),
            returncode=error.returncode,
            docs=getdoc(FaultCode.DELEGATED_ERROR),
        ) from error
    except OSError as error:
        raise DelegatedCommandError(
            "could not run plugin %r: %s" % (executable, error.strerror or error),
            docs=getdoc(FaultCode.DELEGATED_ERROR),
        ) from error
    return external_plugin_json(app, executable, result.stdout)


__all__ = (
    "PluginDelegator",
    "introspect_model",
    "register_plugin_model",
    "external_plugin_json",
    "external_plugin",
)
