"""
Plugin delegation behavioral tests (introspection, grafting, argv reconstruction).

Scope
- Validate the exported model: built-in flags and the help command are filtered out.
- Validate grafting a plugin model under the host, including proxy globals.
- Validate the argument vector handed to the plugin and that host-side defaults
  never leak into it.
- Validate subprocess failures surfacing as DelegatedCommandError, and malformed
  models surfacing as PluginModelError.

Conventions
- Test method names follow CamelCase per project convention.
- subprocess.run is patched through quiver.plugins; no executable is ever spawned.
"""
import contextlib
import io
import json
import subprocess
import unittest
from unittest import TestCase
from unittest.mock import patch

from quiver import Application
from quiver.faults import DelegatedCommandError, PluginModelError
from quiver.models import ApplicationModel
from quiver.plugins import introspect_model

KV_MODEL = {
    "name": "kv",
    "help": "Key value store.",
    "flags": [
        {"name": "debug", "help": "Enable debug mode.", "boolean": True, "negatable": True, "cumulative": False},
    ],
    "commands": [
        {
            "name": "put",
            "help": "Store values under a key.",
            "aliases": ["set"],
            "flags": [
                {"name": "ttl", "help": "", "short": 116, "boolean": False, "cumulative": False},
                {"name": "region", "help": "", "default": ["eu"], "boolean": False, "cumulative": False},
                {"name": "tag", "help": "", "boolean": False, "cumulative": True},
                {"name": "force", "help": "", "boolean": True, "negatable": False, "cumulative": False},
                {"name": "sync", "help": "", "boolean": True, "negatable": True, "cumulative": False},
            ],
            "args": [
                {"name": "key", "help": "", "required": True, "cumulative": False},
                {"name": "values", "help": "", "cumulative": True},
            ],
        },
        {
            "name": "get",
            "help": "Read a key.",
            "args": [{"name": "key", "help": "", "cumulative": False}],
        },
    ],
}


def host():
    app = Application("host").terminate(None).writer(io.StringIO())
    app.flag("debug", "Enable debug mode.").bool()
    return app


class TestIntrospection(TestCase):
    """The model a plugin exports."""

    def testBuiltinsAreFiltered(self):
        app = Application("kv", "Key value store.").terminate(None)
        app.flag("debug", "").bool()
        app.command("get", "Read a key.")
        app.parse_context([])

        model = introspect_model(app)
        self.assertEqual([flag.name for flag in model.flags], ["debug"])
        self.assertEqual([command.name for command in model.commands], ["get"])

    def testIntrospectFlagPrintsModel(self):
        statuses = []
        app = Application("kv", "Key value store.").terminate(statuses.append)
        app.flag("endpoint", "Where the store lives.").default("localhost").string()

        stdout = io.StringIO()
        with contextlib.redirect_stdout(stdout):
            app.parse(["--quiver-introspect"])

        self.assertEqual(statuses, [0])
        data = json.loads(stdout.getvalue())
        self.assertEqual(data["name"], "kv")
        self.assertEqual(data["help"], "Key value store.")
        self.assertEqual(data["flags"], [{
            "name": "endpoint",
            "help": "Where the store lives.",
            "default": ["localhost"],
            "boolean": False,
            "cumulative": False,
        }])

    def testShortTravelsAsCodePoint(self):
        app = Application("kv", "Key value store.").terminate(None)
        app.flag("verbose", "").short("v").bool()
        app.parse_context([])

        data = json.loads(introspect_model(app).dumps())
        self.assertEqual(data["flags"][0]["short"], 118)

    def testExportedModelGraftsIntoHost(self):
        plugin = Application("kv", "Key value store.").terminate(None)
        plugin.command("get", "Read a key.").arg("key", "").required().string()
        plugin.parse_context([])

        app = host()
        command = app.external_plugin_json("kv", introspect_model(plugin).dumps())
        self.assertEqual(command.name, "kv")
        self.assertIsNotNone(command.get_command("get").get_arg("key"))


class TestDelegation(TestCase):
    """Grafting and argv reconstruction."""

    def setUp(self):
        self.app = host()
        self.command = self.app.external_plugin_json("/usr/local/bin/kv", json.dumps(KV_MODEL))

    @patch("quiver.plugins.subprocess.run")
    def testArgvOrder(self, run):
        self.app.parse([
            "kv", "put", "--ttl=5m", "--tag=a", "--tag=b", "--no-sync", "--force", "--debug",
            "key", "one", "two",
        ])
        run.assert_called_once_with([
            "/usr/local/bin/kv", "put", "key",
            "--ttl=5m",
            "--tag=a", "--tag=b",
            "--no-sync",
            "--force",
            "--debug=true",
            "one", "two",
        ], check=True)

    @patch("quiver.plugins.subprocess.run")
    def testDefaultsDoNotLeak(self, run):
        self.app.parse(["kv", "put", "key"])
        run.assert_called_once_with(["/usr/local/bin/kv", "put", "key"], check=True)

    @patch("quiver.plugins.subprocess.run")
    def testAliasDelegatesCanonicalName(self, run):
        self.app.parse(["kv", "set", "key"])
        run.assert_called_once_with(["/usr/local/bin/kv", "put", "key"], check=True)

    @patch("quiver.plugins.subprocess.run")
    def testEmptyArgumentsAreSkipped(self, run):
        self.app.parse(["kv", "get"])
        run.assert_called_once_with(["/usr/local/bin/kv", "get"], check=True)

    def testNumericShortIsGrafted(self):
        self.assertEqual(self.command.get_command("put").get_flag("ttl").model().short, "t")

    @patch("quiver.plugins.subprocess.run")
    def testShortFlagDelegatesLongForm(self, run):
        self.app.parse(["kv", "put", "-t", "5m", "key"])
        run.assert_called_once_with(["/usr/local/bin/kv", "put", "key", "--ttl=5m"], check=True)

    def testProxyFlagIsNotRegisteredTwice(self):
        self.assertIsNone(self.command.get_flag("debug"))
        self.assertIsNotNone(self.command.get_command("put").get_flag("ttl"))

    def testGraftedFlagsKeepTheirShape(self):
        put = self.command.get_command("put")
        self.assertEqual(put.get_flag("region").model().default, ["eu"])
        self.assertTrue(put.get_flag("sync").model().negatable)
        self.assertFalse(put.get_flag("force").model().negatable)
        self.assertTrue(put.get_flag("tag").model().cumulative)
        self.assertEqual(put.aliases, ["set"])

    @patch("quiver.plugins.subprocess.run")
    def testSetByUserIsRecorded(self, run):
        self.app.parse(["kv", "put", "--ttl=1s", "key"])
        args, _ = run.call_args
        self.assertIn("--ttl=1s", args[0])
        self.assertNotIn("--region=eu", args[0])

    @patch("quiver.plugins.subprocess.run")
    def testFailureBecomesDelegatedCommandError(self, run):
        run.side_effect = subprocess.CalledProcessError(3, ["kv"])
        with self.assertRaisesRegex(DelegatedCommandError, "exited with status 3") as caught:
            self.app.parse(["kv", "get", "key"])
        self.assertEqual(caught.exception.options["returncode"], 3)
        self.assertIsInstance(caught.exception.__cause__, subprocess.CalledProcessError)

    @patch("quiver.plugins.subprocess.run")
    def testMissingExecutable(self, run):
        run.side_effect = FileNotFoundError(2, "No such file or directory")
        with self.assertRaisesRegex(DelegatedCommandError, "No such file or directory"):
            self.app.parse(["kv", "get", "key"])

    @patch("quiver.plugins.subprocess.run")
    def testLeafRootGetsAnAction(self, run):
        app = host()
        app.external_plugin_json("hello", json.dumps({
            "name": "hello",
            "help": "Say hello.",
            "args": [{"name": "who", "help": "", "cumulative": False}],
        }))
        self.assertEqual(app.parse(["hello", "world"]), "hello")
        run.assert_called_once_with(["hello", "world"], check=True)


class TestRegistration(TestCase):
    """Model validation and plugin discovery."""

    def testMissingName(self):
        with self.assertRaisesRegex(PluginModelError, "plugin declared no name"):
            host().external_plugin_json("kv", json.dumps({"help": "Key value store."}))

    def testMissingHelp(self):
        with self.assertRaisesRegex(PluginModelError, "plugin declared no help"):
            host().external_plugin_json("kv", json.dumps({"name": "kv"}))

    def testMalformedJson(self):
        with self.assertRaisesRegex(PluginModelError, "invalid plugin model"):
            host().external_plugin_json("kv", "{not json")

    def testInvalidShort(self):
        model = {"name": "kv", "help": "Key value store.", "flags": [{"name": "verbose", "help": "", "short": "vv"}]}
        with self.assertRaisesRegex(PluginModelError, "invalid short flag"):
            host().external_plugin_json("kv", json.dumps(model))

    def testNonObjectJson(self):
        with self.assertRaises(PluginModelError):
            ApplicationModel.loads("[1, 2]")

    @patch("quiver.plugins.subprocess.run")
    def testExternalPluginAsksForItsModel(self, run):
        run.return_value = subprocess.CompletedProcess(["kv"], 0, stdout=json.dumps(KV_MODEL), stderr="")
        app = host()
        command = app.external_plugin("/usr/local/bin/kv")
        run.assert_called_once_with(
            ["/usr/local/bin/kv", "--quiver-introspect"],
            capture_output=True,
            text=True,
            check=True,
        )
        self.assertEqual(command.full_command(), "kv")
        self.assertEqual(command.get_command("put").full_command(), "kv put")

    @patch("quiver.plugins.subprocess.run")
    def testExternalPluginFailure(self, run):
        run.side_effect = subprocess.CalledProcessError(1, ["kv"])
        with self.assertRaisesRegex(DelegatedCommandError, "failed to describe itself"):
            host().external_plugin("kv")


if __name__ == "__main__":
    unittest.main()
