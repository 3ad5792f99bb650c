"""
Model behavioral tests (snapshots, wire format, derived summaries).

Scope
- Validate the json wire format: empty fields omitted, marker fields always kept.
- Validate decoding: nested full_command/depth derivation and malformed input.
- Validate the derived strings usage relies on (flag/arg summaries, placeholders,
  envar-annotated help, flattened command listings).
- Validate that models are detached snapshots of the live clause tree.

Conventions
- Test method names follow CamelCase per project convention.
- Models are built either directly or through Application.model().
"""
import json
import unittest
from unittest import TestCase

from quiver import Application
from quiver.faults import PluginModelError
from quiver.models import ApplicationModel, ArgModel, CmdModel, FlagModel


class TestWireFormat(TestCase):
    """to_dict / from_dict / dumps / loads."""

    def testFlagOmitsEmptyFields(self):
        self.assertEqual(FlagModel(name="name").to_dict(), {
            "name": "name",
            "help": "",
            "boolean": False,
            "cumulative": False,
        })

    def testFlagKeepsPopulatedFields(self):
        flag = FlagModel(
            name="verbose",
            help="Chatty output.",
            short="v",
            envar="APP_VERBOSE",
            required=True,
            boolean=True,
            negatable=True,
        )
        self.assertEqual(flag.to_dict(), {
            "name": "verbose",
            "help": "Chatty output.",
            "short": 118,
            "envar": "APP_VERBOSE",
            "required": True,
            "boolean": True,
            "negatable": True,
            "cumulative": False,
        })

    def testArgOmitsEmptyFields(self):
        self.assertEqual(ArgModel(name="file", cumulative=True).to_dict(), {
            "name": "file",
            "help": "",
            "cumulative": True,
        })

    def testCommandFromDictDerivesPath(self):
        command = CmdModel.from_dict({
            "name": "remote",
            "help": "Manage remotes.",
            "commands": [{"name": "add", "help": "Add a remote.", "aliases": ["new"]}],
        })
        child = command.commands[0]
        self.assertEqual((command.full_command, command.depth), ("remote", 1))
        self.assertEqual((child.full_command, child.depth), ("remote add", 2))
        self.assertEqual(child.aliases, ["new"])
        self.assertEqual(str(child), "remote add")

    def testDumpsIsCompact(self):
        model = ApplicationModel(name="kv", help="Key value store.", version="1.0")
        self.assertEqual(model.dumps(), '{"name":"kv","help":"Key value store.","version":"1.0"}')

    def testLoadsRoundTripsStructure(self):
        text = json.dumps({
            "name": "kv",
            "help": "Key value store.",
            "flags": [{"name": "debug", "help": "", "boolean": True, "negatable": True, "cumulative": False}],
            "commands": [{"name": "get", "help": "Read a key.", "args": [{"name": "key", "help": "", "required": True}]}],
        })
        model = ApplicationModel.loads(text)
        self.assertTrue(model.flags[0].is_negatable())
        self.assertTrue(model.commands[0].args[0].required)
        self.assertEqual(json.loads(model.dumps())["commands"][0]["args"][0]["required"], True)

    def testShortCodePoints(self):
        text = json.dumps({
            "name": "kv",
            "help": "Key value store.",
            "flags": [
                {"name": "verbose", "help": "", "short": 118, "boolean": True, "negatable": True, "cumulative": False},
                {"name": "all", "help": "", "short": 228, "boolean": True, "cumulative": False},
                {"name": "quiet", "help": "", "short": "q", "boolean": True, "cumulative": False},
                {"name": "long", "help": "", "boolean": False, "cumulative": False},
            ],
        })
        model = ApplicationModel.loads(text)
        self.assertEqual([flag.short for flag in model.flags], ["v", "ä", "q", ""])

        flags = json.loads(model.dumps())["flags"]
        self.assertEqual([flag.get("short") for flag in flags], [118, 228, 113, None])

    def testInvalidShortIsRejected(self):
        for short in ("vv", 1.5, True, -1):
            with self.subTest(short=short):
                with self.assertRaises(PluginModelError):
                    FlagModel.from_dict({"name": "verbose", "short": short})

    def testLoadsRejectsMalformedJson(self):
        with self.assertRaises(PluginModelError) as caught:
            ApplicationModel.loads("{")
        self.assertIsInstance(caught.exception.__cause__, ValueError)


class TestSummaries(TestCase):
    """Derived strings."""

    def testFlagSummarySpellsOutRequired(self):
        model = CmdModel(name="cmd", flags=[
            FlagModel(name="help", boolean=True),
            FlagModel(name="yes", required=True, boolean=True, negatable=True),
            FlagModel(name="force", required=True, boolean=True),
            FlagModel(name="name", required=True),
            FlagModel(name="optional"),
        ])
        self.assertEqual(model.flag_summary(), "--[no-]yes --force --name=NAME [<flags>]")

    def testFlagSummaryWithoutOptionalFlags(self):
        model = CmdModel(name="cmd", flags=[
            FlagModel(name="help", boolean=True),
            FlagModel(name="name", required=True, place_holder="WHO"),
        ])
        self.assertEqual(model.flag_summary(), "--name=WHO")

    def testArgSummaryNestsOptionalBrackets(self):
        model = CmdModel(name="cmd", args=[
            ArgModel(name="a", required=True),
            ArgModel(name="b"),
            ArgModel(name="c", place_holder="C"),
        ])
        self.assertEqual(model.arg_summary(), "<a> [<b> [C]]")
        self.assertEqual(CmdModel(name="empty").arg_summary(), "")

    def testFormatPlaceholder(self):
        app = Application("test").terminate(None)
        app.flag("explicit", "").placeholder("PATH").string()
        app.flag("quoted", "").default("x y").string()
        app.flag("number", "").default("5").int()
        app.flag("many", "").default("a", "b").strings()
        app.flag("plain", "").string()
        models = {flag.name: flag.model() for flag in app._flags.order}

        self.assertEqual(models["explicit"].format_placeholder(), "PATH")
        self.assertEqual(models["quoted"].format_placeholder(), '"x y"')
        self.assertEqual(models["number"].format_placeholder(), "5")
        self.assertEqual(models["many"].format_placeholder(), "a...")
        self.assertEqual(models["plain"].format_placeholder(), "PLAIN")

    def testHelpWithEnvar(self):
        self.assertEqual(FlagModel(name="a", help="Thing.", envar="APP_A").help_with_envar(), "Thing. ($APP_A)")
        self.assertEqual(FlagModel(name="a", help="Thing.").help_with_envar(), "Thing.")
        self.assertEqual(
            FlagModel(name="a", help="Thing.", boolean=True, default=["true"]).help_with_envar(),
            "Thing. (default: true)",
        )
        self.assertEqual(ArgModel(name="a", help="Arg.", envar="APP_A").help_with_envar(), "Arg. ($APP_A)")

    def testFlattenedCommandsListsLeaves(self):
        model = ApplicationModel.from_dict({
            "name": "app",
            "help": "",
            "commands": [
                {"name": "one", "help": ""},
                {"name": "two", "help": "", "commands": [{"name": "a", "help": ""}, {"name": "b", "help": ""}]},
                {"name": "three", "help": ""},
            ],
        })
        self.assertEqual(
            [command.full_command for command in model.flattened_commands()],
            ["one", "two a", "two b", "three"],
        )


class TestSnapshots(TestCase):
    """Application.model() against the live tree."""

    def testApplicationModel(self):
        app = Application("tool", "A tool.").terminate(None).author("someone").version("2.0")
        cmd = app.command("deploy", "Deploy.").alias("ship")
        cmd.help_long("Deploy everything.\n\nCarefully.")
        cmd.flag("target", "").short("t").required().string()
        cmd.arg("what", "").strings()

        model = app.model()
        self.assertEqual((model.name, model.help, model.version, model.author), ("tool", "A tool.", "2.0", "someone"))
        deploy = model.commands[0]
        self.assertEqual(deploy.aliases, ["ship"])
        self.assertEqual(deploy.help_long, "Deploy everything.\n\nCarefully.")
        self.assertEqual(deploy.full_command, "deploy")
        self.assertEqual(deploy.flags[0].short, "t")
        self.assertTrue(deploy.args[0].cumulative)

    def testModelsAreDetached(self):
        app = Application("tool").terminate(None)
        app.flag("name", "").default("x").string()
        model = app.model()
        model.flags[-1].default.append("y")
        self.assertEqual(app.get_flag("name").model().default, ["x"])

    def testBuiltinFlagsAreHidden(self):
        model = Application("tool").terminate(None).model()
        hidden = {flag.name for flag in model.flags if flag.hidden}
        self.assertEqual(hidden, {"help-long", "help-compact", "completion-bash", "quiver-introspect"})


if __name__ == "__main__":
    unittest.main()
