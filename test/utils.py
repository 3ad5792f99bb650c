"""
Tests for the internal helpers.

This module verifies the guarantees of quiver.utils:
- The Unset sentinel: singleton identity, falsy semantics, representation, finality.
- coalesce(): only Unset is replaced.
- rename(): both call forms and their argument checks.
- mirror(): read-only properties returning fresh container copies.
- ordinal() and envarize(): the wording used in fault copy and default envars.
"""
import copy
import pickle
import unittest
from unittest import TestCase

from quiver.utils import Unset, UnsetType, coalesce, envarize, mirror, ordinal, rename


class UnsetTest(TestCase):
    """
    Test suite for the `Unset` sentinel.
    """

    def testSingleton(self) -> None:
        """
        The constructor returns the same object reference on every call.
        """
        self.assertIs(UnsetType(), Unset)
        self.assertIs(UnsetType(), UnsetType())

    def testFalsely(self) -> None:
        """
        The sentinel is falsy but not equal to other falsy values.
        """
        self.assertFalse(bool(Unset))
        self.assertNotEqual(Unset, None)
        self.assertNotEqual(Unset, False)  # noqa: E712

    def testRepr(self) -> None:
        self.assertEqual(repr(Unset), "Unset")

    def testCopyPreservesSingleton(self) -> None:
        self.assertIs(copy.copy(Unset), Unset)
        self.assertIs(copy.deepcopy(Unset), Unset)
        self.assertIs(pickle.loads(pickle.dumps(Unset)), Unset)

    def testFinal(self) -> None:
        """
        Subclassing the sentinel type is rejected.
        """
        with self.assertRaises(TypeError):
            type("Derived", (UnsetType,), {})


class HelpersTest(TestCase):
    """
    Test suite for coalesce, rename, mirror, ordinal and envarize.
    """

    def testCoalesce(self) -> None:
        """
        Only Unset is replaced; legitimate falsy values survive.
        """
        self.assertEqual(coalesce(Unset, "fallback"), "fallback")
        self.assertIsNone(coalesce(None, "fallback"))
        self.assertEqual(coalesce(0, 1), 0)
        self.assertEqual(coalesce("", "x"), "")

    def testRenameCallable(self) -> None:
        function = rename(lambda: None, "noop")
        self.assertEqual(function.__name__, "noop")
        self.assertEqual(function.__qualname__, "noop")

    def testRenameDecorator(self) -> None:
        @rename("show_version")
        def action(context):
            return context

        self.assertEqual(action.__name__, "show_version")
        self.assertEqual(action(1), 1)

    def testRenameRejectsBadArguments(self) -> None:
        with self.assertRaises(TypeError):
            rename("not callable", "name")
        with self.assertRaises(TypeError):
            rename(lambda: None, 1)
        with self.assertRaises(TypeError):
            rename()
        with self.assertRaises(TypeError):
            rename(len, "length")

    def testMirrorReturnsCopies(self) -> None:
        """
        Containers read through a mirror cannot mutate the backing field.
        """
        class Holder:
            aliases = mirror("aliases")

            def __init__(self):
                self._aliases = ["a", "b"]

        holder = Holder()
        holder.aliases.append("c")
        self.assertEqual(holder.aliases, ["a", "b"])
        with self.assertRaises(AttributeError):
            holder.aliases = []

    def testOrdinal(self) -> None:
        self.assertEqual(ordinal(1), "first")
        self.assertEqual(ordinal(10), "tenth")
        self.assertEqual(ordinal(11), "11th")
        self.assertEqual(ordinal(21), "21st")
        self.assertEqual(ordinal(22), "22nd")
        self.assertEqual(ordinal(23), "23rd")
        self.assertEqual(ordinal(112), "112th")

    def testEnvarize(self) -> None:
        self.assertEqual(envarize("some-app_some-flag"), "SOME_APP_SOME_FLAG")
        self.assertEqual(envarize("a.b--c"), "A_B_C")
        with self.assertRaises(TypeError):
            envarize(None)


if __name__ == "__main__":
    unittest.main()
