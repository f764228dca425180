import unittest

from src.keylayout.domain.utils._control_path import create_path_builder


class _Stateful:
    def __init__(self, st):
        self.__st = st

    @property
    def _state(self):
        return self.__st


class TestCreatePathBuilder(unittest.TestCase):
    def setUp(self) -> None:
        # Fresh builder per test to avoid map-sharing across tests.
        self.decorator = create_path_builder()

    def test_state_must_be_hashable(self) -> None:
        class C(_Stateful):
            def foo(self, x: int) -> int:
                return x

        with self.assertRaises(TypeError) as ctx:
            self.decorator(C, C.foo, state=["not-hashable"])(lambda self, x: x)

        self.assertIn("must be hashable", str(ctx.exception))

    def test_dispatch_selects_registered_control_path(self) -> None:
        class C(_Stateful):
            def foo(self, x: int) -> int:
                return -999

        @self.decorator(C, C.foo, state="A")
        def foo_A(self, x: int) -> int:
            return x + 10

        @self.decorator(C, C.foo, state="B")
        def foo_B(self, x: int) -> int:
            return x + 20

        self.assertEqual(C("A").foo(1), 11)
        self.assertEqual(C("B").foo(1), 21)

    def test_implementation_receives_instance(self) -> None:
        class C(_Stateful):
            def foo(self) -> object:
                return None

        @self.decorator(C, C.foo, state="A")
        def foo_A(self) -> object:
            return self

        c = C("A")
        self.assertIs(c.foo(), c)

    def test_custom_state_attribute(self) -> None:
        builder = create_path_builder("device_type")

        class C:
            device_type = "cpu"

            def foo(self) -> str:
                return "base"

        @builder(C, C.foo, "cpu")
        def foo_cpu(self) -> str:
            return "cpu path"

        self.assertEqual(C().foo(), "cpu path")

    def test_missing_state_attribute_raises_not_implemented(self) -> None:
        class C:
            def foo(self, x: int) -> int:
                return x

        @self.decorator(C, C.foo, state="A")
        def foo_A(self, x: int) -> int:
            return x + 1

        with self.assertRaises(NotImplementedError) as ctx:
            C().foo(1)

        self.assertIn("missing attribute", str(ctx.exception))
        self.assertIn("'_state'", str(ctx.exception))

    def test_missing_control_path_without_trap_exception_raises_not_implemented(
        self,
    ) -> None:
        class C(_Stateful):
            def foo(self, x: int) -> int:
                return x

        @self.decorator(C, C.foo, state="A")
        def foo_A(self, x: int) -> int:
            return x + 1

        with self.assertRaises(NotImplementedError) as ctx:
            C("B").foo(1)

        self.assertIn("Missing control path", str(ctx.exception))
        self.assertIn("state='B'", str(ctx.exception))

    def test_trap_exception_as_exception_class_raises_that_exception(self) -> None:
        class MissingPathError(Exception):
            pass

        class C(_Stateful):
            def foo(self, x: int) -> int:
                return x

        @self.decorator(C, C.foo, state="A", trap_exception=MissingPathError)
        def foo_A(self, x: int) -> int:
            return x + 1

        with self.assertRaises(MissingPathError):
            C("B").foo(1)

    def test_trap_exception_factory_receives_method_and_state(self) -> None:
        calls = []

        class MyRaisedError(Exception):
            pass

        def trap(method, state):
            calls.append((method.__name__, state))
            return MyRaisedError(f"no path for {state}")

        class C(_Stateful):
            def foo(self, x: int) -> int:
                return x

        @self.decorator(C, C.foo, state="A", trap_exception=trap)
        def foo_A(self, x: int) -> int:
            return x + 1

        with self.assertRaises(MyRaisedError) as ctx:
            C("B").foo(123)

        self.assertEqual(calls, [("foo", "B")])
        self.assertIn("no path for B", str(ctx.exception))

    def test_trap_exception_factory_returning_none_raises_not_implemented(
        self,
    ) -> None:
        class C(_Stateful):
            def foo(self) -> None:
                return None

        @self.decorator(C, C.foo, state="A", trap_exception=lambda m, s: None)
        def foo_A(self) -> None:
            return None

        with self.assertRaises(NotImplementedError):
            C("B").foo()

    def test_wrapper_preserves_original_method_metadata(self) -> None:
        class C(_Stateful):
            def foo(self, x: int) -> int:
                """Original foo docstring."""
                return x

        @self.decorator(C, C.foo, state="A")
        def foo_A(self, x: int) -> int:
            return x + 1

        self.assertEqual(C.foo.__name__, "foo")
        self.assertEqual(C.foo.__doc__, "Original foo docstring.")

    def test_two_builders_do_not_share_control_paths(self) -> None:
        deco1 = create_path_builder()
        deco2 = create_path_builder()

        class C(_Stateful):
            def foo(self, x: int) -> int:
                return -999

        @deco1(C, C.foo, state="A")
        def foo_A_1(self, x: int) -> int:
            return 111

        # the second installation replaces the wrapper with one bound to deco2's map
        @deco2(C, C.foo, state="B")
        def foo_B_2(self, x: int) -> int:
            return 222

        with self.assertRaises(NotImplementedError):
            C("A").foo(0)

        self.assertEqual(C("B").foo(0), 222)


if __name__ == "__main__":
    unittest.main()
