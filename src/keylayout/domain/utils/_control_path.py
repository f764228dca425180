"""
State-based method dispatch ("control paths") via decorators.

A class declares a *base* method whose signature is canonical. Concrete
implementations are then registered per state value:

    launch_path = create_path_builder("device_type")

    class Launcher:
        def gather(self, x, index, out, req): ...

    @launch_path(Launcher, Launcher.gather, DeviceType.CPU)
    def gather_cpu(self, x, index, out, req): ...

Calling `Launcher(...).gather(...)` reads `self.device_type` at call time and
runs the implementation registered for that value, passing `self` through.

Notes
-----
- Registering the first path replaces the base method on the class with a
  dispatching wrapper (decorated with `functools.wraps(method)`).
- Each builder owns its own registry; builders never share paths.
- Keys are `(class name, method name, state)`, so subclasses must register
  their own paths.
"""

from typing import Any, Callable, Dict, Hashable, Optional, Type, Union
from typing_extensions import ParamSpec, TypeVar
from collections import namedtuple
from functools import wraps

P = ParamSpec("P")
R = TypeVar("R")

TrapException = Optional[
    Union[Type[Exception], Callable[[Callable[..., Any], Any], Optional[Exception]]]
]


def create_path_builder(
    state_attr: str = "_state",
) -> Callable[
    [Type, Callable[P, R], Hashable, TrapException],
    Callable[[Callable[P, R]], Callable[P, R]],
]:
    """
    Create a "path builder" that registers state-keyed implementations.

    Parameters
    ----------
    state_attr : str, optional
        Name of the instance attribute (or property) read at call time to pick
        the implementation. Defaults to "_state".

    Returns
    -------
    Callable
        `templator(cls, method, state, trap_exception=None) -> decorator`.
    """

    MethodKey = namedtuple("MethodKey", ["ClassName", "MethodName", "StateVal"])

    methods_map: Dict[MethodKey, Callable] = {}
    """Registered implementations keyed by (class, method, state)."""

    def templator(
        cls: Type,
        method: Callable[P, R],
        state: Hashable,
        trap_exception: TrapException = None,
    ) -> Callable[[Callable[P, R]], Callable[P, R]]:
        """
        Build a decorator registering the implementation of `method` for `state`.

        Parameters
        ----------
        cls : Type
            Class whose method is dispatched.
        method : Callable
            The base method; its metadata is copied onto the wrapper.
        state : Hashable
            State value selecting the decorated implementation.
        trap_exception : optional
            What to do when no path matches at call time:

            - None: raise `NotImplementedError`
            - an exception class: raise an instance of it
            - any other callable: call it as `trap_exception(method, state)`
              and raise the exception it returns (or `NotImplementedError`
              when it returns None)

        Raises
        ------
        TypeError
            If `state` is not hashable.
        """
        try:
            hash(state)
        except TypeError:
            raise TypeError(f"state must be hashable, got {state!r}") from None

        smk = MethodKey(cls.__name__, method.__name__, state)

        def decorator(sub_method: Callable[P, R]) -> Callable[P, R]:
            methods_map[smk] = sub_method

            @wraps(method)
            def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
                if not hasattr(self, state_attr):
                    raise NotImplementedError(
                        f"{type(self)} is missing attribute {state_attr!r}"
                    )
                cur = getattr(self, state_attr)
                sm = methods_map.get(MethodKey(cls.__name__, method.__name__, cur))
                if sm is not None:
                    return sm(self, *args, **kwargs)
                if not trap_exception:
                    raise NotImplementedError(
                        f"Missing control path (state={cur!r}) for {method!r}"
                    )
                if isinstance(trap_exception, type) and issubclass(
                    trap_exception, Exception
                ):
                    raise trap_exception()
                exc = trap_exception(method, cur)
                if exc is None:
                    raise NotImplementedError(
                        f"Missing control path (state={cur!r}) for {method!r}"
                    )
                raise exc

            setattr(cls, method.__name__, wrapper)
            return sub_method

        return decorator

    return templator
