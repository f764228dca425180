from typing import Any, Callable, Sequence, Optional
from dataclasses import dataclass, field

from ...domain._tensor import ITensor


@dataclass
class Context:
    """
    Backward context attached to a tensor produced by a layout operator.

    Attributes
    ----------
    parents : Sequence[ITensor]
        Tensor inputs of the operation, in the order `backward_fn` returns
        their gradients.
    backward_fn : Callable[[ITensor], Sequence[Optional[ITensor]]]
        Maps the gradient of the output to one gradient per parent (None for
        parents that do not require gradients).
    saved_tensors : list[ITensor]
        Tensors stored during forward for use in backward.
    saved_meta : dict[str, Any]
        Non-tensor state needed by backward, such as normalized parameters and
        original input shapes.
    """

    parents: Sequence["ITensor"]
    backward_fn: Callable[["ITensor"], Sequence[Optional["ITensor"]]]
    saved_tensors: list["ITensor"] = field(default_factory=list)
    saved_meta: dict[str, Any] = field(default_factory=dict)

    def save_for_backward(self, *tensors: "ITensor") -> None:
        """Append `tensors` to `saved_tensors`."""
        self.saved_tensors.extend(tensors)
