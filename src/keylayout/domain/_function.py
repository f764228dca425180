"""
Autograd function interface.

A differentiable layout operator is a `Function` subclass with static
`forward` and `backward` methods. Per-call state (normalized parameters,
original shapes) travels on the `ctx` object rather than on the class, so one
`Function` can serve any number of graphs.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence, Union

from ._tensor import ITensor


class Function(ABC):
    """
    Abstract base class for differentiable operations.
    """

    @staticmethod
    @abstractmethod
    def forward(ctx, *inputs: Union[ITensor, Any]) -> ITensor:
        """
        Compute the output, saving whatever `backward` needs onto `ctx`.

        Parameters
        ----------
        ctx : Context
            Per-invocation context.
        *inputs : ITensor or Any
            Input tensors and non-tensor arguments.

        Returns
        -------
        ITensor
            The forward result.
        """
        ...

    @staticmethod
    @abstractmethod
    def backward(ctx, grad_out: ITensor) -> Sequence[Optional[ITensor]]:
        """
        Map the gradient of the output to one gradient per tensor input.

        Entries are None for inputs that do not require gradients.
        """
        ...
