"""
Error taxonomy shared by the adaptation layer and the pipelines.

Cancellation is not represented here: it travels as ``InterruptedError``
(see ``core.progress.CancelFlagObserver``) so host-side observers can stop a
run without importing this module.
"""


class PreconditionError(ValueError):
    """Invalid invocation detected before any pipeline work begins."""


class PipelineFault(RuntimeError):
    """Numerical or algorithmic failure raised while a pipeline runs."""


__all__ = ["PreconditionError", "PipelineFault"]
