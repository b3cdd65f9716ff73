"""
Shared types for reconciliation steps.

A step is any object with a name, a default requeue delay and an async
reconcile(ctx) method returning a StepResult. The context carries the
injected capabilities and the latest known copy of the cluster; steps that
write the cluster replace ctx.cluster with the object the API server
returned so later steps see the new resource version.
"""

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from operator_fdb.clients.admin import AdminClientFactory
from operator_fdb.clients.platform import PlatformClient
from operator_fdb.clients.sidecar import SidecarClientFactory
from operator_fdb.cluster import FoundationDBCluster
from operator_fdb.config import OperatorSettings


@dataclass
class StepResult:
    """
    Outcome of one reconciliation step.

    Attributes:
        done: False when the step is waiting on an external condition
        requeue_after: Seconds before the next attempt when not done
        message: Why the step is not done, for logs
    """

    done: bool = True
    requeue_after: float = 0.0
    message: str = ""

    @classmethod
    def requeue(cls, delay: float, message: str) -> "StepResult":
        return cls(done=False, requeue_after=delay, message=message)


@dataclass
class ReconcileResult:
    """
    Outcome of one pass over the pipeline for one object.

    Attributes:
        namespace: Namespace of the object
        name: Name of the object
        completed: True when every step reported done
        step: Step that stopped the pass, if any
        requeue_after: Delay requested by a step that was not done
        error: Error message when a step raised
    """

    namespace: str
    name: str
    completed: bool
    step: str | None = None
    requeue_after: float | None = None
    error: str | None = None


@dataclass
class ReconcileContext:
    """Injected capabilities plus the cluster being reconciled."""

    cluster: FoundationDBCluster
    platform: PlatformClient
    sidecars: SidecarClientFactory
    admin: AdminClientFactory
    settings: OperatorSettings = field(default_factory=OperatorSettings)


@runtime_checkable
class ReconcileStep(Protocol):
    name: str
    requeue_after: float

    async def reconcile(self, ctx: ReconcileContext) -> StepResult:
        ...
