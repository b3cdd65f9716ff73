"""
Exception taxonomy for the reconciliation engine.

Every error raised by a reconciliation step aborts the rest of the pass for
that trigger. Nothing is rolled back: steps are idempotent, so the next
trigger re-runs the pipeline from the start and converges.

- MalformedIdentifierError: instance id cannot be parsed (fatal to the pass)
- AddressNotAssignedError: pod has no IP yet (retried with a fixed backoff)
- InsufficientInstancesError: not enough coordinator candidates for bootstrap
- ConflictingUpdateError: optimistic-concurrency failure on a write
- AdminConfigurationError: the database rejected a configuration change

Per project patterns:
- Inherit from a common base exception
- Store context data in attributes for error handling
- Include descriptive message with relevant details
"""


class OperatorError(Exception):
    """Base class for errors raised by the operator."""


class MalformedIdentifierError(OperatorError):
    """
    Raised when an instance id does not end in a positive integer.

    Attributes:
        instance_id: The id that failed to parse
    """

    def __init__(self, instance_id: str) -> None:
        self.instance_id = instance_id
        super().__init__(f"Could not parse instance id {instance_id!r}")


class AddressNotAssignedError(OperatorError):
    """
    Raised when a pod has not been assigned a network address yet.

    Attributes:
        pod_name: Name of the pod without an address
    """

    def __init__(self, pod_name: str) -> None:
        self.pod_name = pod_name
        super().__init__(f"Pod {pod_name} does not have an IP address yet")


class InsufficientInstancesError(OperatorError):
    """
    Raised when bootstrap cannot find enough coordinator candidates.

    Attributes:
        cluster: Name of the cluster being bootstrapped
        required: Number of coordinators needed
        found: Number of storage instances available
    """

    def __init__(self, cluster: str, required: int, found: int) -> None:
        self.cluster = cluster
        self.required = required
        self.found = found
        super().__init__(
            f"Cannot find enough pods to recruit coordinators for {cluster}: "
            f"need {required}, found {found}"
        )


class ConflictingUpdateError(OperatorError):
    """
    Raised when a write loses an optimistic-concurrency race.

    The caller is expected to refetch the object and reapply its change.

    Attributes:
        kind: Resource kind that was written
        name: Name of the object
    """

    def __init__(self, kind: str, name: str) -> None:
        self.kind = kind
        self.name = name
        super().__init__(f"Conflicting update on {kind} {name}; refetch and retry")


class AdminConfigurationError(OperatorError):
    """
    Raised when the database control plane rejects a configuration.

    Attributes:
        cluster: Name of the cluster being configured
        detail: Output from the admin client
    """

    def __init__(self, cluster: str, detail: str) -> None:
        self.cluster = cluster
        self.detail = detail
        super().__init__(f"Failed to configure database for {cluster}: {detail}")
