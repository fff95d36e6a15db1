"""Exception classes for alias reconciliation."""


class SyncError(Exception):
    """Base exception for reconciliation failures."""

    pass


class ConfigError(SyncError):
    """Configuration file or values are invalid."""

    pass


class FetchError(SyncError):
    """Inventory or cluster API could not be read. No mutation happened."""

    def __init__(self, message: str, source: str):
        self.source = source
        super().__init__(f"Failed to fetch {source} state: {message}")


class MutationError(SyncError):
    """A single node's cloud alias update failed."""

    def __init__(self, message: str, node: str):
        self.node = node
        super().__init__(f"Alias update failed for {node}: {message}")


class CollisionUnresolved(MutationError):
    """Clearing a colliding alias failed, the duplicate route remains."""

    def __init__(self, message: str, node: str, alias: str):
        self.alias = alias
        super().__init__(f"collision on {alias} not cleared: {message}", node)


class AddressResolutionError(SyncError):
    """The primary address of a node could not be resolved."""

    def __init__(self, message: str, node: str):
        self.node = node
        super().__init__(f"Cannot resolve primary address of {node}: {message}")


class RebootError(SyncError):
    """The bulk reboot request was rejected."""

    def __init__(self, message: str, nodes: list[str]):
        self.nodes = list(nodes)
        super().__init__(f"Reboot of {', '.join(nodes)} failed: {message}")


class RecoveryTimeout(SyncError):
    """Rebooted nodes did not all become reachable before the deadline."""

    def __init__(self, unreachable: list[str], timeout: float):
        self.unreachable = list(unreachable)
        self.timeout = timeout
        super().__init__(
            f"{len(unreachable)} node(s) not recovered after {timeout:.0f}s: "
            f"{', '.join(unreachable)}"
        )


class PassDeadlineExceeded(SyncError):
    """The caller's deadline expired before mutations started."""

    def __init__(self, stage: str):
        self.stage = stage
        super().__init__(f"Pass deadline exceeded before {stage}")
