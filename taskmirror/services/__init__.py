from taskmirror.services import (
    account_service,
    mutation_orchestrator,
    quick_add_service,
    sync_service,
)


__all__ = [
    "account_service",
    "mutation_orchestrator",
    "quick_add_service",
    "sync_service",
]
