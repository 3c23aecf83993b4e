from hostwatch.api.hosts import get_orchestrator, router

__all__ = ["get_orchestrator", "router"]
