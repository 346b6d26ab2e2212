from . import integrations, secrets, contexts, work_items

__all__ = ["integrations", "secrets", "contexts", "work_items"]
