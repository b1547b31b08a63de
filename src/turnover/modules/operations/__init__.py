from turnover.modules.operations.ops import OperationsManager

__all__ = ["OperationsManager"]
