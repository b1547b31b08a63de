from turnover.modules.properties.registry import PropertyRegistry

__all__ = ["PropertyRegistry"]
