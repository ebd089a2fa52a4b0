from .size_balancer import SizeBalancer
from .relevance_filter import RelevanceFilter

__all__ = ["SizeBalancer", "RelevanceFilter"]
