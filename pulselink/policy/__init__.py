from .evaluator import Capability, PermissionEvaluator, PolicyDecision, PolicyResult

__all__ = ["Capability", "PermissionEvaluator", "PolicyDecision", "PolicyResult"]
