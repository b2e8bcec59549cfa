"""User profile updates and role-specific completeness."""

from app.profile.completion import ProfileEvaluation, evaluate_profile

__all__ = ["ProfileEvaluation", "evaluate_profile"]
