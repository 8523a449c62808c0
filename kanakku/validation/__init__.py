"""Input validation package."""

from kanakku.validation.validator import CommandValidator, PasswordPolicy

__all__ = ["CommandValidator", "PasswordPolicy"]
