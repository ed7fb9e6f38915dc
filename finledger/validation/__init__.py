"""Write validation package."""

from finledger.validation.validator import EntityValidator, issues_from_pydantic

__all__ = ["EntityValidator", "issues_from_pydantic"]
