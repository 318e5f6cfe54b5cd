"""Errors raised while reading settings, credentials and input files."""

from typing import Iterable, List, Optional

from pydantic import ValidationError


class ConfigurationError(Exception):
    """A settings source is missing, unreadable or invalid.

    ``errors`` lists each individual problem; ``suggestions`` carries
    operator hints. Both are rendered into ``str(error)`` so the CLI can
    print the exception as-is.
    """

    def __init__(
        self,
        message: str,
        errors: Optional[Iterable[str]] = None,
        suggestions: Optional[Iterable[str]] = None,
    ):
        self.message = message
        self.errors: List[str] = list(errors or ())
        self.suggestions: List[str] = list(suggestions or ())
        super().__init__(self.render())

    def render(self) -> str:
        lines = [self.message]
        if self.errors:
            lines.append("\nValidation Errors:")
            lines.extend(f"  {n}. {problem}" for n, problem in enumerate(self.errors, start=1))
        if self.suggestions:
            lines.append("\nSuggestions:")
            lines.extend(f"  - {hint}" for hint in self.suggestions)
        return "\n".join(lines)

    @classmethod
    def from_validation_error(
        cls, message: str, error: ValidationError, suggestions: Optional[Iterable[str]] = None
    ) -> "ConfigurationError":
        """Flatten a pydantic error into one readable line per field."""
        problems = []
        for detail in error.errors():
            where = ".".join(str(part) for part in detail["loc"]) or "<root>"
            if detail["type"] == "missing":
                problems.append(f"{where}: field required")
            else:
                problems.append(f"{where}: {detail['msg']}")
        return cls(message, errors=problems, suggestions=suggestions)
