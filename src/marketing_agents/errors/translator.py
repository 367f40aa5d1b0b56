"""Translate technical errors to user-friendly messages."""

import re
from dataclasses import dataclass
from typing import List, Optional


@dataclass
class UserFriendlyError:
    """User-friendly error representation."""
    original_error: Exception
    title: str
    explanation: str
    actions: List[str]
    documentation: Optional[str] = None
    show_technical: bool = False


class ErrorTranslator:
    """Translate technical errors to user-friendly messages.

    Patterns are tried in order against ``"<ExceptionType>: <message>"``,
    so more specific entries must precede generic ones.
    """

    ERROR_PATTERNS = {
        r"TaskInterruptedError": {
            "title": "Task interrupted",
            "explanation": "The orchestrator was stopped while this card was being worked on.",
            "actions": [
                "Move the card back to Todo to run it again",
                "Check for a partial deliverable or branch before retrying",
            ],
        },

        # Deadline exceeded (LLM calls can legitimately take minutes)
        r"RequestTimeoutError|timed out|timeout": {
            "title": "Request timed out",
            "explanation": "An external service did not answer before the configured timeout.",
            "actions": [
                "Timeout: retry the card by moving it back to Todo",
                "Shorten the card description so the model answers faster",
                "Raise llm.timeout in config/marketing-agents.yaml if this keeps happening",
            ],
        },

        # Rate limiting
        r"rate.*limit|\b429\b|too many requests|overloaded|\b529\b": {
            "title": "API rate limit exceeded",
            "explanation": "Too many requests were sent to the model or board API.",
            "actions": [
                "Wait a few minutes, then move the card back to Todo",
                "Lower orchestrator.max_concurrent_agents",
                "Lower llm.rate_limit_per_second",
            ],
        },

        # Authentication
        r"\b401\b|\b403\b|unauthori[sz]ed|forbidden|invalid.*(api.?key|token)|bad credentials": {
            "title": "Authentication failed",
            "explanation": "A credential was rejected (Trello, Anthropic, GitHub or Umami).",
            "actions": [
                "Check TRELLO_API_KEY / TRELLO_TOKEN",
                "Check ANTHROPIC_API_KEY",
                "Check GITHUB_TOKEN has the 'repo' scope",
            ],
            "documentation": "README.md#configuration",
        },

        # Missing resources
        r"\b404\b|not found": {
            "title": "Resource not found",
            "explanation": "A card, list, repository or branch referenced by the task does not exist.",
            "actions": [
                "Verify the board has Todo, In progress, Review and Done lists",
                "Verify GITHUB_OWNER / GITHUB_REPO",
                "Check the card was not archived while being processed",
            ],
        },

        r"PathTraversalError|path traversal": {
            "title": "Unsafe deliverable path rejected",
            "explanation": "The deliverable location resolved outside the output directory and was refused.",
            "actions": [
                "Rename the card to a plain title",
                "Check orchestrator.output_dir",
            ],
        },

        r"ValidationError|Invalid (domain|stage|priority|deliverable type)": {
            "title": "Invalid value",
            "explanation": "A field was outside its allowed set of values.",
            "actions": [
                "Use one of the allowed values listed in the error",
                "Fix the card labels",
            ],
        },

        r"ConfigurationError|Missing required": {
            "title": "Configuration missing",
            "explanation": "A required setting was not provided.",
            "actions": [
                "Copy .env.example to .env and fill in the credentials",
                "Or create config/marketing-agents.yaml",
            ],
            "documentation": "README.md#configuration",
        },

        # Network errors
        r"connection.*(refused|reset|aborted)|network.*unreachable|name or service not known": {
            "title": "Cannot connect to service",
            "explanation": "Unable to reach an external API. This could be a network issue or an outage.",
            "actions": [
                "Check your internet connection",
                "Verify service URLs in configuration",
                "Try again in a few minutes",
            ],
        },
    }

    def translate(self, error: Exception) -> UserFriendlyError:
        """Convert exception to user-friendly format."""
        error_str = str(error)
        error_type = type(error).__name__
        full_error = f"{error_type}: {error_str}"

        for pattern, translation in self.ERROR_PATTERNS.items():
            if re.search(pattern, full_error, re.IGNORECASE):
                return UserFriendlyError(
                    original_error=error,
                    title=translation["title"],
                    explanation=translation["explanation"],
                    actions=translation["actions"],
                    documentation=translation.get("documentation"),
                    show_technical=False,
                )

        # Fallback for unknown errors
        return UserFriendlyError(
            original_error=error,
            title="Unexpected error",
            explanation=error_str[:500],
            actions=[
                "Check the orchestrator logs for details",
                "Move the card back to Todo once the cause is fixed",
            ],
            show_technical=True,
        )

    def format_for_cli(self, friendly_error: UserFriendlyError) -> str:
        """Format error for rich console display."""
        output = f"[bold red]{friendly_error.title}[/]\n\n"
        output += f"{friendly_error.explanation}\n\n"

        output += "[bold]How to fix:[/]\n"
        for i, action in enumerate(friendly_error.actions, 1):
            output += f"  {i}. {action}\n"

        if friendly_error.documentation:
            output += f"\n[dim]📖 Learn more: {friendly_error.documentation}[/]"

        if friendly_error.show_technical:
            output += f"\n\n[dim]Technical details:[/]\n[dim]{friendly_error.original_error}[/]"

        return output

    def format_for_comment(self, friendly_error: UserFriendlyError, message: str) -> str:
        """Format error as a markdown board comment."""
        actions = "\n".join(f"- {a}" for a in friendly_error.actions)
        return (
            "⚠️ **Automatic processing failed**\n\n"
            f"**{friendly_error.title}**\n\n"
            f"```\n{message}\n```\n\n"
            f"**Suggested fixes**:\n{actions}\n\n"
            "*The card was moved out of Todo. Move it back once the cause is fixed.*"
        )
