"""
Notebook Backend: Abstract Summarization Model Interface
=========================================================

What:  Contract for the language model that writes note summaries.
Why:   SummaryService should not care which provider answers; tests plug in
       a fake, production uses GeminiSummarizer.
How:   Concrete implementations inherit from LLMService and implement
       summarize_text() and health_check().
Who:   Called by SummaryService after text extraction and truncation.
"""

from abc import ABC, abstractmethod


class LLMService(ABC):
    """
    Abstract interface for note summarization.

    Contract:
        - summarize_text() receives already-extracted, already-truncated text
          and returns the summary
        - Implementations own their retry, timeout and circuit-breaker logic
        - Every provider failure surfaces as UpstreamError
    """

    # What: Fixed instructions sent with every request
    SYSTEM_INSTRUCTION = (
        "You are a helpful assistant that summarizes notes concise and clearly. "
        "Structure the summary with bullet points and key headings."
    )

    EMPTY_SUMMARY = "No summary generated."

    @staticmethod
    def build_prompt(text: str) -> str:
        return f"Please summarize the following notes:\n\n{text}"

    @abstractmethod
    async def summarize_text(self, text: str) -> str:
        """
        Summarize note text.

        Returns:
            The model's first answer, or EMPTY_SUMMARY when it produced none.
            Never returns None.

        Raises:
            UpstreamError: provider failed after retries, timed out, or the
                circuit breaker is open
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Lightweight check that the provider is reachable.

        Called by GET /health; must not consume generation quota.
        """
        ...

    def status(self) -> str:
        """Short status label for the health endpoint."""
        return "available"
