"""Response Extractor - picks the one reply a run returns to its caller."""

from chatgraph.graph.context import ExecutionContext

APOLOGY = "I apologize, I couldn't process that request. Please try rephrasing your question."


def error_message(first_error: str) -> str:
    return f"I encountered an error: {first_error}. Please try again or contact support."


class ResponseExtractor:
    """
    Reads only the response channel of recorded steps.

    Order: the last step, then every earlier step newest first, then a
    generic apology (no errors) or a message surfacing the first error.
    The result is never empty.
    """

    def __init__(self, apology: str = APOLOGY):
        self.apology = apology

    def extract(self, context: ExecutionContext) -> str:
        for result in reversed(context.results):
            if result.has_response():
                return result.response.strip()

        if context.errors:
            return error_message(context.errors[0])
        return self.apology
