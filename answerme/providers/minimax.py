"""Minimax chat completion v2."""

from answerme.providers.base import ChatCompletionsProvider


class MinimaxProvider(ChatCompletionsProvider):
    name = "minimax"
    display_name = "Minimax"
    default_endpoint = "https://api.minimax.chat/v1/text/chatcompletion_v2"
    default_model = "abab6.5s-chat"
    tokens_per_question = 250

    def compute_max_tokens(self, count: int) -> int:
        """Never below 8000; Minimax truncates long JSON replies otherwise."""
        return max(8000, count * self.tokens_per_question + self.token_overhead)
