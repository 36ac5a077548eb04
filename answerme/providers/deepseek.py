"""DeepSeek chat completions."""

from answerme.providers.base import ChatCompletionsProvider


class DeepSeekProvider(ChatCompletionsProvider):
    name = "deepseek"
    display_name = "DeepSeek"
    default_endpoint = "https://api.deepseek.com/chat/completions"
    default_model = "deepseek-chat"
    tokens_per_question = 250
    # deepseek-chat caps output at 8K
    max_output_tokens = 8192
