"""OpenAI chat completions."""

from answerme.providers.base import ChatCompletionsProvider


class OpenAIProvider(ChatCompletionsProvider):
    """OpenAI, or an Azure/gateway deployment when an endpoint is given."""

    name = "openai"
    display_name = "OpenAI"
    default_endpoint = "https://api.openai.com/v1/chat/completions"
    default_model = "gpt-4o-mini"
    # Newer models reject max_tokens
    token_limit_field = "max_completion_tokens"
    tokens_per_question = 300
    max_output_tokens = 16384
