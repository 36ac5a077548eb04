"""Zhipu GLM over its OpenAI-compatible endpoint."""

from answerme.providers.base import ChatCompletionsProvider

COMPLETIONS_SUFFIX = "/chat/completions"
_ZHIPU_PATHS = ("api/paas/v4", "api/coding/paas/v4")


def complete_zhipu_endpoint(endpoint: str) -> str:
    """
    Append ``/chat/completions`` to a bare Zhipu API base URL.

    >>> complete_zhipu_endpoint("https://open.bigmodel.cn/api/paas/v4/")
    'https://open.bigmodel.cn/api/paas/v4/chat/completions'

    Other URLs are returned unchanged.
    """
    if any(path in endpoint for path in _ZHIPU_PATHS) and not endpoint.endswith(COMPLETIONS_SUFFIX):
        return endpoint.rstrip("/") + COMPLETIONS_SUFFIX
    return endpoint


class ZhipuProvider(ChatCompletionsProvider):
    name = "zhipu"
    display_name = "Zhipu AI"
    default_endpoint = "https://open.bigmodel.cn/api/paas/v4/chat/completions"
    default_model = "glm-4"
    tokens_per_question = 250
    max_output_tokens = 8000

    def normalize_endpoint(self, endpoint: str) -> str:
        return complete_zhipu_endpoint(endpoint)
