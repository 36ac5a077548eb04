"""Any OpenAI-compatible endpoint configured by the user."""

import logging

from answerme.providers.base import ChatCompletionsProvider
from answerme.providers.zhipu import complete_zhipu_endpoint

logger = logging.getLogger(__name__)


class CustomApiProvider(ChatCompletionsProvider):
    """Self-hosted models and API gateways using the OpenAI protocol."""

    name = "custom_api"
    display_name = "Custom API"
    default_endpoint = "https://api.openai.com/v1/chat/completions"
    default_model = "gpt-3.5-turbo"

    def normalize_endpoint(self, endpoint: str) -> str:
        normalized = complete_zhipu_endpoint(endpoint)
        if normalized != endpoint:
            logger.info("Completed Zhipu endpoint path: %s -> %s", endpoint, normalized)
        return normalized
