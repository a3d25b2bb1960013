# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""LLM-backed completion provider.

Adapts any client exposing ``stream_chat(messages, **kwargs)`` (an async
iterator of token deltas) into the cumulative chunk stream the stream
processor consumes, using fill-in-the-middle prompts.
"""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Union

from ghost_text.cancellation import CancellationToken
from ghost_text.protocol import StopReason, StreamChunk
from ghost_text.streaming.provider import BaseCompletionProvider, ProviderOptions

logger = logging.getLogger(__name__)


# FIM (Fill-In-the-Middle) prompt templates per model family
FIM_TEMPLATES = {
    "default": {
        "prefix": "<PRE>",
        "suffix": "<SUF>",
        "middle": "<MID>",
        "format": "{prefix}{pre}{suffix}{suf}{middle}",
    },
    "codellama": {
        "prefix": "<PRE>",
        "suffix": " <SUF>",
        "middle": " <MID>",
        "format": "{prefix} {pre}{suffix}{suf}{middle}",
    },
    "starcoder": {
        "prefix": "<fim_prefix>",
        "suffix": "<fim_suffix>",
        "middle": "<fim_middle>",
        "format": "{prefix}{pre}{suffix}{suf}{middle}",
    },
    "deepseek": {
        "prefix": "<｜fim▁begin｜>",
        "suffix": "<｜fim▁hole｜>",
        "middle": "<｜fim▁end｜>",
        "format": "{prefix}{pre}{suffix}{suf}{middle}",
    },
    "qwen": {
        "prefix": "<|fim_prefix|>",
        "suffix": "<|fim_suffix|>",
        "middle": "<|fim_middle|>",
        "format": "{prefix}{pre}{suffix}{suf}{middle}",
    },
}

END_TOKENS = ["<|endoftext|>", "</s>", "<|im_end|>", "<|end|>", "<EOT>"]


def template_for_model(model: str) -> Dict[str, str]:
    """Pick the FIM template matching a model name."""
    model_lower = model.lower()
    for family in ("codellama", "starcoder", "deepseek", "qwen"):
        if family in model_lower:
            return FIM_TEMPLATES[family]
    return FIM_TEMPLATES["default"]


class ModelCompletionProvider(BaseCompletionProvider):
    """Streams fill-in-the-middle completions from an LLM client."""

    def __init__(
        self,
        options: ProviderOptions,
        client: Any,
        model: str = "",
        fim_template: Union[str, Dict[str, str], None] = None,
        max_tokens: Optional[int] = None,
        temperature: float = 0.2,
        stop: Optional[List[str]] = None,
    ):
        """Initialize the provider.

        Args:
            options: Per-request options
            client: Object with an async ``stream_chat(messages, **kwargs)``
            model: Model name, also used to pick the FIM template
            fim_template: Template name or custom template dict
            max_tokens: Token limit, defaults to 256 for multiline and 64 otherwise
            temperature: Sampling temperature
            stop: Stop sequences
        """
        super().__init__(options)
        self._client = client
        self._model = model
        self._temperature = temperature
        self._stop = stop or ["<|endoftext|>", "```"]
        self._max_tokens = max_tokens or (256 if options.multiline else 64)

        if isinstance(fim_template, dict):
            self._fim_template = fim_template
        elif fim_template:
            self._fim_template = FIM_TEMPLATES.get(fim_template, FIM_TEMPLATES["default"])
        else:
            self._fim_template = template_for_model(model)

    @property
    def name(self) -> str:
        return f"model:{self._model}" if self._model else "model"

    def build_prompt(self) -> str:
        """Build the FIM prompt from the request's prefix and suffix."""
        template = self._fim_template
        doc_context = self.options.doc_context
        return template["format"].format(
            prefix=template["prefix"],
            pre=doc_context.prefix,
            suffix=template["suffix"],
            suf=doc_context.suffix,
            middle=template["middle"],
        )

    async def generate_completions(self, token: CancellationToken) -> AsyncIterator[StreamChunk]:
        kwargs: Dict[str, Any] = {
            "max_tokens": self._max_tokens,
            "temperature": self._temperature,
            "stop": self._stop,
        }
        if self._model:
            kwargs["model"] = self._model

        completion = ""
        stream = self._client.stream_chat(
            messages=[{"role": "user", "content": self.build_prompt()}], **kwargs
        )
        try:
            async for delta in stream:
                if token.is_cancelled:
                    logger.debug(f"{self.name} stream aborted after {len(completion)} chars")
                    return
                content = self._extract_content(delta)
                if not content:
                    continue
                completion += content
                yield StreamChunk(completion)
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

        yield StreamChunk(completion, StopReason.REQUEST_FINISHED.value)

    def post_process(self, completion: str) -> str:
        """Remove FIM and end-of-text markers the model echoed back."""
        for template in FIM_TEMPLATES.values():
            for key in ("prefix", "suffix", "middle"):
                token = template[key].strip()
                if token:
                    completion = completion.replace(token, "")

        for token in END_TOKENS:
            index = completion.find(token)
            if index != -1:
                completion = completion[:index]

        return completion

    @staticmethod
    def _extract_content(delta: Any) -> str:
        if hasattr(delta, "content"):
            return delta.content or ""
        if hasattr(delta, "text"):
            return delta.text or ""
        if isinstance(delta, dict):
            return delta.get("content", delta.get("text", "")) or ""
        return str(delta) if delta else ""
