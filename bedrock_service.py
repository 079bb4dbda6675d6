"""
Amazon Bedrock service module.
Handles the InvokeModel calls behind the orchestrator's language-model client.
"""

import asyncio
import boto3
import json
import logging
from typing import List, Dict, Optional, Any
from botocore.exceptions import (
    BotoCoreError, ClientError, EndpointConnectionError, NoCredentialsError, PartialCredentialsError,
)
from dataclasses import dataclass, field
from config import (
    aws_config,
    model_config,
    get_credentials_info,
    get_max_output_tokens,
)
from orchestrator.errors import LLMPayloadError, LLMStatusError, LLMTransportError


logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "bedrock-2023-05-31"


@dataclass
class GenerationConfig:
    """Configuration for a single generation request"""
    max_tokens: int = 4096
    temperature: Optional[float] = None
    stop_sequences: Optional[List[str]] = None


@dataclass
class ThinkingBlock:
    """Represents a thinking block from the response"""
    thinking: str = ""
    thinking_signature: Optional[str] = None


@dataclass
class ToolUseBlock:
    """Represents a tool_use block from the response"""
    id: str = ""
    name: str = ""
    input: Dict = field(default_factory=dict)


@dataclass
class GenerationResult:
    """Result from a generation request"""
    content: str = ""
    thinking: Optional[ThinkingBlock] = None
    tool_uses: List[Any] = field(default_factory=list)
    stop_reason: Optional[str] = None
    input_tokens: int = 0
    output_tokens: int = 0


class BedrockService:
    """
    Service class for Amazon Bedrock interactions.
    Synchronous; BedrockLLMClient puts it behind the async completion interface.
    """

    def __init__(
        self,
        model_id: Optional[str] = None,
        region: Optional[str] = None,
        client: Any = None,
    ):
        self.model_id = model_id or model_config.model_id
        self.region = region or aws_config.region
        self.client = client if client is not None else self._create_client()
        logger.info(f"BedrockService initialized with model: {self.model_id}")

    def _create_client(self) -> Any:
        """Create and configure the Bedrock runtime client"""
        session_kwargs = {"region_name": self.region}

        if aws_config.has_profile():
            session_kwargs["profile_name"] = aws_config.profile_name
        elif aws_config.has_explicit_credentials():
            session_kwargs["aws_access_key_id"] = aws_config.access_key_id
            session_kwargs["aws_secret_access_key"] = aws_config.secret_access_key
            if aws_config.has_session_token():
                session_kwargs["aws_session_token"] = aws_config.session_token
        else:
            logger.warning(
                "No AWS_PROFILE or AWS_ACCESS_KEY_ID/AWS_SECRET_ACCESS_KEY set; "
                "model requests will fail unless the default credential chain resolves"
            )
        logger.info(get_credentials_info())

        try:
            session = boto3.Session(**session_kwargs)
            return session.client("bedrock-runtime")
        except BotoCoreError as e:
            raise LLMTransportError(f"Failed to initialize Bedrock client: {e}") from e

    def _format_request_body(
        self,
        messages: List[Dict],
        model_id: str,
        config: GenerationConfig,
        tools: Optional[List[Dict]] = None,
    ) -> Dict[str, Any]:
        """Build an Anthropic messages body.

        System messages are lifted into the system field, consecutive
        same-role messages are merged, and a conversation that would start
        with an assistant turn gets a user turn in front.
        """
        system_parts = []
        formatted: List[Dict[str, Any]] = []
        for msg in messages:
            role = msg.get("role")
            content = msg.get("content") or ""
            if role == "system":
                system_parts.append(content)
                continue
            if formatted and formatted[-1]["role"] == role:
                formatted[-1]["content"] += "\n\n" + content
            else:
                formatted.append({"role": role, "content": content})

        if not formatted or formatted[0]["role"] != "user":
            formatted.insert(0, {"role": "user", "content": "(continue)"})
        for m in formatted:
            if not m["content"].strip():
                m["content"] = "(no content)"

        body: Dict[str, Any] = {
            "anthropic_version": ANTHROPIC_VERSION,
            "max_tokens": min(config.max_tokens, get_max_output_tokens(model_id)),
            "messages": formatted,
        }
        if system_parts:
            body["system"] = "\n\n".join(system_parts)
        if config.temperature is not None:
            body["temperature"] = config.temperature
        if config.stop_sequences:
            body["stop_sequences"] = config.stop_sequences
        if tools:
            body["tools"] = tools
        return body

    def _parse_response(self, response_body: Dict) -> GenerationResult:
        """Parse the Anthropic response body, extracting thinking, content, and tool_use blocks"""
        if not isinstance(response_body, dict):
            raise LLMPayloadError(f"Unexpected response body of type {type(response_body).__name__}")
        result = GenerationResult()

        for block in response_body.get("content") or []:
            block_type = block.get("type", "")
            if block_type == "thinking":
                result.thinking = ThinkingBlock(
                    thinking=block.get("thinking", ""),
                    thinking_signature=block.get("signature"),
                )
            elif block_type == "text":
                result.content += block.get("text", "")
            elif block_type == "tool_use":
                result.tool_uses.append(ToolUseBlock(
                    id=block.get("id", ""),
                    name=block.get("name", ""),
                    input=block.get("input") or {},
                ))

        usage = response_body.get("usage") or {}
        result.input_tokens = usage.get("input_tokens", 0)
        result.output_tokens = usage.get("output_tokens", 0)
        result.stop_reason = response_body.get("stop_reason")
        return result

    def generate_response(
        self,
        messages: List[Dict],
        model_id: Optional[str] = None,
        config: Optional[GenerationConfig] = None,
        tools: Optional[List[Dict]] = None,
    ) -> GenerationResult:
        """
        Generate a response using Amazon Bedrock.
        Raises LLMStatusError, LLMTransportError or LLMPayloadError on failure.
        """
        current_model = model_id or self.model_id
        gen_config = config or GenerationConfig()
        request_body = self._format_request_body(messages, current_model, gen_config, tools=tools)

        logger.info(f"Invoking model: {current_model}")
        try:
            response = self.client.invoke_model(
                modelId=current_model,
                body=json.dumps(request_body),
                contentType="application/json",
                accept="application/json",
            )
        except ClientError as e:
            error = e.response.get("Error", {})
            error_code = error.get("Code", "Unknown")
            error_message = error.get("Message", str(e))
            status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
            logger.error(f"Bedrock API error: {error_code} - {error_message}")
            raise LLMStatusError(
                f"Bedrock API error ({status}): {error_message}",
                status_code=status,
                error_code=error_code,
            ) from e
        except (EndpointConnectionError, NoCredentialsError, PartialCredentialsError) as e:
            logger.error(f"Bedrock connection error: {e}")
            raise LLMTransportError(str(e)) from e
        except BotoCoreError as e:
            logger.error(f"Bedrock transport error: {e}")
            raise LLMTransportError(str(e)) from e

        try:
            response_body = json.loads(response["body"].read())
        except (KeyError, ValueError) as e:
            raise LLMPayloadError(f"Could not decode model response: {e}") from e
        return self._parse_response(response_body)


class BedrockLLMClient:
    """Async completion client over BedrockService.

    complete() returns the GenerationResult itself so the parser can read
    structured tool_use blocks when tools are passed.
    """

    def __init__(self, service: BedrockService, config: Optional[GenerationConfig] = None, model_id: Optional[str] = None):
        self.service = service
        self.config = config or GenerationConfig(
            max_tokens=model_config.max_tokens,
            temperature=model_config.temperature,
        )
        self.model_id = model_id

    async def complete(self, messages: List[Dict], tools: Optional[List[Dict]] = None) -> GenerationResult:
        return await asyncio.to_thread(
            self.service.generate_response,
            messages,
            model_id=self.model_id,
            config=self.config,
            tools=tools,
        )
