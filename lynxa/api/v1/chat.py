"""Chat completion endpoint"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from lynxa.api.dependencies import require_api_key
from lynxa.core.exceptions import InferenceProviderError
from lynxa.core.logging_config import get_logger
from lynxa.core.monitoring import inference_tokens_total
from lynxa.schemas.chat import ChatRequest, ChatResponse, ChatUsage
from lynxa.services.inference_client import InferenceClient
from lynxa.services.key_validator import Principal


router = APIRouter(prefix="/chat", tags=["Chat"])
logger = get_logger(__name__)


def get_inference_client() -> InferenceClient:
    """Dependency to get InferenceClient instance"""
    return InferenceClient()


@router.post("", response_model=ChatResponse)
async def chat(
    payload: ChatRequest,
    request: Request,
    principal: Principal = Depends(require_api_key),
    client: InferenceClient = Depends(get_inference_client)
):
    """
    Send a message to the assistant.

    Requires ``Authorization: Bearer <key>``. The message is sent after the
    system prompt and any ``conversation_history``. With ``stream`` set the
    provider's server-sent events are passed through unchanged.

    Token counters reported by the provider are attached to the request so
    the usage event recorded for this call carries them.

    Raises:
        AuthenticationError 401: Key missing, invalid, revoked or expired
        RateLimitExceeded 429: Key's window exhausted
        InferenceProviderError 502: Provider failed
    """
    messages = client.build_messages(
        payload.message,
        [m.model_dump() for m in payload.conversation_history]
    )

    try:
        if payload.stream:
            chunks = await client.stream(
                messages,
                model=payload.model,
                max_tokens=payload.max_tokens,
                temperature=payload.temperature
            )
            return StreamingResponse(chunks, media_type="text/event-stream")

        completion = await client.complete(
            messages,
            model=payload.model,
            max_tokens=payload.max_tokens,
            temperature=payload.temperature
        )
    except InferenceProviderError as e:
        request.state.error_message = e.message
        raise

    request.state.input_tokens = completion.input_tokens
    request.state.output_tokens = completion.output_tokens
    inference_tokens_total.labels(direction="input").inc(completion.input_tokens)
    inference_tokens_total.labels(direction="output").inc(completion.output_tokens)

    logger.info(
        "chat_completed",
        owner=principal.owner,
        model=completion.model,
        input_tokens=completion.input_tokens,
        output_tokens=completion.output_tokens
    )

    return ChatResponse(
        response=completion.content,
        model=completion.model,
        usage=ChatUsage(
            input_tokens=completion.input_tokens,
            output_tokens=completion.output_tokens,
            total_tokens=completion.input_tokens + completion.output_tokens
        ),
        user=principal.to_dict()
    )
