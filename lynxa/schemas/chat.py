"""Pydantic schemas for chat completions"""

from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    """One prior turn of the conversation"""
    role: Literal["user", "assistant", "system"]
    content: str


class ChatRequest(BaseModel):
    """Schema for a chat request"""
    message: str = Field(..., min_length=1, max_length=32000)
    model: Optional[str] = Field(None, description="Provider model (defaults to the configured one)")
    max_tokens: int = Field(1000, ge=1, le=8192)
    temperature: Optional[float] = Field(None, ge=0.0, le=2.0)
    stream: bool = Field(False, description="Pass the provider's server-sent events through")
    conversation_history: List[ChatMessage] = Field(default_factory=list)


class ChatUsage(BaseModel):
    """Token counters reported by the provider"""
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


class ChatResponse(BaseModel):
    """Schema for a non-streaming chat response"""
    success: bool = True
    response: str
    model: str
    usage: ChatUsage
    user: Dict[str, Any] = Field(default_factory=dict, description="Owner and plan of the calling key")
