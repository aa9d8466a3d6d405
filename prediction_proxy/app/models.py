"""
Data Models Module

This module defines Pydantic models for the proxy's inbound payload and
the body it forwards to the upstream prediction service.

Models are organized by direction:
- Inbound models (what the chat client posts)
- Upstream models (what the prediction service receives)
"""

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Inbound Models
# ============================================================================

class PredictionRequest(BaseModel):
    """
    Chat question posted by a client.

    All three fields are required and must be non-empty strings.
    Unknown fields are ignored.
    """
    model_config = ConfigDict(extra="ignore")

    question: str = Field(..., description="User question text", min_length=1)
    userId: str = Field(..., description="Caller identifier, forwarded as override config", min_length=1)
    chatflowId: str = Field(..., description="Upstream chatflow to run", min_length=1)


# ============================================================================
# Upstream Models
# ============================================================================

class OverrideConfig(BaseModel):
    """Per-call parameters forwarded to the prediction service."""
    userId: str


class UpstreamPrediction(BaseModel):
    """Body of the POST sent to /api/v1/prediction/{chatflowId}."""
    question: str
    overrideConfig: OverrideConfig

    @classmethod
    def from_request(cls, prediction_request: PredictionRequest) -> "UpstreamPrediction":
        return cls(
            question=prediction_request.question,
            overrideConfig=OverrideConfig(userId=prediction_request.userId),
        )
