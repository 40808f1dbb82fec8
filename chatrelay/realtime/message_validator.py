"""
Inbound WebSocket frame validation.

A valid chat frame is a JSON object with a string "text" field. Any other
fields, including a client-supplied "author", are ignored.
"""

from pydantic import BaseModel, ConfigDict, StrictStr
from pydantic import ValidationError as PydanticValidationError

from ..exceptions import MessageValidationError
from ..logging_config import get_logger

logger = get_logger(__name__)


class InboundChatFrame(BaseModel):
    """Schema for client -> server chat frames."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    text: StrictStr


class ChatFrameValidator:
    """
    Validates inbound chat frames.

    Implements:
    - Raw frame size limit (DoS protection)
    - JSON object schema with a strict string "text" field
    - Maximum text length
    """

    MAX_FRAME_SIZE = 16 * 1024  # 16KB maximum raw frame

    def __init__(self, max_text_length: int = 4000, max_frame_size: int | None = None) -> None:
        self.max_text_length = max_text_length
        self.max_frame_size = max_frame_size or self.MAX_FRAME_SIZE

    def parse(self, raw: str | bytes) -> str:
        """
        Parse a raw frame and return the chat text it carries.

        Raises:
            MessageValidationError: Frame is oversized, not JSON, not an object,
                lacks a string "text", or the text is too long
        """
        size = len(raw.encode("utf-8")) if isinstance(raw, str) else len(raw)
        if size > self.max_frame_size:
            raise MessageValidationError(
                f"Frame size {size} bytes exceeds maximum {self.max_frame_size} bytes",
                error_type="size_limit_exceeded",
            )

        try:
            frame = InboundChatFrame.model_validate_json(raw)
        except PydanticValidationError as e:
            errors = e.errors(include_url=False, include_context=False, include_input=False)
            error_type = "invalid_json" if any(err["type"] == "json_invalid" for err in errors) else "invalid_format"
            raise MessageValidationError(
                "Frame must be a JSON object with a string 'text' field",
                error_type=error_type,
                details={"errors": [err["msg"] for err in errors]},
            ) from e

        if len(frame.text) > self.max_text_length:
            raise MessageValidationError(
                f"Message text exceeds {self.max_text_length} characters",
                error_type="text_too_long",
                field="text",
            )

        return frame.text
