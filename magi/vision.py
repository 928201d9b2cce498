"""Image description for attached photos (feeds condition extraction)."""

import base64
import logging

from magi import prompts
from magi.models import LANGUAGE_NAMES, Language
from magi.providers.base import ChatProvider
from magi.shaping import truncate

logger = logging.getLogger(__name__)

IMAGE_DESCRIPTION_LIMIT = 200


async def describe_image(
    provider: ChatProvider,
    model: str,
    image: bytes,
    language: Language,
    limit: int = IMAGE_DESCRIPTION_LIMIT,
    mime_type: str = "image/jpeg",
) -> str | None:
    """Short factual description of ``image``, or None on failure."""
    data_url = f"data:{mime_type};base64,{base64.b64encode(image).decode('ascii')}"
    messages = [
        {
            "role": "user",
            "content": [
                {
                    "type": "text",
                    "text": prompts.IMAGE_DESCRIPTION.format(limit=limit, language_name=LANGUAGE_NAMES[language]),
                },
                {"type": "image_url", "image_url": {"url": data_url}},
            ],
        }
    ]
    try:
        result = await provider.chat(model, messages, temperature=0)
    except Exception as exc:
        logger.warning("Image description failed: %s", exc)
        return None

    description = result.content.strip()
    if not description:
        logger.warning("Empty image description")
        return None
    description = truncate(description, limit)
    logger.info("Image described: %d chars", len(description))
    return description
