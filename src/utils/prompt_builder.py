"""Prompt builder utilities for the outfit pipeline."""

DEFAULT_OUTFIT_SYSTEM_PROMPT = (
    "You are a fashion stylist and art director. You receive photos of separate "
    "clothing items and write a single detailed prompt for an image model. "
    "The prompt must describe one full-body model wearing all of the items together "
    "as one coherent outfit, keeping every item's colour, cut, fabric and details "
    "identical to the photos. Describe pose, lighting and a neutral studio background. "
    "Answer with the prompt text only."
)

DEFAULT_OUTFIT_USER_PROMPT = (
    "Combine the clothing items from the photos into one outfit. "
    "The photos are listed in the order the customer sent them; "
    "the first photo is the key piece of the look."
)

DEFAULT_MATCHING_SYSTEM_PROMPT = (
    "You are a fashion stylist and art director. You receive a photo of one "
    "clothing item and write a single detailed prompt for an image model. "
    "The prompt must describe one full-body model wearing this exact item, "
    "completed with matching garments, shoes and accessories that suit it. "
    "Describe pose, lighting and a neutral studio background. "
    "Answer with the prompt text only."
)

DEFAULT_MATCHING_USER_PROMPT = "Build a complete outfit around the item in the photo."

IMAGE_FORMAT_SUFFIX = "IMPORTANT: Create a vertical portrait (9:16) image with a full-body model."


def build_photos_context(image_count: int) -> str:
    """Build context string about uploaded photos.

    Args:
        image_count: Number of source photos

    Returns:
        Context string describing photos
    """
    if image_count == 0:
        return "No photos were provided."
    elif image_count == 1:
        return "1 photo of a clothing item is attached."
    else:
        return f"{image_count} photos of clothing items are attached, in the order given."


def build_user_message(user_prompt: str, brief: str, image_count: int) -> str:
    """Build the text part of the prompt-writing request.

    Args:
        user_prompt: Kind-specific user prompt template
        brief: Free-text wishes from the customer (may be empty)
        image_count: Number of attached photos

    Returns:
        Formatted text for the chat model
    """
    parts = [user_prompt, build_photos_context(image_count)]
    if brief.strip():
        parts.append(f"Additional requirements: {brief.strip()}")
    return "\n\n".join(parts)


def build_image_prompt(model_prompt: str) -> str:
    """Append the fixed output format requirements to a generated prompt."""
    return f"{model_prompt.strip()}\n\n{IMAGE_FORMAT_SUFFIX}"
