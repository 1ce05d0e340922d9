"""Prompt text and message layout for page classification and extraction."""
from __future__ import annotations

import base64
from typing import Any, Dict, List, Sequence

from lotflow.application.ports import InferenceItem

CLASSIFICATION_PROMPT_TEMPLATE = """You are an expert document classification system specialized in visual document analysis.

You have been given {count} document images, each preceded by a text label containing its documentId. Classify EACH image independently into exactly one of the following categories based on the dominant form of textual content.

Categories:
"handwritten": most of the visible text is written by hand (pen, pencil or stylus).
"typed": most of the visible text is printed or computer-generated.
"mixed": a significant, non-trivial presence of both handwritten and printed text, such as printed forms filled in by hand.

Decision rules:
- Decide on textual content only. Ignore logos, stamps, watermarks, seals and checkboxes unless they contain readable text.
- Handwriting limited to signatures, initials, dates, checkmarks or brief margin notes counts as "typed".
- When one kind of text clearly dominates by area or volume, choose it.
- Printed tables filled with handwritten values are "mixed"; fully handwritten tables are "handwritten".
- For blurry, cropped or near-empty pages make a best-effort classification from the visible evidence.

Output requirements (strict):
Respond with ONLY a valid JSON array of exactly {count} objects, one per image in the order provided. Each object must be:
{{"documentId": "<the documentId of the image>", "classification": "handwritten" | "typed" | "mixed", "confidence": <number between 0 and 1>}}

Do not explain and do not output anything except the JSON array."""

EXTRACTION_PROMPT_TEMPLATE = """You are an expert document data extraction system. You have been given {count} document image(s), each preceded by a text label containing its documentId.

For EACH image, extract all meaningful structured data visible in the document.

Extraction rules:
1. Extract every key-value pair, labelled field, table row or identifiable data point.
2. Use the field labels as they appear in the document.
3. Transcribe handwriting as accurately as possible; use "[illegible]" for unreadable portions.
4. Normalise dates to ISO 8601 (YYYY-MM-DD) when possible, keep currency symbols, and represent checkboxes as true/false.
5. Represent tables as arrays of row objects keyed by column header.
6. Note the presence of signatures but do not transcribe them.

Output requirements (strict):
Respond with ONLY a valid JSON array of exactly {count} objects, one per image in order. Each object must be:
{{
  "documentId": "<the documentId of the image>",
  "fields": {{"<field_name>": "<value>"}},
  "tables": [{{"title": "<title or null>", "rows": [{{"<column>": "<value>"}}]}}],
  "metadata": {{"document_type": "<invoice|form|letter|receipt|contract|report|other>", "language": "<primary language>", "date": "<ISO 8601 date or null>", "has_signatures": <true/false>, "has_stamps": <true/false>}},
  "confidence": <number between 0 and 1>,
  "field_confidences": {{"<field_name>": <number between 0 and 1>}}
}}

Do not explain and do not output anything except the JSON array."""


def classification_prompt(count: int) -> str:
    return CLASSIFICATION_PROMPT_TEMPLATE.format(count=count)


def extraction_prompt(count: int) -> str:
    return EXTRACTION_PROMPT_TEMPLATE.format(count=count)


def image_to_data_url(image_bytes: bytes, mime_type: str) -> str:
    encoded = base64.b64encode(image_bytes).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def build_user_content(items: Sequence[InferenceItem], prompt: str) -> List[Dict[str, Any]]:
    """Interleave an id label before each image and finish with the instruction prompt."""
    content: List[Dict[str, Any]] = []
    for item in items:
        content.append({"type": "text", "text": f"Document ID: {item.item_id}"})
        content.append(
            {
                "type": "image_url",
                "image_url": {"url": image_to_data_url(item.image_bytes, item.mime_type)},
            }
        )
    content.append({"type": "text", "text": prompt})
    return content


def build_messages(items: Sequence[InferenceItem], prompt: str) -> List[Dict[str, Any]]:
    return [{"role": "user", "content": build_user_content(items, prompt)}]
