"""Turning an exam image (or a JSON file) into queries for the engine."""
from __future__ import annotations

import asyncio
import base64
import json
import logging
import mimetypes
from pathlib import Path
from typing import Optional

import httpx

from .config import MAX_IMAGE_SIZE, Query
from .errors import ExtractionError, ProviderError
from .prompts import EXTRACTION_PROMPTS, build_choice_text, build_item_text
from .providers import HttpProviderClient

logger = logging.getLogger(__name__)


def _get_mime(filename: str) -> str:
    ext = Path(filename).suffix.lower()
    mime_map = {
        ".jpg": "image/jpeg",
        ".jpeg": "image/jpeg",
        ".png": "image/png",
        ".webp": "image/webp",
        ".gif": "image/gif",
    }
    return mime_map.get(ext, mimetypes.guess_type(filename)[0] or "application/octet-stream")


def _text(value) -> str:
    return value.strip() if isinstance(value, str) else ""


def _entries(value) -> list[dict]:
    return [entry for entry in value if isinstance(entry, dict)] if isinstance(value, list) else []


def parse_extraction(data: dict, question_type: str) -> list[Query]:
    """Build queries from the JSON the vision model returned; nulls and malformed entries are skipped."""
    if question_type == "binary":
        base_text = _text(data.get("texto_principal"))
        queries = []
        for i, item in enumerate(_entries(data.get("itens"))):
            statement = _text(item.get("afirmacao"))
            if not statement:
                logger.warning("Skipping item %s with no statement", item.get("numero") or i + 1)
                continue
            queries.append(Query(
                text=build_item_text(base_text, statement),
                item_id=str(item.get("numero") or i + 1),
                question_type="binary",
            ))
        if not queries:
            raise ExtractionError("No numbered items found in the image")
        return queries

    statement = _text(data.get("enunciado"))
    if not statement:
        raise ExtractionError("No question statement found in the image")
    item_id = str(data.get("numero_questao") or "1")
    if question_type == "choice":
        alternatives = [
            {"letra": _text(alt.get("letra")), "texto": _text(alt.get("texto"))}
            for alt in _entries(data.get("alternativas"))
        ]
        except_question = data.get("tipo_exceto") is True
        if except_question:
            logger.info("Question %s asks for the EXCEPT alternative", item_id)
        return [Query(
            text=build_choice_text(statement, alternatives),
            item_id=item_id,
            question_type="choice",
            except_question=except_question,
        )]
    return [Query(text=statement, item_id=item_id, question_type="discursive")]


async def extract_queries(
    image_path: str,
    question_type: str,
    client: Optional[HttpProviderClient],
    model: str,
    max_tokens: int = 3000,
    timeout_s: float = 60.0,
) -> list[Query]:
    if client is None or client.kind != "openai":
        raise ExtractionError("Image extraction needs a configured OpenAI-compatible provider")

    path = Path(image_path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise ExtractionError(f"Cannot read image {image_path}: {e}") from e
    if len(data) > MAX_IMAGE_SIZE:
        raise ExtractionError(f"Image {image_path} exceeds {MAX_IMAGE_SIZE} bytes limit")
    mime = _get_mime(path.name)
    if not mime.startswith("image/"):
        raise ExtractionError(f"{image_path} is not an image ({mime})")

    image_b64 = base64.b64encode(data).decode("ascii")
    body = {
        "model": model,
        "messages": [{
            "role": "user",
            "content": [
                {"type": "text", "text": EXTRACTION_PROMPTS[question_type]},
                {"type": "image_url", "image_url": {"url": f"data:{mime};base64,{image_b64}"}},
            ],
        }],
        "response_format": {"type": "json_object"},
        client.config.token_field: max_tokens,
    }
    headers = {
        "Authorization": f"Bearer {client.api_key}",
        "Content-Type": "application/json",
    }

    try:
        response = await asyncio.wait_for(
            client.post_json(f"{client.base_url}/chat/completions", headers, body),
            timeout=timeout_s,
        )
    except asyncio.TimeoutError as e:
        raise ExtractionError(f"Vision model did not answer within {timeout_s}s") from e
    except (ProviderError, httpx.HTTPError, ValueError) as e:
        raise ExtractionError(f"Vision request failed: {e}") from e

    choices = response.get("choices") if isinstance(response, dict) else None
    content = ((choices or [{}])[0].get("message") or {}).get("content") or ""
    try:
        parsed = json.loads(content)
    except (TypeError, ValueError) as e:
        raise ExtractionError(f"Vision model returned invalid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise ExtractionError("Vision model returned JSON that is not an object")

    queries = parse_extraction(parsed, question_type)
    logger.info("Extracted %d item(s) from %s", len(queries), path.name)
    return queries


def load_queries(filepath: str) -> list[Query]:
    """Read queries from a JSON list (or {"queries": [...]})."""
    with open(filepath, encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("queries", [])
    return [Query(**q) for q in data]
