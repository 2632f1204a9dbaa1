"""Generator capability and an HTTP adapter for a remote generation service."""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from serialforge.core.config import Settings
from serialforge.infrastructure.resilience import async_retry
from serialforge.schemas import (
    GeneratedCompletion,
    GeneratedUnit,
    GeneratedWork,
    GenerationOptions,
)
from serialforge.services.continuity import GenerationContext
from serialforge.shared_kernel import GenerationError, Result

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class Generator(ABC):
    """Produces new works, next units and closing units.

    Implementations return ``Result`` values; the orchestrator bounds each
    call with a timeout.
    """

    @abstractmethod
    async def generate_new_work(self, options: GenerationOptions) -> Result[GeneratedWork, GenerationError]:
        ...

    @abstractmethod
    async def generate_next_unit(
        self, slug: str, context: GenerationContext, options: GenerationOptions
    ) -> Result[GeneratedUnit, GenerationError]:
        ...

    @abstractmethod
    async def complete_work(
        self, slug: str, context: GenerationContext, options: GenerationOptions
    ) -> Result[GeneratedCompletion, GenerationError]:
        ...


class HttpGenerator(Generator):
    """Posts JSON to a generation service and parses the typed reply."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.base_url = settings.GENERATOR_URL.rstrip("/")
        self.api_key = settings.GENERATOR_API_KEY

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _send(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        timeout = httpx.Timeout(
            self.settings.GENERATOR_TIMEOUT_SECONDS, read=self.settings.GENERATOR_TIMEOUT_SECONDS
        )
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(
                f"{self.base_url}{path}",
                headers=self._headers(),
                json=payload,
            )
        if response.status_code != 200:
            raise GenerationError(
                f"Generator returned {response.status_code}: {response.text}",
                code="GENERATOR_STATUS",
                details={"status": response.status_code, "path": path},
            )
        return response.json()

    async def _call(self, path: str, payload: Dict[str, Any], model: Type[M]) -> Result[M, GenerationError]:
        try:
            data = await async_retry(
                self._send,
                path,
                payload,
                retries=self.settings.GENERATOR_RETRIES,
                backoff=self.settings.GENERATOR_RETRY_BACKOFF,
                exceptions=(httpx.TransportError,),
            )
        except GenerationError as exc:
            return Result.failure(exc)
        except httpx.HTTPError as exc:
            logger.error("Generator request %s failed: %s", path, exc)
            return Result.failure(
                GenerationError(f"Generator connection error: {exc}", code="GENERATOR_UNREACHABLE")
            )
        except ValueError as exc:
            return Result.failure(
                GenerationError(f"Generator returned invalid JSON: {exc}", code="GENERATOR_PAYLOAD")
            )
        try:
            return Result.success(model.model_validate(data))
        except PydanticValidationError as exc:
            return Result.failure(
                GenerationError(
                    f"Generator reply does not match {model.__name__}",
                    code="GENERATOR_PAYLOAD",
                    details={"errors": exc.errors(include_url=False, include_context=False)},
                )
            )

    async def generate_new_work(self, options: GenerationOptions) -> Result[GeneratedWork, GenerationError]:
        return await self._call("/works", {"options": options.model_dump(mode="json")}, GeneratedWork)

    async def generate_next_unit(
        self, slug: str, context: GenerationContext, options: GenerationOptions
    ) -> Result[GeneratedUnit, GenerationError]:
        payload = {
            "work_slug": slug,
            "context": context.to_dict(),
            "prompt": context.render(),
            "options": options.model_dump(mode="json"),
        }
        return await self._call("/units", payload, GeneratedUnit)

    async def complete_work(
        self, slug: str, context: GenerationContext, options: GenerationOptions
    ) -> Result[GeneratedCompletion, GenerationError]:
        payload = {
            "work_slug": slug,
            "context": context.to_dict(),
            "prompt": context.render(),
            "options": options.model_dump(mode="json"),
        }
        return await self._call("/completions", payload, GeneratedCompletion)


def build_generator(settings: Settings, override: Optional[Generator] = None) -> Generator:
    return override or HttpGenerator(settings)
