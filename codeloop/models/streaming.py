"""Single-producer/single-consumer channel for streamed model responses.

A :class:`ResponseStream` owns a producer task that drains a provider's
chunk iterator into a bounded queue. The consumer iterates the stream; the
final item is always exactly one chunk with ``is_done`` set, after which the
channel is closed. Closing the stream early cancels the producer, which in
turn closes the provider iterator and abandons the underlying network call.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import AsyncIterator, Optional

from codeloop.errors import CodeLoopError, TransportError

from .types import FinishReason, ModelResponse, StreamChunk, ToolCall, Usage

logger = logging.getLogger(__name__)


class ResponseStream:
    """Ordered stream of :class:`StreamChunk` items from a model client.

    Must be created inside a running event loop; the producer starts
    immediately. With the default ``max_pending=1`` at most one chunk waits
    for the consumer, so a consumer that stops reading stalls the producer.

    Example:
        >>> async with client.stream_query(messages, tools) as stream:
        ...     async for chunk in stream:
        ...         print(chunk.content, end="")
    """

    def __init__(
        self,
        source: AsyncIterator[StreamChunk],
        max_pending: int = 1,
    ) -> None:
        self._source = source
        self._queue: asyncio.Queue[StreamChunk] = asyncio.Queue(maxsize=max_pending)
        self._finished = False
        self._producer: asyncio.Task[None] = asyncio.get_running_loop().create_task(
            self._produce()
        )

    async def _produce(self) -> None:
        terminal = StreamChunk(is_done=True)
        try:
            async for chunk in self._source:
                if chunk.is_done:
                    terminal = chunk
                    break
                await self._queue.put(chunk)
        except Exception as e:
            logger.error(f"Model stream failed: {type(e).__name__}: {e}")
            terminal = StreamChunk(is_done=True, error=e)
        finally:
            aclose = getattr(self._source, "aclose", None)
            if aclose is not None:
                await aclose()

        await self._queue.put(terminal)

    @property
    def closed(self) -> bool:
        """True once the terminal chunk was consumed or the stream was closed."""
        return self._finished

    def __aiter__(self) -> "ResponseStream":
        return self

    async def __anext__(self) -> StreamChunk:
        if self._finished:
            raise StopAsyncIteration

        chunk = await self._queue.get()
        if chunk.is_done:
            self._finished = True
        return chunk

    async def aclose(self) -> None:
        """Stop consuming and cancel the producer if it is still running."""
        self._finished = True
        if not self._producer.done():
            self._producer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._producer

    async def __aenter__(self) -> "ResponseStream":
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()

    async def collect(self, model: Optional[str] = None) -> ModelResponse:
        """Drain the stream and assemble a complete :class:`ModelResponse`.

        Raises:
            CodeLoopError: The error carried by the terminal chunk. Errors that
                are not already CodeLoop errors are wrapped in TransportError.
        """
        accumulator = StreamAccumulator(model=model)
        async for chunk in self:
            accumulator.add(chunk)
        return accumulator.response()


class StreamAccumulator:
    """Folds stream chunks into a :class:`ModelResponse`, one chunk at a time."""

    def __init__(self, model: Optional[str] = None) -> None:
        self.model = model
        self.content_parts: list[str] = []
        self.tool_calls: list[ToolCall] = []
        self.usage = Usage()
        self.finish_reason: Optional[FinishReason] = None

    def add(self, chunk: StreamChunk) -> None:
        """Fold in one chunk, raising the error a terminal chunk carries."""
        if chunk.content:
            self.content_parts.append(chunk.content)
        self.tool_calls.extend(chunk.tool_calls)
        if chunk.usage is not None:
            self.usage = self.usage + chunk.usage
        if chunk.finish_reason is not None:
            self.finish_reason = chunk.finish_reason
        if chunk.error is not None:
            if isinstance(chunk.error, CodeLoopError):
                raise chunk.error
            raise TransportError(str(chunk.error), model=self.model) from chunk.error

    def response(self) -> ModelResponse:
        finish_reason = self.finish_reason
        if finish_reason is None:
            finish_reason = FinishReason.TOOL_USE if self.tool_calls else FinishReason.STOP

        return ModelResponse(
            content="".join(self.content_parts),
            tool_calls=list(self.tool_calls),
            usage=self.usage,
            finish_reason=finish_reason,
            model=self.model,
        )
