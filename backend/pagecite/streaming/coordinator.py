"""Orchestration of one cited chat answer.

``StreamCoordinator.admit`` runs admission control and input screening
before anything touches the upstream service. ``StreamCoordinator.stream``
then relays the upstream event stream as client frames:

    idle -> admitted -> searching -> generating -> done
                            \\            \\
                             +-> error     +-> error / aborted

A dedicated pump task reads upstream events in order, folds citation
evidence into the session and pushes delta frames onto a bounded queue.
When the client reads slowly the queue fills and the pump stops pulling
from upstream, so no frame is ever dropped and evidence collection never
depends on how fast frames are displayed.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator

from pagecite.citations.extractor import CitationExtractor, clean_answer
from pagecite.core.content_filter import ContentFilter
from pagecite.core.exceptions import ContentBlockedError, RateLimitedError, UpstreamError
from pagecite.core.logging import get_logger
from pagecite.core.protocols import UpstreamStream
from pagecite.core.rate_limiter import RateLimiter
from pagecite.corpus.catalog import CorpusCatalog
from pagecite.streaming.frames import DeltaFrame, DoneFrame, ErrorFrame, Frame
from pagecite.streaming.session import Phase, StreamSession
from pagecite.upstream.events import (
    Completed,
    RetrievalResult,
    RetrievalResults,
    TextDelta,
    UpstreamEvent,
    UpstreamRequest,
)
from pagecite.upstream.prompts import (
    SYSTEM_INSTRUCTIONS,
    detect_locale,
    is_not_found,
    not_found_phrase,
)

logger = get_logger(__name__)

_END = object()


class StreamCoordinator:
    """Drives one chat request from admission to the terminal frame."""

    def __init__(
        self,
        upstream: UpstreamStream,
        rate_limiter: RateLimiter,
        content_filter: ContentFilter,
        extractor: CitationExtractor,
        catalog: CorpusCatalog,
        instructions: str = SYSTEM_INSTRUCTIONS,
        index_ref: str | None = None,
        max_results: int = 20,
        frame_buffer_size: int = 32,
    ):
        self.upstream = upstream
        self.rate_limiter = rate_limiter
        self.content_filter = content_filter
        self.extractor = extractor
        self.catalog = catalog
        self.instructions = instructions
        self.index_ref = index_ref
        self.max_results = max_results
        self.frame_buffer_size = frame_buffer_size

    def admit(self, client_key: str, question: str, locale: str | None = None) -> StreamSession:
        """Admit one chat request or raise an admission error.

        Raises:
            RateLimitedError: Client exceeded a chat window
            ContentBlockedError: Question rejected by the input screen
        """
        admission = self.rate_limiter.admit(client_key, "chat")
        if not admission.allowed:
            raise RateLimitedError(admission.reason, admission.retry_after_ms, endpoint="chat")

        screened = self.content_filter.screen_input(question)
        if screened.blocked:
            raise ContentBlockedError(screened.reason, screened.category.value)

        session = StreamSession(
            client_key=client_key,
            question=question.strip(),
            locale=locale or detect_locale(question),
        )
        session.advance(Phase.ADMITTED)
        logger.info(
            "chat_admitted",
            session_id=session.session_id,
            locale=session.locale,
            question_length=len(session.question),
        )
        return session

    async def stream(self, session: StreamSession) -> AsyncIterator[Frame]:
        """Yield delta frames in upstream order, then exactly one terminal frame.

        Closing this generator before the terminal frame aborts the
        session and cancels the upstream read.
        """
        if session.phase is not Phase.ADMITTED:
            raise RuntimeError(f"Session {session.session_id} is {session.phase.value}, not admitted")

        queue: asyncio.Queue = asyncio.Queue(maxsize=self.frame_buffer_size)
        pump = asyncio.create_task(self._pump(session, queue))
        finished = False
        try:
            while True:
                item = await queue.get()
                if item is _END:
                    break
                yield item

            terminal = self._finish(session)
            finished = True
            yield terminal
        finally:
            if not finished and not session.phase.terminal:
                session.advance(Phase.ABORTED)
                logger.info(
                    "stream_aborted",
                    session_id=session.session_id,
                    partial_length=len(session.partial_answer),
                )
            if not pump.done():
                pump.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await pump

    async def _pump(self, session: StreamSession, queue: asyncio.Queue) -> None:
        request = UpstreamRequest(
            system_instructions=self.instructions,
            question=session.question,
            index_ref=self.index_ref,
            max_results=self.max_results,
        )
        session.advance(Phase.SEARCHING)
        logger.debug("upstream_opened", session_id=session.session_id, provider=self.upstream.name)

        try:
            async with contextlib.aclosing(self.upstream.stream(request)) as events:
                async for event in events:
                    frame = self._apply(session, event)
                    if frame is not None:
                        await queue.put(frame)
                    if isinstance(event, Completed):
                        break
        except UpstreamError as e:
            session.error = e.message
            logger.error(
                "upstream_failed",
                session_id=session.session_id,
                provider=e.provider,
                error=e.message,
            )
        except Exception as e:
            session.error = str(e) or type(e).__name__
            logger.exception("stream_pump_failed", session_id=session.session_id)

        await queue.put(_END)

    def _apply(self, session: StreamSession, event: UpstreamEvent) -> Frame | None:
        """Fold one upstream event into the session; return a frame to forward, if any."""
        if isinstance(event, TextDelta):
            if not event.text:
                return None
            if session.phase is Phase.SEARCHING:
                session.advance(Phase.GENERATING)
            session.answer_parts.append(event.text)
            return DeltaFrame(text=event.text)

        if isinstance(event, RetrievalResults):
            self._absorb_results(session, event.results)
            return None

        if isinstance(event, Completed):
            session.final_output = event.final_output
            return None

        logger.debug("upstream_event_ignored", kind=getattr(event, "kind", type(event).__name__))
        return None

    def _absorb_results(self, session: StreamSession, results: list[RetrievalResult]) -> None:
        session.retrieved_documents.update(r.filename for r in results if r.filename)
        known = self._known_documents(session)
        for result in results:
            if not result.text:
                continue
            found = self.extractor.extract(
                result.text,
                known_documents=known,
                default_document=result.filename or self._default_document(session),
                with_snippets=True,
            )
            session.sources.merge(found)
        logger.debug(
            "retrieval_absorbed",
            session_id=session.session_id,
            results=len(results),
            sources=len(session.sources),
        )

    def _finish(self, session: StreamSession) -> Frame:
        if session.error is not None:
            session.advance(Phase.ERROR)
            return ErrorFrame(error=session.error, answer=session.partial_answer)

        try:
            frame = self._finalize(session)
        except Exception:
            logger.exception("finalize_failed", session_id=session.session_id)
            session.error = "Failed to finalize answer"
            session.advance(Phase.ERROR)
            return ErrorFrame(error=session.error, answer=session.partial_answer)

        session.advance(Phase.DONE)
        logger.info(
            "stream_completed",
            session_id=session.session_id,
            source_count=len(frame.sources),
            answer_length=len(frame.answer),
            duration_ms=round(session.elapsed_ms, 2),
        )
        return frame

    def _finalize(self, session: StreamSession) -> DoneFrame:
        raw = session.partial_answer or session.final_output
        matches = self.extractor.find(
            raw,
            known_documents=self._known_documents(session),
            default_document=self._default_document(session),
        )
        session.sources.add_matches(matches)
        sources = session.sources.finalize()
        answer = self.content_filter.screen_output(
            clean_answer(raw, has_sources=bool(sources), matches=matches)
        )

        if is_not_found(answer):
            sources = []
        has_evidence = bool(sources) or (bool(answer) and not is_not_found(answer))
        if not has_evidence and not answer:
            answer = not_found_phrase(session.locale)

        return DoneFrame(answer=answer, sources=sources)

    def _known_documents(self, session: StreamSession) -> list[str]:
        return sorted(set(self.catalog.document_names()) | session.retrieved_documents)

    def _default_document(self, session: StreamSession) -> str | None:
        default = self.catalog.default_document
        if default:
            return default
        if session.retrieved_documents:
            return min(session.retrieved_documents)
        return None
