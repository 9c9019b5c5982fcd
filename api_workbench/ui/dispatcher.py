"""
Event loop plumbing: the command runner and the dispatcher.

The dispatcher owns the application state. It takes events off one asyncio
queue in arrival order, applies them with the controller, and starts a task
for every command. Each task posts its completion event back onto the queue,
so state is only ever changed by the dispatcher's own loop.
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Callable

import httpx

from ..database import SqlSession, connect
from ..exceptions import AppError, DatabaseError
from ..schemas.documents import DocumentKind
from ..schemas.execute import ExecuteErrorResponse, QueryErrorResponse
from ..services.clipboard import ClipboardSink
from ..services.document_store import DocumentStore
from ..services.exporters import export_query_result
from ..services.http_executor import DEFAULT_TIMEOUT, MAX_RESPONSE_SIZE, execute_request
from ..services.postman import read_collection, write_collection
from ..services.sql_executor import MAX_ROWS, execute_query, list_columns, list_tables
from .commands import (
    Command,
    Connect,
    CopyToClipboard,
    Disconnect,
    ExecuteQuery,
    ExportQuery,
    ExportRequests,
    ImportRequests,
    LoadColumns,
    LoadTables,
    Quit,
    SaveDocument,
    SendHttp,
)
from .controller import handle
from .events import (
    ClipboardCompleted,
    ColumnsLoaded,
    ConnectCompleted,
    Event,
    ExportCompleted,
    HttpCompleted,
    QueryCompleted,
    RequestsExported,
    RequestsImported,
    SaveCompleted,
    TablesLoaded,
)
from .state import AppState


logger = logging.getLogger(__name__)


class CommandRunner:
    """
    Performs commands and turns their outcome into completion events.

    Blocking work (database calls, file writes, the clipboard) runs in worker
    threads; HTTP runs on the event loop through httpx's async client.
    """

    def __init__(
        self,
        store: DocumentStore,
        export_dir: Path,
        clipboard: ClipboardSink | None = None,
        http_timeout: float = DEFAULT_TIMEOUT,
        max_response_size: int = MAX_RESPONSE_SIZE,
        max_rows: int = MAX_ROWS,
        db_connect_timeout: int = 10,
        clock: Callable[[], float] = time.monotonic,
        transport: httpx.AsyncBaseTransport | None = None,
        connector: Callable[..., SqlSession] = connect,
    ):
        self.store = store
        self.export_dir = export_dir
        self.clipboard = clipboard or ClipboardSink()
        self.http_timeout = http_timeout
        self.max_response_size = max_response_size
        self.max_rows = max_rows
        self.db_connect_timeout = db_connect_timeout
        self.clock = clock
        self.transport = transport
        self.connector = connector
        self._save_locks: dict[DocumentKind, asyncio.Lock] = {}

    async def run(self, command: Command) -> Event | None:
        if isinstance(command, SendHttp):
            return await self.send_http(command)
        if isinstance(command, ExecuteQuery):
            return await self.execute_query(command)
        if isinstance(command, Connect):
            return await self.connect(command)
        if isinstance(command, Disconnect):
            await asyncio.to_thread(command.session.close)
            return None
        if isinstance(command, LoadTables):
            return await self.load_tables(command)
        if isinstance(command, LoadColumns):
            return await self.load_columns(command)
        if isinstance(command, SaveDocument):
            return await self.save(command)
        if isinstance(command, CopyToClipboard):
            error = await asyncio.to_thread(self.clipboard.write, command.text)
            return ClipboardCompleted(label=command.label, error=error, at=self.clock())
        if isinstance(command, ExportQuery):
            return await self.export(command)
        if isinstance(command, ExportRequests):
            return await self.export_requests(command)
        if isinstance(command, ImportRequests):
            return await self.import_requests(command)
        raise ValueError(f"Unknown command: {command!r}")

    def failed(self, command: Command, error: Exception) -> Event | None:
        """
        The completion event of a command that raised an unexpected error.

        Posting it releases the in-flight token the command was issued with.
        """
        message = f"Unexpected error: {error}"
        at = self.clock()
        if isinstance(command, SendHttp):
            return HttpCompleted(
                token=command.token,
                request=command.request,
                resolved=command.resolved,
                result=ExecuteErrorResponse(
                    error="An unexpected error occurred", error_type="unknown", details=str(error)
                ),
                warnings=command.warnings,
                at=at,
            )
        if isinstance(command, ExecuteQuery):
            error_result = QueryErrorResponse(error="Query failed", details=message)
            return QueryCompleted(token=command.token, query=command.query, result=error_result, at=at)
        if isinstance(command, Connect):
            return ConnectCompleted(token=command.token, config=command.config, error=message, at=at)
        if isinstance(command, LoadTables):
            return TablesLoaded(token=command.token, error=message, at=at)
        if isinstance(command, LoadColumns):
            return ColumnsLoaded(token=command.token, table=command.table, error=message, at=at)
        if isinstance(command, SaveDocument):
            return SaveCompleted(kind=command.kind, error=message, at=at)
        if isinstance(command, CopyToClipboard):
            return ClipboardCompleted(label=command.label, error=message, at=at)
        if isinstance(command, ExportQuery):
            return ExportCompleted(error=message, at=at)
        if isinstance(command, ExportRequests):
            return RequestsExported(error=message, at=at)
        if isinstance(command, ImportRequests):
            return RequestsImported(path=command.path, error=message, at=at)
        return None

    async def send_http(self, command: SendHttp) -> HttpCompleted:
        result = await execute_request(
            command.resolved,
            timeout=self.http_timeout,
            max_response_size=self.max_response_size,
            transport=self.transport,
        )
        return HttpCompleted(
            token=command.token,
            request=command.request,
            resolved=command.resolved,
            result=result,
            warnings=command.warnings,
            at=self.clock(),
        )

    async def execute_query(self, command: ExecuteQuery) -> QueryCompleted:
        try:
            result = await asyncio.to_thread(execute_query, command.session, command.query, self.max_rows)
        except AppError as e:
            result = QueryErrorResponse(error=e.detail)
        return QueryCompleted(token=command.token, query=command.query, result=result, at=self.clock())

    async def connect(self, command: Connect) -> ConnectCompleted:
        try:
            session = await asyncio.to_thread(self.connector, command.config, self.db_connect_timeout)
        except DatabaseError as e:
            return ConnectCompleted(token=command.token, config=command.config, error=str(e), at=self.clock())
        return ConnectCompleted(token=command.token, config=command.config, session=session, at=self.clock())

    async def load_tables(self, command: LoadTables) -> TablesLoaded:
        try:
            tables = await asyncio.to_thread(list_tables, command.session)
        except DatabaseError as e:
            return TablesLoaded(
                token=command.token, error=str(e), connection_lost=e.connection_lost, at=self.clock()
            )
        return TablesLoaded(token=command.token, tables=tuple(tables), at=self.clock())

    async def load_columns(self, command: LoadColumns) -> ColumnsLoaded:
        try:
            columns = await asyncio.to_thread(list_columns, command.session, command.table)
        except DatabaseError as e:
            return ColumnsLoaded(
                token=command.token, table=command.table, error=str(e),
                connection_lost=e.connection_lost, at=self.clock(),
            )
        return ColumnsLoaded(token=command.token, table=command.table, columns=tuple(columns), at=self.clock())

    async def save(self, command: SaveDocument) -> SaveCompleted:
        # saves of one document are written in the order they were issued
        lock = self._save_locks.setdefault(command.kind, asyncio.Lock())
        async with lock:
            try:
                await asyncio.to_thread(self.store.save, command.kind, command.document)
            except AppError as e:
                return SaveCompleted(kind=command.kind, error=str(e), at=self.clock())
        return SaveCompleted(kind=command.kind, at=self.clock())

    async def export(self, command: ExportQuery) -> ExportCompleted:
        try:
            result = await asyncio.to_thread(
                export_query_result, command.result, command.format, self.export_dir, command.table
            )
        except AppError as e:
            return ExportCompleted(error=e.detail, at=self.clock())
        return ExportCompleted(result=result, at=self.clock())

    async def export_requests(self, command: ExportRequests) -> RequestsExported:
        try:
            path = await asyncio.to_thread(write_collection, list(command.requests), self.export_dir)
        except AppError as e:
            return RequestsExported(error=e.detail, at=self.clock())
        return RequestsExported(path=str(path), count=len(command.requests), at=self.clock())

    async def import_requests(self, command: ImportRequests) -> RequestsImported:
        try:
            requests, skipped = await asyncio.to_thread(read_collection, Path(command.path))
        except AppError as e:
            return RequestsImported(path=command.path, error=e.detail, at=self.clock())
        return RequestsImported(
            path=command.path, requests=tuple(requests), skipped=tuple(skipped), at=self.clock()
        )


class Dispatcher:
    """
    Runs the controller over a queue of events.

    Attributes:
        state: The current application state
        on_state: Called with every new state (the renderer)
    """

    def __init__(
        self,
        state: AppState,
        runner: CommandRunner,
        on_state: Callable[[AppState], None] | None = None,
    ):
        self.state = state
        self.runner = runner
        self.on_state = on_state
        self.queue: asyncio.Queue[Event | None] = asyncio.Queue()
        self._tasks: set[asyncio.Task] = set()
        self._stopped = False

    def post(self, event: Event) -> None:
        """Queue an event; must be called from the loop's thread."""
        self.queue.put_nowait(event)

    def stop(self) -> None:
        self.queue.put_nowait(None)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def apply(self, event: Event) -> None:
        self.state, commands = handle(self.state, event)
        if self.on_state is not None:
            self.on_state(self.state)
        for command in commands:
            if isinstance(command, Quit):
                self._stopped = True
                continue
            task = asyncio.create_task(self._run_command(command))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _run_command(self, command: Command) -> None:
        try:
            event = await self.runner.run(command)
        except Exception as e:
            logger.exception("Command %s failed", type(command).__name__)
            event = self.runner.failed(command, e)
        if event is not None:
            self.post(event)

    async def run(self) -> AppState:
        """Process events until stopped or a Quit command is issued."""
        while not self._stopped:
            event = await self.queue.get()
            if event is None:
                break
            self.apply(event)
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        return self.state

    async def drain(self) -> AppState:
        """Process events until the queue is empty and no command is running."""
        while True:
            while not self.queue.empty():
                event = self.queue.get_nowait()
                if event is not None:
                    self.apply(event)
            if not self._tasks:
                return self.state
            await asyncio.wait(set(self._tasks), return_when=asyncio.FIRST_COMPLETED)
