"""
ImpactConnect personalization MCP server.

This module implements a Model Context Protocol (MCP) server exposing the
query interpretation and personalization layer as tools:
- parse_search_query: Extract city/virtual filters from free-text search
- resolve_variant: Map a cause to its content variant
- personalized_carousel: Assemble the personalized event carousel payload
- cause_theme: Colours for the personalized view
- record_registration: Record a registration in the local attribute store
- personalization_status: Report the current personalization state

The server provides request tracing, argument validation, rate limiting,
metrics, and runs the personalization state manager for its lifetime.
"""

import asyncio
import json
import signal
import sys
import time
import uuid
from typing import Any, Dict, List, Optional

from aiolimiter import AsyncLimiter
from jsonschema import ValidationError, validate
from loguru import logger
from mcp.server import Server
from mcp.types import CallToolResult, TextContent, Tool
from prometheus_client import Counter, Histogram, CollectorRegistry, generate_latest

from config.settings import config
from config.tool_loader import ToolConfigLoader
from .assembler import PersonalizedContentAssembler
from .attribute_store import LocalAttributeStore
from .cause_theme import resolve_cause_theme
from .contentstack import ContentstackClient
from .models import DefaultContent, OpportunitySummary
from .personalize_service import PersonalizationStateManager, SdkFactory
from .query_parser import build_search_request, facet_chips, get_parser
from .variant_resolver import get_resolver

_UNSET = object()


class PersonalizationMCPServer:
    """
    MCP server for search query interpretation and personalization.

    Collaborators are injectable so the server can be exercised without
    network access; by default they are built from configuration.
    """

    def __init__(
        self,
        store: Optional[LocalAttributeStore] = None,
        content_client: Optional[ContentstackClient] = None,
        sdk_factory: Optional[SdkFactory] = None,
        install_signal_handlers: bool = True,
    ) -> None:
        """Initialize the personalization MCP server."""
        self.server = Server("impactconnect-personalize")
        self.logger = self._setup_logging()
        if install_signal_handlers:
            self._setup_signal_handlers()
        self._register_handlers()

        self.tool_loader = ToolConfigLoader()
        self._tool_schemas: Dict[str, Dict[str, Any]] = {}

        if config.ENABLE_RATE_LIMITING:
            self.rate_limiter = AsyncLimiter(
                max_rate=config.RATE_LIMIT_REQUESTS,
                time_period=config.RATE_LIMIT_WINDOW
            )
        else:
            self.rate_limiter = None

        if config.ENABLE_PROMETHEUS_METRICS:
            self.registry = CollectorRegistry()
            self.request_counter = Counter(
                'personalize_requests_total',
                'Total number of MCP tool requests',
                ['tool_name', 'status'],
                registry=self.registry
            )
            self.request_duration = Histogram(
                'personalize_request_duration_seconds',
                'Duration of MCP tool requests',
                ['tool_name'],
                registry=self.registry
            )
        else:
            self.metrics = {
                "total_requests": 0,
                "successful_requests": 0,
                "failed_requests": 0,
                "average_response_time": 0.0,
                "tool_usage": {},
            }

        self.store = store or LocalAttributeStore(config.USER_DATA_PATH)
        self.state_manager = PersonalizationStateManager(self.store, sdk_factory=sdk_factory)
        self.parser = get_parser()
        self.resolver = get_resolver()

        # Content client (lazy loading)
        self._content_client: Optional[ContentstackClient] = content_client
        self._owns_content_client = content_client is None

        self._tool_handlers = {
            "parse_search_query": self._parse_search_query,
            "resolve_variant": self._resolve_variant,
            "personalized_carousel": self._personalized_carousel,
            "cause_theme": self._cause_theme,
            "record_registration": self._record_registration,
            "personalization_status": self._personalization_status,
        }

    def _setup_logging(self):
        """Configure logging using loguru or fallback to standard logging."""
        if config.USE_LOGURU:
            logger.remove()
            logger.add(
                sys.stderr,
                format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level}</level> | <cyan>{name}</cyan> | {message}",
                level=config.LOG_LEVEL,
                colorize=True
            )
            return logger
        else:
            import logging
            std_logger = logging.getLogger("impactconnect-personalize")
            std_logger.setLevel(getattr(logging, config.LOG_LEVEL))

            handler = logging.StreamHandler(sys.stderr)
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )
            handler.setFormatter(formatter)
            std_logger.addHandler(handler)

            return std_logger

    def _setup_signal_handlers(self) -> None:
        """Setup graceful shutdown handlers for SIGINT and SIGTERM."""

        def signal_handler(signum: int, frame) -> None:
            signal_name = signal.Signals(signum).name
            self.logger.info(f"Received {signal_name}, initiating graceful shutdown...")
            sys.exit(0)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    def _register_handlers(self) -> None:
        """Register MCP server handlers."""
        @self.server.list_tools()
        async def handle_list_tools() -> List[Tool]:
            return await self._list_tools()

        @self.server.call_tool()
        async def handle_call_tool(name: str, arguments: Dict[str, Any]):
            result = await self._call_tool(name, arguments or {})
            return result.content

    def _generate_request_id(self) -> str:
        """Generate unique request ID for tracing."""
        return f"req_{uuid.uuid4().hex[:8]}"

    async def _validate_tool_arguments(self, tool_name: str, arguments: Dict[str, Any]) -> None:
        """
        Validate tool arguments against JSON Schema.

        Raises:
            ValueError: If arguments are invalid
        """
        if tool_name not in self._tool_schemas:
            tools = await self._list_tools()
            for tool in tools:
                self._tool_schemas[tool.name] = tool.inputSchema

        if tool_name not in self._tool_schemas:
            raise ValueError(f"Unknown tool: {tool_name}")

        try:
            validate(instance=arguments, schema=self._tool_schemas[tool_name])
        except ValidationError as e:
            raise ValueError(f"Invalid arguments for tool '{tool_name}': {e.message}")

    def _update_metrics(self, tool_name: str, execution_time: float, success: bool) -> None:
        """Update performance metrics using Prometheus or fallback."""
        if config.ENABLE_PROMETHEUS_METRICS:
            status = "success" if success else "error"
            self.request_counter.labels(tool_name=tool_name, status=status).inc()
            self.request_duration.labels(tool_name=tool_name).observe(execution_time)
        else:
            self.metrics["total_requests"] += 1
            self.metrics["tool_usage"][tool_name] = self.metrics["tool_usage"].get(tool_name, 0) + 1

            if success:
                self.metrics["successful_requests"] += 1
            else:
                self.metrics["failed_requests"] += 1

            total_requests = self.metrics["total_requests"]
            current_avg = self.metrics["average_response_time"]
            self.metrics["average_response_time"] = (
                current_avg * (total_requests - 1) + execution_time
            ) / total_requests

    async def _list_tools(self) -> List[Tool]:
        """List available personalization tools."""
        self.logger.debug("Listing available tools")
        return self.tool_loader.get_tool_definitions()

    def _error_result(self, message: str) -> CallToolResult:
        return CallToolResult(content=[TextContent(type="text", text=f"Error: {message}")], isError=True)

    async def _call_tool(self, name: str, arguments: Dict[str, Any]) -> CallToolResult:
        """
        Tool execution handler with validation, rate limiting, timeout
        control and performance monitoring.
        """
        request_id = self._generate_request_id()
        start_time = time.time()

        self.logger.info(f"[{request_id}] Executing tool: {name} with arguments: {arguments}")

        try:
            if self.rate_limiter:
                await self.rate_limiter.acquire()

            try:
                await self._validate_tool_arguments(name, arguments)
                self.logger.debug(f"[{request_id}] Arguments validation passed")
            except ValueError as e:
                error_msg = f"Validation error: {str(e)}"
                self.logger.error(f"[{request_id}] {error_msg}")
                self._update_metrics(name, time.time() - start_time, False)
                return self._error_result(error_msg)

            handler = self._tool_handlers.get(name)
            if handler is None:
                error_msg = f"Unknown tool: {name}"
                self.logger.error(f"[{request_id}] {error_msg}")
                self._update_metrics(name, time.time() - start_time, False)
                return self._error_result(error_msg)

            # Collaborator calls carry their own timeouts; this bounds the whole tool
            timeout_seconds = config.TIMEOUT_SECONDS * 2
            try:
                async with asyncio.timeout(timeout_seconds):
                    content = await handler(request_id, **arguments)
            except TimeoutError:
                execution_time = time.time() - start_time
                error_msg = f"Tool execution timed out after {timeout_seconds}s"
                self.logger.error(f"[{request_id}] {error_msg}")
                self._update_metrics(name, execution_time, False)
                return self._error_result(error_msg)

            execution_time = time.time() - start_time
            self.logger.info(f"[{request_id}] Tool '{name}' completed successfully in {execution_time:.3f}s")
            self._update_metrics(name, execution_time, True)
            return CallToolResult(content=content)

        except Exception as e:
            execution_time = time.time() - start_time
            error_msg = f"Unexpected error executing tool {name}: {str(e)}"
            self.logger.error(f"[{request_id}] {error_msg}")
            self._update_metrics(name, execution_time, False)
            return self._error_result(error_msg)

    def _get_content_client(self) -> ContentstackClient:
        """Get or initialize the content delivery client."""
        if self._content_client is None:
            self._content_client = ContentstackClient.from_config()
            self.logger.info(f"Content client initialized for region {config.CONTENTSTACK_REGION}")
        return self._content_client

    @staticmethod
    def _json_content(data: Any) -> List[TextContent]:
        return [TextContent(type="text", text=json.dumps(data, indent=2, ensure_ascii=False))]

    # Tool handlers

    async def _parse_search_query(
        self, request_id: str, query: str, index_name: str = "opportunities"
    ) -> List[TextContent]:
        parsed = self.parser.parse(query)
        self.logger.debug(f"[{request_id}] Parsed query: {parsed}")
        return self._json_content({
            "parsed": parsed.to_dict(),
            "searchRequest": build_search_request(parsed, index_name),
            "chips": facet_chips(parsed),
        })

    async def _resolve_variant(self, request_id: str, cause: Optional[str]) -> List[TextContent]:
        return self._json_content({
            "cause": cause,
            "variantUid": self.resolver.resolve(cause),
            "variantAlias": self.resolver.variant_alias(cause),
        })

    async def _personalized_carousel(
        self,
        request_id: str,
        cause: Any = _UNSET,
        baseline_events: Optional[List[Dict[str, Any]]] = None,
    ) -> List[TextContent]:
        if cause is _UNSET:
            cause = self.store.get_primary_cause()
            self.logger.debug(f"[{request_id}] Using stored primary cause: {cause}")

        events = [OpportunitySummary.from_dict(event) for event in baseline_events or []]
        defaults = DefaultContent.from_config(events)

        assembler = PersonalizedContentAssembler.from_client(self._get_content_client(), self.resolver)
        payload = await assembler.assemble(cause, defaults)
        return self._json_content(payload.to_dict())

    async def _cause_theme(self, request_id: str, cause: Any = _UNSET) -> List[TextContent]:
        if cause is _UNSET:
            cause = self.store.get_primary_cause()
        client = self._get_content_client()
        theme = await resolve_cause_theme(cause, client.get_all_causes, timeout=config.TIMEOUT_SECONDS)
        return self._json_content(theme)

    async def _record_registration(self, request_id: str, **registration: Any) -> List[TextContent]:
        record = self.store.add_registration(**registration)
        primary_cause = self.store.get_primary_cause()
        self.logger.info(f"[{request_id}] Registration {record.id} recorded, primary cause: {primary_cause}")
        return self._json_content({
            "registrationId": record.id,
            "registeredAt": record.registered_at,
            "primaryCause": primary_cause,
        })

    async def _personalization_status(self, request_id: str) -> List[TextContent]:
        primary_cause = self.store.get_primary_cause()
        return self._json_content({
            "primaryCause": primary_cause,
            "lastObservedCause": self.state_manager.last_observed_cause,
            "variantUid": self.resolver.resolve(primary_cause),
            "causesByFrequency": [
                {"cause": cause, "count": count} for cause, count in self.store.get_causes_by_frequency()
            ],
            "sdkAvailable": self.state_manager.is_initialized(),
            "userUid": self.state_manager.get_user_uid(),
            "variantAliases": self.state_manager.get_variant_aliases(),
            "watching": self.state_manager.running,
        })

    def get_metrics(self) -> Dict[str, Any]:
        """Get current metrics in a standardized format."""
        if config.ENABLE_PROMETHEUS_METRICS:
            return {
                "prometheus_metrics": generate_latest(self.registry).decode('utf-8'),
                "format": "prometheus"
            }
        return {"metrics": self.metrics, "format": "simple"}

    def _validate_startup_dependencies(self) -> None:
        """Log which collaborators are configured; none of them is mandatory."""
        self.logger.info("Validating startup dependencies...")

        if config.has_cms_credentials():
            self.logger.info(f"Content delivery configured (environment: {config.CONTENTSTACK_ENVIRONMENT})")
        else:
            self.logger.warning("Content delivery credentials not configured - carousel will use defaults")

        if config.PERSONALIZE_PROJECT_UID:
            self.logger.info(f"Personalize edge API: {config.PERSONALIZE_EDGE_API_URL}")
        else:
            self.logger.warning("Personalize project UID not configured - attribute sync disabled")

        self.logger.info(f"Local attribute store: {config.USER_DATA_PATH}")

    async def shutdown(self) -> None:
        """Stop background work and release owned clients."""
        await self.state_manager.stop()
        if self._content_client is not None and self._owns_content_client:
            await self._content_client.aclose()
            self._content_client = None

    async def run(self) -> None:
        """Run the server over stdio until shutdown is requested."""
        try:
            self.logger.info("Starting ImpactConnect personalization MCP server...")
            self._validate_startup_dependencies()

            from mcp.server.stdio import stdio_server

            self.state_manager.start()

            async with stdio_server() as (read_stream, write_stream):
                self.logger.info("Server started successfully, listening for MCP requests...")
                await self.server.run(
                    read_stream,
                    write_stream,
                    self.server.create_initialization_options()
                )

        except KeyboardInterrupt:
            self.logger.info("Received shutdown signal, stopping server...")
        except Exception as e:
            self.logger.error(f"Fatal error in server: {e}")
            raise
        finally:
            await self.shutdown()
            self.logger.info("Personalization MCP server shutdown complete")


async def main() -> None:
    await PersonalizationMCPServer().run()


def cli() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    cli()
