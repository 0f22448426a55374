"""
ImpactConnect personalization - Source Package

Query interpretation and cause-based personalization for the ImpactConnect
volunteering site.

Modules:
- query_parser: Free-text search parsing (city and virtual filters)
- variant_resolver: Cause to content variant lookup
- personalize_service: Personalization state manager (SDK handle, cause sync)
- assembler: Personalized carousel content assembly
- mcp_server: MCP server exposing the layer as tools
"""

__version__ = "0.1.0"

from .assembler import PersonalizedContentAssembler, assemble
from .models import DefaultContent, OpportunitySummary, PersonalizedPayload
from .personalize_service import PersonalizationStateManager
from .query_parser import ParsedQuery, QueryParser, parse
from .variant_resolver import VariantResolver, resolve_variant

__all__ = [
    "ParsedQuery",
    "QueryParser",
    "parse",
    "VariantResolver",
    "resolve_variant",
    "PersonalizationStateManager",
    "PersonalizedContentAssembler",
    "assemble",
    "DefaultContent",
    "OpportunitySummary",
    "PersonalizedPayload",
]
