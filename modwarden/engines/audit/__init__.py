"""Dependency audit engine — find banished modules across an organization."""

from modwarden.engines.audit.blacklist import Blacklist, parse_blacklist, parse_rule
from modwarden.engines.audit.evaluator import evaluate
from modwarden.engines.audit.github_client import GitHubClient, RateLimitError
from modwarden.engines.audit.models import (
    BlacklistRule,
    ManifestEntry,
    ManifestLocation,
    Repository,
    Requirement,
    ScanResult,
    Violation,
)
from modwarden.engines.audit.pipeline import AuditPipeline, PipelineConfig
from modwarden.engines.audit.report import (
    AuditTotals,
    ConsoleSink,
    RecordingSink,
    ReportSink,
    aggregate,
)
from modwarden.engines.audit.trie import SegmentTrie, covers

__all__ = [
    "AuditPipeline",
    "AuditTotals",
    "Blacklist",
    "BlacklistRule",
    "ConsoleSink",
    "GitHubClient",
    "ManifestEntry",
    "ManifestLocation",
    "PipelineConfig",
    "RateLimitError",
    "RecordingSink",
    "ReportSink",
    "Repository",
    "Requirement",
    "ScanResult",
    "SegmentTrie",
    "Violation",
    "aggregate",
    "covers",
    "evaluate",
    "parse_blacklist",
    "parse_rule",
]
