"""Analytics module -- read-only reports over the selection log.

Components:
- schemas: Pydantic response models (FairnessReport, EngagementScore, ...)
- metrics: Pure computations over fetched rows
- aggregator: AnalyticsAggregator fetching rows per organization/scope
"""
