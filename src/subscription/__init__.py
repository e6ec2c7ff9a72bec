"""
Subscription tiers, usage limits, lifecycle management and billing integrations.
Access checks follow the split pattern: routes call `check_usage_limit` before an action
and `increment_usage` after it succeeds.
"""
