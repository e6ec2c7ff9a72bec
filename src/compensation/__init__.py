"""
Offer analysis and negotiation strategy generation for the compensation negotiator.
Market benchmarks are simulated from `market_data.yaml`; strategy text comes from the LLM.
"""
