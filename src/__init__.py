"""
Signatura service code.
Domain logic (subscriptions, CV tailoring, coaching, contract review) sits in sibling packages;
`src.api` exposes it over HTTP and `scripts/` drives the scheduled jobs.
"""
