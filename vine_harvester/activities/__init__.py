"""Function activities.

Each activity performs a single unit of work behind an HTTP route:
- ingest_observation: Parse and save observations
"""
