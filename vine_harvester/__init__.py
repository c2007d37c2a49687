"""Vineyard Environmental Data Harvester.

Keeps one external scheduler job per enabled data source and stores
soil, pest, weather, imagery and satellite observations per vineyard
for spatial and temporal correlation.
"""

__version__ = "0.1.0"
