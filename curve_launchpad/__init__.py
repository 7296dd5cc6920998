"""
Curve Launchpad

Constant-product bonding curves for fixed-supply token launches:
- Virtual reserves set the price, real reserves track custody
- Buys and sells settle atomically through a custody collaborator
- A curve completes when its last real token is sold and migrates to a
  liquidity venue
"""

__version__ = "1.0.0"
