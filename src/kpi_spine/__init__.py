"""KPI Spine - monthly KPI collection for monitored applications."""

__version__ = "0.1.0"
