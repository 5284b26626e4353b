"""Exchange, risk and chart-analysis services."""
