"""Daily, fleet, trend and downtime aggregation"""
