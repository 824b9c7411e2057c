"""Date ranges, shift windows and date filtering"""
