"""OEE calculation primitives and input records"""
