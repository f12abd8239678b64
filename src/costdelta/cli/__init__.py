"""
costdelta CLI package.
"""
