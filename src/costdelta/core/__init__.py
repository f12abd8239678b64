"""
Core - schema, template diffing, configuration, threshold policy and the pipeline.
"""
