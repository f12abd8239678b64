"""
costdelta - estimate the monthly cost impact of CloudFormation changes.

Diffs two template snapshots, prices every changed resource against the
AWS Price List API and gates the resulting delta against thresholds.
"""
from __future__ import annotations

import logging

__version__ = "0.3.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())
