"""Job Match Engine: tiered, fault-tolerant matching of job postings to user profiles."""

__version__ = "1.0.0"
