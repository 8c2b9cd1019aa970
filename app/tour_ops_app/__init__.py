"""Tour operations service: master data, tours, import reconciliation, exports."""

__version__ = "1.0.0"
