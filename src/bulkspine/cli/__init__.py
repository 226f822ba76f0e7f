"""``bulkspine`` command line."""
