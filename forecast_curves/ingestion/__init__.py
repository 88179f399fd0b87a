"""Upload validation and atomic persistence for new curve instances."""
