"""taskpool — one shared worker pool for async calls and scheduled jobs."""
