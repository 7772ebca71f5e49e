"""HTTP client, interceptor pipeline and payload envelope codec."""
