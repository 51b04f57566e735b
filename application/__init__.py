"""
Application Layer for the API tester.

This package contains:
- ports/: Abstract interfaces the capture pipeline and API depend on
"""
