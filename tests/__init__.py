"""
Test Suite for the Market Data Core

Includes:
- Unit tests for validators, normalizers and calculations
- Provider adapter tests against recorded JSON fixtures
- Resolver, scheduler and service tests with mocked providers
"""
