"""Tests for render-orchestrator."""
