"""
Integration Tests for the Prediction Agents API
"""
